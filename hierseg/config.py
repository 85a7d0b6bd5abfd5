"""Application configuration from environment variables."""

from __future__ import annotations

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    env: str = "development"
    log_level: str = "info"

    # Server
    host: str = "127.0.0.1"
    port: int = 8000

    # CORS
    cors_origins: list[str] = ["http://localhost:3000"]

    # In-memory hierarchy cache (never persisted)
    max_cached_hierarchies: int = 16
    max_pixels: int = 4096 * 4096

    # Engine defaults
    slic_compactness: float = 10.0
    slic_max_iterations: int = 10
    slic_convergence_tolerance: float = 0.5
    slic_min_size_factor: float = 0.25
    workers: int = 1
    weight: str = "color"
    oversampling: int = 4
    pixel_layout: str = "interleaved"

    model_config = {"env_prefix": "HIERSEG_", "env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()
