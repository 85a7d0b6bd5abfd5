"""API response models."""

from __future__ import annotations

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    status: str = "ok"
    version: str = "0.1.0"
    cached_hierarchies: int = 0


class HierarchyResponse(BaseModel):
    hierarchy_id: str
    width: int
    height: int
    n_leaves: int
    n_nodes: int
    max_level: float
    cached: bool = False
    processing_time_ms: float = 0.0


class CutResponse(BaseModel):
    hierarchy_id: str
    level: float
    n_regions: int
    labels: list[int] = Field(default_factory=list)
    processing_time_ms: float = 0.0


class BitmapResponse(BaseModel):
    width: int
    height: int
    bitmap: str = Field(..., description="Base64-encoded RGBA bytes, width*height*4")
    level: float | None = None
    processing_time_ms: float = 0.0


class ErrorResponse(BaseModel):
    error: str
    message: str
