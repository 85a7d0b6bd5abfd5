"""Shared request handling: pixel decoding, size guard, config overrides."""

from __future__ import annotations

import base64
import time
from dataclasses import replace

from fastapi import HTTPException

from hierseg.config import Settings
from hierseg.engine.config import SegmentationConfig
from hierseg.engine.pixels import PixelBuffer, check_bit_depth, check_dimensions
from hierseg.models.requests import ImageInput


def load_image(req: ImageInput, settings: Settings) -> PixelBuffer:
    """Validate and decode the request image; raises SegmentationError subclasses."""
    check_bit_depth(req.bit_depth)
    check_dimensions(req.width, req.height, req.channels)
    if req.width * req.height > settings.max_pixels:
        raise HTTPException(
            status_code=413,
            detail=f"Image has {req.width * req.height} pixels, limit is {settings.max_pixels}",
        )
    return PixelBuffer.from_bytes(
        req.pixel_bytes(), req.width, req.height, req.channels, layout=req.layout,
    )


def engine_config(settings: Settings, **overrides) -> SegmentationConfig:
    """Engine config from settings, with request overrides that are not None."""
    config = SegmentationConfig.from_settings(settings)
    changes = {k: v for k, v in overrides.items() if v is not None}
    return replace(config, **changes) if changes else config


def encode_bitmap(bitmap: bytes) -> str:
    return base64.b64encode(bitmap).decode("ascii")


def elapsed_ms(start: float) -> float:
    return round((time.perf_counter() - start) * 1000, 1)
