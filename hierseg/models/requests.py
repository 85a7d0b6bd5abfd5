"""API request models."""

from __future__ import annotations

import base64
import binascii
from typing import Literal

from pydantic import BaseModel, Field, field_validator, model_validator

Layout = Literal["interleaved", "planar"]
WeightName = Literal["color", "mumford_shah"]
RenderMode = Literal["mean", "palette"]


class ImageInput(BaseModel):
    pixels: str = Field(..., description="Base64-encoded 8-bit samples")
    width: int = Field(..., description="Image width in pixels")
    height: int = Field(..., description="Image height in pixels")
    channels: int = Field(..., description="Samples per pixel")
    layout: Layout = Field(default="interleaved", description="Byte order: interleaved (HWC) or planar (CHW)")
    bit_depth: int = Field(default=8, description="Bits per channel sample (only 8 is supported)")

    @field_validator("pixels")
    @classmethod
    def _valid_base64(cls, value: str) -> str:
        try:
            base64.b64decode(value, validate=True)
        except binascii.Error as e:
            raise ValueError(f"pixels is not valid base64: {e}") from e
        return value

    def pixel_bytes(self) -> bytes:
        return base64.b64decode(self.pixels)


class BuildHierarchyRequest(ImageInput):
    target_region_count: int = Field(..., description="Number of initial superpixels")
    compactness: float | None = Field(default=None, ge=0, description="SLIC compactness override")
    weight: WeightName | None = Field(default=None, description="Region dissimilarity override")


class CutRequest(BaseModel):
    level: float | None = Field(
        default=None, allow_inf_nan=False, description="Cut level, clamped to [0, max_level]",
    )
    control: float | None = Field(
        default=None, ge=0.0, le=1.0,
        description="Normalized level control, mapped exponentially onto [0, max_level]",
    )

    @model_validator(mode="after")
    def _one_of_level_or_control(self) -> CutRequest:
        if self.level is not None and self.control is not None:
            raise ValueError("Give either level or control, not both")
        return self


class RenderRequest(CutRequest):
    mode: RenderMode = Field(default="mean", description="mean source color or id palette")
    draw_boundaries: bool = Field(default=False, description="Paint region boundaries black")


class DisplayRequest(ImageInput):
    labels: list[int] = Field(..., description="One label per pixel, row-major")
    mode: RenderMode = "mean"
    draw_boundaries: bool = False


class SegmentRequest(ImageInput):
    target_region_count: int = Field(..., description="Number of regions in the output")
    oversampling: int | None = Field(default=None, ge=1, description="Superpixels per output region")


class SlicRequest(ImageInput):
    num_superpixels: int = Field(..., description="Target superpixel count")
    compactness: float = Field(default=10.0, ge=0, description="SLIC compactness")
    draw_boundaries: bool = False
