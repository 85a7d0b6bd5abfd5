"""Segmentation configuration — tuning knobs for the superpixel and merge stages."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from hierseg.config import Settings

WEIGHT_FUNCTIONS = ("color", "mumford_shah")
PIXEL_LAYOUTS = ("interleaved", "planar")


@dataclass
class SegmentationConfig:
    """Controls SLIC clustering, region dissimilarity and buffer layout."""

    # SLIC: higher compactness favors grid-like shapes over color boundaries
    compactness: float = 10.0
    max_iterations: int = 10
    convergence_tolerance: float = 0.5  # joint color+space center shift

    # Connectivity cleanup: minimum component size as a fraction of step²
    min_size_factor: float = 0.25

    # Threads for the nearest-center assignment pass
    workers: int = 1

    # Region dissimilarity: "color" or "mumford_shah"
    weight: str = "color"

    # Superpixels per requested region in hierarchical_segmentation()
    oversampling: int = 4

    # Raw byte order: "interleaved" (HWC) or "planar" (CHW)
    pixel_layout: str = "interleaved"

    def __post_init__(self) -> None:
        if self.compactness < 0:
            raise ValueError("compactness must be non-negative")
        if self.max_iterations < 1:
            raise ValueError("max_iterations must be at least 1")
        if self.min_size_factor < 0:
            raise ValueError("min_size_factor must be non-negative")
        if self.workers < 1:
            raise ValueError("workers must be at least 1")
        if self.oversampling < 1:
            raise ValueError("oversampling must be at least 1")
        if self.weight not in WEIGHT_FUNCTIONS:
            raise ValueError(f"Unknown weight function: {self.weight!r}")
        if self.pixel_layout not in PIXEL_LAYOUTS:
            raise ValueError(f"Unknown pixel layout: {self.pixel_layout!r}")

    @classmethod
    def from_settings(cls, settings: Settings) -> SegmentationConfig:
        return cls(
            compactness=settings.slic_compactness,
            max_iterations=settings.slic_max_iterations,
            convergence_tolerance=settings.slic_convergence_tolerance,
            min_size_factor=settings.slic_min_size_factor,
            workers=settings.workers,
            weight=settings.weight,
            oversampling=settings.oversampling,
            pixel_layout=settings.pixel_layout,
        )
