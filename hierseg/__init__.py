"""hierseg — multiscale image segmentation from a superpixel merge hierarchy."""

from hierseg.engine import (
    Hierarchy,
    HierarchyNode,
    PixelBuffer,
    SegmentationConfig,
    build_hierarchy,
    cut_hierarchy,
    display_labels,
    hierarchical_segmentation,
    slic,
)
from hierseg.errors import EmptyInput, InvalidDimensions, SegmentationError, UnsupportedBitDepth

__version__ = "0.1.0"

__all__ = [
    "Hierarchy",
    "HierarchyNode",
    "PixelBuffer",
    "SegmentationConfig",
    "build_hierarchy",
    "cut_hierarchy",
    "display_labels",
    "hierarchical_segmentation",
    "slic",
    "SegmentationError",
    "InvalidDimensions",
    "UnsupportedBitDepth",
    "EmptyInput",
]
