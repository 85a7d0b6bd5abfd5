"""Hierarchical segmentation engine: SLIC superpixels, merge tree, cuts, rendering."""

from hierseg.engine.config import SegmentationConfig
from hierseg.engine.hierarchy import Hierarchy, HierarchyNode
from hierseg.engine.pixels import PixelBuffer
from hierseg.engine.pipeline import (
    build_hierarchy,
    cut_hierarchy,
    display_labels,
    hierarchical_segmentation,
    slic,
)

__all__ = [
    "SegmentationConfig",
    "Hierarchy",
    "HierarchyNode",
    "PixelBuffer",
    "build_hierarchy",
    "cut_hierarchy",
    "display_labels",
    "hierarchical_segmentation",
    "slic",
]
