"""Segmentation entry points — validate, build once, cut and render many times.

    build_hierarchy ──► Hierarchy ──► cut_hierarchy(level) ──► display_labels
                                 └──► (cut to a region count) ──► hierarchical_segmentation

All input checks run before anything is allocated; errors propagate to the
caller as SegmentationError subclasses.
"""

from __future__ import annotations

import logging
import time
from dataclasses import replace
from typing import Union

import numpy as np
from numpy.typing import NDArray

from hierseg.engine import cutter, hierarchy, region_graph, renderer, superpixels
from hierseg.engine.config import SegmentationConfig
from hierseg.engine.hierarchy import Hierarchy
from hierseg.engine.pixels import PixelBuffer, as_pixel_buffer, check_dimensions
from hierseg.errors import EmptyInput, InvalidDimensions

logger = logging.getLogger(__name__)

PixelInput = Union[bytes, bytearray, memoryview, NDArray, PixelBuffer]


def _elapsed_ms(start: float) -> float:
    return (time.perf_counter() - start) * 1000


def _load(
    pixels: PixelInput,
    width: int,
    height: int,
    channels: int | None,
    layout: str | None,
    config: SegmentationConfig,
) -> PixelBuffer:
    if channels is not None:
        check_dimensions(width, height, channels)
    buffer = as_pixel_buffer(pixels, width, height, channels, layout=layout or config.pixel_layout)
    if channels is not None and buffer.channels != channels:
        raise InvalidDimensions(f"Expected {channels} channels, got {buffer.channels}")
    return buffer


def _check_target(target_region_count: int) -> None:
    if target_region_count <= 0:
        raise EmptyInput("target_region_count must be at least 1")


def build_from_buffer(
    buffer: PixelBuffer,
    target_region_count: int,
    config: SegmentationConfig | None = None,
) -> Hierarchy:
    """SLIC → region graph → merge tree for an already validated buffer."""
    config = config or SegmentationConfig()
    _check_target(target_region_count)

    start = time.perf_counter()
    labels, regions = superpixels.initialize(buffer, target_region_count, config)
    logger.info("  superpixels: %d regions in %.1fms", len(regions), _elapsed_ms(start))

    t0 = time.perf_counter()
    edges = region_graph.build(labels, regions, weight=config.weight)
    logger.info("  region graph: %d edges in %.1fms", len(edges), _elapsed_ms(t0))

    t0 = time.perf_counter()
    tree = hierarchy.build(labels, regions, edges, weight=config.weight)
    logger.info(
        "  hierarchy: %d nodes, max level %.4g in %.1fms",
        tree.n_nodes, tree.max_level, _elapsed_ms(t0),
    )
    logger.info(
        "Hierarchy built for %d×%d image in %.0fms",
        buffer.width, buffer.height, _elapsed_ms(start),
    )
    return tree


def build_hierarchy(
    pixels: PixelInput,
    width: int,
    height: int,
    channels: int,
    target_region_count: int,
    *,
    layout: str | None = None,
    config: SegmentationConfig | None = None,
) -> Hierarchy:
    """Build the merge hierarchy over ``target_region_count`` superpixels.

    Raises InvalidDimensions when ``len(pixels) != width*height*channels``
    and EmptyInput for a zero dimension or zero target.
    """
    config = config or SegmentationConfig()
    _check_target(target_region_count)
    buffer = _load(pixels, width, height, channels, layout, config)
    return build_from_buffer(buffer, target_region_count, config)


def cut_hierarchy(tree: Hierarchy, level: float) -> NDArray[np.uint32]:
    """Flat ``width*height`` label array of node ids at ``level``."""
    return cutter.cut(tree, level).ravel()


def display_labels(
    pixels: PixelInput,
    width: int,
    height: int,
    labels: NDArray | list[int],
    *,
    channels: int | None = None,
    layout: str | None = None,
    mode: str = "mean",
    draw_boundaries: bool = False,
) -> bytes:
    """RGBA bitmap for a label array; raises InvalidDimensions on a length mismatch."""
    config = SegmentationConfig()
    labels = np.asarray(labels)
    check_dimensions(width, height, 1 if channels is None else channels)
    if labels.size != width * height:
        raise InvalidDimensions(
            f"Label array has {labels.size} entries, expected {width}×{height} = {width * height}"
        )
    buffer = _load(pixels, width, height, channels, layout, config)
    return renderer.render(buffer, labels, mode=mode, draw_boundaries=draw_boundaries)


def hierarchical_segmentation(
    pixels: PixelInput,
    width: int,
    height: int,
    channels: int,
    target_region_count: int,
    *,
    oversampling: int | None = None,
    layout: str | None = None,
    config: SegmentationConfig | None = None,
) -> bytes:
    """Build, cut down to ``target_region_count`` regions and render in one call.

    The hierarchy is built over ``target_region_count * oversampling``
    superpixels (at most one per pixel) so the final regions come from merges
    rather than directly from SLIC.
    """
    config = config or SegmentationConfig()
    _check_target(target_region_count)
    buffer = _load(pixels, width, height, channels, layout, config)

    factor = oversampling or config.oversampling
    n_superpixels = min(target_region_count * factor, buffer.n_pixels)
    tree = build_from_buffer(buffer, n_superpixels, config)
    labels = cutter.cut_to_region_count(tree, target_region_count)
    logger.info("Cut to %d regions (requested %d)", len(np.unique(labels)), target_region_count)
    return renderer.render(buffer, labels)


def slic(
    pixels: PixelInput,
    width: int,
    height: int,
    channels: int,
    num_superpixels: int,
    compactness: float,
    *,
    layout: str | None = None,
    config: SegmentationConfig | None = None,
    draw_boundaries: bool = False,
) -> bytes:
    """Superpixels only, rendered; no merge hierarchy."""
    config = config or SegmentationConfig()
    _check_target(num_superpixels)
    buffer = _load(pixels, width, height, channels, layout, config)
    config = replace(config, compactness=compactness)

    start = time.perf_counter()
    labels = superpixels.slic_labels(buffer, num_superpixels, config)
    logger.info("SLIC: %d superpixels in %.1fms", int(labels.max()) + 1, _elapsed_ms(start))
    return renderer.render(buffer, labels, draw_boundaries=draw_boundaries)
