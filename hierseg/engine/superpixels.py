"""SLIC superpixel initialization.

Partitions the pixel grid into compact, roughly equal-area regions by
k-means clustering in joint color + image space (Achanta et al., 2012):

1. Seed centers on a regular grid with spacing S = √(N / K)
2. Move each seed to the lowest-gradient pixel of its 3×3 neighbourhood
3. Alternate nearest-center assignment (windowed) and center update
4. Enforce connectivity: small fragments join their majority neighbour

The distance between a pixel and a center is

    D = d_color² + (m / S)² · d_xy²

where m is the compactness: large m favors regular, grid-like regions,
small m favors boundaries that follow color edges.
"""

from __future__ import annotations

import heapq
import logging
import math
from collections import Counter
from concurrent.futures import ThreadPoolExecutor

import numpy as np
from numpy.typing import NDArray
from scipy.spatial import KDTree
from skimage.measure import label as connected_components

from hierseg.engine.config import SegmentationConfig
from hierseg.engine.pixels import PixelBuffer
from hierseg.engine.region_graph import boundary_lengths
from hierseg.engine.regions import Region, compute_regions

logger = logging.getLogger(__name__)

# Search window half-width in units of the grid interval S.
_SEARCH_RADIUS_STEPS = 2

# Seed perturbation neighbourhood: 3×3 is the smallest window with a centre.
_PERTURB_RADIUS = 1


def grid_interval(width: int, height: int, target_count: int) -> int:
    """Superpixel side length S: S² is the approximate area of one superpixel."""
    return max(1, int(math.sqrt(width * height / target_count)))


def init_seeds(width: int, height: int, step: int, target_count: int) -> NDArray[np.int64]:
    """Regular grid of at most ``target_count`` seeds as ``(n, 2)`` rows of (x, y).

    The leftover margin (image size not a multiple of S) is spread evenly
    between seeds instead of accumulating on the right/bottom edge.
    """
    half = -(-step // 2)
    x_seeds = -(-width // step)
    y_seeds = -(-height // step)
    if step * x_seeds > width:
        x_seeds -= 1
    if step * y_seeds > height:
        y_seeds -= 1
    x_seeds = max(x_seeds, 1)
    y_seeds = max(y_seeds, 1)

    while x_seeds * y_seeds > target_count:
        if x_seeds >= y_seeds:
            x_seeds -= 1
        else:
            y_seeds -= 1

    x_correction = (width - x_seeds * step) / x_seeds
    y_correction = (height - y_seeds * step) / y_seeds

    xs = np.array([i * step + half + int(i * x_correction) for i in range(x_seeds)])
    ys = np.array([j * step + half + int(j * y_correction) for j in range(y_seeds)])
    gx, gy = np.meshgrid(np.clip(xs, 0, width - 1), np.clip(ys, 0, height - 1))
    seeds = np.stack([gx.ravel(), gy.ravel()], axis=1).astype(np.int64)
    # Clipping can collapse seeds onto the same pixel on tiny images
    _, first = np.unique(seeds[:, 1] * width + seeds[:, 0], return_index=True)
    return seeds[np.sort(first)]


def gradient_magnitude(image: NDArray[np.float64]) -> NDArray[np.float64]:
    """Squared central-difference gradient; samples outside the image read as 0."""
    padded = np.pad(image, ((1, 1), (1, 1), (0, 0)))
    gx = padded[1:-1, 2:] - padded[1:-1, :-2]
    gy = padded[2:, 1:-1] - padded[:-2, 1:-1]
    return np.sum(gx ** 2, axis=2) + np.sum(gy ** 2, axis=2)


def perturb_seeds(seeds: NDArray[np.int64], gradient: NDArray[np.float64]) -> NDArray[np.int64]:
    """Move each seed to the first strict gradient minimum of its 3×3 neighbourhood."""
    height, width = gradient.shape
    moved = seeds.copy()
    offsets = range(-_PERTURB_RADIUS, _PERTURB_RADIUS + 1)
    for i, (sx, sy) in enumerate(seeds):
        best = math.inf
        for dy in offsets:
            for dx in offsets:
                x, y = sx + dx, sy + dy
                if not (0 <= x < width and 0 <= y < height):
                    continue
                if gradient[y, x] < best:
                    best = gradient[y, x]
                    moved[i] = (x, y)
    return moved


def _assign_chunk(
    image: NDArray[np.float64],
    centers_xy: NDArray[np.float64],
    centers_color: NDArray[np.float64],
    indices: range,
    radius: float,
    spatial_weight: float,
) -> tuple[NDArray[np.float64], NDArray[np.int64]]:
    """Nearest-center pass for a contiguous block of centers."""
    height, width = image.shape[:2]
    best = np.full((height, width), np.inf)
    labels = np.full((height, width), -1, dtype=np.int64)

    for k in indices:
        cx, cy = centers_xy[k]
        x0, x1 = max(0, int(cx - radius)), min(width, int(cx + radius) + 1)
        y0, y1 = max(0, int(cy - radius)), min(height, int(cy + radius) + 1)
        if x0 >= x1 or y0 >= y1:
            continue

        window = image[y0:y1, x0:x1]
        d_color = np.sum((window - centers_color[k]) ** 2, axis=2)
        dx = (np.arange(x0, x1) - cx) ** 2
        dy = (np.arange(y0, y1) - cy) ** 2
        dist = d_color + spatial_weight * (dy[:, np.newaxis] + dx[np.newaxis, :])

        region_best = best[y0:y1, x0:x1]
        closer = dist < region_best
        region_best[closer] = dist[closer]
        labels[y0:y1, x0:x1][closer] = k

    return best, labels


def assign_pixels(
    image: NDArray[np.float64],
    centers_xy: NDArray[np.float64],
    centers_color: NDArray[np.float64],
    step: int,
    spatial_weight: float,
    executor: ThreadPoolExecutor | None = None,
    workers: int = 1,
) -> NDArray[np.int64]:
    """Label every pixel with its nearest center (lower center index wins ties).

    Centers are split into ``workers`` contiguous blocks; the per-block
    results are reduced in block order, so the outcome does not depend on
    the number of workers.
    """
    radius = float(_SEARCH_RADIUS_STEPS * step)
    n_centers = len(centers_xy)
    bounds = np.linspace(0, n_centers, min(workers, n_centers) + 1).astype(int)
    blocks = [range(bounds[i], bounds[i + 1]) for i in range(len(bounds) - 1)]

    args = (image, centers_xy, centers_color)
    if executor is not None and len(blocks) > 1:
        results = list(executor.map(lambda b: _assign_chunk(*args, b, radius, spatial_weight), blocks))
    else:
        results = [_assign_chunk(*args, b, radius, spatial_weight) for b in blocks]

    best, labels = results[0]
    for block_best, block_labels in results[1:]:
        closer = block_best < best
        best[closer] = block_best[closer]
        labels[closer] = block_labels[closer]

    unreached = labels < 0
    if np.any(unreached):
        # Out of every window: fall back to the spatially nearest center
        ys, xs = np.nonzero(unreached)
        _, nearest = KDTree(centers_xy).query(np.stack([xs, ys], axis=1))
        labels[unreached] = nearest
    return labels


def update_centers(
    image: NDArray[np.float64],
    labels: NDArray[np.int64],
    centers_xy: NDArray[np.float64],
    centers_color: NDArray[np.float64],
) -> tuple[NDArray[np.float64], NDArray[np.float64]]:
    """Recompute centers as the mean color and centroid of their pixels.

    Empty clusters keep their previous center.
    """
    n_centers = len(centers_xy)
    channels = image.shape[2]
    flat = labels.ravel()
    counts = np.bincount(flat, minlength=n_centers).astype(np.float64)
    values = image.reshape(-1, channels)
    ys, xs = np.divmod(np.arange(flat.size), image.shape[1])

    occupied = counts > 0
    new_xy = centers_xy.copy()
    new_color = centers_color.copy()
    new_xy[occupied, 0] = np.bincount(flat, weights=xs, minlength=n_centers)[occupied] / counts[occupied]
    new_xy[occupied, 1] = np.bincount(flat, weights=ys, minlength=n_centers)[occupied] / counts[occupied]
    for c in range(channels):
        sums = np.bincount(flat, weights=values[:, c], minlength=n_centers)
        new_color[occupied, c] = sums[occupied] / counts[occupied]
    return new_xy, new_color


class _UnionFind:
    """Disjoint sets over component ids with path compression."""

    def __init__(self, n: int) -> None:
        self.parent = list(range(n))

    def find(self, x: int) -> int:
        root = x
        while self.parent[root] != root:
            root = self.parent[root]
        while self.parent[x] != root:
            self.parent[x], x = root, self.parent[x]
        return root

    def union_into(self, root: int, other: int) -> None:
        self.parent[self.find(other)] = root


def enforce_connectivity(
    labels: NDArray[np.int64], min_size: int, max_regions: int,
) -> NDArray[np.int64]:
    """Split labels into 4-connected components and absorb the small ones.

    Components smaller than ``min_size`` (and, while more than
    ``max_regions`` remain, the smallest components) are merged, smallest
    first, into the neighbouring label sharing the most boundary with them.
    Every component of that label adjacent to the fragment joins the merge,
    so each resulting region stays a single connected component.

    Returns labels renumbered ``0..N-1`` in raster order of first appearance.
    """
    height, width = labels.shape
    comps = connected_components(labels + 1, background=0, connectivity=1) - 1
    n_comps = int(comps.max()) + 1

    comp_label = np.zeros(n_comps, dtype=np.int64)
    comp_label[comps.ravel()] = labels.ravel()
    sizes = np.bincount(comps.ravel(), minlength=n_comps).tolist()
    comp_label = comp_label.tolist()

    # Boundary pixel-pair counts between adjacent components
    adjacency: dict[int, Counter] = {c: Counter() for c in range(n_comps)}
    for (a, b), n in boundary_lengths(comps).items():
        adjacency[a][b] += n
        adjacency[b][a] += n

    forest = _UnionFind(n_comps)
    n_active = n_comps
    heap = [(sizes[c], c) for c in range(n_comps)]
    heapq.heapify(heap)

    while heap:
        size, comp = heapq.heappop(heap)
        if forest.find(comp) != comp or sizes[comp] != size:
            continue  # stale entry
        if size >= min_size and n_active <= max_regions:
            break
        neighbours = adjacency[comp]
        if not neighbours:
            break

        # Majority label among adjacent components, by shared boundary length
        votes: Counter = Counter()
        for other, shared in neighbours.items():
            votes[comp_label[other]] += shared
        target_label = min(votes, key=lambda lbl: (-votes[lbl], lbl))
        group = [comp] + sorted(o for o in neighbours if comp_label[o] == target_label)

        root = group[1]
        merged_adjacency: Counter = Counter()
        for member in group:
            for other, shared in adjacency.pop(member).items():
                if other not in group:
                    merged_adjacency[other] += shared
        for other, shared in merged_adjacency.items():
            other_adj = adjacency[other]
            for member in group:
                other_adj.pop(member, None)
            other_adj[root] = shared
        adjacency[root] = merged_adjacency

        for member in group:
            if member != root:
                forest.union_into(root, member)
                sizes[root] += sizes[member]
        comp_label[root] = target_label
        n_active -= len(group) - 1
        heapq.heappush(heap, (sizes[root], root))

    roots = np.array([forest.find(c) for c in range(n_comps)], dtype=np.int64)
    return relabel_first_appearance(roots[comps])


def relabel_first_appearance(labels: NDArray[np.int64]) -> NDArray[np.int64]:
    """Renumber labels ``0..N-1`` in raster order of their first pixel."""
    flat = labels.ravel()
    _, first, inverse = np.unique(flat, return_index=True, return_inverse=True)
    rank = np.empty(len(first), dtype=np.int64)
    rank[np.argsort(first)] = np.arange(len(first))
    return rank[inverse.ravel()].reshape(labels.shape)


def slic_labels(
    pixels: PixelBuffer,
    target_count: int,
    config: SegmentationConfig | None = None,
) -> NDArray[np.int64]:
    """SLIC label map, contiguous ``0..N-1`` with ``N <= target_count``."""
    config = config or SegmentationConfig()
    width, height = pixels.width, pixels.height

    if target_count >= pixels.n_pixels:
        logger.warning(
            "Requested %d superpixels for %d pixels; using one region per pixel",
            target_count, pixels.n_pixels,
        )
        return np.arange(pixels.n_pixels, dtype=np.int64).reshape(height, width)

    image = pixels.as_float()
    step = grid_interval(width, height, target_count)
    seeds = init_seeds(width, height, step, target_count)
    seeds = perturb_seeds(seeds, gradient_magnitude(image))

    centers_xy = seeds.astype(np.float64)
    centers_color = image[seeds[:, 1], seeds[:, 0]].copy()
    spatial_weight = (config.compactness / step) ** 2
    logger.debug("SLIC: %d seeds, step %d, spatial weight %.4f", len(seeds), step, spatial_weight)

    executor = ThreadPoolExecutor(max_workers=config.workers) if config.workers > 1 else None
    try:
        for iteration in range(config.max_iterations):
            labels = assign_pixels(
                image, centers_xy, centers_color, step, spatial_weight,
                executor=executor, workers=config.workers,
            )
            new_xy, new_color = update_centers(image, labels, centers_xy, centers_color)
            shift = np.sqrt(
                np.sum((new_color - centers_color) ** 2, axis=1)
                + spatial_weight * np.sum((new_xy - centers_xy) ** 2, axis=1)
            )
            centers_xy, centers_color = new_xy, new_color
            residual = float(shift.max()) if len(shift) else 0.0
            logger.debug("SLIC iteration %d: max center shift %.3f", iteration + 1, residual)
            if residual <= config.convergence_tolerance:
                break
        # Final assignment against the converged centers
        labels = assign_pixels(
            image, centers_xy, centers_color, step, spatial_weight,
            executor=executor, workers=config.workers,
        )
    finally:
        if executor is not None:
            executor.shutdown()

    min_size = max(1, int(config.min_size_factor * step * step))
    return enforce_connectivity(labels, min_size, target_count)


def initialize(
    pixels: PixelBuffer,
    target_count: int,
    config: SegmentationConfig | None = None,
) -> tuple[NDArray[np.int64], list[Region]]:
    """Superpixel label map and the aggregate statistics of each superpixel."""
    labels = slic_labels(pixels, target_count, config)
    regions = compute_regions(labels, pixels)
    logger.info("SLIC: %d superpixels (target %d)", len(regions), target_count)
    return labels, regions
