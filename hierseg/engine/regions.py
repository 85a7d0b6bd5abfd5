"""Region aggregates — the per-region statistics every merge decision reads.

A Region keeps sums rather than means so that merging two regions is exact:
the parent's statistics are the element-wise sum of its children's.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
from numpy.typing import NDArray

from hierseg.engine.pixels import PixelBuffer


@dataclass(frozen=True, eq=False)
class Region:
    """An initial superpixel or a merged hierarchy node. Never mutated."""

    id: int
    count: int                    # pixels
    color_sum: NDArray[np.float64]     # per-channel Σ value
    color_sq_sum: NDArray[np.float64]  # per-channel Σ value²
    x_sum: float = 0.0
    y_sum: float = 0.0

    @property
    def mean(self) -> NDArray[np.float64]:
        return self.color_sum / self.count

    @property
    def centroid(self) -> tuple[float, float]:
        return (self.x_sum / self.count, self.y_sum / self.count)

    @property
    def data_fidelity(self) -> float:
        """Sum of squared deviations from the mean color (Mumford–Shah data term)."""
        sse = self.color_sq_sum - self.color_sum ** 2 / self.count
        return float(max(np.sum(sse), 0.0))

    def merge(self, other: Region, new_id: int) -> Region:
        """Size-weighted combination of two regions as a new region."""
        return Region(
            id=new_id,
            count=self.count + other.count,
            color_sum=self.color_sum + other.color_sum,
            color_sq_sum=self.color_sq_sum + other.color_sq_sum,
            x_sum=self.x_sum + other.x_sum,
            y_sum=self.y_sum + other.y_sum,
        )


def compute_regions(labels: NDArray, pixels: PixelBuffer) -> list[Region]:
    """Aggregate statistics for labels ``0..N-1`` (every label must occur)."""
    flat = labels.ravel()
    n_regions = int(flat.max()) + 1
    counts = np.bincount(flat, minlength=n_regions)
    if np.any(counts == 0):
        raise ValueError("Label ids must be contiguous from 0")

    values = pixels.as_float().reshape(-1, pixels.channels)
    sums = np.stack(
        [np.bincount(flat, weights=values[:, c], minlength=n_regions) for c in range(pixels.channels)],
        axis=1,
    )
    sq_sums = np.stack(
        [np.bincount(flat, weights=values[:, c] ** 2, minlength=n_regions) for c in range(pixels.channels)],
        axis=1,
    )
    ys, xs = np.divmod(np.arange(flat.size), pixels.width)
    x_sums = np.bincount(flat, weights=xs, minlength=n_regions)
    y_sums = np.bincount(flat, weights=ys, minlength=n_regions)

    return [
        Region(
            id=i,
            count=int(counts[i]),
            color_sum=sums[i],
            color_sq_sum=sq_sums[i],
            x_sum=float(x_sums[i]),
            y_sum=float(y_sums[i]),
        )
        for i in range(n_regions)
    ]
