"""Label map → RGBA bitmap.

Colors depend only on the label id (``palette``) or on the pixels carrying
that label (``mean``), never on the cut level: a region that survives from
one cut to the next keeps its color, which makes the nesting visible while
scrubbing through levels.
"""

from __future__ import annotations

import numpy as np
from numpy.typing import NDArray
from skimage.color import hsv2rgb
from skimage.segmentation import find_boundaries

from hierseg.engine.pixels import PixelBuffer
from hierseg.errors import InvalidDimensions

RENDER_MODES = ("mean", "palette")

# Golden-ratio hue walk: consecutive ids land far apart on the color wheel.
_GOLDEN_RATIO_CONJUGATE = 0.6180339887498949

_BOUNDARY_COLOR = (0, 0, 0)


def palette_colors(ids: NDArray) -> NDArray[np.uint8]:
    """Deterministic RGB color per id, ``(k, 3)`` uint8."""
    ids = np.asarray(ids, dtype=np.float64)
    hue = np.mod(ids * _GOLDEN_RATIO_CONJUGATE, 1.0)
    saturation = 0.55 + 0.35 * np.mod(ids * 0.7548776662466927, 1.0)
    value = 0.75 + 0.2 * np.mod(ids * 0.5698402909980532, 1.0)
    hsv = np.stack([hue, saturation, value], axis=-1)[np.newaxis]
    return np.round(hsv2rgb(hsv)[0] * 255).astype(np.uint8)


def _rgb(pixels: PixelBuffer) -> NDArray[np.float64]:
    image = pixels.as_float()
    if pixels.channels >= 3:
        return image[:, :, :3]
    return np.repeat(image[:, :, :1], 3, axis=2)


def mean_colors(pixels: PixelBuffer, inverse: NDArray, n_labels: int) -> NDArray[np.uint8]:
    """Mean source color of every compacted label, ``(n_labels, 3)`` uint8."""
    rgb = _rgb(pixels).reshape(-1, 3)
    counts = np.bincount(inverse, minlength=n_labels)
    means = np.stack(
        [np.bincount(inverse, weights=rgb[:, c], minlength=n_labels) for c in range(3)],
        axis=1,
    ) / counts[:, np.newaxis]
    return np.round(means).astype(np.uint8)


def render(
    pixels: PixelBuffer,
    labels: NDArray,
    mode: str = "mean",
    draw_boundaries: bool = False,
) -> bytes:
    """RGBA bitmap (``width * height * 4`` bytes, alpha 255) for a label map."""
    if mode not in RENDER_MODES:
        raise ValueError(f"Unknown render mode: {mode!r}")
    labels = np.asarray(labels)
    if labels.size != pixels.n_pixels:
        raise InvalidDimensions(
            f"Label map has {labels.size} entries, expected "
            f"{pixels.width}×{pixels.height} = {pixels.n_pixels}"
        )
    labels = labels.reshape(pixels.height, pixels.width)

    ids, inverse = np.unique(labels, return_inverse=True)
    inverse = inverse.ravel()
    if mode == "palette":
        colors = palette_colors(ids)
    else:
        colors = mean_colors(pixels, inverse, len(ids))

    bitmap = np.full((pixels.height, pixels.width, 4), 255, dtype=np.uint8)
    bitmap[:, :, :3] = colors[inverse].reshape(pixels.height, pixels.width, 3)
    if draw_boundaries:
        edges = find_boundaries(labels, connectivity=1, mode="thick")
        bitmap[edges, :3] = _BOUNDARY_COLOR
    return bitmap.tobytes()
