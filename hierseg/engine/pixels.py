"""PixelBuffer — validated, read-only view of an 8-bit multi-channel raster.

Every stage of the engine consumes a PixelBuffer. Raw bytes come from an
external decoder in one of two layouts:

- ``interleaved``: row-major, channel-last (``H × W × C``)
- ``planar``: one full ``H × W`` plane per channel (``C × H × W``)

All dimension and bit-depth checks happen here, before anything downstream
allocates.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
from numpy.typing import NDArray

from hierseg.engine.config import PIXEL_LAYOUTS
from hierseg.errors import EmptyInput, InvalidDimensions, UnsupportedBitDepth

# One byte per channel is the only supported sample size.
SUPPORTED_BIT_DEPTH = 8


@dataclass(frozen=True, eq=False)
class PixelBuffer:
    width: int
    height: int
    channels: int
    data: NDArray[np.uint8]  # (height, width, channels), read-only

    @property
    def n_pixels(self) -> int:
        return self.width * self.height

    def as_float(self) -> NDArray[np.float64]:
        """Samples as ``(height, width, channels)`` float64."""
        return self.data.astype(np.float64)

    @classmethod
    def from_bytes(
        cls,
        pixels: bytes | bytearray | memoryview,
        width: int,
        height: int,
        channels: int,
        layout: str = "interleaved",
        bit_depth: int = SUPPORTED_BIT_DEPTH,
    ) -> PixelBuffer:
        check_bit_depth(bit_depth)
        check_dimensions(width, height, channels)
        if layout not in PIXEL_LAYOUTS:
            raise ValueError(f"Unknown pixel layout: {layout!r}")

        expected = width * height * channels
        if len(pixels) != expected:
            raise InvalidDimensions(
                f"Pixel buffer has {len(pixels)} bytes, expected "
                f"{width}×{height}×{channels} = {expected}"
            )

        flat = np.frombuffer(bytes(pixels), dtype=np.uint8)
        if layout == "planar":
            array = flat.reshape(channels, height, width).transpose(1, 2, 0)
        else:
            array = flat.reshape(height, width, channels)
        return cls._wrap(array)

    @classmethod
    def from_array(cls, array: NDArray) -> PixelBuffer:
        """Wrap an ``(H, W)`` or ``(H, W, C)`` uint8 array (copied)."""
        array = np.asarray(array)
        if array.dtype != np.uint8:
            raise UnsupportedBitDepth(
                f"Expected 8-bit samples, got dtype {array.dtype}"
            )
        if array.ndim == 2:
            array = array[:, :, np.newaxis]
        if array.ndim != 3:
            raise InvalidDimensions(f"Expected a 2-D or 3-D array, got shape {array.shape}")
        height, width, channels = array.shape
        check_dimensions(width, height, channels)
        return cls._wrap(array)

    @classmethod
    def _wrap(cls, array: NDArray[np.uint8]) -> PixelBuffer:
        data = np.ascontiguousarray(array).copy()
        data.flags.writeable = False
        height, width, channels = data.shape
        return cls(width=width, height=height, channels=channels, data=data)


def check_bit_depth(bit_depth: int) -> None:
    if bit_depth != SUPPORTED_BIT_DEPTH:
        raise UnsupportedBitDepth(
            f"Only {SUPPORTED_BIT_DEPTH}-bit channels are supported, got {bit_depth}-bit"
        )


def check_dimensions(width: int, height: int, channels: int) -> None:
    if width <= 0 or height <= 0:
        raise EmptyInput(f"Image must be non-empty, got {width}×{height}")
    if channels <= 0:
        raise EmptyInput("Image must have at least one channel")


def as_pixel_buffer(
    pixels: bytes | bytearray | memoryview | NDArray | PixelBuffer,
    width: int | None = None,
    height: int | None = None,
    channels: int | None = None,
    layout: str = "interleaved",
) -> PixelBuffer:
    """Accept raw bytes, a numpy array or an existing PixelBuffer.

    When ``channels`` is omitted for raw bytes it is inferred from the buffer
    length, which must then be a whole multiple of ``width * height``.
    """
    if isinstance(pixels, PixelBuffer):
        return pixels
    if isinstance(pixels, np.ndarray):
        buffer = PixelBuffer.from_array(pixels)
        if width is not None and height is not None:
            if (buffer.width, buffer.height) != (width, height):
                raise InvalidDimensions(
                    f"Array is {buffer.width}×{buffer.height}, expected {width}×{height}"
                )
        return buffer

    if width is None or height is None:
        raise TypeError("width and height are required for raw pixel bytes")
    if channels is None:
        check_dimensions(width, height, 1)
        n_pixels = width * height
        if len(pixels) == 0 or len(pixels) % n_pixels:
            raise InvalidDimensions(
                f"Pixel buffer of {len(pixels)} bytes is not a whole number of "
                f"channels for a {width}×{height} image"
            )
        channels = len(pixels) // n_pixels
    return PixelBuffer.from_bytes(pixels, width, height, channels, layout=layout)
