"""Input-contract errors raised before any hierarchy is allocated."""

from __future__ import annotations


class SegmentationError(ValueError):
    """Base class for rejected segmentation requests."""

    kind = "SegmentationError"


class InvalidDimensions(SegmentationError):
    """Buffer length does not match the declared image or label shape."""

    kind = "InvalidDimensions"


class UnsupportedBitDepth(SegmentationError):
    """Samples are not one byte per channel."""

    kind = "UnsupportedBitDepth"


class EmptyInput(SegmentationError):
    """Zero width, height, channel count or target region count."""

    kind = "EmptyInput"
