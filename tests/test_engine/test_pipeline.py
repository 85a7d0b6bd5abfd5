"""Tests for the public segmentation entry points."""

from __future__ import annotations

import numpy as np
import pytest

from hierseg import (
    EmptyInput,
    InvalidDimensions,
    SegmentationConfig,
    UnsupportedBitDepth,
    build_hierarchy,
    cut_hierarchy,
    display_labels,
    hierarchical_segmentation,
    slic,
)
from tests.conftest import TWO_TONE, TWO_TONE_H, TWO_TONE_W, gradient_array, quadrants_array

GRAY_SINGLE_CHANNEL = bytes([90] * 16)


class TestBuildHierarchy:
    def test_constant_single_channel_example(self):
        tree = build_hierarchy(GRAY_SINGLE_CHANNEL, 4, 4, 1, 4)
        assert tree.n_leaves == 4
        assert 0.0 < tree.max_level < 1e-9

        leaves = cut_hierarchy(tree, 0)
        assert leaves.shape == (16,)
        assert leaves.dtype == np.uint32
        assert sorted(np.bincount(leaves).tolist()) == [4, 4, 4, 4]

        root = cut_hierarchy(tree, tree.max_level)
        assert len(np.unique(root)) == 1

    def test_wrong_buffer_length(self):
        with pytest.raises(InvalidDimensions):
            build_hierarchy(GRAY_SINGLE_CHANNEL, 4, 4, 3, 4)

    @pytest.mark.parametrize("width,height,channels,target", [
        (0, 4, 1, 4),
        (4, 0, 1, 4),
        (4, 4, 0, 4),
        (4, 4, 1, 0),
    ])
    def test_empty_input(self, width, height, channels, target):
        with pytest.raises(EmptyInput):
            build_hierarchy(GRAY_SINGLE_CHANNEL, width, height, channels, target)

    def test_non_uint8_array(self):
        with pytest.raises(UnsupportedBitDepth):
            build_hierarchy(np.zeros((4, 4), dtype=np.float32), 4, 4, 1, 4)

    def test_planar_layout_gives_same_tree(self):
        image = gradient_array()
        h, w = image.shape[:2]
        interleaved = build_hierarchy(image.tobytes(), w, h, 3, 12)
        planar = build_hierarchy(image.transpose(2, 0, 1).tobytes(), w, h, 3, 12, layout="planar")
        assert np.array_equal(interleaved.leaf_labels, planar.leaf_labels)
        assert np.array_equal(interleaved.levels, planar.levels)

    def test_mumford_shah_config(self):
        tree = build_hierarchy(TWO_TONE, TWO_TONE_W, TWO_TONE_H, 3, 8,
                               config=SegmentationConfig(weight="mumford_shah"))
        assert tree.n_nodes == 2 * tree.n_leaves - 1

    def test_config_validation(self):
        with pytest.raises(ValueError):
            SegmentationConfig(weight="texture")
        with pytest.raises(ValueError):
            SegmentationConfig(compactness=-1)
        with pytest.raises(ValueError):
            SegmentationConfig(pixel_layout="bgr")


class TestDisplayLabels:
    def test_renders_rgba(self):
        labels = [0] * 8 + [1] * 8
        bitmap = display_labels(GRAY_SINGLE_CHANNEL, 4, 4, labels)
        assert len(bitmap) == 4 * 4 * 4
        assert bitmap[:4] == bytes([90, 90, 90, 255])

    def test_label_length_mismatch(self):
        with pytest.raises(InvalidDimensions):
            display_labels(GRAY_SINGLE_CHANNEL, 4, 4, [0] * 15)

    def test_pixels_not_whole_channels(self):
        with pytest.raises(InvalidDimensions):
            display_labels(GRAY_SINGLE_CHANNEL[:-1], 4, 4, [0] * 16)


class TestHierarchicalSegmentation:
    def test_target_equals_pixel_count(self):
        image = gradient_array(5, 4)
        bitmap = hierarchical_segmentation(image.tobytes(), 5, 4, 3, 20)
        out = np.frombuffer(bitmap, dtype=np.uint8).reshape(4, 5, 4)
        assert np.array_equal(out[:, :, :3], image)
        assert np.all(out[:, :, 3] == 255)

    def test_quadrants_to_four_regions(self):
        image = quadrants_array()
        size = image.shape[0]
        bitmap = hierarchical_segmentation(image.tobytes(), size, size, 3, 4)
        out = np.frombuffer(bitmap, dtype=np.uint8).reshape(size, size, 4)
        assert np.array_equal(out[:, :, :3], image)

    def test_zero_target(self):
        with pytest.raises(EmptyInput):
            hierarchical_segmentation(TWO_TONE, TWO_TONE_W, TWO_TONE_H, 3, 0)


class TestSlic:
    def test_slic_bitmap(self):
        bitmap = slic(TWO_TONE, TWO_TONE_W, TWO_TONE_H, 3, 4, 10.0)
        out = np.frombuffer(bitmap, dtype=np.uint8).reshape(TWO_TONE_H, TWO_TONE_W, 4)
        assert out[0, 0, :3].tolist() == [220, 30, 30]
        assert out[0, -1, :3].tolist() == [30, 30, 220]

    def test_slic_boundaries(self):
        bitmap = slic(TWO_TONE, TWO_TONE_W, TWO_TONE_H, 3, 4, 10.0, draw_boundaries=True)
        out = np.frombuffer(bitmap, dtype=np.uint8).reshape(TWO_TONE_H, TWO_TONE_W, 4)
        assert np.all(out[:, TWO_TONE_W // 2, :3] == 0)
