"""Tests for region aggregates and the adjacency graph."""

from __future__ import annotations

import numpy as np
import pytest
from skimage.graph import rag_mean_color

from hierseg.engine import region_graph
from hierseg.engine.pixels import PixelBuffer
from hierseg.engine.regions import compute_regions

QUADRANT_LABELS = np.array([
    [0, 0, 1, 1],
    [0, 0, 1, 1],
    [2, 2, 3, 3],
    [2, 2, 3, 3],
])


def _quadrant_image() -> PixelBuffer:
    image = np.zeros((4, 4, 1), dtype=np.uint8)
    image[:2, :2] = 10
    image[:2, 2:] = 20
    image[2:, :2] = 40
    image[2:, 2:] = 80
    return PixelBuffer.from_array(image)


def test_region_statistics():
    regions = compute_regions(QUADRANT_LABELS, _quadrant_image())
    assert [r.count for r in regions] == [4, 4, 4, 4]
    assert regions[1].mean.tolist() == [20.0]
    assert regions[0].centroid == (0.5, 0.5)
    assert regions[3].centroid == (2.5, 2.5)
    assert regions[2].data_fidelity == 0.0


def test_merge_is_size_weighted():
    regions = compute_regions(QUADRANT_LABELS, _quadrant_image())
    merged = regions[0].merge(regions[1], new_id=4)
    assert merged.id == 4
    assert merged.count == 8
    assert merged.mean.tolist() == [15.0]
    assert merged.data_fidelity == pytest.approx(8 * 25.0)


def test_non_contiguous_labels_rejected():
    with pytest.raises(ValueError):
        compute_regions(np.array([[0, 2]]), PixelBuffer.from_array(np.zeros((1, 2), dtype=np.uint8)))


def test_boundary_lengths():
    lengths = region_graph.boundary_lengths(QUADRANT_LABELS)
    assert lengths == {(0, 1): 2, (0, 2): 2, (1, 3): 2, (2, 3): 2}


def test_build_edges_sorted_without_duplicates():
    regions = compute_regions(QUADRANT_LABELS, _quadrant_image())
    edges = region_graph.build(QUADRANT_LABELS, regions)
    assert [(e.a, e.b) for e in edges] == [(0, 1), (0, 2), (1, 3), (2, 3)]
    assert all(e.a < e.b for e in edges)
    weights = {(e.a, e.b): e.weight for e in edges}
    assert weights[(0, 1)] == pytest.approx(10.0)
    assert weights[(2, 3)] == pytest.approx(40.0)


def test_mumford_shah_weight():
    regions = compute_regions(QUADRANT_LABELS, _quadrant_image())
    edges = region_graph.build(QUADRANT_LABELS, regions, weight="mumford_shah")
    weights = {(e.a, e.b): e.weight for e in edges}
    # n1*n2/(n1+n2) * |Δμ|² / length = 2 * 100 / 2
    assert weights[(0, 1)] == pytest.approx(100.0)


def test_single_region_has_no_edges():
    labels = np.zeros((3, 3), dtype=np.int64)
    regions = compute_regions(labels, PixelBuffer.from_array(np.zeros((3, 3), dtype=np.uint8)))
    assert region_graph.build(labels, regions) == []


def test_unknown_weight():
    with pytest.raises(ValueError):
        region_graph.get_weight_fn("texture")


def test_edges_match_skimage_rag():
    image = np.zeros((4, 4, 3), dtype=np.uint8)
    image[:2, :2] = (200, 10, 10)
    image[:2, 2:] = (10, 200, 10)
    image[2:, :2] = (10, 10, 200)
    image[2:, 2:] = (90, 90, 90)
    regions = compute_regions(QUADRANT_LABELS, PixelBuffer.from_array(image))
    edges = region_graph.build(QUADRANT_LABELS, regions)

    rag = rag_mean_color(image.astype(np.float64), QUADRANT_LABELS, connectivity=1)
    expected = {(min(u, v), max(u, v)): d["weight"] for u, v, d in rag.edges(data=True) if u != v}
    assert {(e.a, e.b) for e in edges} == set(expected)
    for e in edges:
        assert e.weight == pytest.approx(expected[(e.a, e.b)])


def test_boundary_lengths_count_pairs_at_junctions():
    labels = np.array([
        [0, 1],
        [2, 3],
    ])
    assert region_graph.boundary_lengths(labels) == {(0, 1): 1, (0, 2): 1, (1, 3): 1, (2, 3): 1}
