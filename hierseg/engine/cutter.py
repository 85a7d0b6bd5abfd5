"""Cut a Hierarchy at a level to get a flat label map.

Read-only over the Hierarchy: any number of cuts may run concurrently
against the same tree.
"""

from __future__ import annotations

import math

import numpy as np
from numpy.typing import NDArray

from hierseg.engine.hierarchy import Hierarchy


def clamp_level(hierarchy: Hierarchy, level: float) -> float:
    """Clamp ``level`` into ``[0, max_level]``."""
    if math.isnan(level):
        raise ValueError("Cut level must be a number, got NaN")
    return min(max(float(level), 0.0), hierarchy.max_level)


def frontier(hierarchy: Hierarchy, level: float) -> list[int]:
    """Topmost nodes whose level is ``<= level``, in depth-first order."""
    level = clamp_level(hierarchy, level)
    found: list[int] = []
    stack = [hierarchy.root]
    while stack:
        node = stack.pop()
        if hierarchy.levels[node] <= level:
            found.append(node)
        else:
            left, right = hierarchy.nodes[node].children
            stack.append(right)
            stack.append(left)
    return found


def leaf_mapping(hierarchy: Hierarchy, level: float) -> NDArray[np.uint32]:
    """Frontier node id for every leaf id."""
    mapping = np.empty(hierarchy.n_leaves, dtype=np.uint32)
    for node in frontier(hierarchy, level):
        mapping[hierarchy.leaves(node)] = node
    return mapping


def cut(hierarchy: Hierarchy, level: float) -> NDArray[np.uint32]:
    """``(height, width)`` label map of frontier node ids at ``level``.

    ``cut(h, 0)`` is the leaf partition and ``cut(h, h.max_level)`` a single
    region; levels outside that range are clamped. Ids are node ids and are
    not renumbered (see ``relabel_sequential``).
    """
    labels = leaf_mapping(hierarchy, level)[hierarchy.leaf_labels]
    labels.flags.writeable = False
    return labels


def level_for_region_count(hierarchy: Hierarchy, n_regions: int) -> float:
    """Smallest level whose cut has at most ``n_regions`` regions.

    Levels strictly increase towards the root, so the nodes collapsed by a
    cut are exactly the internal nodes with level ``<= L``, and each of them
    removes one region.
    """
    n_regions = min(max(int(n_regions), 1), hierarchy.n_leaves)
    n_merges = hierarchy.n_leaves - n_regions
    if n_merges == 0:
        return 0.0
    internal = np.sort(hierarchy.levels[hierarchy.n_leaves:])
    return float(internal[n_merges - 1])


def cut_to_region_count(hierarchy: Hierarchy, n_regions: int) -> NDArray[np.uint32]:
    return cut(hierarchy, level_for_region_count(hierarchy, n_regions))


def level_from_control(max_level: float, control: float) -> float:
    """Map a normalized ``[0, 1]`` control to a level.

    Exponential in the control (``2 ** (control * log2(max_level))``) so that
    equal control steps feel even across the fine and coarse end of the
    hierarchy. Hierarchies with ``max_level <= 1`` map linearly.
    """
    control = min(max(float(control), 0.0), 1.0)
    if control == 0.0 or max_level <= 0:
        return 0.0
    if control == 1.0:
        return max_level
    if max_level <= 1.0:
        return control * max_level
    return 2.0 ** (control * math.log2(max_level))


def relabel_sequential(labels: NDArray) -> NDArray[np.int64]:
    """Remap arbitrary ids to ``0..k-1`` preserving their sorted order."""
    _, inverse = np.unique(labels, return_inverse=True)
    return inverse.reshape(np.shape(labels)).astype(np.int64)
