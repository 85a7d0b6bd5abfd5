"""Binary partition tree built by greedy agglomerative merging.

The tree is an arena: nodes live in one list and point at each other by
integer id. Leaves ``0..N-1`` are the initial superpixels; every merge
appends a parent ``N, N+1, ...`` until a single root remains.

Merge loop (lazy-deletion heap):
1. Pop the lightest edge; skip it if either endpoint has already merged
2. Create the parent from the size-weighted union of both children
3. Re-weight the parent against every neighbour of either child, using the
   parent's fresh statistics, and push those edges
4. Level = merge weight, raised above both children's levels so that levels
   strictly increase from the leaves to the root (ultrametric)
"""

from __future__ import annotations

import heapq
import logging
import math
from dataclasses import dataclass

import numpy as np
from numpy.typing import NDArray

from hierseg.engine.region_graph import Edge, get_weight_fn
from hierseg.engine.regions import Region

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HierarchyNode:
    id: int
    level: float
    size: int                               # pixels under this node
    mean: tuple[float, ...]                 # mean color
    children: tuple[int, int] | None = None  # None for leaves
    parent: int | None = None               # None for the root

    @property
    def is_leaf(self) -> bool:
        return self.children is None


@dataclass(frozen=True, eq=False)
class Hierarchy:
    """Read-only merge tree plus the leaf label map it was built on.

    ``leaf_order`` lists the leaves in depth-first order so that the leaves
    under any node form the contiguous slice ``span_start[id]:span_end[id]``.
    """

    nodes: tuple[HierarchyNode, ...]
    root: int
    leaf_labels: NDArray[np.int64]   # (height, width), ids 0..N-1
    levels: NDArray[np.float64]      # per node id
    leaf_order: NDArray[np.int64]
    span_start: NDArray[np.int64]
    span_end: NDArray[np.int64]

    @property
    def max_level(self) -> float:
        return self.nodes[self.root].level

    @property
    def width(self) -> int:
        return int(self.leaf_labels.shape[1])

    @property
    def height(self) -> int:
        return int(self.leaf_labels.shape[0])

    @property
    def n_leaves(self) -> int:
        return len(self.leaf_order)

    @property
    def n_nodes(self) -> int:
        return len(self.nodes)

    def leaves(self, node_id: int) -> NDArray[np.int64]:
        return self.leaf_order[self.span_start[node_id]:self.span_end[node_id]]


def _leaf_spans(
    children: list[tuple[int, int] | None], root: int,
) -> tuple[NDArray[np.int64], NDArray[np.int64], NDArray[np.int64]]:
    n_nodes = len(children)
    start = np.zeros(n_nodes, dtype=np.int64)
    end = np.zeros(n_nodes, dtype=np.int64)
    order: list[int] = []

    stack = [(root, False)]
    while stack:
        node, expanded = stack.pop()
        kids = children[node]
        if kids is None:
            start[node] = len(order)
            order.append(node)
            end[node] = len(order)
        elif expanded:
            start[node] = start[kids[0]]
            end[node] = end[kids[1]]
        else:
            stack.append((node, True))
            stack.append((kids[1], False))
            stack.append((kids[0], False))

    return np.array(order, dtype=np.int64), start, end


def _freeze(array: NDArray) -> NDArray:
    array.flags.writeable = False
    return array


def build(
    labels: NDArray,
    regions: list[Region],
    edges: list[Edge],
    weight: str = "color",
) -> Hierarchy:
    """Merge adjacent regions lightest-first until one region remains."""
    weight_fn = get_weight_fn(weight)
    n_leaves = len(regions)

    stats: list[Region] = list(regions)
    levels: list[float] = [0.0] * n_leaves
    parents: list[int | None] = [None] * n_leaves
    children: list[tuple[int, int] | None] = [None] * n_leaves
    active: list[bool] = [True] * n_leaves

    # region id → {neighbour id: shared boundary length}
    neighbours: dict[int, dict[int, int]] = {i: {} for i in range(n_leaves)}
    heap: list[tuple[float, int, int]] = []
    for edge in edges:
        neighbours[edge.a][edge.b] = edge.length
        neighbours[edge.b][edge.a] = edge.length
        heap.append((edge.weight, edge.a, edge.b))
    heapq.heapify(heap)

    n_active = n_leaves
    stale = 0
    while n_active > 1:
        if not heap:
            raise ValueError(f"Region graph is disconnected: {n_active} regions left unmerged")
        weight_ab, a, b = heapq.heappop(heap)
        if not (active[a] and active[b]):
            stale += 1
            continue

        parent = len(stats)
        merged = stats[a].merge(stats[b], parent)
        floor = max(levels[a], levels[b])
        level = max(weight_ab, floor)
        if level <= floor:
            level = math.nextafter(floor, math.inf)

        stats.append(merged)
        levels.append(level)
        parents.append(None)
        children.append((a, b))
        active.append(True)
        parents[a] = parents[b] = parent
        active[a] = active[b] = False

        joined: dict[int, int] = {}
        for child in (a, b):
            for other, length in neighbours.pop(child).items():
                if other == a or other == b:
                    continue
                joined[other] = joined.get(other, 0) + length
                del neighbours[other][child]
        neighbours[parent] = joined
        for other, length in joined.items():
            neighbours[other][parent] = length
            heapq.heappush(heap, (weight_fn(merged, stats[other], length), other, parent))

        n_active -= 1

    root = len(stats) - 1
    nodes = tuple(
        HierarchyNode(
            id=i,
            level=levels[i],
            size=stats[i].count,
            mean=tuple(float(v) for v in stats[i].mean),
            children=children[i],
            parent=parents[i],
        )
        for i in range(len(stats))
    )
    leaf_order, span_start, span_end = _leaf_spans(children, root)
    logger.debug("Hierarchy: %d merges, %d stale heap entries discarded", len(stats) - n_leaves, stale)

    return Hierarchy(
        nodes=nodes,
        root=root,
        leaf_labels=_freeze(np.array(labels, dtype=np.int64)),
        levels=_freeze(np.array(levels, dtype=np.float64)),
        leaf_order=_freeze(leaf_order),
        span_start=_freeze(span_start),
        span_end=_freeze(span_end),
    )
