"""/api/hierarchy — build once, then cut and render interactively.

Building runs in the default thread pool so the event loop stays free while
SLIC and the merge loop run. Cuts and renders only read the cached
hierarchy and are cheap enough to serve inline.
"""

from __future__ import annotations

import asyncio
import functools
import logging
import time

from fastapi import APIRouter, Depends, HTTPException

from hierseg.api.common import elapsed_ms, encode_bitmap, engine_config, load_image
from hierseg.config import Settings
from hierseg.dependencies import get_settings, get_store
from hierseg.engine import cutter, renderer
from hierseg.engine.pipeline import build_from_buffer
from hierseg.errors import EmptyInput
from hierseg.models.requests import BuildHierarchyRequest, CutRequest, RenderRequest
from hierseg.models.responses import BitmapResponse, CutResponse, HierarchyResponse
from hierseg.store import HierarchyStore, StoredHierarchy

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/hierarchy")


def _describe(entry: StoredHierarchy, cached: bool, processing_time_ms: float = 0.0) -> HierarchyResponse:
    tree = entry.hierarchy
    return HierarchyResponse(
        hierarchy_id=entry.id,
        width=tree.width,
        height=tree.height,
        n_leaves=tree.n_leaves,
        n_nodes=tree.n_nodes,
        max_level=tree.max_level,
        cached=cached,
        processing_time_ms=processing_time_ms,
    )


def _lookup(store: HierarchyStore, hierarchy_id: str) -> StoredHierarchy:
    entry = store.get(hierarchy_id)
    if entry is None:
        raise HTTPException(status_code=404, detail=f"Unknown hierarchy: {hierarchy_id}")
    return entry


def _resolve_level(entry: StoredHierarchy, req: CutRequest) -> float:
    if req.control is not None:
        return cutter.level_from_control(entry.hierarchy.max_level, req.control)
    return cutter.clamp_level(entry.hierarchy, req.level or 0.0)


@router.post("", response_model=HierarchyResponse)
async def build(
    req: BuildHierarchyRequest,
    settings: Settings = Depends(get_settings),
    store: HierarchyStore = Depends(get_store),
) -> HierarchyResponse:
    start = time.perf_counter()
    pixels = load_image(req, settings)
    config = engine_config(settings, compactness=req.compactness, weight=req.weight)
    if req.target_region_count <= 0:
        raise EmptyInput("target_region_count must be at least 1")

    hierarchy_id = store.key(pixels, req.target_region_count, config)
    existing = store.get(hierarchy_id)
    if existing is not None:
        logger.info("Hierarchy %s served from cache", hierarchy_id)
        return _describe(existing, cached=True, processing_time_ms=elapsed_ms(start))

    loop = asyncio.get_running_loop()
    tree = await loop.run_in_executor(
        None, functools.partial(build_from_buffer, pixels, req.target_region_count, config),
    )
    entry = store.put(hierarchy_id, tree, pixels, req.target_region_count)
    return _describe(entry, cached=False, processing_time_ms=elapsed_ms(start))


@router.get("/{hierarchy_id}", response_model=HierarchyResponse)
async def describe(hierarchy_id: str, store: HierarchyStore = Depends(get_store)) -> HierarchyResponse:
    return _describe(_lookup(store, hierarchy_id), cached=True)


@router.post("/{hierarchy_id}/cut", response_model=CutResponse)
async def cut(
    hierarchy_id: str, req: CutRequest, store: HierarchyStore = Depends(get_store),
) -> CutResponse:
    start = time.perf_counter()
    entry = _lookup(store, hierarchy_id)
    level = _resolve_level(entry, req)
    labels = cutter.cut(entry.hierarchy, level).ravel()
    return CutResponse(
        hierarchy_id=hierarchy_id,
        level=level,
        n_regions=len(cutter.frontier(entry.hierarchy, level)),
        labels=labels.tolist(),
        processing_time_ms=elapsed_ms(start),
    )


@router.post("/{hierarchy_id}/render", response_model=BitmapResponse)
async def render(
    hierarchy_id: str, req: RenderRequest, store: HierarchyStore = Depends(get_store),
) -> BitmapResponse:
    start = time.perf_counter()
    entry = _lookup(store, hierarchy_id)
    level = _resolve_level(entry, req)
    labels = cutter.cut(entry.hierarchy, level)
    bitmap = renderer.render(entry.pixels, labels, mode=req.mode, draw_boundaries=req.draw_boundaries)
    return BitmapResponse(
        width=entry.pixels.width,
        height=entry.pixels.height,
        bitmap=encode_bitmap(bitmap),
        level=level,
        processing_time_ms=elapsed_ms(start),
    )


@router.delete("/{hierarchy_id}")
async def delete(hierarchy_id: str, store: HierarchyStore = Depends(get_store)) -> dict[str, str]:
    if not store.delete(hierarchy_id):
        raise HTTPException(status_code=404, detail=f"Unknown hierarchy: {hierarchy_id}")
    return {"status": "deleted", "hierarchy_id": hierarchy_id}
