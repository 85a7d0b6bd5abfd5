"""Health check endpoint."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from hierseg import __version__
from hierseg.dependencies import get_store
from hierseg.models.responses import HealthResponse
from hierseg.store import HierarchyStore

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def health(store: HierarchyStore = Depends(get_store)) -> HealthResponse:
    return HealthResponse(
        status="ok",
        version=__version__,
        cached_hierarchies=len(store),
    )
