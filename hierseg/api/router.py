"""Master API router — mounts all endpoint routers."""

from __future__ import annotations

from fastapi import APIRouter

from hierseg.api import health, hierarchy, segment

api_router = APIRouter(prefix="/api")

api_router.include_router(health.router)
api_router.include_router(hierarchy.router)
api_router.include_router(segment.router)
