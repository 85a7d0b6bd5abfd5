"""FastAPI dependency injection."""

from __future__ import annotations

from hierseg.config import settings
from hierseg.store import HierarchyStore, get_hierarchy_store


def get_settings():
    return settings


def get_store() -> HierarchyStore:
    return get_hierarchy_store()
