"""API router for persisted viewer settings."""
from __future__ import annotations

from fastapi import APIRouter

from ctxviewer.viewer_settings import ViewerSettings, settings_manager

settings_router = APIRouter(prefix="/api/settings", tags=["settings"])


@settings_router.get("", response_model=ViewerSettings)
def get_settings():
    """Return the current viewer settings."""
    return settings_manager.get()


@settings_router.put("", response_model=ViewerSettings)
def update_settings(settings: ViewerSettings):
    """Replace and persist the viewer settings."""
    return settings_manager.update(settings)
