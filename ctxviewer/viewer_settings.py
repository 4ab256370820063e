"""Viewer settings persistence.

Settings are stored as indented JSON. A missing or unreadable file falls back
to defaults rather than failing start-up.
"""
from __future__ import annotations

import json
import logging
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError

from ctxviewer import config

logger = logging.getLogger("ctxviewer")


class RenderSettings(BaseModel):
    start: float = 0.0
    length: float = 20.0
    scale: float = 50.0
    maxDepth: int = 7
    cutoff: float = 0.0
    coalesce: float = 0.0
    bookmarks: bool = False


class GuiSettings(BaseModel):
    renderAuto: bool = True
    lastLogDir: str = Field(default_factory=lambda: str(Path.home()))


class BookmarkSettings(BaseModel):
    absolute: bool = True
    format: str = "%Y/%m/%d %H:%M:%S"


class ViewerSettings(BaseModel):
    render: RenderSettings = Field(default_factory=RenderSettings)
    gui: GuiSettings = Field(default_factory=GuiSettings)
    bookmarks: BookmarkSettings = Field(default_factory=BookmarkSettings)


class SettingsManager:
    """Loads, holds and saves the viewer settings file."""

    def __init__(self, storage_path: Path):
        self.storage_path = storage_path
        self.settings = self._load()

    def _load(self) -> ViewerSettings:
        try:
            content = self.storage_path.read_text()
            return ViewerSettings.model_validate(json.loads(content))
        except FileNotFoundError:
            logger.info(f"No settings at {self.storage_path}, using defaults")
        except (OSError, json.JSONDecodeError, ValidationError) as e:
            logger.error(f"Error loading settings from {self.storage_path}: {e}")
        return ViewerSettings()

    def save(self) -> None:
        try:
            self.storage_path.parent.mkdir(parents=True, exist_ok=True)
            self.storage_path.write_text(json.dumps(self.settings.model_dump(), indent=4))
        except OSError as e:
            logger.error(f"Error saving settings to {self.storage_path}: {e}")

    def get(self) -> ViewerSettings:
        return self.settings

    def update(self, settings: ViewerSettings) -> ViewerSettings:
        self.settings = settings
        self.save()
        return self.settings

    def remember_log_dir(self, log_file: Path) -> None:
        self.settings.gui.lastLogDir = str(log_file.parent)
        self.save()


settings_manager = SettingsManager(config.SETTINGS_PATH)
