"""Repository package for compiled log access."""

from .events import SqliteEventRepository

__all__ = [
    "SqliteEventRepository",
]
