"""Observability helpers."""

from ctxviewer.observability.otel import (
    initialize,
    shutdown,
    start_span,
    record_event_load,
    record_skipped_row,
)

__all__ = [
    "initialize",
    "shutdown",
    "start_span",
    "record_event_load",
    "record_skipped_row",
]
