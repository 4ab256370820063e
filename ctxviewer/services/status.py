"""In-memory status sink the HTTP layer can poll."""
from __future__ import annotations

import time
from collections import deque
from typing import Any


class StatusBoard:
    """Remembers the latest status line and a short history.

    Instances are callable so they can be handed to anything expecting a
    ``Callable[[str], None]`` sink.
    """

    def __init__(self, history: int = 50):
        self._history: deque[dict[str, Any]] = deque(maxlen=max(1, history))
        self.latest = ""

    def __call__(self, message: str) -> None:
        self.latest = message
        if message:
            self._history.append({"message": message, "at": time.time()})

    def recent(self, limit: int = 20) -> list[dict[str, Any]]:
        items = list(self._history)
        return items[-limit:] if limit > 0 else []
