"""Dense per-load thread numbering."""
from __future__ import annotations


class ThreadIndexer:
    """Assigns each raw thread id the position of its first appearance.

    Indices are only meaningful within one load pass.
    """

    def __init__(self) -> None:
        self._thread_ids: list[int] = []
        self._positions: dict[int, int] = {}

    def index_of(self, thread_id: int) -> int:
        position = self._positions.get(thread_id)
        if position is None:
            position = len(self._thread_ids)
            self._positions[thread_id] = position
            self._thread_ids.append(thread_id)
        return position

    @property
    def thread_ids(self) -> tuple[int, ...]:
        return tuple(self._thread_ids)

    def __len__(self) -> int:
        return len(self._thread_ids)
