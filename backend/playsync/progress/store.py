"""In-memory holder of canonical progress records."""

from collections.abc import Iterator

from .models import ProgressKey, ProgressState


class ProgressStateStore:
    """Canonical ``ProgressState`` per (video, user) pair.

    No validation happens here. Access is not synchronized; all readers and
    writers run on the same event loop.
    """

    def __init__(self) -> None:
        self._states: dict[ProgressKey, ProgressState] = {}

    def get(self, key: ProgressKey) -> ProgressState | None:
        return self._states.get(key)

    def set(self, key: ProgressKey, state: ProgressState) -> None:
        self._states[key] = state

    def delete(self, key: ProgressKey) -> bool:
        """Remove a record, returning whether one existed."""
        return self._states.pop(key, None) is not None

    def clear(self) -> None:
        self._states.clear()

    def values(self) -> list[ProgressState]:
        """Snapshot of all records, safe to iterate while the store changes."""
        return list(self._states.values())

    def __contains__(self, key: object) -> bool:
        return key in self._states

    def __iter__(self) -> Iterator[ProgressKey]:
        return iter(list(self._states))

    def __len__(self) -> int:
        return len(self._states)
