"""
Snapshot store contract and an in-memory implementation.

Targets follow the host's message addressing: ``LATEST`` is the newest
snapshot, negative integers count back from the end (``PREVIOUS`` = -2 is
the one before latest) and non-negative integers are absolute positions.
"""

from __future__ import annotations

from typing import Any, Protocol, Union, runtime_checkable

from .errors import StoreError
from .utils import clone_tree

LATEST = "latest"
PREVIOUS = -2

Target = Union[str, int]


@runtime_checkable
class SnapshotStore(Protocol):
    """Contract for the host collaborator that holds snapshot history."""

    def get(self, target: Target) -> dict[str, Any] | None:
        """Return the snapshot at ``target``, or None when there is none."""
        ...

    async def replace(self, snapshot: dict[str, Any], target: Target) -> None:
        """Replace the whole snapshot at ``target``; raise StoreError on failure."""
        ...


class InMemorySnapshotStore:
    """
    Append-only snapshot history kept in memory.

    Reads and writes go through deep copies, so callers can never mutate
    stored state by accident.
    """

    def __init__(self, history: list[dict[str, Any]] | None = None):
        self._history: list[dict[str, Any]] = [
            clone_tree(snapshot) for snapshot in history or []
        ]

    def __len__(self) -> int:
        return len(self._history)

    @property
    def history(self) -> list[dict[str, Any]]:
        return clone_tree(self._history)

    def append(self, snapshot: dict[str, Any]) -> None:
        self._history.append(clone_tree(snapshot))

    def _index(self, target: Target) -> int | None:
        if target == LATEST:
            index = len(self._history) - 1
        elif isinstance(target, int) and not isinstance(target, bool):
            index = target if target >= 0 else len(self._history) + target
        else:
            raise StoreError(f"Unknown snapshot target: {target!r}")
        if 0 <= index < len(self._history):
            return index
        return None

    def get(self, target: Target) -> dict[str, Any] | None:
        index = self._index(target)
        return None if index is None else clone_tree(self._history[index])

    async def replace(self, snapshot: dict[str, Any], target: Target) -> None:
        index = self._index(target)
        if index is None:
            raise StoreError(f"No snapshot at target {target!r}")
        self._history[index] = clone_tree(snapshot)
