"""In-memory repository with snapshot reads and versioned writes."""

from __future__ import annotations

import copy
import threading
from typing import Generic, Iterator, List, MutableMapping, Protocol, TypeVar


class Versioned(Protocol):
    version: int


T = TypeVar("T", bound=Versioned)


class RepositoryError(RuntimeError):
    """Base exception for repository errors."""


class DuplicateRecordError(RepositoryError):
    """Raised when attempting to insert a record that already exists."""


class RecordNotFoundError(RepositoryError):
    """Raised when a requested record is missing."""


class ConcurrencyConflictError(RepositoryError):
    """Raised when a write is based on a stale snapshot."""

    def __init__(self, item_id: str, expected_version: int, actual_version: int) -> None:
        super().__init__(
            f"Record {item_id!r} changed concurrently "
            f"(expected version {expected_version}, found {actual_version})"
        )
        self.item_id = item_id
        self.expected_version = expected_version
        self.actual_version = actual_version


class InMemoryRepository(Generic[T]):
    """Dictionary-backed repository.

    Callers never hold a reference to the stored object: :meth:`get` and
    :meth:`list` return deep copies, and :meth:`replace` stores a copy only if
    the caller's snapshot is still current.
    """

    def __init__(self) -> None:
        self._items: MutableMapping[str, T] = {}
        self._lock = threading.Lock()

    def __contains__(self, item_id: object) -> bool:
        return item_id in self._items

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[T]:
        return iter(self.list())

    def add(self, item_id: str, item: T) -> None:
        with self._lock:
            if item_id in self._items:
                raise DuplicateRecordError(f"Record with id {item_id!r} already exists")
            item.version = 1
            self._items[item_id] = copy.deepcopy(item)

    def get(self, item_id: str) -> T:
        with self._lock:
            try:
                return copy.deepcopy(self._items[item_id])
            except KeyError as exc:
                raise RecordNotFoundError(f"Record with id {item_id!r} not found") from exc

    def replace(self, item_id: str, item: T, *, expected_version: int) -> None:
        """Store ``item`` if the stored version still equals ``expected_version``."""

        with self._lock:
            current = self._items.get(item_id)
            if current is None:
                raise RecordNotFoundError(f"Record with id {item_id!r} not found")
            if current.version != expected_version:
                raise ConcurrencyConflictError(item_id, expected_version, current.version)
            item.version = expected_version + 1
            self._items[item_id] = copy.deepcopy(item)

    def list(self) -> List[T]:
        with self._lock:
            return [copy.deepcopy(item) for item in self._items.values()]


__all__ = [
    "InMemoryRepository",
    "RepositoryError",
    "DuplicateRecordError",
    "RecordNotFoundError",
    "ConcurrencyConflictError",
]
