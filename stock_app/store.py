"""In-memory record store and identifier allocation."""
from __future__ import annotations

from threading import RLock
from typing import Callable, Iterable, List, Sequence, Tuple

from .records import StockRecord

Listener = Callable[[Tuple[StockRecord, ...]], None]


def next_id(records: Iterable[StockRecord]) -> int:
    """Return the identifier for the next record added to ``records``."""

    return allocate_ids(records, 1)[0]


def allocate_ids(records: Iterable[StockRecord], count: int) -> List[int]:
    """Allocate ``count`` consecutive identifiers above the current maximum.

    An empty collection starts at ``1``.
    """

    if count < 0:
        raise ValueError("count must not be negative")
    highest = max((record.id for record in records), default=0)
    return [highest + offset for offset in range(1, count + 1)]


def check_unique(records: Sequence[StockRecord]) -> None:
    ids = [record.id for record in records]
    if len(ids) != len(set(ids)):
        raise ValueError("Record identifiers must be unique")


class RecordStore:
    """Holds the authoritative collection and swaps it as a whole."""

    def __init__(self, records: Iterable[StockRecord] = ()) -> None:
        self._lock = RLock()
        self._records: Tuple[StockRecord, ...] = tuple(records)
        self._listeners: List[Listener] = []

    def current(self) -> Tuple[StockRecord, ...]:
        with self._lock:
            return self._records

    def replace(self, records: Sequence[StockRecord]) -> Tuple[StockRecord, ...]:
        snapshot = tuple(records)
        with self._lock:
            self._records = snapshot
            listeners = list(self._listeners)
        for listener in listeners:
            listener(snapshot)
        return snapshot

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register ``listener`` for every successful :meth:`replace`.

        Returns a callable that removes the listener again.
        """

        with self._lock:
            self._listeners.append(listener)

        def _unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return _unsubscribe

    def __len__(self) -> int:
        return len(self.current())
