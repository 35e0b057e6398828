"""Stock list operations: add, remove, import, export and duplicate audit."""
from __future__ import annotations

import logging
import re
from collections import Counter
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from threading import RLock
from typing import Any, Dict, Iterable, List, Mapping, Sequence, Tuple, Union

from .records import (
    IMPORT_COLUMNS,
    StockRecord,
    coerce_column,
    coerce_text,
    parse_date,
    parse_quantity,
    seed_records,
    today,
)
from .snapshot import SnapshotStore
from .store import RecordStore, allocate_ids, check_unique, next_id
from .tabular import read_rows

logger = logging.getLogger(__name__)

Selection = Union[None, int, Sequence[int]]


class SelectionError(ValueError):
    """Raised when a selected display row does not exist."""


def _normalize_column_key(value: Any) -> str:
    if value is None:
        return ""
    text = str(value).replace("\ufeff", "").strip().lower()
    return re.sub(r"[\s\-]+", "_", text)


_COLUMN_LOOKUP: Dict[str, str] = {
    _normalize_column_key(column): column for column in IMPORT_COLUMNS
}


def project_row(row: Mapping[str, Any]) -> Dict[str, Any]:
    """Project one raw row onto the import columns.

    Missing columns are filled with an empty marker, unknown columns
    (including ``ID``) are dropped and every value is coerced to its
    column type.
    """

    raw: Dict[str, Any] = {}
    for key, value in row.items():
        column = _COLUMN_LOOKUP.get(_normalize_column_key(key))
        if column is not None and column not in raw:
            raw[column] = value
    return {column: coerce_column(column, raw.get(column)) for column in IMPORT_COLUMNS}


def reconcile_rows(
    existing: Sequence[StockRecord],
    rows: Iterable[Mapping[str, Any]],
) -> List[StockRecord]:
    """Turn externally supplied rows into new records with fresh identifiers."""

    projected = [project_row(row) for row in rows]
    ids = allocate_ids(existing, len(projected))
    return [StockRecord.from_row(record_id, row) for record_id, row in zip(ids, projected)]


def display_order(records: Iterable[StockRecord]) -> List[StockRecord]:
    """Return records newest ``added_date`` first; undated records go last."""

    return sorted(
        records,
        key=lambda record: (record.added_date is not None, record.added_date or date.min),
        reverse=True,
    )


def resolve_selection(displayed: Sequence[StockRecord], selection: Selection) -> List[int]:
    """Map selected display indices to record identifiers."""

    if selection is None:
        return []
    if isinstance(selection, bool):
        raise SelectionError(f"Invalid row selection: {selection!r}")
    indices = [selection] if isinstance(selection, int) else list(selection)
    resolved: List[int] = []
    for index in indices:
        if isinstance(index, bool) or not isinstance(index, int):
            raise SelectionError(f"Invalid row selection: {index!r}")
        if index < 0 or index >= len(displayed):
            raise SelectionError(f"Row {index} is not displayed")
        record_id = displayed[index].id
        if record_id not in resolved:
            resolved.append(record_id)
    return resolved


def duplicate_items(records: Iterable[StockRecord]) -> Dict[str, int]:
    counts = Counter(record.item for record in records)
    return {item: count for item, count in counts.items() if count > 1}


def count_duplicates(records: Iterable[StockRecord]) -> int:
    """Number of distinct item names that occur more than once."""

    return len(duplicate_items(records))


@dataclass
class StockManager:
    """Coordinates the record store with its snapshot file."""

    snapshot_path: Path
    store: RecordStore = field(init=False)
    snapshots: SnapshotStore = field(init=False)
    _lock: RLock = field(default_factory=RLock, init=False)

    def __post_init__(self) -> None:
        self.snapshot_path = Path(self.snapshot_path)
        self.snapshots = SnapshotStore(self.snapshot_path)
        with self._lock:
            loaded = self.snapshots.load()
            if loaded is None:
                loaded = seed_records(today())
                self.snapshots.save(loaded)
                logger.info("No snapshot at %s, seeded %d records", self.snapshot_path, len(loaded))
            else:
                logger.info("Loaded %d records from %s", len(loaded), self.snapshot_path)
            self.store = RecordStore(loaded)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    def list_records(self) -> Tuple[StockRecord, ...]:
        return self.store.current()

    def displayed_records(self) -> List[StockRecord]:
        return display_order(self.store.current())

    def find_duplicates(self) -> int:
        count = count_duplicates(self.store.current())
        logger.info("Duplicate audit found %d duplicated items", count)
        return count

    def duplicate_items(self) -> Dict[str, int]:
        return duplicate_items(self.store.current())

    def export_rows(self) -> List[Dict[str, Any]]:
        return [record.to_row() for record in self.store.current()]

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------
    def add_item(
        self,
        item: Any = "",
        quantity: Any = None,
        expiry_date: Any = None,
        storage_location: Any = "",
        vendor: Any = "",
        catalog_number: Any = "",
        added_by: Any = "",
    ) -> StockRecord:
        with self._lock:
            current = self.store.current()
            record = StockRecord(
                id=next_id(current),
                item=coerce_text(item),
                quantity=parse_quantity(quantity),
                expiry_date=parse_date(expiry_date),
                storage_location=coerce_text(storage_location),
                vendor=coerce_text(vendor),
                catalog_number=coerce_text(catalog_number),
                added_by=coerce_text(added_by),
                added_date=today(),
            )
            self._commit(current + (record,))
        logger.info("Added item %r with id %d", record.item, record.id)
        return record

    def remove_selected(self, selection: Selection) -> List[StockRecord]:
        """Remove the records shown at the selected display positions.

        An empty selection leaves the store and the snapshot untouched.
        """

        with self._lock:
            displayed = display_order(self.store.current())
            target_ids = resolve_selection(displayed, selection)
            if not target_ids:
                return []
            removed = [record for record in displayed if record.id in target_ids]
            remaining = [record for record in displayed if record.id not in target_ids]
            self._commit(remaining)
        logger.info("Removed records %s", [record.id for record in removed])
        return removed

    def import_rows(self, rows: Iterable[Mapping[str, Any]]) -> List[StockRecord]:
        with self._lock:
            current = self.store.current()
            imported = reconcile_rows(current, rows)
            if imported:
                self._commit(current + tuple(imported))
        logger.info("Imported %d records", len(imported))
        return imported

    def import_file(self, data: bytes, filename: str = "") -> List[StockRecord]:
        """Parse a tabular upload and append its rows.

        A :class:`~stock_app.tabular.TabularFormatError` from the reader
        propagates before anything is appended.
        """

        rows = read_rows(data, filename)
        return self.import_rows(rows)

    def _commit(self, records: Sequence[StockRecord]) -> None:
        snapshot = tuple(records)
        check_unique(snapshot)
        self.snapshots.save(snapshot)
        self.store.replace(snapshot)
