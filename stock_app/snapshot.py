"""Durable JSON snapshot of the whole stock collection."""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, Optional, Tuple

from .records import StockRecord

logger = logging.getLogger(__name__)

SNAPSHOT_VERSION = 1


class SnapshotError(RuntimeError):
    """Raised when an existing snapshot file cannot be read back."""


@dataclass
class SnapshotStore:
    """Loads and overwrites the single snapshot file.

    Every save rewrites the complete collection. Concurrent processes writing
    the same file are not coordinated; the last writer wins.
    """

    path: Path

    def __post_init__(self) -> None:
        self.path = Path(self.path)

    def exists(self) -> bool:
        return self.path.exists()

    def load(self) -> Optional[Tuple[StockRecord, ...]]:
        if not self.path.exists():
            return None
        raw = self.path.read_text(encoding="utf-8")
        try:
            state = json.loads(raw or "{}")
        except json.JSONDecodeError as exc:
            raise SnapshotError(f"Snapshot '{self.path}' is not valid JSON") from exc
        records_raw = state.get("records") if isinstance(state, dict) else None
        if not isinstance(records_raw, list):
            raise SnapshotError(f"Snapshot '{self.path}' has no record list")
        try:
            records = tuple(StockRecord.from_dict(entry) for entry in records_raw)
        except (AttributeError, ValueError) as exc:
            raise SnapshotError(f"Snapshot '{self.path}' contains an invalid record") from exc
        logger.debug("Loaded %d records from %s", len(records), self.path)
        return records

    def save(self, records: Iterable[StockRecord]) -> None:
        state: Dict[str, Any] = {
            "version": SNAPSHOT_VERSION,
            "records": [record.to_dict() for record in records],
        }
        self.path.parent.mkdir(parents=True, exist_ok=True)
        temp_path = self.path.with_suffix(".tmp")
        temp_path.write_text(json.dumps(state, indent=2, ensure_ascii=False), encoding="utf-8")
        temp_path.replace(self.path)
        logger.debug("Saved %d records to %s", len(state["records"]), self.path)
