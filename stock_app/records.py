"""Stock record model and value coercion helpers."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Any, Dict, Optional, Tuple


IMPORT_COLUMNS: Tuple[str, ...] = (
    "Item",
    "Quantity",
    "Expiry_Date",
    "Storage_Location",
    "Vendor",
    "Catalog_Number",
    "Added_By",
    "Added_Date",
)
EXPORT_COLUMNS: Tuple[str, ...] = IMPORT_COLUMNS + ("ID",)

_TEXT_COLUMNS = frozenset(
    {"Item", "Storage_Location", "Vendor", "Catalog_Number", "Added_By"}
)
_DATE_COLUMNS = frozenset({"Expiry_Date", "Added_Date"})
_DATE_FORMATS = ("%Y/%m/%d", "%Y-%m-%d")


def today() -> date:
    return date.today()


def parse_date(value: Any) -> Optional[date]:
    """Coerce a cell value to a calendar date, or ``None`` when it cannot be read."""

    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        return None
    text = value.strip()
    if not text:
        return None
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    return None


def serialize_date(value: Optional[date]) -> Optional[str]:
    if value is None:
        return None
    return value.isoformat()


def parse_quantity(value: Any) -> Optional[int]:
    """Convert quantity inputs to integers or ``None``.

    Negative numbers are kept as given; only values that are not a whole
    number at all collapse to ``None``.
    """

    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    text = str(value).strip()
    if not text:
        return None
    try:
        return int(text)
    except ValueError:
        pass
    try:
        parsed = float(text)
    except ValueError:
        return None
    return int(parsed) if parsed.is_integer() else None


def coerce_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def _stored_text(value: Any) -> str:
    return "" if value is None else str(value)


def coerce_column(column: str, value: Any) -> Any:
    """Normalize a raw cell for one of :data:`IMPORT_COLUMNS`."""

    if column in _DATE_COLUMNS:
        return parse_date(value)
    if column == "Quantity":
        return parse_quantity(value)
    if column in _TEXT_COLUMNS:
        return coerce_text(value)
    raise KeyError(f"Unknown column '{column}'")


@dataclass(frozen=True)
class StockRecord:
    """One refrigerator stock entry."""

    id: int
    item: str = ""
    quantity: Optional[int] = None
    expiry_date: Optional[date] = None
    storage_location: str = ""
    vendor: str = ""
    catalog_number: str = ""
    added_by: str = ""
    added_date: Optional[date] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "item": self.item,
            "quantity": self.quantity,
            "expiry_date": serialize_date(self.expiry_date),
            "storage_location": self.storage_location,
            "vendor": self.vendor,
            "catalog_number": self.catalog_number,
            "added_by": self.added_by,
            "added_date": serialize_date(self.added_date),
        }

    def to_row(self) -> Dict[str, Any]:
        """Return the record keyed by its tabular column names."""

        return {
            "Item": self.item,
            "Quantity": self.quantity,
            "Expiry_Date": self.expiry_date,
            "Storage_Location": self.storage_location,
            "Vendor": self.vendor,
            "Catalog_Number": self.catalog_number,
            "Added_By": self.added_by,
            "Added_Date": self.added_date,
            "ID": self.id,
        }

    @classmethod
    def from_dict(cls, record: Dict[str, Any]) -> "StockRecord":
        raw_id = record.get("id")
        if isinstance(raw_id, bool) or not isinstance(raw_id, int):
            raise ValueError(f"Invalid record id: {raw_id!r}")
        return cls(
            id=raw_id,
            item=_stored_text(record.get("item")),
            quantity=parse_quantity(record.get("quantity")),
            expiry_date=parse_date(record.get("expiry_date")),
            storage_location=_stored_text(record.get("storage_location")),
            vendor=_stored_text(record.get("vendor")),
            catalog_number=_stored_text(record.get("catalog_number")),
            added_by=_stored_text(record.get("added_by")),
            added_date=parse_date(record.get("added_date")),
        )

    @classmethod
    def from_row(cls, record_id: int, row: Dict[str, Any]) -> "StockRecord":
        """Build a record from a row already projected onto :data:`IMPORT_COLUMNS`."""

        return cls(
            id=record_id,
            item=row["Item"],
            quantity=row["Quantity"],
            expiry_date=row["Expiry_Date"],
            storage_location=row["Storage_Location"],
            vendor=row["Vendor"],
            catalog_number=row["Catalog_Number"],
            added_by=row["Added_By"],
            added_date=row["Added_Date"],
        )


def seed_records(reference: Optional[date] = None) -> Tuple[StockRecord, ...]:
    """Return the five demonstration records used when no snapshot exists."""

    base = reference or today()
    samples = (
        ("Antibody A", 10, date(2025, 1, 15), "Shelf 1", "Vendor A", "CAT123", 5),
        ("Enzyme B", 5, date(2024, 11, 20), "Shelf 2", "Vendor B", "CAT456", 4),
        ("Chemical C", 15, date(2025, 6, 30), "Shelf 3", "Vendor C", "CAT789", 3),
        ("Buffer D", 8, date(2024, 12, 10), "Shelf 1", "Vendor D", "CAT012", 2),
        ("Cell Line E", 3, date(2024, 10, 25), "Shelf 4", "Vendor E", "CAT345", 1),
    )
    return tuple(
        StockRecord(
            id=index,
            item=item,
            quantity=quantity,
            expiry_date=expiry,
            storage_location=location,
            vendor=vendor,
            catalog_number=catalog,
            added_by="",
            added_date=base - timedelta(days=days_ago),
        )
        for index, (item, quantity, expiry, location, vendor, catalog, days_ago) in enumerate(
            samples, start=1
        )
    )
