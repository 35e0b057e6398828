"""Pydantic schemas for request payloads."""
from __future__ import annotations

from datetime import date
from typing import Any, List, Optional, Union

from pydantic import BaseModel, Field, StrictInt, field_validator

from .records import coerce_text, parse_date, parse_quantity, today


class StockItemCreate(BaseModel):
    """Fields of the "Add Item" form.

    Omitted fields fall back to the form defaults: one unit expiring today.
    """

    item: str = ""
    quantity: Optional[int] = Field(default=1, description="Not range checked.")
    expiry_date: Optional[date] = Field(default_factory=lambda: today())
    storage_location: str = ""
    vendor: str = ""
    catalog_number: str = ""
    added_by: str = ""

    @field_validator("item", "storage_location", "vendor", "catalog_number", "added_by", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> str:
        return coerce_text(value)

    @field_validator("quantity", mode="before")
    @classmethod
    def _coerce_quantity(cls, value: Any) -> Optional[int]:
        return parse_quantity(value)

    @field_validator("expiry_date", mode="before")
    @classmethod
    def _coerce_expiry(cls, value: Any) -> Optional[date]:
        return parse_date(value)


class RemoveRequest(BaseModel):
    """Display rows selected for removal; ``None`` or ``[]`` selects nothing."""

    selected: Union[None, StrictInt, List[StrictInt]] = None


__all__ = ["RemoveRequest", "StockItemCreate"]
