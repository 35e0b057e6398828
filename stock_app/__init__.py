"""Refrigerator stock list package."""
from __future__ import annotations

from .inventory import StockManager
from .records import StockRecord

__all__ = ["create_app", "StockManager", "StockRecord"]


def create_app(*args, **kwargs):
    from .app import create_app as _create_app

    return _create_app(*args, **kwargs)
