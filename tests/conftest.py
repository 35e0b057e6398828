from __future__ import annotations

from datetime import date
from pathlib import Path

import pytest

from stock_app.app import create_app
from stock_app.config import Settings
from stock_app.inventory import StockManager

TODAY = date(2024, 10, 1)


@pytest.fixture(autouse=True)
def fixed_today(monkeypatch):
    monkeypatch.setattr("stock_app.records.today", lambda: TODAY)
    monkeypatch.setattr("stock_app.inventory.today", lambda: TODAY)
    monkeypatch.setattr("stock_app.schemas.today", lambda: TODAY)
    return TODAY


@pytest.fixture()
def snapshot_path(tmp_path: Path) -> Path:
    return tmp_path / "stock_data.json"


@pytest.fixture()
def manager(snapshot_path: Path) -> StockManager:
    return StockManager(snapshot_path)


@pytest.fixture()
def app(snapshot_path: Path):
    settings = Settings(environment="test", snapshot_path=snapshot_path)
    app = create_app(settings=settings)
    app.config.update(TESTING=True)
    return app


@pytest.fixture()
def client(app):
    return app.test_client()
