"""Flask application exposing the stock list operations over HTTP."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from flask import Flask, Response, jsonify, request
from pydantic import ValidationError

from .config import Settings, get_settings
from .inventory import SelectionError, StockManager
from .records import EXPORT_COLUMNS, IMPORT_COLUMNS, StockRecord
from .schemas import RemoveRequest, StockItemCreate
from .tabular import FORMATS, MIMETYPES, TabularFormatError, export_filename, write_rows

logger = logging.getLogger(__name__)


def create_app(
    snapshot_path: str | Path | None = None,
    settings: Optional[Settings] = None,
) -> Flask:
    settings = settings or get_settings()
    logging.basicConfig(level=settings.log_level)
    storage_path = Path(snapshot_path) if snapshot_path is not None else settings.snapshot_path

    app = Flask(__name__)
    app.config["APP_NAME"] = settings.app_name
    app.config["ENVIRONMENT"] = settings.environment

    manager = StockManager(snapshot_path=storage_path)
    app.extensions["stock_manager"] = manager

    def _log_refresh(records: Tuple[StockRecord, ...]) -> None:
        logger.debug("Stock list refreshed, %d records", len(records))

    manager.store.subscribe(_log_refresh)

    def _json_error(message: str, status: int = 400) -> Any:
        return jsonify({"error": message, "level": "error"}), status

    def _resolve_format(value: Optional[str]) -> Optional[str]:
        fmt = (value or settings.export_format).strip().lower().lstrip(".")
        return fmt if fmt in FORMATS else None

    def _download(content: bytes, fmt: str, filename: str) -> Response:
        response = Response(content, mimetype=MIMETYPES[fmt])
        response.headers["Content-Disposition"] = f"attachment; filename={filename}"
        return response

    @app.get("/health")
    def health() -> Any:
        return jsonify({"status": "ok", "environment": settings.environment})

    @app.get("/api/items")
    def list_items() -> Any:
        displayed = manager.displayed_records()
        rows = []
        for index, record in enumerate(displayed):
            payload = record.to_dict()
            payload["index"] = index
            rows.append(payload)
        return jsonify(rows)

    @app.post("/api/items")
    def add_item() -> Any:
        payload = _get_payload(request)
        try:
            fields = StockItemCreate.model_validate(payload)
        except ValidationError as exc:
            return _json_error(f"Invalid item: {exc.error_count()} field error(s)")
        record = manager.add_item(**fields.model_dump())
        return jsonify(record.to_dict()), 201

    @app.post("/api/items/remove")
    def remove_items() -> Any:
        try:
            selection = _get_selection(request)
        except (ValidationError, ValueError) as exc:
            return _json_error(f"Invalid selection: {exc}")
        try:
            removed = manager.remove_selected(selection)
        except SelectionError as exc:
            return _json_error(str(exc))
        return jsonify(
            {
                "removed": [record.id for record in removed],
                "count": len(removed),
            }
        )

    @app.post("/api/items/import")
    def import_items() -> Any:
        try:
            if request.files:
                upload = request.files.get("file")
                if upload is None or upload.filename == "":
                    raise TabularFormatError("Missing upload file")
                imported = manager.import_file(upload.read(), upload.filename or "")
            else:
                imported = manager.import_rows(_get_import_rows(request))
        except TabularFormatError as exc:
            logger.warning("Rejected import: %s", exc)
            return _json_error(f"Error importing file: {exc}")
        return jsonify(
            {
                "imported": [record.to_dict() for record in imported],
                "count": len(imported),
            }
        )

    @app.get("/api/items/export")
    def export_items() -> Any:
        fmt = _resolve_format(request.args.get("format"))
        if fmt is None:
            return _json_error("Unsupported export format")
        content = write_rows(EXPORT_COLUMNS, manager.export_rows(), fmt)
        return _download(content, fmt, export_filename(settings.export_prefix, fmt))

    @app.get("/api/items/template")
    def download_template() -> Any:
        fmt = _resolve_format(request.args.get("format"))
        if fmt is None:
            return _json_error("Unsupported template format")
        content = write_rows(IMPORT_COLUMNS, [], fmt)
        return _download(content, fmt, f"stock_import_template.{fmt}")

    @app.get("/api/items/duplicates")
    def find_duplicates() -> Any:
        count = manager.find_duplicates()
        if count > 0:
            message, level = f"Found {count} duplicate items.", "warning"
        else:
            message, level = "No duplicate items found.", "message"
        return jsonify(
            {
                "count": count,
                "items": manager.duplicate_items(),
                "message": message,
                "level": level,
            }
        )

    return app


def _get_payload(req: Any) -> Dict[str, Any]:
    if req.is_json:
        return req.get_json(silent=True) or {}
    if req.form:
        return req.form.to_dict()
    return req.get_json(silent=True) or {}


def _get_selection(req: Any) -> Any:
    if not req.is_json and req.form:
        values = [value.strip() for value in req.form.getlist("selected") if value.strip()]
        return [int(value) for value in values]
    payload = req.get_json(silent=True)
    if isinstance(payload, list):
        payload = {"selected": payload}
    if not isinstance(payload, dict):
        return None
    return RemoveRequest.model_validate(payload).selected


def _get_import_rows(req: Any) -> List[Dict[str, Any]]:
    payload = req.get_json(silent=True)
    if isinstance(payload, dict):
        payload = payload.get("items")
    if isinstance(payload, list):
        return [row for row in payload if isinstance(row, dict)]
    raise TabularFormatError("Unsupported import payload")
