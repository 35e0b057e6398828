"""Readers and writers for the spreadsheet formats used by import and export."""
from __future__ import annotations

import csv
from datetime import date, datetime
from io import BytesIO, StringIO
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

import xlrd
import xlwt
from openpyxl import Workbook, load_workbook
from openpyxl.cell.cell import ILLEGAL_CHARACTERS_RE

FORMATS = ("xlsx", "xls", "csv")

MIMETYPES: Dict[str, str] = {
    "xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "xls": "application/vnd.ms-excel",
    "csv": "text/csv",
}

_XLSX_MAGIC = b"PK\x03\x04"
_XLS_MAGIC = b"\xd0\xcf\x11\xe0"


class TabularFormatError(ValueError):
    """Raised when an uploaded file cannot be read as a table."""


def detect_format(data: bytes, filename: str = "") -> str:
    extension = Path(filename or "").suffix.lower().lstrip(".")
    if extension in ("xlsx", "xlsm"):
        return "xlsx"
    if extension in FORMATS:
        return extension
    if data.startswith(_XLSX_MAGIC):
        return "xlsx"
    if data.startswith(_XLS_MAGIC):
        return "xls"
    return "csv"


def read_rows(data: bytes, filename: str = "") -> List[Dict[str, Any]]:
    """Parse an uploaded table into one mapping per non-blank data row.

    Keys are the header labels as found in the file.
    """

    if not data:
        raise TabularFormatError("Empty file")
    fmt = detect_format(data, filename)
    if fmt == "xlsx":
        return _read_xlsx(data)
    if fmt == "xls":
        return _read_xls(data)
    return _read_csv(data)


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _header_labels(values: Sequence[Any]) -> List[str]:
    labels = ["" if value is None else str(value).strip() for value in values]
    if not any(labels):
        raise TabularFormatError("Missing header row")
    return labels


def _build_rows(labels: Sequence[str], data_rows: Iterable[Sequence[Any]]) -> List[Dict[str, Any]]:
    rows: List[Dict[str, Any]] = []
    for values in data_rows:
        if all(_is_blank(value) for value in values):
            continue
        record: Dict[str, Any] = {}
        for index, label in enumerate(labels):
            if not label:
                continue
            record[label] = values[index] if index < len(values) else None
        rows.append(record)
    return rows


def _read_xlsx(data: bytes) -> List[Dict[str, Any]]:
    try:
        workbook = load_workbook(BytesIO(data), read_only=True, data_only=True)
    except Exception as exc:
        raise TabularFormatError("Invalid XLSX file") from exc
    try:
        sheet = workbook.active
        if sheet is None:
            raise TabularFormatError("Missing worksheet")
        values = list(sheet.iter_rows(values_only=True))
    except TabularFormatError:
        raise
    except Exception as exc:
        raise TabularFormatError("Invalid XLSX file") from exc
    finally:
        workbook.close()
    if not values:
        raise TabularFormatError("Missing header row")
    labels = _header_labels(values[0])
    return _build_rows(labels, values[1:])


def _xls_cell_value(cell: Any, datemode: int) -> Any:
    if cell.ctype in (xlrd.XL_CELL_EMPTY, xlrd.XL_CELL_BLANK):
        return None
    if cell.ctype == xlrd.XL_CELL_DATE:
        try:
            return xlrd.xldate_as_datetime(cell.value, datemode)
        except (ValueError, OverflowError):
            return None
    if cell.ctype == xlrd.XL_CELL_ERROR:
        return None
    return cell.value


def _read_xls(data: bytes) -> List[Dict[str, Any]]:
    try:
        workbook = xlrd.open_workbook(file_contents=data)
    except Exception as exc:
        raise TabularFormatError("Invalid XLS file") from exc
    if workbook.nsheets == 0:
        raise TabularFormatError("Missing worksheet")
    sheet = workbook.sheet_by_index(0)
    if sheet.nrows == 0:
        raise TabularFormatError("Missing header row")
    labels = _header_labels(sheet.row_values(0))
    data_rows = (
        [_xls_cell_value(cell, workbook.datemode) for cell in sheet.row(row_index)]
        for row_index in range(1, sheet.nrows)
    )
    return _build_rows(labels, data_rows)


def _read_csv(data: bytes) -> List[Dict[str, Any]]:
    try:
        text = data.decode("utf-8-sig")
    except UnicodeDecodeError as exc:
        raise TabularFormatError("File must be UTF-8 encoded CSV, XLS or XLSX") from exc
    reader = csv.reader(StringIO(text))
    try:
        header = next(reader, None)
        if header is None:
            raise TabularFormatError("Missing header row")
        labels = _header_labels(header)
        return _build_rows(labels, list(reader))
    except csv.Error as exc:
        raise TabularFormatError(f"Malformed CSV: {exc}") from exc


def _csv_value(value: Any) -> Any:
    if value is None:
        return ""
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return value


def write_rows(
    columns: Sequence[str],
    rows: Iterable[Mapping[str, Any]],
    fmt: str = "xlsx",
) -> bytes:
    """Serialize ``rows`` under a header of ``columns`` in the given format."""

    if fmt == "xlsx":
        return _write_xlsx(columns, rows)
    if fmt == "xls":
        return _write_xls(columns, rows)
    if fmt == "csv":
        return _write_csv(columns, rows)
    raise ValueError(f"Unsupported format '{fmt}'")


def _xlsx_value(value: Any) -> Any:
    if isinstance(value, str):
        return ILLEGAL_CHARACTERS_RE.sub("", value)
    return value


def _write_xlsx(columns: Sequence[str], rows: Iterable[Mapping[str, Any]]) -> bytes:
    workbook = Workbook()
    sheet = workbook.active
    sheet.title = "Sheet1"
    sheet.append(list(columns))
    for row in rows:
        sheet.append([_xlsx_value(row.get(column)) for column in columns])
        for cell in sheet[sheet.max_row]:
            if isinstance(cell.value, str) and cell.value.startswith("="):
                cell.data_type = "s"
    buffer = BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


def _write_xls(columns: Sequence[str], rows: Iterable[Mapping[str, Any]]) -> bytes:
    workbook = xlwt.Workbook()
    sheet = workbook.add_sheet("Sheet1")
    date_style = xlwt.easyxf(num_format_str="YYYY-MM-DD")
    for col_index, column in enumerate(columns):
        sheet.write(0, col_index, column)
    for row_index, row in enumerate(rows, start=1):
        for col_index, column in enumerate(columns):
            value = row.get(column)
            if isinstance(value, date):
                sheet.write(row_index, col_index, value, date_style)
            else:
                sheet.write(row_index, col_index, "" if value is None else value)
    buffer = BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


def _write_csv(columns: Sequence[str], rows: Iterable[Mapping[str, Any]]) -> bytes:
    buffer = StringIO()
    writer = csv.writer(buffer)
    writer.writerow(list(columns))
    for row in rows:
        writer.writerow([_csv_value(row.get(column)) for column in columns])
    return buffer.getvalue().encode("utf-8-sig")


def export_filename(prefix: str, fmt: str, on: Optional[date] = None) -> str:
    """Dated download name, e.g. ``refrigerator_stock_list2024-10-01.xlsx``."""

    stamp = (on or date.today()).isoformat()
    return f"{prefix}{stamp}.{fmt}"
