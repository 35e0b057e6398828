from __future__ import annotations

import zipfile
from datetime import date, datetime
from io import BytesIO

import pytest
import xlrd
import xlwt
from openpyxl import Workbook, load_workbook

from stock_app.records import EXPORT_COLUMNS, IMPORT_COLUMNS
from stock_app.tabular import (
    TabularFormatError,
    detect_format,
    export_filename,
    read_rows,
    write_rows,
)


def _xlsx_bytes(rows) -> bytes:
    workbook = Workbook()
    sheet = workbook.active
    for row in rows:
        sheet.append(row)
    buffer = BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


def test_detect_format_prefers_extension_then_signature() -> None:
    assert detect_format(b"", "stock.XLSX") == "xlsx"
    assert detect_format(b"", "stock.xls") == "xls"
    assert detect_format(b"", "stock.csv") == "csv"
    assert detect_format(b"PK\x03\x04rest", "upload") == "xlsx"
    assert detect_format(b"\xd0\xcf\x11\xe0rest", "") == "xls"
    assert detect_format(b"Item,Quantity\n", "") == "csv"


def test_read_xlsx_rows_keeps_native_values() -> None:
    data = _xlsx_bytes(
        [
            ["Item", "Quantity", "Expiry_Date", "Extra"],
            ["Antibody A", 10, datetime(2025, 1, 15), "x"],
            [None, None, None, None],
            ["Enzyme B", 5, None],
        ]
    )

    rows = read_rows(data, "stock.xlsx")

    assert len(rows) == 2
    assert rows[0]["Item"] == "Antibody A"
    assert rows[0]["Quantity"] == 10
    assert rows[0]["Expiry_Date"] == datetime(2025, 1, 15)
    assert rows[0]["Extra"] == "x"
    assert rows[1]["Expiry_Date"] is None


def test_read_xls_rows_converts_date_cells() -> None:
    workbook = xlwt.Workbook()
    sheet = workbook.add_sheet("Sheet1")
    date_style = xlwt.easyxf(num_format_str="YYYY-MM-DD")
    for col_index, label in enumerate(["Item", "Quantity", "Added_Date"]):
        sheet.write(0, col_index, label)
    sheet.write(1, 0, "Buffer D")
    sheet.write(1, 1, 8)
    sheet.write(1, 2, date(2024, 12, 10), date_style)
    buffer = BytesIO()
    workbook.save(buffer)

    rows = read_rows(buffer.getvalue(), "stock.xls")

    assert rows == [
        {"Item": "Buffer D", "Quantity": 8.0, "Added_Date": datetime(2024, 12, 10)}
    ]


def test_read_csv_rows_skips_blank_lines() -> None:
    data = "\ufeffItem,Quantity\nTips,2\n,\n\nGloves,\n".encode("utf-8")

    rows = read_rows(data, "stock.csv")

    assert rows == [{"Item": "Tips", "Quantity": "2"}, {"Item": "Gloves", "Quantity": ""}]


@pytest.mark.parametrize(
    "data, filename",
    [
        (b"", "stock.xlsx"),
        (b"not a workbook", "stock.xlsx"),
        (b"not a workbook", "stock.xls"),
        (b"\xff\xfe\x00binary", "stock.csv"),
        (b",,\n1,2\n", "stock.csv"),
    ],
)
def test_read_rows_rejects_unreadable_files(data: bytes, filename: str) -> None:
    with pytest.raises(TabularFormatError):
        read_rows(data, filename)


def test_write_xlsx_contains_header_and_dates() -> None:
    rows = [{"Item": "Antibody A", "Quantity": 10, "Expiry_Date": date(2025, 1, 15), "ID": 1}]

    content = write_rows(EXPORT_COLUMNS, rows, "xlsx")

    sheet = load_workbook(BytesIO(content)).active
    values = list(sheet.iter_rows(values_only=True))
    assert list(values[0]) == list(EXPORT_COLUMNS)
    exported = dict(zip(EXPORT_COLUMNS, values[1]))
    assert exported["Item"] == "Antibody A"
    assert exported["ID"] == 1
    assert exported["Expiry_Date"].date() == date(2025, 1, 15)
    assert exported["Vendor"] is None


def test_write_xls_readable_by_xlrd() -> None:
    rows = [{"Item": "Enzyme B", "Quantity": None, "Added_Date": date(2024, 11, 20), "ID": 2}]

    content = write_rows(EXPORT_COLUMNS, rows, "xls")

    workbook = xlrd.open_workbook(file_contents=content)
    sheet = workbook.sheet_by_index(0)
    assert sheet.row_values(0) == list(EXPORT_COLUMNS)
    exported = dict(zip(EXPORT_COLUMNS, sheet.row_values(1)))
    assert exported["Item"] == "Enzyme B"
    assert exported["Quantity"] == ""
    assert exported["ID"] == 2
    assert xlrd.xldate_as_datetime(exported["Added_Date"], workbook.datemode).date() == date(2024, 11, 20)


def test_write_csv_uses_iso_dates() -> None:
    content = write_rows(IMPORT_COLUMNS, [{"Item": "Tips", "Added_Date": date(2024, 9, 1)}], "csv")

    lines = content.decode("utf-8-sig").splitlines()
    assert lines[0] == ",".join(IMPORT_COLUMNS)
    assert lines[1] == "Tips,,,,,,,2024-09-01"


def test_write_rows_rejects_unknown_format() -> None:
    with pytest.raises(ValueError):
        write_rows(IMPORT_COLUMNS, [], "ods")


def test_export_filename_embeds_date() -> None:
    assert (
        export_filename("refrigerator_stock_list", "xlsx", on=date(2024, 10, 1))
        == "refrigerator_stock_list2024-10-01.xlsx"
    )


def _truncate_sheet_xml(data: bytes) -> bytes:
    source = zipfile.ZipFile(BytesIO(data))
    buffer = BytesIO()
    with zipfile.ZipFile(buffer, "w") as target:
        for info in source.infolist():
            content = source.read(info.filename)
            if info.filename == "xl/worksheets/sheet1.xml":
                content = content[: len(content) // 2]
            target.writestr(info, content)
    return buffer.getvalue()


def test_read_xlsx_with_corrupt_sheet_raises_format_error() -> None:
    data = _truncate_sheet_xml(
        _xlsx_bytes([["Item", "Quantity"]] + [[f"Item {index}", index] for index in range(20)])
    )

    with pytest.raises(TabularFormatError):
        read_rows(data, "stock.xlsx")


def test_write_xlsx_strips_control_characters() -> None:
    content = write_rows(IMPORT_COLUMNS, [{"Item": "Tube\x01rack", "Vendor": "Acme\x1f"}], "xlsx")

    sheet = load_workbook(BytesIO(content)).active
    exported = dict(zip(IMPORT_COLUMNS, list(sheet.iter_rows(values_only=True))[1]))
    assert exported["Item"] == "Tuberack"
    assert exported["Vendor"] == "Acme"


def test_write_xlsx_keeps_leading_equals_as_text() -> None:
    content = write_rows(IMPORT_COLUMNS, [{"Item": "=1+1", "Vendor": "=HYPERLINK(\"x\")"}], "xlsx")

    sheet = load_workbook(BytesIO(content)).active
    item_cell = sheet.cell(row=2, column=1)
    vendor_cell = sheet.cell(row=2, column=5)
    assert item_cell.data_type == "s"
    assert item_cell.value == "=1+1"
    assert vendor_cell.data_type == "s"
    assert vendor_cell.value == "=HYPERLINK(\"x\")"
