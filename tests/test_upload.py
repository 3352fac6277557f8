import io

import pandas as pd
import pytest

from woid_portal.upload import (
    MISSING_COLUMNS_MESSAGE, UploadFormatError, find_columns, parse_assignments,
    preview_assignments, read_sheet, summarize_errors, validate_extension,
)


def test_csv_with_uppercase_headers_is_accepted():
    data = b"WOID,Address\nW-1, 1 Main St \nW-2,2 Oak Ave\n"

    assignments = parse_assignments(read_sheet("assignments.csv", data))

    assert [(a.work_order_id, a.address) for a in assignments] == [("W-1", "1 Main St"), ("W-2", "2 Oak Ave")]


def test_blank_rows_are_dropped():
    data = b"address,work_order_id\n1 Main St,W-1\n2 Oak Ave,\n,W-3\n\n4 Elm St,W-4\n"

    assignments = parse_assignments(read_sheet("assignments.csv", data))

    assert [a.work_order_id for a in assignments] == ["W-1", "W-4"]


def test_xlsx_first_sheet_is_read_as_text():
    buf = io.BytesIO()
    pd.DataFrame({"Address": ["1 Main St", "2 Oak Ave"], "workOrderId": ["00123", "00456"]}).to_excel(
        buf, index=False, engine="openpyxl"
    )

    assignments = parse_assignments(read_sheet("assignments.xlsx", buf.getvalue()))

    assert [a.work_order_id for a in assignments] == ["00123", "00456"]
    assert assignments[0].address == "1 Main St"


@pytest.mark.parametrize("header", [
    ["Address", "Notes"],
    ["Street", "WOID"],
    [],
])
def test_missing_columns_raise(header):
    with pytest.raises(UploadFormatError) as excinfo:
        find_columns(header)
    assert str(excinfo.value) == MISSING_COLUMNS_MESSAGE


def test_header_only_file_is_rejected():
    with pytest.raises(UploadFormatError, match="at least a header row and one data row"):
        parse_assignments([["address", "woid"]])


def test_file_without_valid_rows_is_rejected():
    with pytest.raises(UploadFormatError, match="No valid rows found"):
        parse_assignments([["address", "woid"], ["1 Main St", ""], ["", "W-2"]])


def test_unsupported_extension_is_rejected():
    with pytest.raises(UploadFormatError, match="valid Excel file"):
        validate_extension("assignments.txt")
    assert validate_extension("Assignments.XLSX") == ".xlsx"


def test_empty_csv_is_rejected():
    with pytest.raises(UploadFormatError, match="empty"):
        read_sheet("assignments.csv", b"")
    with pytest.raises(UploadFormatError, match="empty"):
        read_sheet("assignments.csv", b"\n\n")


@pytest.mark.parametrize("file_name", ["assignments.xlsx", "assignments.xls"])
def test_csv_renamed_as_workbook_is_a_format_error(file_name):
    with pytest.raises(UploadFormatError, match="Error reading file"):
        read_sheet(file_name, b"address,woid\n1 Main St,W-1\n")


def test_csv_rows_with_extra_cells_are_accepted():
    data = b"address,woid\n1 Main St,W-1,extra note\n2 Oak Ave,W-2\n3 Pine Rd\n"

    rows = read_sheet("assignments.csv", data)
    assignments = parse_assignments(rows)

    assert rows[0] == ["address", "woid", ""]
    assert [(a.address, a.work_order_id) for a in assignments] == [("1 Main St", "W-1"), ("2 Oak Ave", "W-2")]


def test_csv_with_byte_order_mark_keeps_header():
    assignments = parse_assignments(read_sheet("assignments.csv", "\ufeffAddress,WOID\n1 Main St,W-1\n".encode("utf-8")))
    assert [a.work_order_id for a in assignments] == ["W-1"]


def test_preview_keeps_blank_cells_and_limits_rows():
    rows = [["woid", "address"]] + [[f"W-{i}", "" if i == 2 else f"{i} Main St"] for i in range(1, 9)]

    preview = preview_assignments(rows)

    assert len(preview) == 5
    assert preview[1].address == ""
    assert preview[0].work_order_id == "W-1"


def test_summarize_errors_caps_the_list():
    errors = [f"Row {i} (W-{i}): duplicate" for i in range(1, 13)]

    lines = summarize_errors(errors)

    assert len(lines) == 11
    assert lines[0] == "Row 1 (W-1): duplicate"
    assert lines[-1] == "... and 2 more errors"
    assert summarize_errors(errors[:3]) == errors[:3]
