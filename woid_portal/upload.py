# woid_portal/upload.py
# Reads an uploaded spreadsheet of address / WOID pairs for bulk assignment.

import csv
import io
import logging
import os
from typing import Any, List, Sequence, Tuple

import pandas as pd

from .models import WorkOrderAssignment

logger = logging.getLogger(__name__)

VALID_EXTENSIONS = (".xlsx", ".xls", ".csv")
ADDRESS_HEADERS = ("address",)
WOID_HEADERS = ("workorderid", "work_order_id", "woid")
PREVIEW_ROWS = 5
MAX_LISTED_ERRORS = 10

MISSING_COLUMNS_MESSAGE = (
    "Please ensure your Excel file has columns named 'address' and "
    "'workOrderId' (or 'work_order_id' or 'woid'), case-insensitive"
)


class UploadFormatError(ValueError):
    """The uploaded file cannot be turned into assignments; the message is shown to the user."""


def file_extension(file_name: str) -> str:
    return os.path.splitext(file_name)[1].lower()


def validate_extension(file_name: str) -> str:
    extension = file_extension(file_name)
    if extension not in VALID_EXTENSIONS:
        raise UploadFormatError("Please select a valid Excel file (.xlsx, .xls) or CSV file (.csv)")
    return extension


def _read_csv(data: bytes) -> pd.DataFrame:
    """
    Reads a CSV as text cells. Rows may be ragged (spreadsheet exports often
    carry trailing cells), so the column count comes from the widest row.
    """
    text = data.decode("utf-8-sig")
    width = max((len(row) for row in csv.reader(io.StringIO(text))), default=0)
    if width == 0:
        raise pd.errors.EmptyDataError("No columns to parse from file")
    return pd.read_csv(
        io.StringIO(text), header=None, names=list(range(width)), dtype=str,
        keep_default_na=False, skip_blank_lines=False,
    )


def read_sheet(file_name: str, data: bytes) -> List[List[str]]:
    """Reads the first sheet (or the CSV) as rows of strings, header row included."""
    extension = validate_extension(file_name)
    try:
        if extension == ".csv":
            df = _read_csv(data)
        else:
            engine = "openpyxl" if extension == ".xlsx" else "xlrd"
            df = pd.read_excel(
                io.BytesIO(data), sheet_name=0, header=None, dtype=str, keep_default_na=False, engine=engine
            )
    except pd.errors.EmptyDataError:
        raise UploadFormatError("The file appears to be empty")
    except Exception as e:
        # openpyxl and xlrd raise their own types (BadZipFile, XLRDError, ...) for broken workbooks
        logger.error("Could not read uploaded file %s: %s", file_name, e)
        raise UploadFormatError("Error reading file. Please make sure it's a valid Excel or CSV file.") from e

    if df.empty:
        raise UploadFormatError("The file appears to be empty")
    return df.fillna("").values.tolist()


def _cell(row: Sequence[Any], index: int) -> str:
    if index >= len(row) or row[index] is None:
        return ""
    return str(row[index]).strip()


def find_columns(header: Sequence[Any]) -> Tuple[int, int]:
    """Returns the (address, WOID) column indices of a header row."""
    normalized = [str(h).strip().lower() if h is not None else "" for h in header]
    address_index = next((i for i, h in enumerate(normalized) if h in ADDRESS_HEADERS), -1)
    woid_index = next((i for i, h in enumerate(normalized) if h in WOID_HEADERS), -1)
    if address_index == -1 or woid_index == -1:
        raise UploadFormatError(MISSING_COLUMNS_MESSAGE)
    return address_index, woid_index


def preview_assignments(rows: Sequence[Sequence[Any]], limit: int = PREVIEW_ROWS) -> List[WorkOrderAssignment]:
    """The first data rows as read, blanks included, for showing before upload."""
    if not rows:
        raise UploadFormatError("The file appears to be empty")
    address_index, woid_index = find_columns(rows[0])
    return [
        WorkOrderAssignment(address=_cell(row, address_index), work_order_id=_cell(row, woid_index))
        for row in rows[1:limit + 1]
    ]


def parse_assignments(rows: Sequence[Sequence[Any]]) -> List[WorkOrderAssignment]:
    """Turns sheet rows into assignments, dropping rows missing an address or a WOID."""
    if len(rows) < 2:
        raise UploadFormatError("The file must have at least a header row and one data row")

    address_index, woid_index = find_columns(rows[0])
    assignments = []
    for row in rows[1:]:
        address = _cell(row, address_index)
        work_order_id = _cell(row, woid_index)
        if address and work_order_id:
            assignments.append(WorkOrderAssignment(address=address, work_order_id=work_order_id))

    if not assignments:
        raise UploadFormatError("No valid rows found in the file")

    logger.info("Parsed %d assignments from %d data rows", len(assignments), len(rows) - 1)
    return assignments


def summarize_errors(errors: Sequence[str], limit: int = MAX_LISTED_ERRORS) -> List[str]:
    lines = list(errors[:limit])
    if len(errors) > limit:
        lines.append(f"... and {len(errors) - limit} more errors")
    return lines
