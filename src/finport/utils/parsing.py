"""Parsing utilities for bank transaction files."""

import csv
import io
import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

OLE2_MAGIC = b"\xd0\xcf\x11\xe0"
TEXT_ENCODINGS = ("utf-8-sig", "utf-8", "latin-1", "cp1252")


def parse_date(date_str: str) -> date | None:
    """
    Parse various date formats to date object.

    Supported formats:
    - YYYY-MM-DD (2024-01-15)
    - YYYYMMDD (20240115, BMO exports)
    - MM/DD/YYYY (01/15/2024)
    - DD MMM YYYY (15 Jan 2024)
    - MMM DD, YYYY (Jan 15, 2024)

    Args:
        date_str: Date string to parse

    Returns:
        date object if successful, None otherwise
    """
    date_str = date_str.strip().strip('"').strip()

    if not date_str:
        return None

    formats = [
        "%Y-%m-%d",  # 2024-01-15
        "%Y%m%d",  # 20240115
        "%m/%d/%Y",  # 01/15/2024
        "%d %b %Y",  # 15 Jan 2024
        "%d %B %Y",  # 15 January 2024
        "%b %d, %Y",  # Jan 15, 2024
    ]

    for fmt in formats:
        try:
            return datetime.strptime(date_str, fmt).date()
        except ValueError:
            continue

    return None


def normalize_date(date_str: str) -> str:
    """Return the ISO form of a date string, or the trimmed input if unparseable."""
    parsed = parse_date(date_str)
    return parsed.isoformat() if parsed else date_str.strip()


def parse_amount(amount_str: str) -> Decimal | None:
    """
    Parse amount string to Decimal.

    Handles:
    - Dollar signs and whitespace
    - Thousands separators (commas)
    - Negative values (both -123 and accounting style (123))
    - Quoted values

    Args:
        amount_str: Amount string to parse

    Returns:
        Decimal if successful, None otherwise
    """
    if not amount_str or not amount_str.strip():
        return None

    # Remove quotes, currency symbol, separators and whitespace
    amount_str = amount_str.strip().strip('"')
    amount_str = re.sub(r"[$,\s]", "", amount_str)

    if not amount_str:
        return None

    # (123.45) -> -123.45
    amount_str = re.sub(r"^\((.*)\)$", r"-\1", amount_str)

    try:
        value = Decimal(amount_str)
    except InvalidOperation:
        return None

    if not value.is_finite():
        return None
    return value


def strip_bracket_code(desc: str) -> str:
    """
    Remove a leading bracketed two-letter code from a description.

    Some bank exports prefix descriptions with a channel code, for example
    ``[DN]PETRO-CANADA`` or ``[CW] PAYROLL``.
    """
    return re.sub(r"^\s*\[[A-Za-z]{2}\]\s*", "", desc).strip()


def normalize_merchant_name(name: str) -> str:
    """Lower-case a merchant name and collapse internal whitespace."""
    return " ".join(name.split()).lower()


def decode_bytes(data: bytes) -> str:
    """Decode uploaded bytes as UTF-8, replacing undecodable sequences."""
    return data.decode("utf-8", errors="replace")


def is_excel_file(filepath: Path) -> bool:
    """
    Check whether a file is a legacy ``.xls`` workbook.

    Raises:
        ValueError: If the file cannot be opened
    """
    try:
        with open(filepath, "rb") as f:
            magic = f.read(len(OLE2_MAGIC))
    except OSError as e:
        raise ValueError(f"File not found: {filepath}") from e
    return magic == OLE2_MAGIC or filepath.suffix.lower() == ".xls"


def read_file(filepath: Path) -> str:
    """
    Read an export as CSV text.

    ``.xls`` workbooks (by extension or OLE2 signature) are converted from
    their first sheet; anything else is read as text, trying UTF-8 (with or
    without BOM) before single-byte encodings.

    Raises:
        ValueError: If the file is missing or cannot be decoded
    """
    if is_excel_file(filepath):
        return _read_excel(filepath)
    return _read_text(filepath)


def _read_text(filepath: Path) -> str:
    for encoding in TEXT_ENCODINGS:
        try:
            with open(filepath, encoding=encoding, newline="") as f:
                return f.read()
        except UnicodeDecodeError:
            continue
    raise ValueError(f"Could not decode file {filepath} with any known encoding")


def _excel_cell_text(cell: Any, datemode: int) -> str:
    import xlrd  # type: ignore[import-untyped]

    if cell.ctype == xlrd.XL_CELL_DATE:
        return xlrd.xldate_as_datetime(cell.value, datemode).strftime("%Y-%m-%d")
    if cell.ctype == xlrd.XL_CELL_NUMBER and float(cell.value).is_integer():
        # Compact dates such as 20240115 arrive as floats
        return str(int(cell.value))
    if cell.ctype == xlrd.XL_CELL_EMPTY:
        return ""
    return str(cell.value)


def _read_excel(filepath: Path) -> str:
    """Convert the first sheet of an ``.xls`` workbook to CSV text."""
    import xlrd  # type: ignore[import-untyped]

    try:
        book = xlrd.open_workbook(str(filepath))
    except xlrd.XLRDError as e:
        raise ValueError(f"Could not read Excel file {filepath}: {e}") from e

    sheet = book.sheet_by_index(0)
    out = io.StringIO()
    writer = csv.writer(out, lineterminator="\n")
    for r in range(sheet.nrows):
        cells = [_excel_cell_text(sheet.cell(r, c), book.datemode) for c in range(sheet.ncols)]
        if any(cells):
            writer.writerow(cells)
    return out.getvalue()
