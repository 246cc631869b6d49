"""Utility functions for finport."""

from finport.utils.parsing import (
    decode_bytes,
    is_excel_file,
    normalize_date,
    normalize_merchant_name,
    parse_amount,
    parse_date,
    read_file,
    strip_bracket_code,
)

__all__ = [
    "parse_date",
    "normalize_date",
    "parse_amount",
    "strip_bracket_code",
    "normalize_merchant_name",
    "decode_bytes",
    "is_excel_file",
    "read_file",
]
