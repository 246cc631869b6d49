"""Column mapping: guess which CSV header holds each canonical field."""

import re
from collections.abc import Callable, Sequence
from decimal import ROUND_HALF_UP, Decimal, DecimalException

from finport.models import CANONICAL_FIELDS, ColumnMapping, NormalizedRow, TransactionType
from finport.utils import parse_amount, strip_bracket_code

# Synonyms per field, highest priority first
HEADER_SYNONYMS: dict[str, tuple[str, ...]] = {
    "date": ("date", "transaction date", "posted", "posting date", "value date"),
    "amount": ("amount", "amt", "transaction amount", "debit", "credit"),
    "type": ("type", "transaction type", "dr/cr", "direction"),
    "description": ("description", "details", "narrative", "memo", "reference"),
    "merchant": ("merchant", "payee", "name", "counterparty"),
}

# Optional, bank-specific description post-processing
DESCRIPTION_CLEANERS: dict[str, Callable[[str], str]] = {
    "strip-bracket-code": strip_bracket_code,
}

CENT = Decimal("0.01")


def resolve_columns(headers: Sequence[str]) -> dict[str, str | None]:
    """
    Find the header for each canonical field.

    A header matches when its lower-cased text contains any synonym for the
    field. Headers are scanned in their original order and the first match
    wins.

    Returns:
        Mapping of field name to header, or None where nothing matched
    """
    resolved: dict[str, str | None] = {}
    for field_name in CANONICAL_FIELDS:
        synonyms = HEADER_SYNONYMS[field_name]
        resolved[field_name] = next(
            (h for h in headers if any(s in h.strip().lower() for s in synonyms)),
            None,
        )
    return resolved


def unresolved_fields(headers: Sequence[str]) -> list[str]:
    """Return the canonical fields no header could be matched to."""
    return [f for f, header in resolve_columns(headers).items() if header is None]


def guess_mapping(headers: Sequence[str]) -> dict[str, str]:
    """
    Guess a header for every canonical field.

    Unresolved fields fall back to the first header so the caller always gets
    a complete mapping to edit; use ``unresolved_fields`` to find out which
    entries are fallbacks.
    """
    fallback = headers[0] if headers else ""
    return {
        field_name: header if header is not None else fallback
        for field_name, header in resolve_columns(headers).items()
    }


def derive_bank_key(filename: str) -> str:
    """Derive a preset lookup key from an uploaded filename."""
    if not filename:
        return "unknown"
    base = re.sub(r"\.[^.]+$", "", filename)
    key = re.sub(r"[^a-z0-9]+", "-", base, flags=re.IGNORECASE).lower()
    return key or "unknown"


def build_mapping(
    headers: Sequence[str],
    filename: str,
    description_cleaner: str | None = None,
) -> ColumnMapping:
    """Create a ColumnMapping from guessed headers and the filename's bank key."""
    guessed = guess_mapping(headers)
    return ColumnMapping(
        bank_key=derive_bank_key(filename),
        description_cleaner=description_cleaner,
        **guessed,
    )


def _cell(headers: Sequence[str], row: Sequence[str], column: str) -> str:
    if not column:
        return ""
    try:
        i = list(headers).index(column)
    except ValueError:
        return ""
    if i >= len(row) or row[i] is None:
        return ""
    return str(row[i]).strip()


def _to_cents(value: Decimal) -> Decimal:
    """Return the magnitude of ``value`` rounded to cents, or 0.00 if unrepresentable."""
    try:
        return abs(value).quantize(CENT, rounding=ROUND_HALF_UP)
    except DecimalException:
        # Exponent out of range or too many digits for cent precision
        return Decimal("0.00")


def normalize_row(
    headers: Sequence[str], row: Sequence[str], mapping: ColumnMapping
) -> NormalizedRow:
    """
    Coerce one CSV row into a NormalizedRow.

    Never raises: missing columns become empty strings, unparseable amounts
    become zero and an unrecognized type is inferred from the amount's sign.
    The stored amount is always a non-negative magnitude.
    """
    date = _cell(headers, row, mapping.date)

    amount = parse_amount(_cell(headers, row, mapping.amount))
    if amount is None:
        amount = Decimal(0)

    raw_type = _cell(headers, row, mapping.type).upper()
    if raw_type in (TransactionType.INCOME.value, TransactionType.EXPENSE.value):
        tx_type = TransactionType(raw_type)
    else:
        tx_type = TransactionType.EXPENSE if amount < 0 else TransactionType.INCOME

    # A negative amount is never income
    if amount < 0 and tx_type is TransactionType.INCOME:
        tx_type = TransactionType.EXPENSE

    description = _cell(headers, row, mapping.description)
    cleaner = DESCRIPTION_CLEANERS.get(mapping.description_cleaner or "")
    if cleaner is not None:
        description = cleaner(description)

    return NormalizedRow(
        date=date,
        amount=_to_cents(amount),
        type=tx_type,
        description=description,
        merchant=_cell(headers, row, mapping.merchant),
    )
