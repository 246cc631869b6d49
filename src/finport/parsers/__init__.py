"""CSV parsers package."""

from typing import Any

from finport.parsers.base import CsvParser, ParsedCSV, ParserRegistry

# Registration order matters: the catch-all plain parser goes last.
from finport.parsers.bank import (
    DEFAULT_HEADER_MARKERS,
    HeaderScanParser,
    markers_from_config,
    parse_bank_csv,
)
from finport.parsers.plain import PlainCsvParser, parse_csv


def parse_any(content: str, config: dict[str, Any] | None = None) -> ParsedCSV:
    """Parse CSV text with the first registered parser that accepts it."""
    parser = ParserRegistry.get_parser(content, config)
    if parser is None:
        return ParsedCSV()
    return parser.parse(content)


__all__ = [
    "CsvParser",
    "ParsedCSV",
    "ParserRegistry",
    "HeaderScanParser",
    "PlainCsvParser",
    "DEFAULT_HEADER_MARKERS",
    "markers_from_config",
    "parse_any",
    "parse_bank_csv",
    "parse_csv",
]
