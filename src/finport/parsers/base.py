"""Base parser class and registry for CSV dialect parsers."""

import csv
import io
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, ClassVar

from finport.exceptions import CsvParseError
from finport.logging_setup import get_logger

_logger = get_logger("finport.parsers")

BOM = "\ufeff"


@dataclass
class ParsedCSV:
    """Header names and data rows split out of a CSV file."""

    headers: list[str] = field(default_factory=list)
    rows: list[list[str]] = field(default_factory=list)

    @property
    def row_count(self) -> int:
        """Number of data rows (header excluded)."""
        return len(self.rows)

    def sample(self, size: int = 5) -> list[list[str]]:
        """Return the first ``size`` data rows."""
        return [list(r) for r in self.rows[:size]]


def read_records(content: str) -> list[list[str]]:
    """
    Split CSV text into trimmed records.

    A leading byte-order mark is removed and blank lines are skipped.

    Raises:
        CsvParseError: If the text is not valid CSV (e.g. unbalanced quotes)
    """
    if content.startswith(BOM):
        content = content[1:]

    # Quoted fields may follow ", " (e.g. `Date, "1,000.00"`)
    reader = csv.reader(io.StringIO(content), strict=True, skipinitialspace=True)
    records: list[list[str]] = []
    try:
        for row in reader:
            if not row or (len(row) == 1 and not row[0].strip()):
                continue
            records.append([cell.strip() for cell in row])
    except csv.Error as e:
        raise CsvParseError(f"Malformed CSV near line {reader.line_num}: {e}") from e

    return records


def split_cells(record: list[str]) -> list[str]:
    """Re-split a record that arrived as one cell holding comma-separated values."""
    if len(record) == 1 and "," in record[0]:
        return [cell.strip() for cell in record[0].split(",")]
    return record


def pad_row(row: list[str], width: int) -> list[str]:
    """Pad a short row with empty strings up to ``width`` cells."""
    if len(row) < width:
        return row + [""] * (width - len(row))
    return row


class CsvParser(ABC):
    """Abstract base class for CSV dialect parsers."""

    # Class attributes to be overridden by subclasses
    bank_name: ClassVar[str] = "Generic"
    file_patterns: ClassVar[list[str]] = []  # Patterns to match in file content

    def __init__(self, config: dict[str, Any] | None = None) -> None:
        """Initialize parser with optional loaded config."""
        self._config = config

    @classmethod
    @abstractmethod
    def can_parse(cls, content: str, config: dict[str, Any] | None = None) -> bool:
        """
        Check if this parser can handle the given file content.

        Args:
            content: File content as string
            config: Loaded JSON config, for parsers with configurable detection

        Returns:
            True if this parser can handle the file
        """

    @abstractmethod
    def parse(self, content: str) -> ParsedCSV:
        """
        Split file content into headers and data rows.

        Args:
            content: File content as string

        Returns:
            ParsedCSV with headers and rows

        Raises:
            CsvParseError: If the content is not valid CSV
        """


class ParserRegistry:
    """Registry for CSV parsers with automatic detection."""

    _parsers: ClassVar[list[type[CsvParser]]] = []

    @classmethod
    def register(cls, parser_class: type[CsvParser]) -> type[CsvParser]:
        """
        Register a parser class. Can be used as a decorator.

        Parsers are tried in registration order, so catch-all parsers must be
        registered last.
        """
        if parser_class not in cls._parsers:
            cls._parsers.append(parser_class)
        return parser_class

    @classmethod
    def get_parser(
        cls, content: str, config: dict[str, Any] | None = None
    ) -> CsvParser | None:
        """
        Get appropriate parser for the given content.

        Args:
            content: File content as string
            config: Loaded JSON config passed on to the parser

        Returns:
            Parser instance if found, None otherwise
        """
        for parser_class in cls._parsers:
            if parser_class.can_parse(content, config):
                _logger.debug(
                    "Using %s parser (%s)", parser_class.__name__, parser_class.bank_name
                )
                return parser_class(config=config)
        return None

    @classmethod
    def get_all_parsers(cls) -> list[type[CsvParser]]:
        """Get all registered parser classes."""
        return cls._parsers.copy()
