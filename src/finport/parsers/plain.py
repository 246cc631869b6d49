"""Parser for ordinary CSV files whose first row is the header."""

from typing import Any, ClassVar

from finport.parsers.base import (
    CsvParser,
    ParsedCSV,
    ParserRegistry,
    pad_row,
    read_records,
    split_cells,
)


@ParserRegistry.register
class PlainCsvParser(CsvParser):
    """Catch-all parser: first non-blank row is the header."""

    bank_name: ClassVar[str] = "Generic"

    @classmethod
    def can_parse(cls, content: str, config: dict[str, Any] | None = None) -> bool:
        """Any text can be attempted as plain CSV."""
        return True

    def parse(self, content: str) -> ParsedCSV:
        """Parse header and data rows."""
        records = read_records(content)
        if not records:
            return ParsedCSV()

        headers = split_cells(records[0])
        rows = [pad_row(split_cells(r), len(headers)) for r in records[1:]]
        return ParsedCSV(headers=headers, rows=rows)


def parse_csv(content: str) -> ParsedCSV:
    """Parse CSV text using the first row as the header."""
    return PlainCsvParser().parse(content)
