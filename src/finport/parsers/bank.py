"""Parser for bank exports that prepend metadata lines before the header."""

from collections.abc import Sequence
from typing import Any, ClassVar

from finport.logging_setup import get_logger
from finport.parsers.base import (
    CsvParser,
    ParsedCSV,
    ParserRegistry,
    pad_row,
    read_records,
    split_cells,
)

_logger = get_logger("finport.parsers.bank")

DEFAULT_HEADER_MARKERS: tuple[str, ...] = (
    "transaction type",
    "date posted",
    "transaction amount",
)


def markers_from_config(config: dict[str, Any] | None) -> tuple[str, ...]:
    """Return the lower-cased header markers configured, or the defaults."""
    markers = (config or {}).get("header_markers") or DEFAULT_HEADER_MARKERS
    return tuple(str(m).strip().lower() for m in markers)


def _joined(cells: Sequence[str]) -> str:
    return ",".join(cell.strip() for cell in cells).lower()


def find_header_row(records: list[list[str]], markers: tuple[str, ...]) -> int:
    """Return the index of the first record containing every marker, or -1."""
    for i, record in enumerate(records):
        joined = _joined(record)
        if all(marker in joined for marker in markers):
            return i
    return -1


@ParserRegistry.register
class HeaderScanParser(CsvParser):
    """
    Parser for BMO-style exports.

    These files open with a title line such as "Following data is valid as
    of ..." and possibly blank lines, so the header is located by content
    rather than assumed to be the first row. The markers come from the
    ``header_markers`` config setting.
    """

    bank_name: ClassVar[str] = "BMO"
    file_patterns: ClassVar[list[str]] = list(DEFAULT_HEADER_MARKERS)

    def __init__(
        self,
        markers: tuple[str, ...] | None = None,
        config: dict[str, Any] | None = None,
    ) -> None:
        """Initialize parser with explicit markers or the configured ones."""
        super().__init__(config)
        if markers is None:
            self.markers = markers_from_config(config)
        else:
            self.markers = tuple(m.lower() for m in markers)

    @classmethod
    def can_parse(cls, content: str, config: dict[str, Any] | None = None) -> bool:
        """Check if content has a line with all the configured header markers."""
        markers = markers_from_config(config)
        return any(
            all(marker in _joined(line.split(",")) for marker in markers)
            for line in content.splitlines()
        )

    def parse(self, content: str) -> ParsedCSV:
        """Parse rows following the detected header line."""
        records = read_records(content)
        header_index = find_header_row(records, self.markers)

        if not records or header_index == -1:
            _logger.debug("No header row found among %d records", len(records))
            return ParsedCSV()

        headers = split_cells(records[header_index])
        _logger.debug("Header row found at record %d: %s", header_index, headers)

        rows: list[list[str]] = []
        for record in records[header_index + 1 :]:
            if len(record) > 1:
                cells = record
            elif "," in record[0]:
                cells = split_cells(record)
            else:
                # Single value without separators, e.g. a trailing note
                continue
            rows.append(pad_row(cells, len(headers)))

        return ParsedCSV(headers=headers, rows=rows)


def parse_bank_csv(
    content: str, markers: tuple[str, ...] = DEFAULT_HEADER_MARKERS
) -> ParsedCSV:
    """Parse CSV text whose header row must be located by ``markers``."""
    return HeaderScanParser(markers).parse(content)
