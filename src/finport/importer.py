"""Import operations: preview uploads, import rows, evaluate rules."""

from dataclasses import dataclass
from typing import Any

from pydantic import ValidationError

from finport.config import get_setting
from finport.exceptions import ImportValidationError, UploadValidationError
from finport.ledger import Ledger
from finport.logging_setup import get_logger
from finport.mapper import build_mapping, derive_bank_key, normalize_row, unresolved_fields
from finport.models import ColumnMapping
from finport.parsers import ParsedCSV, ParserRegistry, PlainCsvParser
from finport.presets import InMemoryPresetStore, PresetStore
from finport.rules import apply_rules_to_batch
from finport.schemas import ImportForm, UploadMeta
from finport.utils import decode_bytes, normalize_date

_logger = get_logger("finport.importer")

MAX_RULES_TEST_LIMIT = 200


@dataclass
class ImportResult:
    """Counts reported after an import."""

    processed: int
    inserted: int
    skipped_duplicate: int
    account: str

    def to_dict(self) -> dict[str, Any]:
        """Convert to the JSON response body."""
        return {
            "ok": True,
            "processed": self.processed,
            "inserted": self.inserted,
            "skippedDuplicate": self.skipped_duplicate,
            "account": self.account,
        }


class Importer:
    """
    Runs the CSV import pipeline against a ledger.

    Usage:
        importer = Importer(Ledger.load(path), JsonPresetStore(presets_path))
        preview = importer.preview_upload("bmo.csv", "text/csv", data)
        result = importer.import_upload(data, "Chequing", preview["mapping"])
        ledger.save()
    """

    def __init__(
        self,
        ledger: Ledger,
        presets: PresetStore | None = None,
        config: dict[str, Any] | None = None,
    ) -> None:
        """
        Initialize importer.

        Args:
            ledger: Ledger that imported transactions are written to
            presets: Store of saved column mappings
            config: Loaded JSON config
        """
        self.ledger = ledger
        self.presets: PresetStore = presets if presets is not None else InMemoryPresetStore()
        self.config = config

    @property
    def default_category(self) -> str:
        """Name of the category assigned when nothing else applies."""
        return str(get_setting(self.config, "default_category"))

    def parse(self, text: str) -> ParsedCSV:
        """
        Split CSV text into headers and rows with the matching parser.

        Raises:
            CsvParseError: If the text is not valid CSV
        """
        parser = ParserRegistry.get_parser(text, self.config)
        if parser is None:
            parser = PlainCsvParser(config=self.config)
        return parser.parse(text)

    # Mappings

    def suggest_mapping(
        self, headers: list[str], filename: str
    ) -> tuple[ColumnMapping, str]:
        """
        Return the mapping to offer for a file and where it came from.

        A saved preset for the file's bank key wins when all of its columns
        exist in ``headers``; otherwise the mapping is guessed.
        """
        bank_key = derive_bank_key(filename)
        preset = self.presets.get(bank_key)
        if preset is not None and not preset.missing_columns(headers):
            return preset, "preset"
        if preset is not None:
            _logger.info("Saved mapping for %s does not fit these headers", bank_key)
        return build_mapping(headers, filename), "guess"

    def save_mapping(self, mapping: ColumnMapping) -> None:
        """Remember a mapping for files with the same bank key."""
        self.presets.set(mapping.bank_key, mapping)

    # Preview

    def validate_upload(self, filename: str, mime: str, size: int) -> UploadMeta:
        """
        Check upload metadata before reading the file.

        Raises:
            UploadValidationError: If the name, MIME type or size is rejected
        """
        try:
            return UploadMeta.model_validate(
                {"filename": filename, "mime": mime, "size": size},
                context={"max_size": get_setting(self.config, "max_upload_bytes")},
            )
        except ValidationError as e:
            raise UploadValidationError.from_pydantic("Invalid upload", e) from e

    def preview_upload(self, filename: str, mime: str, data: bytes) -> dict[str, Any]:
        """
        Validate an uploaded file and describe its contents.

        Raises:
            UploadValidationError: If the upload metadata is rejected
            CsvParseError: If the file is not valid CSV
        """
        self.validate_upload(filename, mime or "application/octet-stream", len(data))
        return self.preview_text(decode_bytes(data), filename)

    def preview_text(self, text: str, filename: str) -> dict[str, Any]:
        """Describe CSV text: headers, first rows, row count and a mapping."""
        parsed = self.parse(text)
        mapping, source = self.suggest_mapping(parsed.headers, filename)
        sample_size = int(get_setting(self.config, "sample_size"))
        return {
            "headers": parsed.headers,
            "sample": parsed.sample(sample_size),
            "rowCount": parsed.row_count,
            "bankKey": mapping.bank_key,
            "mapping": mapping.to_dict(),
            "mappingSource": source,
            "unresolved": unresolved_fields(parsed.headers) if source == "guess" else [],
        }

    # Import

    def _validate_form(self, account_name: str, mapping: Any) -> ImportForm:
        if isinstance(mapping, ColumnMapping):
            mapping = mapping.to_dict()
        try:
            return ImportForm.model_validate({"accountName": account_name, "mapping": mapping})
        except ValidationError as e:
            raise ImportValidationError.from_pydantic("Invalid mapping/accountName", e) from e

    def import_upload(
        self,
        data: bytes,
        account_name: str,
        mapping: ColumnMapping | dict[str, Any],
        user_id: str | None = None,
    ) -> ImportResult:
        """Import an uploaded CSV file; see ``import_text``."""
        return self.import_text(decode_bytes(data), account_name, mapping, user_id)

    def import_text(
        self,
        text: str,
        account_name: str,
        mapping: ColumnMapping | dict[str, Any],
        user_id: str | None = None,
    ) -> ImportResult:
        """
        Normalize every row and store the ones not already in the ledger.

        Duplicates are rows whose (user, account, date, amount, description)
        was already seen earlier in the file or is stored in the ledger.

        Raises:
            ImportValidationError: If the form is invalid, the mapping names a
                column the CSV lacks, or the CSV has no data rows
            CsvParseError: If the text is not valid CSV
        """
        form = self._validate_form(account_name, mapping)
        column_mapping = form.mapping.to_mapping()
        user_id = user_id or str(get_setting(self.config, "user"))

        parsed = self.parse(text)
        if not parsed.rows:
            raise ImportValidationError(
                "CSV has no data rows", form_errors=["CSV has no data rows"]
            )

        missing = column_mapping.missing_columns(parsed.headers)
        if missing:
            raise ImportValidationError(
                "Mapping does not match CSV headers",
                field_errors={
                    f"mapping.{f}": [
                        f"Column {column_mapping.column_for(f)!r} not found in CSV headers"
                    ]
                    for f in missing
                },
            )

        normalized = [normalize_row(parsed.headers, r, column_mapping) for r in parsed.rows]

        account = self.ledger.get_or_create_account(user_id, form.account_name)
        uncategorized = self.ledger.ensure_category(self.default_category)

        inserted = 0
        skipped = 0
        for row in normalized:
            date = normalize_date(row.date)
            if self.ledger.has_transaction(
                user_id, account.id, date, row.amount, row.description
            ):
                skipped += 1
                continue

            merchant = self.ledger.get_or_create_merchant(row.merchant)
            self.ledger.add_transaction(
                user_id=user_id,
                account_id=account.id,
                date=date,
                amount=row.amount,
                tx_type=row.type,
                description=row.description,
                merchant_id=merchant.id,
                category_id=uncategorized.id,
            )
            inserted += 1

        _logger.info(
            "Imported %d of %d rows into %r (%d duplicates skipped)",
            inserted,
            len(normalized),
            account.name,
            skipped,
        )
        return ImportResult(
            processed=len(normalized),
            inserted=inserted,
            skipped_duplicate=skipped,
            account=account.name,
        )

    # Rules

    def test_rules(self, user_id: str | None = None, limit: int = 20) -> dict[str, Any]:
        """
        Evaluate the user's rules against their most recent transactions.

        ``limit`` is clamped to 1..200. Nothing is written to the ledger.
        """
        user_id = user_id or str(get_setting(self.config, "user"))
        limit = max(1, min(int(limit), MAX_RULES_TEST_LIMIT))

        rules = self.ledger.rules_for(user_id)
        txs = self.ledger.recent_transactions(limit, user_id=user_id)
        default = self.ledger.ensure_category(self.default_category)
        outcomes = apply_rules_to_batch(
            rules, [self.ledger.candidate(tx) for tx in txs], default.id
        )

        sample = []
        for tx, outcome in zip(txs, outcomes):
            merchant = self.ledger.merchants.get(tx.merchant_id or "")
            sample.append({
                "id": tx.id,
                "date": tx.date,
                "description": tx.description,
                "merchant": merchant.name if merchant else None,
                "existingCategoryId": tx.category_id,
                "suggestedCategoryId": outcome.category_id,
                "ruleId": outcome.rule_id,
                "reason": outcome.reason,
            })

        return {"count": len(sample), "rules": len(rules), "sample": sample}

    def apply_rules(self, user_id: str | None = None, only_uncategorized: bool = True) -> int:
        """
        Assign rule categories to stored transactions.

        Args:
            user_id: Owner of the rules and transactions
            only_uncategorized: Leave transactions that already carry a
                category other than the default untouched

        Returns:
            Number of transactions whose category changed
        """
        user_id = user_id or str(get_setting(self.config, "user"))
        rules = self.ledger.rules_for(user_id)
        default = self.ledger.ensure_category(self.default_category)

        txs = [
            tx
            for tx in self.ledger.recent_transactions(len(self.ledger.transactions), user_id)
            if not only_uncategorized or tx.category_id in (None, default.id)
        ]
        outcomes = apply_rules_to_batch(
            rules, [self.ledger.candidate(tx) for tx in txs], default.id
        )

        changed = 0
        for outcome in outcomes:
            if outcome.transaction_id and self.ledger.set_category(
                outcome.transaction_id, outcome.category_id
            ):
                changed += 1

        _logger.info("Rules recategorized %d of %d transactions", changed, len(txs))
        return changed
