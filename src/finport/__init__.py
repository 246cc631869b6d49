"""finport - import bank CSV exports and categorize them with rules."""

from finport.importer import Importer, ImportResult
from finport.ledger import Ledger
from finport.mapper import derive_bank_key, guess_mapping, normalize_row
from finport.models import ColumnMapping, NormalizedRow, Rule, TransactionType
from finport.rules import apply_rules_to_batch, apply_rules_to_transaction

__version__ = "0.1.0"
__all__ = [
    "ColumnMapping",
    "ImportResult",
    "Importer",
    "Ledger",
    "NormalizedRow",
    "Rule",
    "TransactionType",
    "apply_rules_to_batch",
    "apply_rules_to_transaction",
    "derive_bank_key",
    "guess_mapping",
    "normalize_row",
]
