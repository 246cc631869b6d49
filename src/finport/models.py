"""Data models for imported transactions, mappings and rules."""

from dataclasses import asdict, dataclass
from decimal import Decimal
from enum import Enum
from typing import Any

CANONICAL_FIELDS: tuple[str, ...] = ("date", "amount", "type", "description", "merchant")


class TransactionType(str, Enum):
    """Direction of a transaction. Amounts are always stored as magnitudes."""

    INCOME = "INCOME"
    EXPENSE = "EXPENSE"


class RuleField(str, Enum):
    """Transaction attribute a rule pattern is tested against."""

    MERCHANT = "merchant"
    DESCRIPTION = "description"
    AMOUNT = "amount"


@dataclass(frozen=True)
class ColumnMapping:
    """Maps each canonical field to the literal header text in a CSV."""

    bank_key: str
    date: str
    amount: str
    type: str
    description: str
    merchant: str
    description_cleaner: str | None = None

    def column_for(self, field_name: str) -> str:
        """Return the header mapped to a canonical field."""
        if field_name not in CANONICAL_FIELDS:
            raise KeyError(field_name)
        return getattr(self, field_name)  # type: ignore[no-any-return]

    def missing_columns(self, headers: list[str]) -> list[str]:
        """Return canonical fields whose mapped header is not in ``headers``."""
        present = set(headers)
        return [f for f in CANONICAL_FIELDS if self.column_for(f) not in present]

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-ready dictionary (camelCase bank key)."""
        data: dict[str, Any] = {"bankKey": self.bank_key}
        for f in CANONICAL_FIELDS:
            data[f] = self.column_for(f)
        if self.description_cleaner:
            data["descriptionCleaner"] = self.description_cleaner
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any], bank_key: str | None = None) -> "ColumnMapping":
        """Build from a dictionary as written by ``to_dict``."""
        return cls(
            bank_key=bank_key or str(data.get("bankKey", "unknown")),
            date=str(data.get("date", "")),
            amount=str(data.get("amount", "")),
            type=str(data.get("type", "")),
            description=str(data.get("description", "")),
            merchant=str(data.get("merchant", "")),
            description_cleaner=data.get("descriptionCleaner"),
        )


@dataclass(frozen=True)
class NormalizedRow:
    """A CSV row coerced into canonical, typed fields."""

    date: str
    amount: Decimal
    type: TransactionType
    description: str
    merchant: str

    @property
    def is_expense(self) -> bool:
        """Return True if this row is an expense."""
        return self.type is TransactionType.EXPENSE

    @property
    def is_income(self) -> bool:
        """Return True if this row is income."""
        return self.type is TransactionType.INCOME


@dataclass
class Rule:
    """A user-defined pattern that assigns a category."""

    id: str
    priority: int
    field: RuleField
    pattern: str
    category_id: str | None = None
    user_id: str = "local"

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON storage."""
        data = asdict(self)
        data["field"] = self.field.value
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Rule":
        """Build from a stored dictionary."""
        return cls(
            id=data["id"],
            priority=int(data["priority"]),
            field=RuleField(data["field"]),
            pattern=data["pattern"],
            category_id=data.get("category_id"),
            user_id=data.get("user_id", "local"),
        )


@dataclass(frozen=True)
class CandidateTransaction:
    """The read-only view of a transaction used for rule matching."""

    description: str
    amount: Decimal
    merchant_name: str | None = None
    merchant_normalized_name: str | None = None
    id: str | None = None


@dataclass(frozen=True)
class RuleMatch:
    """The rule that matched a transaction."""

    rule_id: str
    category_id: str | None
    reason: str


@dataclass(frozen=True)
class RuleOutcome:
    """Result of evaluating one transaction in a batch."""

    transaction_id: str | None
    category_id: str | None
    rule_id: str | None = None
    reason: str | None = None


@dataclass
class Account:
    """A named account owned by a user."""

    id: str
    user_id: str
    name: str
    type: str = "OTHER"


@dataclass
class Merchant:
    """A counterparty shared across accounts."""

    id: str
    name: str
    normalized_name: str | None = None


@dataclass
class Category:
    """A spending or income category."""

    id: str
    name: str


@dataclass
class LedgerTransaction:
    """A stored transaction."""

    id: str
    user_id: str
    account_id: str
    merchant_id: str | None
    category_id: str | None
    date: str
    amount: Decimal
    type: TransactionType
    description: str

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON storage."""
        return {
            "id": self.id,
            "user_id": self.user_id,
            "account_id": self.account_id,
            "merchant_id": self.merchant_id,
            "category_id": self.category_id,
            "date": self.date,
            "amount": str(self.amount),
            "type": self.type.value,
            "description": self.description,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "LedgerTransaction":
        """Build from a stored dictionary."""
        return cls(
            id=data["id"],
            user_id=data["user_id"],
            account_id=data["account_id"],
            merchant_id=data.get("merchant_id"),
            category_id=data.get("category_id"),
            date=data["date"],
            amount=Decimal(data["amount"]),
            type=TransactionType(data["type"]),
            description=data.get("description", ""),
        )
