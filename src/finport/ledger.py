"""JSON-backed store of accounts, merchants, categories, rules and transactions."""

import json
import uuid
from decimal import Decimal
from pathlib import Path
from typing import Any

from finport.exceptions import InvalidRuleError
from finport.logging_setup import get_logger
from finport.models import (
    Account,
    CandidateTransaction,
    Category,
    LedgerTransaction,
    Merchant,
    Rule,
    RuleField,
    TransactionType,
)
from finport.rules import compile_rule, sort_rules
from finport.utils import normalize_merchant_name

_logger = get_logger("finport.ledger")

UNKNOWN_MERCHANT = "Unknown"


def _new_id() -> str:
    return uuid.uuid4().hex


def dedupe_key(
    user_id: str, account_id: str, date: str, amount: Decimal, description: str
) -> str:
    """Key identifying a transaction for duplicate detection."""
    return f"{user_id}|{account_id}|{date}|{amount:.2f}|{description}".lower()


class Ledger:
    """
    In-memory ledger with optional JSON persistence.

    Usage:
        ledger = Ledger.load(Path("ledger.json"))
        account = ledger.get_or_create_account("local", "Chequing")
        ...
        ledger.save()
    """

    def __init__(self, path: Path | None = None) -> None:
        """
        Initialize an empty ledger.

        Args:
            path: File used by ``save()`` when no path is given
        """
        self.path = path
        self.accounts: dict[str, Account] = {}
        self.merchants: dict[str, Merchant] = {}
        self.categories: dict[str, Category] = {}
        self.rules: dict[str, Rule] = {}
        self.transactions: dict[str, LedgerTransaction] = {}
        self._keys: set[str] = set()

    # Accounts, merchants, categories

    def get_or_create_account(self, user_id: str, name: str) -> Account:
        """Return the user's account called ``name``, creating it if needed."""
        for account in self.accounts.values():
            if account.user_id == user_id and account.name == name:
                return account
        account = Account(id=_new_id(), user_id=user_id, name=name)
        self.accounts[account.id] = account
        _logger.info("Created account %r", name)
        return account

    def get_or_create_merchant(self, name: str) -> Merchant:
        """Return the merchant called ``name``; blank names map to "Unknown"."""
        name = name.strip() or UNKNOWN_MERCHANT
        for merchant in self.merchants.values():
            if merchant.name == name:
                return merchant
        merchant = Merchant(
            id=_new_id(), name=name, normalized_name=normalize_merchant_name(name)
        )
        self.merchants[merchant.id] = merchant
        return merchant

    def find_category(self, name: str) -> Category | None:
        """Return the category called ``name``, if any."""
        for category in self.categories.values():
            if category.name == name:
                return category
        return None

    def ensure_category(self, name: str) -> Category:
        """Return the category called ``name``, creating it if needed."""
        category = self.find_category(name)
        if category is None:
            category = Category(id=_new_id(), name=name)
            self.categories[category.id] = category
        return category

    # Rules

    def add_rule(
        self,
        user_id: str,
        field: RuleField | str,
        pattern: str,
        category_id: str | None,
        priority: int | None = None,
    ) -> Rule:
        """
        Add a rule for a user.

        Without an explicit priority the rule goes after the user's existing
        rules (priorities step by 10).

        Raises:
            InvalidRuleError: If the field or pattern is invalid
        """
        if priority is None:
            existing = [r.priority for r in self.rules.values() if r.user_id == user_id]
            priority = max(existing, default=0) + 10

        try:
            rule_field = RuleField(field)
        except ValueError as e:
            raise InvalidRuleError(f"Unknown rule field: {field!r}") from e

        rule = Rule(
            id=_new_id(),
            priority=priority,
            field=rule_field,
            pattern=pattern,
            category_id=category_id,
            user_id=user_id,
        )
        compile_rule(rule)
        self.rules[rule.id] = rule
        return rule

    def rules_for(self, user_id: str) -> list[Rule]:
        """Return the user's rules in ascending priority order."""
        return sort_rules(r for r in self.rules.values() if r.user_id == user_id)

    # Transactions

    def has_transaction(
        self, user_id: str, account_id: str, date: str, amount: Decimal, description: str
    ) -> bool:
        """Check whether an equivalent transaction is already stored."""
        return dedupe_key(user_id, account_id, date, amount, description) in self._keys

    def add_transaction(
        self,
        user_id: str,
        account_id: str,
        date: str,
        amount: Decimal,
        tx_type: TransactionType,
        description: str,
        merchant_id: str | None = None,
        category_id: str | None = None,
    ) -> LedgerTransaction:
        """Store a new transaction."""
        tx = LedgerTransaction(
            id=_new_id(),
            user_id=user_id,
            account_id=account_id,
            merchant_id=merchant_id,
            category_id=category_id,
            date=date,
            amount=amount,
            type=tx_type,
            description=description,
        )
        self._index(tx)
        return tx

    def _index(self, tx: LedgerTransaction) -> None:
        self.transactions[tx.id] = tx
        self._keys.add(
            dedupe_key(tx.user_id, tx.account_id, tx.date, tx.amount, tx.description)
        )

    def recent_transactions(
        self, limit: int, user_id: str | None = None
    ) -> list[LedgerTransaction]:
        """Return up to ``limit`` transactions, newest date first."""
        txs = [
            tx
            for tx in self.transactions.values()
            if user_id is None or tx.user_id == user_id
        ]
        txs.sort(key=lambda t: t.date, reverse=True)
        return txs[:limit]

    def set_category(self, transaction_id: str, category_id: str | None) -> bool:
        """Assign a category; returns True if it changed."""
        tx = self.transactions[transaction_id]
        if tx.category_id == category_id:
            return False
        tx.category_id = category_id
        return True

    def candidate(self, tx: LedgerTransaction) -> CandidateTransaction:
        """Project a stored transaction for rule matching."""
        merchant = self.merchants.get(tx.merchant_id) if tx.merchant_id else None
        return CandidateTransaction(
            id=tx.id,
            description=tx.description,
            amount=tx.amount,
            merchant_name=merchant.name if merchant else None,
            merchant_normalized_name=merchant.normalized_name if merchant else None,
        )

    # Persistence

    def to_dict(self) -> dict[str, Any]:
        """Serialize the ledger to a JSON-ready dictionary."""
        return {
            "accounts": [vars(a).copy() for a in self.accounts.values()],
            "merchants": [vars(m).copy() for m in self.merchants.values()],
            "categories": [vars(c).copy() for c in self.categories.values()],
            "rules": [r.to_dict() for r in self.rules.values()],
            "transactions": [t.to_dict() for t in self.transactions.values()],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: Path | None = None) -> "Ledger":
        """Rebuild a ledger from ``to_dict`` output."""
        ledger = cls(path)
        for a in data.get("accounts", []):
            ledger.accounts[a["id"]] = Account(**a)
        for m in data.get("merchants", []):
            ledger.merchants[m["id"]] = Merchant(**m)
        for c in data.get("categories", []):
            ledger.categories[c["id"]] = Category(**c)
        for r in data.get("rules", []):
            rule = Rule.from_dict(r)
            ledger.rules[rule.id] = rule
        for t in data.get("transactions", []):
            ledger._index(LedgerTransaction.from_dict(t))
        return ledger

    @classmethod
    def load(cls, path: Path) -> "Ledger":
        """Load a ledger from ``path``; a missing file yields an empty ledger.

        Raises:
            ValueError: If the file is not valid JSON or not a ledger
        """
        if not path.exists():
            return cls(path)
        with open(path) as f:
            data = json.load(f)
        try:
            ledger = cls.from_dict(data, path)
        except (AttributeError, KeyError, TypeError, ValueError, ArithmeticError) as e:
            raise ValueError(f"Invalid ledger file {path}: {e!r}") from e
        _logger.debug(
            "Loaded ledger %s (%d transactions)", path, len(ledger.transactions)
        )
        return ledger

    def save(self, path: Path | None = None) -> Path:
        """Write the ledger as JSON and return the path written."""
        path = path or self.path
        if path is None:
            raise ValueError("No ledger path configured")

        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            json.dump(self.to_dict(), f, indent=2)
            f.write("\n")
        return path
