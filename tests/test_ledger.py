"""Tests for the JSON-backed ledger."""

import json
from decimal import Decimal
from pathlib import Path

import pytest

from finport.exceptions import InvalidRuleError
from finport.ledger import Ledger, dedupe_key
from finport.models import RuleField, TransactionType


def _add(ledger: Ledger, account_id: str, date: str, amount: str, desc: str,
         user_id: str = "local"):
    return ledger.add_transaction(
        user_id, account_id, date, Decimal(amount), TransactionType.EXPENSE, desc
    )


class TestLookups:
    """Tests for get-or-create lookups."""

    def test_account_reused(self, ledger: Ledger) -> None:
        """Test the same user and name give the same account."""
        first = ledger.get_or_create_account("local", "Chequing")
        assert ledger.get_or_create_account("local", "Chequing") is first
        assert len(ledger.accounts) == 1

    def test_account_per_user(self, ledger: Ledger) -> None:
        """Test accounts are scoped to their user."""
        a = ledger.get_or_create_account("alice", "Chequing")
        b = ledger.get_or_create_account("bob", "Chequing")
        assert a.id != b.id

    def test_merchant_blank_name(self, ledger: Ledger) -> None:
        """Test blank merchant names map to Unknown."""
        merchant = ledger.get_or_create_merchant("   ")
        assert merchant.name == "Unknown"
        assert ledger.get_or_create_merchant("") is merchant

    def test_merchant_normalized_name(self, ledger: Ledger) -> None:
        """Test the normalized name is derived on creation."""
        merchant = ledger.get_or_create_merchant(" Costco  Wholesale ")
        assert merchant.name == "Costco  Wholesale"
        assert merchant.normalized_name == "costco wholesale"

    def test_ensure_category(self, ledger: Ledger) -> None:
        """Test categories are created once."""
        fuel = ledger.ensure_category("Fuel")
        assert ledger.ensure_category("Fuel") is fuel
        assert ledger.find_category("Fuel") is fuel
        assert ledger.find_category("Rent") is None


class TestRules:
    """Tests for rule storage."""

    def test_priority_steps_by_ten(self, ledger: Ledger) -> None:
        """Test rules without a priority are appended."""
        first = ledger.add_rule("local", "merchant", "PETRO", None)
        second = ledger.add_rule("local", RuleField.DESCRIPTION, "COSTCO", None)

        assert first.priority == 10
        assert second.priority == 20
        assert second.field is RuleField.DESCRIPTION

    def test_explicit_priority(self, ledger: Ledger) -> None:
        """Test an explicit priority is kept and sorts first."""
        ledger.add_rule("local", "merchant", "A", None)
        early = ledger.add_rule("local", "merchant", "B", None, priority=1)

        assert ledger.rules_for("local")[0] is early

    def test_rules_scoped_to_user(self, ledger: Ledger) -> None:
        """Test rules_for only returns the user's rules."""
        ledger.add_rule("alice", "merchant", "A", None)
        ledger.add_rule("bob", "merchant", "B", None)

        assert [r.pattern for r in ledger.rules_for("alice")] == ["A"]
        assert ledger.add_rule("bob", "merchant", "C", None).priority == 20

    def test_invalid_field(self, ledger: Ledger) -> None:
        """Test unknown fields are rejected."""
        with pytest.raises(InvalidRuleError):
            ledger.add_rule("local", "payee", "A", None)

    def test_invalid_regex_not_stored(self, ledger: Ledger) -> None:
        """Test a rule with a broken regex is rejected and not stored."""
        with pytest.raises(InvalidRuleError):
            ledger.add_rule("local", "description", "regex:/(/", None)
        assert ledger.rules == {}


class TestTransactions:
    """Tests for transaction storage and dedupe."""

    def test_has_transaction(self, ledger: Ledger) -> None:
        """Test stored transactions are found by their dedupe key."""
        _add(ledger, "acct", "2024-01-15", "45.67", "PETRO-CANADA")

        assert ledger.has_transaction("local", "acct", "2024-01-15", Decimal("45.67"),
                                      "petro-canada")
        assert not ledger.has_transaction("local", "acct", "2024-01-15", Decimal("45.68"),
                                          "PETRO-CANADA")
        assert not ledger.has_transaction("local", "other", "2024-01-15", Decimal("45.67"),
                                          "PETRO-CANADA")

    def test_dedupe_key_amount_precision(self) -> None:
        """Test amounts are compared at two decimal places."""
        assert dedupe_key("u", "a", "d", Decimal("5"), "x") == dedupe_key(
            "u", "a", "d", Decimal("5.00"), "x"
        )

    def test_recent_transactions(self, ledger: Ledger) -> None:
        """Test newest dates come first and the limit is honoured."""
        _add(ledger, "acct", "2024-01-01", "1", "old")
        _add(ledger, "acct", "2024-03-01", "1", "new")
        _add(ledger, "acct", "2024-02-01", "1", "mid")
        _add(ledger, "acct", "2024-04-01", "1", "other user", user_id="bob")

        recent = ledger.recent_transactions(2, "local")

        assert [t.description for t in recent] == ["new", "mid"]

    def test_set_category(self, ledger: Ledger) -> None:
        """Test set_category reports whether anything changed."""
        tx = _add(ledger, "acct", "2024-01-01", "1", "x")

        assert ledger.set_category(tx.id, "cat") is True
        assert ledger.set_category(tx.id, "cat") is False
        assert ledger.transactions[tx.id].category_id == "cat"

    def test_candidate_projection(self, ledger: Ledger) -> None:
        """Test candidates carry the merchant's names."""
        merchant = ledger.get_or_create_merchant("PETRO-CANADA")
        tx = ledger.add_transaction(
            "local", "acct", "2024-01-15", Decimal("45.67"), TransactionType.EXPENSE,
            "fuel", merchant_id=merchant.id,
        )

        candidate = ledger.candidate(tx)

        assert candidate.id == tx.id
        assert candidate.merchant_name == "PETRO-CANADA"
        assert candidate.merchant_normalized_name == "petro-canada"
        assert candidate.amount == Decimal("45.67")

    def test_candidate_without_merchant(self, ledger: Ledger) -> None:
        """Test transactions without a merchant project to None."""
        tx = _add(ledger, "acct", "2024-01-15", "1", "x")
        assert ledger.candidate(tx).merchant_name is None


class TestPersistence:
    """Tests for saving and loading."""

    def test_round_trip(self, tmp_path: Path) -> None:
        """Test everything survives save and load."""
        path = tmp_path / "ledger.json"
        ledger = Ledger(path)
        account = ledger.get_or_create_account("local", "Chequing")
        merchant = ledger.get_or_create_merchant("PETRO-CANADA")
        category = ledger.ensure_category("Fuel")
        ledger.add_rule("local", "merchant", "PETRO", category.id)
        ledger.add_transaction(
            "local", account.id, "2024-01-15", Decimal("45.67"), TransactionType.EXPENSE,
            "fuel", merchant_id=merchant.id, category_id=category.id,
        )
        ledger.save()

        loaded = Ledger.load(path)

        assert loaded.to_dict() == ledger.to_dict()
        assert loaded.has_transaction("local", account.id, "2024-01-15",
                                      Decimal("45.67"), "fuel")
        assert json.loads(path.read_text())["transactions"][0]["amount"] == "45.67"

    def test_load_missing(self, tmp_path: Path) -> None:
        """Test a missing file loads as an empty ledger bound to that path."""
        path = tmp_path / "missing.json"
        ledger = Ledger.load(path)

        assert ledger.transactions == {}
        assert ledger.path == path

    def test_save_without_path(self, ledger: Ledger) -> None:
        """Test saving needs a path."""
        with pytest.raises(ValueError):
            ledger.save()

    def test_save_explicit_path(self, ledger: Ledger, tmp_path: Path) -> None:
        """Test an explicit path overrides the bound one."""
        path = ledger.save(tmp_path / "sub" / "out.json")
        assert path.exists()

    def test_load_corrupt_json(self, tmp_path: Path) -> None:
        """Test unreadable JSON raises ValueError."""
        path = tmp_path / "ledger.json"
        path.write_text("{not json")
        with pytest.raises(ValueError):
            Ledger.load(path)

    def test_load_wrong_shape(self, tmp_path: Path) -> None:
        """Test JSON that is not a ledger raises ValueError."""
        path = tmp_path / "ledger.json"
        path.write_text(json.dumps({"transactions": [{"id": "t1"}]}))
        with pytest.raises(ValueError, match="Invalid ledger file"):
            Ledger.load(path)
