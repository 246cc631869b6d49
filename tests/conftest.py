"""Pytest configuration and fixtures."""

from decimal import Decimal
from pathlib import Path

import pytest

from finport.importer import Importer
from finport.ledger import Ledger
from finport.models import CandidateTransaction, Rule, RuleField
from finport.presets import InMemoryPresetStore


@pytest.fixture(autouse=True)
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep tests away from the real XDG config dir and any local finport.json."""
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg_config"))
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def fixtures_dir() -> Path:
    """Return path to test fixtures directory."""
    return Path(__file__).parent / "fixtures"


@pytest.fixture
def bmo_file(fixtures_dir: Path) -> Path:
    """Return path to BMO chequing export with a metadata preamble."""
    return fixtures_dir / "bmo_chequing.csv"


@pytest.fixture
def generic_file(fixtures_dir: Path) -> Path:
    """Return path to a plain CSV export whose first row is the header."""
    return fixtures_dir / "generic_bank.csv"


@pytest.fixture
def malformed_file(fixtures_dir: Path) -> Path:
    """Return path to a CSV file with an unbalanced quote."""
    return fixtures_dir / "malformed.csv"


@pytest.fixture
def ledger() -> Ledger:
    """Return an empty, unsaved ledger."""
    return Ledger()


@pytest.fixture
def importer(ledger: Ledger) -> Importer:
    """Return an importer writing to the ``ledger`` fixture."""
    return Importer(ledger, InMemoryPresetStore())


@pytest.fixture
def fuel_and_grocery_rules() -> list[Rule]:
    """Two rules in ascending priority order."""
    return [
        Rule(id="r-fuel", priority=10, field=RuleField.MERCHANT, pattern="PETRO",
             category_id="cat-fuel"),
        Rule(id="r-grocery", priority=20, field=RuleField.DESCRIPTION,
             pattern="regex:/WALMART|COSTCO/i", category_id="cat-grocery"),
    ]


@pytest.fixture
def petro_candidate() -> CandidateTransaction:
    """A fuel purchase whose description also mentions Costco."""
    return CandidateTransaction(
        id="tx-1",
        description="costco gas bar",
        amount=Decimal("45.67"),
        merchant_name="PETRO-CANADA",
        merchant_normalized_name="petro-canada",
    )
