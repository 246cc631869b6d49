"""Tests for the command-line interface."""

import json
import shutil
from pathlib import Path

import pytest

from finport.cli import collect_files, main, parse_overrides
from finport.config import create_default_config, get_config_path, save_json_config
from finport.ledger import Ledger


class TestParseOverrides:
    """Tests for --map parsing."""

    def test_valid(self) -> None:
        """Test field=Header pairs."""
        assert parse_overrides(["merchant=Description", " Date = Date Posted "]) == {
            "merchant": "Description",
            "date": "Date Posted",
        }

    def test_invalid(self) -> None:
        """Test unknown fields and missing separators are rejected."""
        with pytest.raises(ValueError):
            parse_overrides(["payee=Name"])
        with pytest.raises(ValueError):
            parse_overrides(["merchant"])


class TestCollectFiles:
    """Tests for input expansion."""

    def test_directory(self, tmp_path: Path, bmo_file: Path, generic_file: Path) -> None:
        """Test CSV files inside a directory are found."""
        inbox = tmp_path / "inbox"
        inbox.mkdir()
        shutil.copy(bmo_file, inbox)
        shutil.copy(generic_file, inbox)
        (inbox / "notes.txt").write_text("x")

        names = [p.name for p in collect_files([str(inbox)])]

        assert sorted(names) == ["bmo_chequing.csv", "generic_bank.csv"]

    def test_missing_path(self, capsys: pytest.CaptureFixture[str]) -> None:
        """Test missing paths are warned about and skipped."""
        assert collect_files(["nope.csv"]) == []
        assert "not found" in capsys.readouterr().err


class TestMain:
    """Tests for the main entry point."""

    def test_preview(self, generic_file: Path, capsys: pytest.CaptureFixture[str]) -> None:
        """Test previewing prints the mapping as JSON."""
        assert main([str(generic_file)]) == 0

        preview = json.loads(capsys.readouterr().out)
        assert preview["rowCount"] == 5
        assert preview["mapping"]["merchant"] == "Payee"

    def test_import_and_rules(self, tmp_path: Path, bmo_file: Path) -> None:
        """Test importing, adding a rule and applying it."""
        ledger_path = tmp_path / "ledger.json"
        base = ["--ledger", str(ledger_path)]

        assert main([
            str(bmo_file), *base, "--import", "--account", "Chequing",
            "--map", "merchant=Description", "--clean-descriptions", "--save-mapping",
        ]) == 0
        assert main([*base, "--add-rule", "description", "regex:/petro/i",
                     "--category", "Fuel"]) == 0
        assert main([*base, "--apply-rules"]) == 0

        ledger = Ledger.load(ledger_path)
        fuel = ledger.find_category("Fuel")
        assert fuel is not None
        fueled = [t for t in ledger.transactions.values() if t.category_id == fuel.id]
        assert [t.description for t in fueled] == ["PETRO-CANADA 1234"]

    def test_import_requires_account(self, generic_file: Path) -> None:
        """Test --import without --account fails."""
        assert main([str(generic_file), "--import"]) == 1

    def test_invalid_rule(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        """Test a broken regex rule is reported."""
        code = main(["--ledger", str(tmp_path / "l.json"), "--add-rule", "description",
                     "regex:/(/"])

        assert code == 1
        assert "Error" in capsys.readouterr().err

    def test_malformed_file_reported(
        self, malformed_file: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        """Test per-file errors are collected and reported."""
        assert main([str(malformed_file)]) == 1
        assert "malformed.csv" in capsys.readouterr().err

    def test_list_rules_empty(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        """Test listing rules with none defined."""
        assert main(["--ledger", str(tmp_path / "l.json"), "--list-rules"]) == 0
        assert "No rules defined." in capsys.readouterr().out

    def test_corrupt_ledger_reported(
        self, tmp_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        """Test a corrupt ledger file is an error message, not a traceback."""
        ledger_path = tmp_path / "ledger.json"
        ledger_path.write_text("{not json")

        assert main(["--ledger", str(ledger_path), "--list-rules"]) == 1
        assert "could not load ledger" in capsys.readouterr().err

    def test_list_parsers(self, capsys: pytest.CaptureFixture[str]) -> None:
        """Test registered parsers are listed by display name."""
        assert main(["--list-parsers"]) == 0

        out = capsys.readouterr().out
        assert "BMO: HeaderScanParser" in out
        assert "Generic: PlainCsvParser" in out
        assert "transaction type" in out


class TestConfigCommands:
    """Tests for --init-config and --show-config."""

    def test_init_config_writes_defaults(self, capsys: pytest.CaptureFixture[str]) -> None:
        """Test the default config is written to the XDG location."""
        assert main(["--init-config"]) == 0

        path = get_config_path()
        assert json.loads(path.read_text()) == create_default_config()
        assert str(path) in capsys.readouterr().err

    def test_init_config_refuses_to_overwrite(self) -> None:
        """Test an existing config is left alone."""
        save_json_config({"user": "alice"})

        assert main(["--init-config"]) == 1
        assert json.loads(get_config_path().read_text()) == {"user": "alice"}

    def test_init_config_explicit_path(self, tmp_path: Path) -> None:
        """Test --config chooses where the default config goes."""
        path = tmp_path / "custom" / "finport.json"

        assert main(["--init-config", "--config", str(path)]) == 0
        assert json.loads(path.read_text())["default_category"] == "Uncategorized"

    def test_show_config(self, capsys: pytest.CaptureFixture[str]) -> None:
        """Test the loaded config is printed as JSON."""
        save_json_config({"user": "alice", "sample_size": 3})

        assert main(["--show-config"]) == 0
        assert json.loads(capsys.readouterr().out) == {"user": "alice", "sample_size": 3}

    def test_show_config_missing(self, capsys: pytest.CaptureFixture[str]) -> None:
        """Test a hint is printed when there is no config."""
        assert main(["--show-config"]) == 0
        assert "No configuration found." in capsys.readouterr().out

    def test_configured_user_owns_import(self, generic_file: Path, tmp_path: Path) -> None:
        """Test settings from the config file drive the import."""
        ledger_path = tmp_path / "ledger.json"
        save_json_config({"user": "alice", "ledger_path": str(ledger_path)})

        assert main([str(generic_file), "--import", "--account", "Chequing"]) == 0

        ledger = Ledger.load(ledger_path)
        assert {t.user_id for t in ledger.transactions.values()} == {"alice"}
