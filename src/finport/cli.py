#!/usr/bin/env python3
"""Command-line interface for finport."""

import argparse
import dataclasses
import json
import sys
from pathlib import Path
from typing import Any

from finport.config import (
    config_exists,
    create_default_config,
    find_config_file,
    get_ledger_path,
    get_presets_path,
    get_setting,
    load_config,
    save_json_config,
)
from finport.exceptions import FinportError, ValidationFailed
from finport.importer import Importer
from finport.ledger import Ledger
from finport.logging_setup import configure_logging
from finport.models import CANONICAL_FIELDS, ColumnMapping, RuleField
from finport.parsers import ParserRegistry
from finport.presets import JsonPresetStore
from finport.rules import is_regex_pattern
from finport.utils import read_file


def parse_overrides(values: list[str]) -> dict[str, str]:
    """Parse ``field=Header`` arguments into a dict."""
    overrides: dict[str, str] = {}
    for value in values:
        field_name, sep, header = value.partition("=")
        field_name = field_name.strip().lower()
        if not sep or field_name not in CANONICAL_FIELDS:
            raise ValueError(
                f"Invalid --map value {value!r}; expected one of "
                f"{', '.join(CANONICAL_FIELDS)} followed by =Header"
            )
        overrides[field_name] = header.strip()
    return overrides


def collect_files(inputs: list[str]) -> list[Path]:
    """Expand input paths, looking for CSV/XLS exports inside directories."""
    files: list[Path] = []
    for inp in inputs:
        path = Path(inp)
        if path.is_dir():
            for ext in [".csv", ".xls"]:
                files.extend(sorted(path.glob(f"*{ext}")))
                files.extend(sorted(path.glob(f"*{ext.upper()}")))
        elif path.exists():
            files.append(path)
        else:
            print(f"Warning: {inp} not found", file=sys.stderr)
    return files


def _print_json(data: Any) -> None:
    print(json.dumps(data, indent=2))


def _import_file(
    importer: Importer, path: Path, args: argparse.Namespace, user: str
) -> None:
    text = read_file(path)
    preview = importer.preview_text(text, path.name)
    mapping = ColumnMapping.from_dict(preview["mapping"])

    overrides = parse_overrides(args.map or [])
    if overrides:
        mapping = dataclasses.replace(mapping, **overrides)
    if args.clean_descriptions:
        mapping = dataclasses.replace(mapping, description_cleaner="strip-bracket-code")

    unresolved = [f for f in preview["unresolved"] if f not in overrides]
    if unresolved:
        print(
            f"Warning: {path.name}: guessed first column for {', '.join(unresolved)}; "
            "use --map to fix",
            file=sys.stderr,
        )

    result = importer.import_text(text, args.account, mapping, user)
    if args.save_mapping:
        importer.save_mapping(mapping)

    print(f"{path.name}: processed {result.processed} rows", file=sys.stderr)
    print(f"  Inserted: {result.inserted}", file=sys.stderr)
    print(f"  Skipped (duplicates): {result.skipped_duplicate}", file=sys.stderr)
    print(f"  Account: {result.account}", file=sys.stderr)


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Import bank CSV exports and categorize transactions with rules",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  finport ~/Downloads/statement.csv
  finport ~/Downloads/statement.csv --import --account Chequing --save-mapping
  finport statement.csv --import --account Visa --map merchant=Description
  finport --add-rule merchant PETRO --category Fuel --priority 10
  finport --add-rule description "regex:/WALMART|COSTCO/i" --category Groceries
  finport --test-rules --limit 50
  finport --init-config
        """,
    )

    parser.add_argument("inputs", nargs="*", help="Input files or directories")
    parser.add_argument("--config", type=Path, help="Path to config JSON file")
    parser.add_argument("--ledger", type=Path, help="Path to ledger JSON file")
    parser.add_argument("--user", help="User id owning accounts and rules")
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")
    parser.add_argument(
        "--list-parsers",
        action="store_true",
        help="List available CSV parsers",
    )

    # Setup
    parser.add_argument(
        "--init-config",
        action="store_true",
        help="Write a default config file (to --config or the XDG location)",
    )
    parser.add_argument(
        "--show-config",
        action="store_true",
        help="Show current configuration",
    )

    # Import
    parser.add_argument(
        "--import",
        dest="do_import",
        action="store_true",
        help="Import the files into the ledger (default is preview only)",
    )
    parser.add_argument("--account", help="Account name to import into")
    parser.add_argument(
        "--map",
        action="append",
        metavar="FIELD=HEADER",
        help="Override the column for a field (repeatable)",
    )
    parser.add_argument(
        "--clean-descriptions",
        action="store_true",
        help="Strip leading bracketed codes such as [DN] from descriptions",
    )
    parser.add_argument(
        "--save-mapping",
        action="store_true",
        help="Remember the mapping for files with the same name",
    )

    # Rules
    parser.add_argument(
        "--add-rule",
        nargs=2,
        metavar=("FIELD", "PATTERN"),
        help=f"Add a rule; FIELD is one of {', '.join(f.value for f in RuleField)}",
    )
    parser.add_argument("--category", help="Category assigned by --add-rule")
    parser.add_argument("--priority", type=int, help="Priority for --add-rule (lower first)")
    parser.add_argument("--list-rules", action="store_true", help="List rules")
    parser.add_argument(
        "--test-rules",
        action="store_true",
        help="Show which rule matches each recent transaction",
    )
    parser.add_argument(
        "--limit", type=int, default=20, help="Transactions for --test-rules (default: 20)"
    )
    parser.add_argument(
        "--apply-rules",
        action="store_true",
        help="Categorize uncategorized transactions using the rules",
    )

    args = parser.parse_args(argv)

    configure_logging("DEBUG" if args.verbose else None)

    # Handle init before loading config
    if args.init_config:
        if args.config is None and config_exists():
            print(f"Config already exists: {find_config_file()}", file=sys.stderr)
            return 1
        path = save_json_config(create_default_config(), args.config)
        print(f"Wrote default config to {path}", file=sys.stderr)
        return 0

    try:
        config: dict[str, Any] | None = load_config(args.config)
    except (OSError, ValueError) as e:
        print(f"Error: could not load config: {e}", file=sys.stderr)
        return 1

    if args.show_config:
        if config:
            _print_json(config)
        else:
            print("No configuration found.")
            print("Run 'finport --init-config' to create one.")
        return 0

    # List parsers and exit
    if args.list_parsers:
        print("Available parsers:")
        for parser_cls in ParserRegistry.get_all_parsers():
            print(f"  - {parser_cls.bank_name}: {parser_cls.__name__}")
            if parser_cls.file_patterns:
                print(f"    Header markers: {', '.join(parser_cls.file_patterns)}")
        return 0

    user = args.user or str(get_setting(config, "user"))
    ledger_path = args.ledger or get_ledger_path(config)
    try:
        ledger = Ledger.load(ledger_path)
    except (OSError, ValueError) as e:
        print(f"Error: could not load ledger {ledger_path}: {e}", file=sys.stderr)
        return 1
    importer = Importer(ledger, JsonPresetStore(get_presets_path(config)), config)

    if args.add_rule:
        field_name, pattern = args.add_rule
        category = ledger.ensure_category(args.category) if args.category else None
        try:
            rule = ledger.add_rule(
                user, field_name, pattern, category.id if category else None, args.priority
            )
        except FinportError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1
        ledger.save(ledger_path)
        print(f"Added rule {rule.id} (priority {rule.priority})", file=sys.stderr)
        return 0

    if args.list_rules:
        rules = ledger.rules_for(user)
        if not rules:
            print("No rules defined.")
        for rule in rules:
            category = ledger.categories.get(rule.category_id or "")
            kind = "regex" if is_regex_pattern(rule.pattern) else "text"
            print(
                f"  [{rule.priority:>4}] {rule.field.value:<11} {kind:<5} "
                f"{rule.pattern!r} -> {category.name if category else '(none)'}"
            )
        return 0

    if args.test_rules:
        _print_json(importer.test_rules(user, args.limit))
        return 0

    if args.apply_rules:
        changed = importer.apply_rules(user)
        ledger.save(ledger_path)
        print(f"Recategorized {changed} transactions", file=sys.stderr)
        return 0

    if not args.inputs:
        parser.print_help()
        return 1

    if args.do_import and not args.account:
        print("Error: --account is required with --import", file=sys.stderr)
        return 1

    files = collect_files(args.inputs)
    if not files:
        print("Error: No valid input files found", file=sys.stderr)
        return 1

    errors: list[tuple[Path, str]] = []
    for path in files:
        try:
            if args.do_import:
                _import_file(importer, path, args, user)
            else:
                _print_json(importer.preview_text(read_file(path), path.name))
        except ValidationFailed as e:
            detail = json.dumps(e.to_dict()["error"])
            errors.append((path, f"{e}: {detail}"))
        except (FinportError, ValueError) as e:
            errors.append((path, str(e)))

    if args.do_import:
        ledger.save(ledger_path)

    for filepath, error in errors:
        print(f"Error: {filepath.name}: {error}", file=sys.stderr)

    return 1 if errors else 0


if __name__ == "__main__":
    sys.exit(main())
