#!/usr/bin/env python3
"""Command-line interface for pf-ledger."""

import argparse
import sys
from datetime import date
from pathlib import Path
from typing import Any

from pf_ledger.archive import archive_before, count_archivable, restore_from_archive
from pf_ledger.budgets import budgets_from_config, evaluate_budgets
from pf_ledger.config import (
    build_import_options,
    create_default_config,
    find_config_file,
    get_config_path,
    get_ledger_path,
    load_config,
    save_json_config,
)
from pf_ledger.exceptions import StatementImportError
from pf_ledger.importer import StatementImporter
from pf_ledger.ledger import Ledger, to_csv, to_json
from pf_ledger.logger import setup_logging
from pf_ledger.parsers import ParserRegistry
from pf_ledger.recurring import materialize, recurring_from_config
from pf_ledger.rules import default_rules, rules_from_config
from pf_ledger.utils import parse_date

STATEMENT_EXTENSIONS = [".csv", ".txt", ".xls", ".xlsx"]


def _date_arg(value: str) -> date:
    parsed = parse_date(value)
    if parsed is None:
        raise argparse.ArgumentTypeError(f"invalid date: {value!r} (use dd.mm.yyyy or yyyy-mm-dd)")
    return parsed


def _collect_files(inputs: list[str]) -> list[Path]:
    files: list[Path] = []
    for inp in inputs:
        path = Path(inp)
        if path.is_dir():
            for ext in STATEMENT_EXTENSIONS:
                files.extend(sorted(path.glob(f"*{ext}")))
                files.extend(sorted(path.glob(f"*{ext.upper()}")))
        elif path.exists():
            files.append(path)
        else:
            print(f"Warning: {inp} not found", file=sys.stderr)
    return files


def cmd_import(args: argparse.Namespace, config: dict[str, Any] | None) -> int:
    files = _collect_files(args.inputs)
    if not files:
        print("Error: No valid input files found", file=sys.stderr)
        return 1

    options = build_import_options(
        config,
        default_account=args.account,
        default_currency=args.currency,
        source=args.source,
        include_needs_review=args.include_review or None,
    )
    rules = [] if args.no_rules else (rules_from_config(config) or default_rules())
    importer = StatementImporter(options, rules=rules)

    ledger_path = get_ledger_path(config, args.ledger)
    ledger = Ledger.load(ledger_path)
    batch, stats = importer.import_files(files, ledger)

    for filepath, error in importer.errors:
        print(f"Error: {filepath.name}: {error}", file=sys.stderr)

    print(f"Processed {len(files)} files", file=sys.stderr)
    print(f"Found {stats.total} transactions", file=sys.stderr)
    print(f"  Valid: {stats.valid}", file=sys.stderr)
    print(f"  Needs review: {stats.needs_review}", file=sys.stderr)
    print(f"  Duplicates: {stats.duplicates}", file=sys.stderr)

    if args.verbose:
        for tx in batch:
            if tx.errors:
                details = "; ".join(str(e) for e in tx.errors)
                print(f"  Review: {tx.date}  {tx.amount:>10}  {tx.description[:40]:<40}  {details}",
                      file=sys.stderr)

    if len(importer.errors) == len(files):
        print(f"Errors: {len(importer.errors)} files failed", file=sys.stderr)
        return 1

    if args.dry_run:
        print("\nDry run - nothing written.", file=sys.stderr)
        return 0

    result = importer.commit(batch, ledger)
    ledger.save(ledger_path)

    print("\nImport complete:", file=sys.stderr)
    print(f"  Added: {result.added}", file=sys.stderr)
    print(f"  Skipped (duplicates): {result.skipped}", file=sys.stderr)
    if result.needs_review:
        print(f"  Not added (needs review): {result.needs_review}", file=sys.stderr)
        print("  Re-run with --include-review to add them anyway.", file=sys.stderr)
    if importer.errors:
        print(f"Errors: {len(importer.errors)} files failed", file=sys.stderr)
    return 0


def cmd_export(args: argparse.Namespace, config: dict[str, Any] | None) -> int:
    ledger = Ledger.load(get_ledger_path(config, args.ledger))
    transactions = ledger.transactions if args.include_deleted else ledger.active()
    text = to_json(transactions) + "\n" if args.format == "json" else to_csv(transactions)

    if args.output:
        output_path = Path(args.output)
        output_path.write_text(text, encoding="utf-8")
        print(f"Wrote {len(transactions)} transactions to {output_path}", file=sys.stderr)
    else:
        sys.stdout.write(text)
    return 0


def cmd_budgets(args: argparse.Namespace, config: dict[str, Any] | None) -> int:
    budgets = budgets_from_config(config)
    if args.period:
        budgets = [b for b in budgets if b.period_value == args.period]
    if not budgets:
        print("No budgets configured.", file=sys.stderr)
        return 0

    ledger = Ledger.load(get_ledger_path(config, args.ledger))
    for report in evaluate_budgets(budgets, ledger.transactions):
        budget = report.budget
        name = budget.category + (f" / {budget.subcategory}" if budget.subcategory else "")
        print(
            f"{budget.period_value:<8} {name:<30} {budget.amount:>12} {report.fact:>12} "
            f"{report.remaining:>12} {report.percent_used:>7}%  {report.status.value}"
        )
    return 0


def _record_last_created(config: dict[str, Any], created: dict[str, date]) -> None:
    for entry in config.get("recurring", []):
        name = str(entry.get("name", "")).strip()
        if name in created:
            entry["last_created"] = created[name].isoformat()


def cmd_recurring(args: argparse.Namespace, config: dict[str, Any] | None) -> int:
    templates = recurring_from_config(config)
    if not config or not templates:
        print("No recurring transactions configured.", file=sys.stderr)
        return 0

    as_of = args.as_of or date.today()
    transactions, stats = materialize(templates, as_of)

    for tx in transactions:
        print(f"  {tx.date}  {tx.signed_amount:>10}  {tx.account:<20}  {tx.description[:40]}",
              file=sys.stderr)
    print(f"Created: {stats.created}, skipped: {stats.skipped}, invalid: {stats.errors}",
          file=sys.stderr)

    if args.dry_run or not transactions:
        return 0

    ledger_path = get_ledger_path(config, args.ledger)
    ledger = Ledger.load(ledger_path)
    ledger.append_many(transactions)
    ledger.save(ledger_path)

    created = {t.name: t.last_created for t in templates if t.last_created is not None}
    _record_last_created(config, created)
    save_json_config(config, args.config or find_config_file())
    return 0


def cmd_archive(args: argparse.Namespace, config: dict[str, Any] | None) -> int:
    ledger_path = get_ledger_path(config, args.ledger)
    ledger = Ledger.load(ledger_path)

    if args.dry_run:
        count = count_archivable(ledger, args.before)
        print(f"Would archive {count} transactions dated before {args.before}", file=sys.stderr)
        return 0

    count = archive_before(ledger, args.before)
    if count:
        ledger.save(ledger_path)
    print(f"Archived {count} transactions dated before {args.before}", file=sys.stderr)
    return 0


def cmd_restore(args: argparse.Namespace, config: dict[str, Any] | None) -> int:
    ledger_path = get_ledger_path(config, args.ledger)
    ledger = Ledger.load(ledger_path)
    count = restore_from_archive(ledger, args.start, args.end)
    if count:
        ledger.save(ledger_path)
    print(f"Restored {count} transactions from archive", file=sys.stderr)
    return 0


def cmd_list_parsers(args: argparse.Namespace, config: dict[str, Any] | None) -> int:
    print("Available parsers:")
    for parser_cls in ParserRegistry.get_all_parsers():
        print(f"  - {parser_cls.bank_name}: {parser_cls.__name__} (source {parser_cls.source})")
        if parser_cls.file_patterns:
            print(f"    Markers: {', '.join(parser_cls.file_patterns)}")
    return 0


def cmd_init_config(args: argparse.Namespace, config: dict[str, Any] | None) -> int:
    config_path = args.config or get_config_path()
    if config_path.exists() and not args.force:
        print(f"Error: {config_path} already exists (use --force to overwrite)", file=sys.stderr)
        return 1

    new_config = create_default_config()
    if args.with_rules:
        new_config["category_rules"] = [
            {
                "name": rule.name,
                "pattern": rule.pattern,
                "pattern_type": rule.pattern_type.value,
                "category": rule.category,
                "subcategory": rule.subcategory,
                "priority": rule.priority,
            }
            for rule in default_rules()
        ]
    saved = save_json_config(new_config, config_path)
    print(f"Wrote default configuration to {saved}", file=sys.stderr)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pf-ledger",
        description="Import bank statements into a personal-finance ledger",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  pf-ledger init-config
  pf-ledger import ~/Downloads/statements/ --account "Сбербанк"
  pf-ledger import sberbank.txt --dry-run -v
  pf-ledger export --format json -o ledger.json
  pf-ledger budgets --period 2025-01
  pf-ledger archive --before 01.01.2024

Supported formats:
  - Sberbank (CSV export, PDF text)
  - Yandex Bank (PDF text)
  - Raw statement sheets
  - Generic CSV with a header row
        """,
    )
    parser.add_argument(
        "--config",
        type=Path,
        help="Path to config.json file",
    )
    parser.add_argument(
        "--ledger",
        type=Path,
        help="Ledger CSV file (default: from config, else ./ledger.csv)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Verbose output",
    )

    subparsers = parser.add_subparsers(dest="command", metavar="COMMAND")

    p_import = subparsers.add_parser("import", help="Import statement files into the ledger")
    p_import.add_argument("inputs", nargs="+", help="Input files or directories")
    p_import.add_argument("--account", help="Default account for imported rows")
    p_import.add_argument("--currency", help="Default currency (default: RUB)")
    p_import.add_argument("--source", help="Override the source tag of imported rows")
    p_import.add_argument(
        "--include-review",
        action="store_true",
        help="Also add rows that need review",
    )
    p_import.add_argument("--no-rules", action="store_true", help="Don't apply category rules")
    p_import.add_argument(
        "--dry-run",
        action="store_true",
        help="Show what would be imported without writing the ledger",
    )
    p_import.set_defaults(func=cmd_import)

    p_export = subparsers.add_parser("export", help="Export the ledger as CSV or JSON")
    p_export.add_argument("-o", "--output", help="Output file (default: stdout)")
    p_export.add_argument(
        "--format",
        choices=["csv", "json"],
        default="csv",
        help="Output format (default: csv)",
    )
    p_export.add_argument(
        "--include-deleted",
        action="store_true",
        help="Include rows with status deleted",
    )
    p_export.set_defaults(func=cmd_export)

    p_budgets = subparsers.add_parser("budgets", help="Show budget plan versus actual")
    p_budgets.add_argument("--period", help="Only budgets for this period (YYYY-MM or YYYY)")
    p_budgets.set_defaults(func=cmd_budgets)

    p_recurring = subparsers.add_parser("recurring", help="Create due recurring transactions")
    p_recurring.add_argument("--as-of", type=_date_arg, help="Evaluation date (default: today)")
    p_recurring.add_argument("--dry-run", action="store_true", help="Don't write anything")
    p_recurring.set_defaults(func=cmd_recurring)

    p_archive = subparsers.add_parser("archive", help="Archive rows dated before a cutoff")
    p_archive.add_argument("--before", type=_date_arg, required=True, help="Cutoff date")
    p_archive.add_argument("--dry-run", action="store_true", help="Only count rows")
    p_archive.set_defaults(func=cmd_archive)

    p_restore = subparsers.add_parser("restore", help="Restore archived rows")
    p_restore.add_argument("--from", dest="start", type=_date_arg, help="First date to restore")
    p_restore.add_argument("--to", dest="end", type=_date_arg, help="Last date to restore")
    p_restore.set_defaults(func=cmd_restore)

    p_list = subparsers.add_parser("list-parsers", help="List available statement parsers")
    p_list.set_defaults(func=cmd_list_parsers)

    p_init = subparsers.add_parser("init-config", help="Write a default config.json")
    p_init.add_argument("--force", action="store_true", help="Overwrite an existing config")
    p_init.add_argument(
        "--with-rules",
        action="store_true",
        help="Include the built-in category rules",
    )
    p_init.set_defaults(func=cmd_init_config)

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    setup_logging("DEBUG" if args.verbose else None)

    try:
        config = None if args.command == "init-config" else load_config(args.config)
        return int(args.func(args, config))
    except (StatementImportError, OSError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
