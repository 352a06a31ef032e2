"""
CLI Entry Point: node-ledger

Imports, exports and inspects node earnings and license records kept in
the local store.
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Optional

from node_ledger.backup import BackupFrequency, FileBackupSink
from node_ledger.config import get_settings
from node_ledger.exports import (
    earnings_to_csv,
    earnings_to_json,
    earnings_to_markdown,
    licenses_to_csv,
    licenses_to_json,
    licenses_to_markdown,
)
from node_ledger.merge import MergePolicy
from node_ledger.models.validation import FormatError
from node_ledger.orchestrator import NodeLedger, create_ledger
from node_ledger.parsing import EarningsColumnMap
from node_ledger.services.storage import StorageError, create_store


POLICIES = [policy.value for policy in MergePolicy]
FREQUENCIES = [frequency.value for frequency in BackupFrequency]


def read_input(source: str) -> str:
    """File contents, or stdin for '-'."""
    if source == "-":
        return sys.stdin.read()
    path = Path(source).expanduser()
    if not path.exists():
        raise SystemExit(f"File not found: {path}")
    return path.read_text(encoding="utf-8")


def write_output(text: str, output: Optional[str]) -> None:
    if output:
        Path(output).expanduser().write_text(text, encoding="utf-8")
        print(f"Wrote {output}", file=sys.stderr)
    else:
        print(text)


def emit(payload: Any, as_json: bool, lines: list[str]) -> None:
    if as_json:
        print(json.dumps(payload, indent=2, default=str))
    else:
        print("\n".join(lines))


def result_lines(result: Any) -> list[str]:
    lines = [("OK: " if result.success else "FAILED: ") + result.message]
    for issue in result.issues:
        lines.append(f"  [{issue.severity.value}] {issue.message}")
    for group in getattr(result, "unparsed", []):
        first_line = group.text.splitlines()[0] if group.text else ""
        lines.append(f"  [unparsed] {first_line} (missing: {', '.join(group.missing)})")
    binding = getattr(result, "binding", None)
    if binding is not None:
        if binding.bound:
            lines.append(f"  Bound {len(binding.bound)} license(s)")
        for failure in binding.failures:
            lines.append(f"  [binding] {failure.node_id}: {failure.reason}")
    if result.backup is not None:
        lines.append(f"  {result.backup.message}")
    return lines


def cmd_import_text(ledger: NodeLedger, args: argparse.Namespace) -> int:
    result = ledger.import_text(read_input(args.source), MergePolicy(args.policy))
    emit(result.model_dump(mode="json"), args.json, result_lines(result))
    return 0 if result.success else 1


def cmd_import_json(ledger: NodeLedger, args: argparse.Namespace) -> int:
    result = ledger.import_json(read_input(args.source), MergePolicy(args.policy))
    emit(result.model_dump(mode="json"), args.json, result_lines(result))
    return 0 if result.success else 1


def cmd_import_csv(ledger: NodeLedger, args: argparse.Namespace) -> int:
    column_map = None
    if args.date_col is not None or args.node_col is not None or args.amount_col is not None:
        if None in (args.date_col, args.node_col, args.amount_col):
            raise SystemExit("--date-col, --node-col and --amount-col must be given together")
        column_map = EarningsColumnMap(
            date=args.date_col,
            node_id=args.node_col,
            amount=args.amount_col,
            license_type=args.type_col,
            status=args.status_col,
        )
    result = ledger.import_csv(read_input(args.source), MergePolicy(args.policy), column_map)
    emit(result.model_dump(mode="json"), args.json, result_lines(result))
    return 0 if result.success else 1


def cmd_import_licenses(ledger: NodeLedger, args: argparse.Namespace) -> int:
    policy = MergePolicy.REPLACE_ALL if args.overwrite else MergePolicy(args.policy)
    fmt = args.format
    if fmt is None:
        fmt = "csv" if args.source.lower().endswith(".csv") else "json"

    text = read_input(args.source)
    if fmt == "csv":
        result = ledger.import_licenses_csv(text, policy)
    else:
        result = ledger.import_licenses_json(text, policy)
    emit(result.model_dump(mode="json"), args.json, result_lines(result))
    return 0 if result.success else 1


def cmd_restore(ledger: NodeLedger, args: argparse.Namespace) -> int:
    earnings_result, licenses_result = ledger.restore_snapshot(read_input(args.source))
    emit(
        {
            "earnings": earnings_result.model_dump(mode="json"),
            "licenses": licenses_result.model_dump(mode="json"),
        },
        args.json,
        result_lines(earnings_result) + result_lines(licenses_result),
    )
    return 0 if earnings_result.success and licenses_result.success else 1


def cmd_export(ledger: NodeLedger, args: argparse.Namespace) -> int:
    if args.format == "snapshot":
        write_output(ledger.export_snapshot(), args.output)
        return 0

    if args.kind == "earnings":
        earnings = ledger.queries.load_earnings()
        if args.format == "csv":
            text = earnings_to_csv(earnings)
        elif args.format == "markdown":
            text = earnings_to_markdown(earnings)
        else:
            text = earnings_to_json(earnings)
    else:
        licenses = ledger.queries.load_licenses()
        if args.format == "csv":
            text = licenses_to_csv(licenses)
        elif args.format == "markdown":
            text = licenses_to_markdown(licenses)
        else:
            text = licenses_to_json(licenses)

    write_output(text, args.output)
    return 0


def cmd_stats(ledger: NodeLedger, args: argparse.Namespace) -> int:
    earnings = ledger.queries.get_earnings_stats()
    licenses = ledger.queries.get_license_stats()
    stale = ledger.queries.get_unbound_licenses(args.days)

    lines = [
        f"Earnings: ${earnings.total:,.2f} over {earnings.count} transaction(s)",
        f"Average: ${earnings.average:,.2f}",
        f"Unique nodes: {earnings.unique_nodes}",
    ]
    for license_type, bucket in sorted(earnings.by_license_type.items()):
        lines.append(f"  {license_type}: {bucket.count} / ${bucket.total:,.2f}")
    lines.append(
        f"Licenses: {licenses.total} ({licenses.bound} bound, {licenses.unbound} unbound, "
        f"{licenses.leased} leased, {licenses.self_run} self-run, {licenses.available} available)"
    )
    if stale:
        lines.append(f"Nodes without earnings for more than {args.days} day(s):")
        for node in stale:
            lines.append(f"  {node.node_id}: last {node.last_earning_date} ({node.days_since_last_earning}d)")

    emit(
        {
            "earnings": earnings.model_dump(mode="json"),
            "licenses": licenses.model_dump(mode="json"),
            "stale_nodes": [node.model_dump(mode="json") for node in stale],
        },
        args.json,
        lines,
    )
    return 0


def cmd_backup(ledger: NodeLedger, args: argparse.Namespace) -> int:
    if args.status:
        status = ledger.scheduler.get_status()
        emit(
            status.model_dump(mode="json"),
            args.json,
            [
                status.status_message,
                status.next_backup_info,
                f"Last backup: {status.last_backup_date or 'Never'}",
                f"Total backups: {status.total_backups}",
            ],
        )
        return 0

    sink = FileBackupSink(Path(args.directory)) if args.directory else None
    result = ledger.backup_now(sink)
    emit(result.model_dump(mode="json"), args.json, [result.message])
    return 0 if result.success else 1


def cmd_backup_config(ledger: NodeLedger, args: argparse.Namespace) -> int:
    if args.reset:
        ledger.scheduler.reset()
    settings = ledger.configure_backup(
        enabled=args.enabled,
        frequency=BackupFrequency(args.frequency) if args.frequency else None,
    )
    emit(
        settings.to_record(),
        args.json,
        [
            f"Auto-backup: {'enabled' if settings.enabled else 'disabled'}",
            f"Frequency: {settings.frequency.value}",
        ],
    )
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="node-ledger",
        description="Import, reconcile and export node earnings and license records.",
    )
    parser.add_argument("--data-dir", help="Store directory (default: from settings).")
    parser.add_argument("--json", action="store_true", help="Output machine-readable JSON.")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("import-text", help="Import earnings pasted from the node dashboard.")
    p.add_argument("source", help="Text file, or '-' for stdin.")
    p.add_argument("--policy", choices=POLICIES, default=MergePolicy.ADD_ALL.value)
    p.set_defaults(handler=cmd_import_text)

    p = sub.add_parser("import-json", help="Import a JSON array of earnings.")
    p.add_argument("source", help="JSON file, or '-' for stdin.")
    p.add_argument("--policy", choices=POLICIES, default=MergePolicy.SKIP.value)
    p.set_defaults(handler=cmd_import_json)

    p = sub.add_parser("import-csv", help="Import earnings from CSV.")
    p.add_argument("source", help="CSV file, or '-' for stdin.")
    p.add_argument("--policy", choices=POLICIES, default=MergePolicy.SKIP.value)
    p.add_argument("--date-col", type=int, help="Zero-based date column (disables detection).")
    p.add_argument("--node-col", type=int, help="Zero-based node id column.")
    p.add_argument("--amount-col", type=int, help="Zero-based amount column.")
    p.add_argument("--type-col", type=int, help="Zero-based license type column.")
    p.add_argument("--status-col", type=int, help="Zero-based status column.")
    p.set_defaults(handler=cmd_import_csv)

    p = sub.add_parser("import-licenses", help="Import licenses from JSON or CSV.")
    p.add_argument("source", help="JSON/CSV file, or '-' for stdin.")
    p.add_argument("--format", choices=["json", "csv"], help="Input format (default: by extension).")
    p.add_argument("--policy", choices=POLICIES, default=MergePolicy.SKIP.value)
    p.add_argument("--overwrite", action="store_true", help="Replace the whole inventory.")
    p.set_defaults(handler=cmd_import_licenses)

    p = sub.add_parser("restore", help="Replace all records with a snapshot.")
    p.add_argument("source", help="Snapshot file, or '-' for stdin.")
    p.set_defaults(handler=cmd_restore)

    p = sub.add_parser("export", help="Export earnings or licenses.")
    p.add_argument("--kind", choices=["earnings", "licenses"], default="earnings")
    p.add_argument("--format", choices=["json", "csv", "markdown", "snapshot"], default="json")
    p.add_argument("--output", "-o", help="Output file (default: stdout).")
    p.set_defaults(handler=cmd_export)

    p = sub.add_parser("stats", help="Show earnings and license statistics.")
    p.add_argument("--days", type=int, default=2, help="Staleness window for nodes (default: 2).")
    p.set_defaults(handler=cmd_stats)

    p = sub.add_parser("backup", help="Write a backup snapshot now, or show the schedule.")
    p.add_argument("--directory", help="Backup directory (default: from settings).")
    p.add_argument("--status", action="store_true", help="Show auto-backup status only.")
    p.set_defaults(handler=cmd_backup)

    p = sub.add_parser("backup-config", help="Configure automatic backups.")
    toggle = p.add_mutually_exclusive_group()
    toggle.add_argument("--enable", dest="enabled", action="store_const", const=True)
    toggle.add_argument("--disable", dest="enabled", action="store_const", const=False)
    p.add_argument("--frequency", choices=FREQUENCIES)
    p.add_argument("--reset", action="store_true", help="Forget settings and counter first.")
    p.set_defaults(handler=cmd_backup_config)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    settings = get_settings()
    logging.basicConfig(level=settings.app.log_level, format="%(message)s", stream=sys.stderr)

    storage = settings.storage
    if args.data_dir:
        storage = storage.model_copy(update={"data_dir": Path(args.data_dir)})

    ledger = create_ledger(settings=settings, store=create_store(storage))
    try:
        return args.handler(ledger, args)
    except FormatError as e:
        print(f"Invalid input: {e}", file=sys.stderr)
        return 2
    except StorageError as e:
        print(f"Storage error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
