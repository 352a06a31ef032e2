"""Markdown reports. Lossy and meant for reading, never re-imported."""

from datetime import datetime
from typing import Optional

from node_ledger.models.common import utc_now
from node_ledger.models.earning import Earning
from node_ledger.models.license import License, LicenseStatus
from node_ledger.queries import compute_earnings_stats, compute_license_stats


RECENT_COUNT = 10


def _money(value: float) -> str:
    return f"${value:,.2f}"


def earnings_to_markdown(
    earnings: list[Earning],
    generated_at: Optional[datetime] = None,
    recent_count: int = RECENT_COUNT,
) -> str:
    """Summary stats, a per-license-type table and the most recent earnings."""
    generated_at = generated_at or utc_now()
    stats = compute_earnings_stats(earnings)

    lines: list[str] = []
    lines.append("# Node Earnings Report")
    lines.append("")
    lines.append(f"- Generated: {generated_at.strftime('%Y-%m-%d %H:%M UTC')}")
    if stats.first_date:
        lines.append(f"- Period: {stats.first_date} to {stats.last_date}")
    lines.append("")

    lines.append("## Summary")
    lines.append(f"- Total Earnings: {_money(stats.total)}")
    lines.append(f"- Transactions: {stats.count}")
    lines.append(f"- Average per Transaction: {_money(stats.average)}")
    lines.append(f"- Unique Nodes: {stats.unique_nodes}")
    lines.append("")

    if not earnings:
        lines.append("_No earnings recorded._")
        lines.append("")
        return "\n".join(lines)

    lines.append("## By License Type")
    lines.append("| License Type | Count | Total | Share |")
    lines.append("| :--- | ---: | ---: | ---: |")
    ranked = sorted(stats.by_license_type.items(), key=lambda item: item[1].total, reverse=True)
    for license_type, bucket in ranked:
        share = (bucket.total / stats.total * 100) if stats.total else 0.0
        lines.append(
            f"| {license_type} | {bucket.count} | {_money(bucket.total)} | {share:.1f}% |"
        )
    lines.append("")

    lines.append("## Recent Transactions")
    lines.append("| Date | Node ID | License Type | Amount | Status |")
    lines.append("| :--- | :--- | :--- | ---: | :--- |")
    recent = sorted(earnings, key=lambda e: e.timestamp, reverse=True)[:recent_count]
    for earning in recent:
        lines.append(
            f"| {earning.date} | `{earning.node_id}` | {earning.license_type or 'Unmapped'} "
            f"| {_money(earning.amount)} | {earning.status.value} |"
        )
    lines.append("")

    return "\n".join(lines)


def licenses_to_markdown(
    licenses: dict[str, License],
    generated_at: Optional[datetime] = None,
) -> str:
    generated_at = generated_at or utc_now()
    stats = compute_license_stats(licenses.values())

    lines: list[str] = []
    lines.append("# License Inventory Report")
    lines.append("")
    lines.append(f"- Generated: {generated_at.strftime('%Y-%m-%d %H:%M UTC')}")
    lines.append(f"- Total Licenses: {stats.total}")
    lines.append(f"- Bound: {stats.bound}")
    lines.append(f"- Unbound (leased): {stats.unbound}")
    lines.append("")

    lines.append("## By Status")
    lines.append("| Status | Count |")
    lines.append("| :--- | ---: |")
    for status in LicenseStatus:
        lines.append(f"| {status.value} | {stats.by_status.get(status.value, 0)} |")
    lines.append("")

    if not licenses:
        return "\n".join(lines)

    lines.append("## Licenses")
    lines.append("| License | Status | Customer | Bound | Downtime (days) |")
    lines.append("| :--- | :--- | :--- | :---: | ---: |")
    for license_ in sorted(licenses.values(), key=lambda item: item.status.value):
        customer = license_.lease_info.customer if license_.lease_info else None
        binding = license_.binding_info
        lines.append(
            f"| `{license_.short_id}` | {license_.status.value} | {customer or '-'} "
            f"| {'yes' if binding.is_bound else 'no'} | {binding.downtime_days} |"
        )
    lines.append("")

    return "\n".join(lines)
