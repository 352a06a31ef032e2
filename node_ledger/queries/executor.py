"""
Query Layer

DESIGN DECISION: Reads are DETERMINISTIC views over the stored
collections. Nothing here writes to the store.

The stored binding flag (bindingInfo.isBound) and the earnings-derived
views ("earned in the last 24h", "no earnings for N days") are separate
read paths. They can disagree, and callers see both.
"""

from collections.abc import Iterable, Mapping
from datetime import date, datetime, timedelta
from typing import Any, Optional, Union

from node_ledger.licenses import node_matches_license
from node_ledger.models.common import Clock, epoch_millis, utc_now
from node_ledger.models.earning import Earning
from node_ledger.models.license import License, LicenseStatus, normalize_license_id
from node_ledger.models.stats import (
    DailyEarning,
    EarningPattern,
    EarningsStats,
    ImportPreview,
    LicenseStats,
    LicenseTypeTotal,
    UnboundNode,
)
from node_ledger.services.storage import Repositories


PREVIEW_COUNT = 5

Candidate = Union[Earning, Mapping[str, Any]]


def compute_earnings_stats(earnings: list[Earning]) -> EarningsStats:
    """Totals, average, per-license-type breakdown and node count."""
    if not earnings:
        return EarningsStats()

    total = sum(e.amount for e in earnings)
    by_type: dict[str, LicenseTypeTotal] = {}
    for earning in earnings:
        bucket = by_type.setdefault(earning.license_type or "Unmapped", LicenseTypeTotal())
        bucket.count += 1
        bucket.total += earning.amount

    dates = sorted(e.date for e in earnings)
    return EarningsStats(
        total=total,
        count=len(earnings),
        average=total / len(earnings),
        by_license_type=by_type,
        unique_nodes=len({e.node_id for e in earnings}),
        first_date=dates[0],
        last_date=dates[-1],
    )


def compute_license_stats(licenses: Iterable[License]) -> LicenseStats:
    stats = LicenseStats(by_status={status.value: 0 for status in LicenseStatus})
    for license_ in licenses:
        stats.total += 1
        stats.by_status[license_.status.value] += 1
        if license_.binding_info.is_bound:
            stats.bound += 1
        if license_.status == LicenseStatus.LEASED_UNBOUND and not license_.binding_info.is_bound:
            stats.unbound += 1
        if license_.status.is_leased:
            stats.leased += 1
        if license_.status == LicenseStatus.SELF_RUN:
            stats.self_run += 1
        if license_.status == LicenseStatus.AVAILABLE:
            stats.available += 1
    return stats


def _field(candidate: Candidate, name: str, alias: str) -> Any:
    if isinstance(candidate, Earning):
        return getattr(candidate, name)
    return candidate.get(alias)


def build_import_preview(
    candidates: list[Candidate],
    now: Optional[datetime] = None,
    preview_count: int = PREVIEW_COUNT,
) -> ImportPreview:
    """
    Summary of a batch before it is committed.

    Accepts sanitized earnings or raw candidate dicts (camelCase keys).
    """
    now = now or utc_now()
    if not candidates:
        return ImportPreview(generated_at=now)

    amounts = []
    for candidate in candidates:
        amount = _field(candidate, "amount", "amount")
        amounts.append(amount if isinstance(amount, (int, float)) else 0)

    dates = sorted(
        d for d in (_field(c, "date", "date") for c in candidates)
        if isinstance(d, str) and d
    )
    license_types = list(dict.fromkeys(
        _field(c, "license_type", "licenseType") or "Unknown" for c in candidates
    ))
    preview_items = [
        c.to_record() if isinstance(c, Earning) else dict(c)
        for c in candidates[:preview_count]
    ]

    return ImportPreview(
        total_count=len(candidates),
        preview_items=preview_items,
        total_amount=sum(amounts),
        date_range=(dates[0], dates[-1]) if dates else None,
        unique_nodes=len({_field(c, "node_id", "nodeId") for c in candidates}),
        license_types=license_types,
        generated_at=now,
    )


class LedgerQueries:
    """
    Read operations over the persisted earnings and licenses.

    Consumers outside the engine (dashboards, reports) go through here
    and never touch the store directly.
    """

    def __init__(self, repositories: Repositories, clock: Clock = utc_now):
        self._repos = repositories
        self._clock = clock

    def load_earnings(self) -> list[Earning]:
        return self._repos.earnings.load()

    def load_licenses(self) -> dict[str, License]:
        return self._repos.licenses.load()

    def get_earnings_stats(self) -> EarningsStats:
        return compute_earnings_stats(self.load_earnings())

    def get_license_stats(self) -> LicenseStats:
        return compute_license_stats(self.load_licenses().values())

    def get_license_earning_pattern(self, license_id: str, days: int = 30) -> EarningPattern:
        """
        Day-by-day earnings of one license over the last `days` days,
        today included. Days without earnings appear with a zero total.
        """
        if days < 1:
            raise ValueError("days must be at least 1")

        license_id = normalize_license_id(license_id)
        today = self._clock().date()
        start = today - timedelta(days=days - 1)

        matching = [
            e for e in self.load_earnings()
            if node_matches_license(e.node_id, license_id)
        ]

        daily = {
            (start + timedelta(days=offset)).isoformat(): DailyEarning(
                date=(start + timedelta(days=offset)).isoformat()
            )
            for offset in range(days)
        }
        for earning in matching:
            bucket = daily.get(earning.date)
            if bucket is not None:
                bucket.total += earning.amount
                bucket.count += 1

        license_ = self.load_licenses().get(license_id)
        return EarningPattern(
            license_id=license_id,
            days=days,
            daily=list(daily.values()),
            total=sum(d.total for d in daily.values()),
            active_days=sum(1 for d in daily.values() if d.count),
            last_earning_date=max((e.date for e in matching), default=None),
            is_bound=license_.binding_info.is_bound if license_ else False,
        )

    def get_unbound_licenses(self, days: int = 2) -> list[UnboundNode]:
        """
        Nodes whose most recent earning is more than `days` days old,
        most stale first.
        """
        today = self._clock().date()
        latest: dict[str, Earning] = {}
        for earning in self.load_earnings():
            current = latest.get(earning.node_id)
            if current is None or earning.date > current.date:
                latest[earning.node_id] = earning

        stale = []
        for node_id, earning in latest.items():
            since = (today - date.fromisoformat(earning.date)).days
            if since > days:
                stale.append(UnboundNode(
                    node_id=node_id,
                    license_type=earning.license_type,
                    last_earning_date=earning.date,
                    days_since_last_earning=since,
                ))
        return sorted(stale, key=lambda n: n.days_since_last_earning, reverse=True)

    def earned_within(self, node_id: str, hours: int = 24) -> bool:
        """
        Whether the node has an earning dated within the last `hours`.

        Earnings carry a date only, so each one counts as UTC midnight of
        its day.
        """
        cutoff = epoch_millis(self._clock() - timedelta(hours=hours))
        return any(
            e.timestamp >= cutoff
            for e in self.load_earnings()
            if e.node_id == node_id or node_matches_license(e.node_id, node_id)
        )

    def generate_import_preview(self, candidates: list[Candidate]) -> ImportPreview:
        return build_import_preview(candidates, now=self._clock())
