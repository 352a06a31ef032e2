"""
Duplicate reconciliation.

Earnings are matched on the composite key (nodeId, amount, date) with
exact equality, no tolerance. A candidate is a duplicate when the key
matches a committed record or any earlier candidate of the same batch.

Licenses are matched on the normalized license id.

Detection is advisory: the merge policy decides what a duplicate means.
"""

from collections.abc import Iterable, Mapping

import structlog

from node_ledger.models.earning import DuplicateKey, Earning
from node_ledger.models.ingest import DuplicateReport, LicenseDuplicateReport
from node_ledger.models.license import License


logger = structlog.get_logger(__name__)


def is_duplicate(candidate: Earning, existing: Iterable[Earning]) -> bool:
    key = candidate.duplicate_key
    return any(record.duplicate_key == key for record in existing)


def find_duplicates(
    candidates: list[Earning],
    existing: Iterable[Earning],
) -> DuplicateReport:
    seen: set[DuplicateKey] = {record.duplicate_key for record in existing}
    report = DuplicateReport()

    for candidate in candidates:
        key = candidate.duplicate_key
        if key in seen:
            report.flags.append(True)
            report.duplicates.append(candidate)
        else:
            report.flags.append(False)
            report.uniques.append(candidate)
            seen.add(key)

    if report.duplicates:
        logger.info(
            "duplicates_found",
            kind="earning",
            duplicate_count=report.duplicate_count,
            batch_size=len(candidates),
        )
    return report


def find_license_duplicates(
    candidates: list[License],
    existing: Mapping[str, License],
) -> LicenseDuplicateReport:
    seen = set(existing)
    report = LicenseDuplicateReport()

    for candidate in candidates:
        if candidate.license_id in seen:
            report.flags.append(True)
            report.duplicates.append(candidate)
        else:
            report.flags.append(False)
            report.uniques.append(candidate)
            seen.add(candidate.license_id)

    if report.duplicates:
        logger.info(
            "duplicates_found",
            kind="license",
            duplicate_count=report.duplicate_count,
            batch_size=len(candidates),
        )
    return report
