"""
Merge Engine

Applies one merge policy to a batch of sanitized candidates and commits
the post-merge collection in a single store write.

Policies:
- skip:        uniques appended, duplicates never persisted
- add-all:     everything appended, duplicates flagged for review
- replace-all: the collection becomes the candidate set, verbatim

For skip and add-all the committed collection is `existing + accepted`:
existing records (and their ids) are untouched, and a new record keeps
its candidate id only when no other record already uses it.

A StorageError from the store propagates with nothing committed.
"""

from enum import Enum

import structlog

from node_ledger.models.common import new_earning_id
from node_ledger.models.earning import Earning
from node_ledger.models.ingest import EarningsMergeResult, LicenseMergeResult
from node_ledger.models.license import License
from node_ledger.reconcile import find_duplicates, find_license_duplicates
from node_ledger.services.storage import EarningsRepository, LicenseRepository


logger = structlog.get_logger(__name__)


class MergePolicy(str, Enum):
    """How a candidate batch interacts with the persisted collection."""
    SKIP = "skip"
    ADD_ALL = "add-all"
    REPLACE_ALL = "replace-all"


def assign_ids(candidates: list[Earning], used_ids: set[str]) -> list[Earning]:
    """
    Give every candidate an id that is not in `used_ids`.

    Candidate ids are kept when free; colliding ones are regenerated.
    `used_ids` is updated in place.
    """
    assigned = []
    for candidate in candidates:
        if candidate.id in used_ids:
            candidate = candidate.model_copy(update={"id": new_earning_id()})
        used_ids.add(candidate.id)
        assigned.append(candidate)
    return assigned


class MergeEngine:
    """Merges candidate batches into the earnings and license collections."""

    def __init__(
        self,
        earnings: EarningsRepository,
        licenses: LicenseRepository,
    ):
        self._earnings = earnings
        self._licenses = licenses

    def merge_earnings(
        self,
        candidates: list[Earning],
        policy: MergePolicy,
    ) -> EarningsMergeResult:
        """
        Merge earnings under `policy` and commit. A skip merge that accepts
        nothing leaves the store untouched.

        Raises:
            StorageError: If the commit fails. Nothing is written.
        """
        existing = self._earnings.load()
        result = EarningsMergeResult(policy=policy.value)

        if policy == MergePolicy.SKIP:
            report = find_duplicates(candidates, existing)
            accepted = assign_ids(report.uniques, {e.id for e in existing})
            final = existing + accepted
            result.skipped_count = report.duplicate_count
            result.duplicate_count = report.duplicate_count

        elif policy == MergePolicy.ADD_ALL:
            report = find_duplicates(candidates, existing)
            accepted = assign_ids(candidates, {e.id for e in existing})
            final = existing + accepted
            result.duplicate_count = report.duplicate_count
            result.duplicate_ids = [
                record.id for record, flagged in zip(accepted, report.flags) if flagged
            ]

        elif policy == MergePolicy.REPLACE_ALL:
            accepted = list(candidates)
            final = list(candidates)
            result.replaced_count = len(existing)

        else:
            raise ValueError(f"Unhandled merge policy: {policy!r}")

        if policy == MergePolicy.SKIP and not accepted:
            result.committed = False
        else:
            self._earnings.save(final)

        result.accepted = accepted
        result.added_count = len(accepted)
        result.total_count = len(final)

        logger.info(
            "earnings_merged",
            policy=policy.value,
            added_count=result.added_count,
            skipped_count=result.skipped_count,
            duplicate_count=result.duplicate_count,
            total_count=result.total_count,
        )
        return result

    def merge_licenses(
        self,
        candidates: list[License],
        policy: MergePolicy,
    ) -> LicenseMergeResult:
        """
        Merge licenses under `policy` and commit.

        The license collection is a map, so add-all is an upsert: an
        existing id is overwritten (keeping its createdAt) and counted as
        updated.

        Raises:
            StorageError: If the commit fails. Nothing is written.
        """
        existing = self._licenses.load()
        report = find_license_duplicates(candidates, existing)
        result = LicenseMergeResult(policy=policy.value)

        if policy == MergePolicy.SKIP:
            final = dict(existing)
            for license_ in report.uniques:
                final[license_.license_id] = license_
            result.added_count = report.unique_count
            result.skipped_count = report.duplicate_count
            result.duplicate_count = report.duplicate_count
            result.accepted_ids = [item.license_id for item in report.uniques]

        elif policy == MergePolicy.ADD_ALL:
            final = dict(existing)
            for license_ in candidates:
                previous = final.get(license_.license_id)
                if previous is not None:
                    license_ = license_.model_copy(update={"created_at": previous.created_at})
                    result.updated_count += 1
                else:
                    result.added_count += 1
                final[license_.license_id] = license_
            result.duplicate_count = report.duplicate_count
            result.accepted_ids = list(dict.fromkeys(item.license_id for item in candidates))

        elif policy == MergePolicy.REPLACE_ALL:
            final = {item.license_id: item for item in candidates}
            result.added_count = len(final)
            result.replaced_count = len(existing)
            result.accepted_ids = list(final)

        else:
            raise ValueError(f"Unhandled merge policy: {policy!r}")

        if policy == MergePolicy.SKIP and not report.uniques:
            result.committed = False
        else:
            self._licenses.save(final)
        result.total_count = len(final)

        logger.info(
            "licenses_merged",
            policy=policy.value,
            added_count=result.added_count,
            updated_count=result.updated_count,
            skipped_count=result.skipped_count,
            total_count=result.total_count,
        )
        return result
