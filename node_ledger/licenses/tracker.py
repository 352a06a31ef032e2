"""
License State Tracker

Owns license CRUD and the binding sub-state.

Lifecycle status (self-run, leased-bound, leased-unbound, available) is
set directly by the operator; there is no enforced transition graph.

Binding is tracked separately:
- a license becomes bound as a side effect of an earnings commit, for
  every license matched by a nodeId of the newly accepted earnings
- it becomes unbound only through an explicit update_binding_status call;
  on that bound -> unbound transition the downtime in whole days since
  the last activity is recorded and stays frozen until it binds again

Node ids on earnings are usually abbreviated ("0x01...a278"), so a node
is matched to a license by exact id or by prefix/suffix of the full
address. No match, or more than one, is a StateInconsistencyError; the
binding sweep logs it per node and carries on.
"""

import re
from collections.abc import Iterable, Mapping
from datetime import datetime
from typing import Any, Optional

import structlog
from pydantic import ValidationError

from node_ledger.models.common import Clock, utc_now
from node_ledger.models.ingest import BindingFailure, BindingSweepResult
from node_ledger.models.license import (
    BindingInfo,
    LeaseInfo,
    License,
    LicenseStatus,
    is_valid_license_address,
    normalize_license_id,
)
from node_ledger.models.validation import (
    FormatError,
    IssueCode,
    IssueSeverity,
    ValidationIssue,
)
from node_ledger.services.storage import (
    DuplicateError,
    LicenseRepository,
    NotFoundError,
)


logger = structlog.get_logger(__name__)

ABBREVIATED_ID_RE = re.compile(r"^(0x[0-9a-f]{2,})\.{2,}([0-9a-f]{2,})$")

_MUTABLE_FIELDS = {"status", "lease_info", "binding_info", "notes"}


class StateInconsistencyError(Exception):
    """A node id could not be tied to exactly one license."""

    def __init__(self, node_id: str, reason: str):
        super().__init__(f"{node_id}: {reason}")
        self.node_id = node_id
        self.reason = reason


def node_matches_license(node_id: str, license_id: str) -> bool:
    """Whether a (possibly abbreviated) node id refers to `license_id`."""
    normalized = node_id.strip().lower()
    license_id = normalize_license_id(license_id)
    if normalized == license_id:
        return True
    match = ABBREVIATED_ID_RE.match(normalized)
    if not match:
        return False
    prefix, suffix = match.groups()
    return license_id.startswith(prefix) and license_id.endswith(suffix)


def match_license(node_id: str, licenses: Mapping[str, License]) -> License:
    """
    The single license a node id refers to.

    Raises:
        StateInconsistencyError: If no license, or more than one, matches
    """
    normalized = node_id.strip().lower()
    if normalized in licenses:
        return licenses[normalized]

    match = ABBREVIATED_ID_RE.match(normalized)
    if not match:
        raise StateInconsistencyError(node_id, "no license with this id")

    prefix, suffix = match.groups()
    found = [
        license_ for license_id, license_ in licenses.items()
        if license_id.startswith(prefix) and license_id.endswith(suffix)
    ]
    if not found:
        raise StateInconsistencyError(node_id, "no license matches this node")
    if len(found) > 1:
        raise StateInconsistencyError(
            node_id, f"ambiguous: {len(found)} licenses match this node",
        )
    return found[0]


def _downtime_days(since: Optional[datetime], now: datetime) -> int:
    if since is None:
        return 0
    return max(0, int((now - since).total_seconds() // 86400))


class LicenseTracker:
    """License CRUD plus binding updates, over the license repository."""

    def __init__(self, repository: LicenseRepository, clock: Clock = utc_now):
        self._repository = repository
        self._clock = clock

    # CRUD

    def add_license(
        self,
        license_id: str,
        status: LicenseStatus = LicenseStatus.AVAILABLE,
        lease_info: Optional[LeaseInfo] = None,
        binding_info: Optional[BindingInfo] = None,
        notes: str = "",
    ) -> License:
        """
        Add a license to the inventory.

        Raises:
            FormatError: If the address is not 0x + 64 hex characters
            DuplicateError: If the license already exists
        """
        if not is_valid_license_address(license_id):
            raise FormatError(
                "Invalid license address format. Must be 0x followed by 64 hexadecimal characters.",
                [ValidationIssue(
                    field="licenseId",
                    issue_type=IssueCode.INVALID_FORMAT,
                    message=f"Invalid license address format: {license_id}",
                    severity=IssueSeverity.ERROR,
                )],
            )

        normalized = normalize_license_id(license_id)
        licenses = self._repository.load()
        if normalized in licenses:
            raise DuplicateError(f"License already exists: {normalized}")

        now = self._clock()
        license_ = License(
            license_id=normalized,
            status=LicenseStatus(status),
            lease_info=lease_info,
            binding_info=binding_info or BindingInfo(),
            notes=notes,
            created_at=now,
            updated_at=now,
        )
        licenses[normalized] = license_
        self._repository.save(licenses)

        logger.info("license_added", license_id=license_.short_id, status=license_.status.value)
        return license_

    def get_license(self, license_id: str) -> Optional[License]:
        return self._repository.load().get(normalize_license_id(license_id))

    def list_licenses(self, status: Optional[LicenseStatus] = None) -> list[License]:
        licenses = list(self._repository.load().values())
        if status is not None:
            licenses = [item for item in licenses if item.status == status]
        return licenses

    def update_license(self, license_id: str, updates: dict[str, Any]) -> License:
        """
        Apply field updates (status, lease_info, binding_info, notes).

        Raises:
            NotFoundError: If the license does not exist
            FormatError: If an update names another field or an invalid value
        """
        unknown = set(updates) - _MUTABLE_FIELDS
        if unknown:
            raise FormatError(
                f"Cannot update license fields: {', '.join(sorted(unknown))}",
                [ValidationIssue(
                    field=name,
                    issue_type=IssueCode.INVALID_VALUE,
                    message=f"Field '{name}' cannot be updated",
                    severity=IssueSeverity.ERROR,
                ) for name in sorted(unknown)],
            )

        normalized = normalize_license_id(license_id)
        licenses = self._repository.load()
        current = licenses.get(normalized)
        if current is None:
            raise NotFoundError(f"License not found: {normalized}")

        data = current.model_dump()
        data.update(updates)
        data["updated_at"] = self._clock()
        try:
            updated = License.model_validate(data)
        except ValidationError as e:
            raise FormatError(
                f"Invalid license update: {e.error_count()} error(s)",
                [ValidationIssue(
                    field=".".join(str(p) for p in err["loc"]) or "license",
                    issue_type=IssueCode.INVALID_VALUE,
                    message=err["msg"],
                    severity=IssueSeverity.ERROR,
                ) for err in e.errors()],
            )

        licenses[normalized] = updated
        self._repository.save(licenses)

        logger.info("license_updated", license_id=updated.short_id, fields=sorted(updates))
        return updated

    def delete_license(self, license_id: str) -> bool:
        normalized = normalize_license_id(license_id)
        licenses = self._repository.load()
        if normalized not in licenses:
            return False
        del licenses[normalized]
        self._repository.save(licenses)
        logger.info("license_deleted", license_id=normalized)
        return True

    def clear_all(self) -> None:
        self._repository.clear()
        logger.info("licenses_cleared")

    # Binding

    def update_binding_status(
        self,
        license_id: str,
        is_bound: bool,
        phone_id: Optional[str] = None,
    ) -> License:
        """
        Set the binding flag explicitly.

        Binding refreshes lastActive and clears the downtime. Unbinding a
        bound license records the whole days since lastActive. A None
        phone_id keeps the current one.

        Raises:
            NotFoundError: If the license does not exist
        """
        normalized = normalize_license_id(license_id)
        licenses = self._repository.load()
        current = licenses.get(normalized)
        if current is None:
            raise NotFoundError(f"License not found: {normalized}")

        now = self._clock()
        previous = current.binding_info
        phone = phone_id if phone_id is not None else previous.phone_id

        if is_bound:
            binding = BindingInfo(
                is_bound=True,
                phone_id=phone,
                last_active=now,
                downtime_days=0,
            )
        else:
            downtime = previous.downtime_days
            if previous.is_bound:
                downtime = _downtime_days(previous.last_active, now)
            binding = BindingInfo(
                is_bound=False,
                phone_id=phone,
                last_active=previous.last_active,
                downtime_days=downtime,
            )

        updated = current.model_copy(update={"binding_info": binding, "updated_at": now})
        licenses[normalized] = updated
        self._repository.save(licenses)

        logger.info(
            "binding_updated",
            license_id=updated.short_id,
            is_bound=is_bound,
            downtime_days=binding.downtime_days,
        )
        return updated

    def mark_bound_from_earnings(self, node_ids: Iterable[str]) -> BindingSweepResult:
        """
        Binding side effect of an earnings commit.

        Every license matched by one of the node ids becomes bound with
        lastActive = now. Nodes that match no license (or several) are
        logged and reported, never raised. All updates go out in one
        store write.
        """
        result = BindingSweepResult()
        distinct = list(dict.fromkeys(n for n in node_ids if n))
        if not distinct:
            return result

        licenses = self._repository.load()
        now = self._clock()
        touched: list[str] = []

        for node_id in distinct:
            try:
                license_ = match_license(node_id, licenses)
            except StateInconsistencyError as e:
                logger.warning("binding_skipped", node_id=node_id, reason=e.reason)
                result.failures.append(BindingFailure(node_id=node_id, reason=e.reason))
                continue

            binding = BindingInfo(
                is_bound=True,
                phone_id=license_.binding_info.phone_id,
                last_active=now,
                downtime_days=0,
            )
            licenses[license_.license_id] = license_.model_copy(
                update={"binding_info": binding, "updated_at": now}
            )
            touched.append(license_.license_id)

        if touched:
            self._repository.save(licenses)
            result.bound = list(dict.fromkeys(touched))

        logger.info(
            "binding_sweep_completed",
            node_count=len(distinct),
            bound_count=len(result.bound),
            failure_count=len(result.failures),
        )
        return result
