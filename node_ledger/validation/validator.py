"""
Record Validation

DESIGN DECISION: Validation happens in two distinct stages per record:

STAGE 1 - SCHEMA VALIDATION:
- Required field presence
- Type checking (a bool is not an amount, NaN is not an amount)
- Format validation (license address, supported date formats)

STAGE 2 - SEMANTIC VALIDATION:
- Zero and unusually large amounts
- Future dates
- Lease details on a license that is not leased
- Duplicate license ids against the existing collection

Unlike a fail-fast validator, every rule runs and every issue is
reported. Errors block the record; warnings never do.

IMPORTANT: Validation NEVER silently fixes issues. Sanitization (which
does normalize) is a separate step that only accepts valid candidates.
"""

import math
import re
from datetime import date, timedelta
from enum import Enum
from typing import Any, Callable, Iterable, Mapping, Optional, Union

import structlog
from pydantic import ValidationError

from node_ledger.config import ValidationSettings, get_settings
from node_ledger.models.common import Clock, utc_now
from node_ledger.models.earning import Earning, EarningStatus
from node_ledger.models.license import (
    License,
    LicenseStatus,
    is_valid_license_address,
    normalize_license_id,
)
from node_ledger.models.validation import (
    BatchValidationResult,
    FormatError,
    IssueCode,
    IssueSeverity,
    RecordValidationResult,
    ValidationIssue,
)
from node_ledger.parsing.dates import normalize_date
from node_ledger.parsing.text import extract_status


logger = structlog.get_logger(__name__)

NODE_ID_HINT_RE = re.compile(r"^0x[0-9a-fA-F]")
SUPPORTED_DATE_FORMATS = "06 Dec 2025, Dec 06, 2025, 2025-12-06 or 12/06/2025"

LicenseTypeLookup = Union[Mapping[str, str], Callable[[str], Optional[str]], None]


class RecordKind(str, Enum):
    EARNING = "earning"
    LICENSE = "license"


def normalize_status(value: Any) -> EarningStatus:
    """
    Map a status string onto EarningStatus.

    Exact values win; otherwise the paste-parser keyword rules apply, and
    anything unrecognized is recorded as completed.
    """
    if isinstance(value, EarningStatus):
        return value
    if not isinstance(value, str) or not value.strip():
        return EarningStatus.COMPLETED
    try:
        return EarningStatus(value.strip().lower())
    except ValueError:
        return extract_status(value) or EarningStatus.COMPLETED


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _lookup_license_type(lookup: LicenseTypeLookup, node_id: str) -> Optional[str]:
    if lookup is None:
        return None
    if callable(lookup):
        return lookup(node_id)
    return lookup.get(node_id)


class RecordValidator:
    """
    Validates candidate earnings and licenses.

    Candidates are plain dicts with the stored (camelCase) field names, as
    produced by the parsers or read from an import file.
    """

    def __init__(
        self,
        settings: Optional[ValidationSettings] = None,
        clock: Clock = utc_now,
    ):
        self._settings = settings or get_settings().validation
        self._clock = clock

    def _issue(
        self,
        index: int,
        field: str,
        issue_type: IssueCode,
        message: str,
        severity: IssueSeverity = IssueSeverity.ERROR,
        suggested_fix: Optional[str] = None,
    ) -> ValidationIssue:
        return ValidationIssue(
            field=field,
            issue_type=issue_type,
            message=f"Entry {index + 1}: {message}",
            severity=severity,
            suggested_fix=suggested_fix,
        )

    # Earnings

    def _validate_earning_schema(self, candidate: dict, index: int) -> list[ValidationIssue]:
        """
        Stage 1: required fields, types and formats.
        """
        issues = []

        node_id = candidate.get("nodeId")
        if _is_blank(node_id):
            issues.append(self._issue(index, "nodeId", IssueCode.MISSING, "Missing node ID"))
        elif not isinstance(node_id, str):
            issues.append(self._issue(
                index, "nodeId", IssueCode.INVALID_TYPE, "Node ID must be a string",
            ))

        amount = candidate.get("amount")
        if amount is None:
            issues.append(self._issue(index, "amount", IssueCode.MISSING, "Missing amount"))
        elif not _is_number(amount):
            issues.append(self._issue(
                index, "amount", IssueCode.INVALID_TYPE,
                f"Amount must be a number, got {type(amount).__name__}",
                suggested_fix="Remove currency symbols and text from the amount",
            ))
        elif math.isnan(amount) or math.isinf(amount):
            issues.append(self._issue(
                index, "amount", IssueCode.INVALID_VALUE, f"Amount is not a finite number: {amount}",
            ))
        elif amount < 0:
            issues.append(self._issue(
                index, "amount", IssueCode.INVALID_VALUE, "Amount cannot be negative",
            ))

        raw_date = candidate.get("date")
        if _is_blank(raw_date):
            issues.append(self._issue(index, "date", IssueCode.MISSING, "Missing date"))
        elif not isinstance(raw_date, (str, date)):
            issues.append(self._issue(
                index, "date", IssueCode.INVALID_TYPE, "Date must be a string",
            ))
        elif normalize_date(raw_date) is None:
            issues.append(self._issue(
                index, "date", IssueCode.INVALID_FORMAT, f"Invalid date: {raw_date}",
                suggested_fix=f"Use one of: {SUPPORTED_DATE_FORMATS}",
            ))

        status = candidate.get("status")
        if status is not None and not isinstance(status, str):
            issues.append(self._issue(
                index, "status", IssueCode.INVALID_TYPE, "Status must be a string",
            ))

        license_type = candidate.get("licenseType")
        if license_type is not None and not isinstance(license_type, str):
            issues.append(self._issue(
                index, "licenseType", IssueCode.INVALID_TYPE, "License type must be a string",
            ))

        return issues

    def _validate_earning_semantic(self, candidate: dict, index: int) -> list[ValidationIssue]:
        """
        Stage 2: suspicious but storable values. Only warnings.
        """
        issues = []

        node_id = candidate.get("nodeId")
        if (
            isinstance(node_id, str)
            and node_id.strip()
            and not NODE_ID_HINT_RE.match(node_id.strip())
        ):
            issues.append(self._issue(
                index, "nodeId", IssueCode.SUSPICIOUS_VALUE,
                f"Node ID format looks unusual: {node_id}",
                severity=IssueSeverity.WARNING,
            ))

        amount = candidate.get("amount")
        if _is_number(amount) and math.isfinite(amount):
            if amount == 0:
                issues.append(self._issue(
                    index, "amount", IssueCode.SUSPICIOUS_VALUE, "Amount is zero",
                    severity=IssueSeverity.WARNING,
                ))
            elif amount > self._settings.max_reasonable_amount:
                issues.append(self._issue(
                    index, "amount", IssueCode.SUSPICIOUS_VALUE,
                    f"Amount (${amount:,.2f}) seems unusually high",
                    severity=IssueSeverity.WARNING,
                    suggested_fix="Please verify this amount is correct",
                ))

        normalized = normalize_date(candidate.get("date"))
        if normalized:
            today = self._clock().date()
            limit = today + timedelta(days=self._settings.future_date_tolerance_days)
            if date.fromisoformat(normalized) > limit:
                issues.append(self._issue(
                    index, "date", IssueCode.FUTURE_DATE,
                    f"Date ({normalized}) is in the future",
                    severity=IssueSeverity.WARNING,
                    suggested_fix="Please verify the date is correct",
                ))

        status = candidate.get("status")
        if isinstance(status, str) and status.strip():
            if status.strip().lower() not in {s.value for s in EarningStatus}:
                issues.append(self._issue(
                    index, "status", IssueCode.UNKNOWN_STATUS,
                    f"Unknown status '{status}', will be recorded as "
                    f"{normalize_status(status).value}",
                    severity=IssueSeverity.WARNING,
                ))

        record_id = candidate.get("id")
        if record_id is not None and not isinstance(record_id, str):
            issues.append(self._issue(
                index, "id", IssueCode.INVALID_TYPE,
                "ID should be a string, will be regenerated",
                severity=IssueSeverity.WARNING,
            ))

        return issues

    def validate_earning(self, candidate: Any, index: int = 0) -> RecordValidationResult:
        if not isinstance(candidate, dict):
            return RecordValidationResult(
                index=index,
                candidate=candidate,
                issues=[self._issue(index, "entry", IssueCode.INVALID_TYPE, "Not a valid object")],
            )

        issues = self._validate_earning_schema(candidate, index)
        issues.extend(self._validate_earning_semantic(candidate, index))
        return RecordValidationResult(index=index, candidate=candidate, issues=issues)

    def sanitize_earning(
        self,
        candidate: dict,
        license_type_lookup: LicenseTypeLookup = None,
        index: int = 0,
    ) -> Earning:
        """
        Convert a valid candidate into an Earning.

        Normalizes the date, defaults the status, resolves the license type
        (candidate value, then the node mapping, then the configured
        default) and keeps a string id when one was supplied.

        Raises:
            FormatError: If the candidate does not validate
        """
        result = self.validate_earning(candidate, index)
        if not result.is_valid:
            raise FormatError(
                "; ".join(i.message for i in result.errors),
                result.errors,
            )

        node_id = candidate["nodeId"].strip()
        license_type = candidate.get("licenseType")
        if _is_blank(license_type):
            license_type = (
                _lookup_license_type(license_type_lookup, node_id)
                or self._settings.default_license_type
            )

        fields = {
            "node_id": node_id,
            "license_type": license_type.strip(),
            "amount": float(candidate["amount"]),
            "date": normalize_date(candidate["date"]),
            "status": normalize_status(candidate.get("status")),
        }
        record_id = candidate.get("id")
        if isinstance(record_id, str) and record_id.strip():
            fields["id"] = record_id.strip()
        return Earning(**fields)

    # Licenses

    def validate_license(
        self,
        candidate: Any,
        index: int = 0,
        existing_ids: Iterable[str] = (),
    ) -> RecordValidationResult:
        if not isinstance(candidate, dict):
            return RecordValidationResult(
                index=index,
                candidate=candidate,
                issues=[self._issue(index, "entry", IssueCode.INVALID_TYPE, "Not a valid object")],
            )

        issues = []
        is_duplicate = False

        license_id = candidate.get("licenseId")
        if _is_blank(license_id):
            issues.append(self._issue(
                index, "licenseId", IssueCode.MISSING, "Missing license address",
            ))
        elif not isinstance(license_id, str):
            issues.append(self._issue(
                index, "licenseId", IssueCode.INVALID_TYPE, "License address must be a string",
            ))
        elif not is_valid_license_address(license_id):
            issues.append(self._issue(
                index, "licenseId", IssueCode.INVALID_FORMAT,
                f"Invalid license address format: {license_id}",
                suggested_fix="Must be 0x followed by 64 hexadecimal characters",
            ))
        elif normalize_license_id(license_id) in set(existing_ids):
            is_duplicate = True
            issues.append(self._issue(
                index, "licenseId", IssueCode.DUPLICATE_LICENSE,
                "License already exists in the system",
                severity=IssueSeverity.INFO,
            ))

        status = candidate.get("status")
        allowed = {s.value for s in LicenseStatus}
        if status is not None and not isinstance(status, str):
            issues.append(self._issue(
                index, "status", IssueCode.INVALID_TYPE, "Status must be a string",
                suggested_fix=f"Use one of: {', '.join(sorted(allowed))}",
            ))
        elif status is not None and status not in allowed:
            issues.append(self._issue(
                index, "status", IssueCode.INVALID_VALUE,
                f"Invalid status: {status}",
                suggested_fix=f"Use one of: {', '.join(sorted(allowed))}",
            ))

        lease_info = candidate.get("leaseInfo")
        if lease_info is not None:
            if not isinstance(lease_info, dict):
                issues.append(self._issue(
                    index, "leaseInfo", IssueCode.INVALID_TYPE, "Lease info must be an object",
                ))
            else:
                split = lease_info.get("revenueSplit")
                if split is not None and (not _is_number(split) or not 0 <= split <= 100):
                    issues.append(self._issue(
                        index, "leaseInfo.revenueSplit", IssueCode.INVALID_VALUE,
                        f"Revenue split must be a percentage between 0 and 100, got {split}",
                    ))
                if isinstance(status, str) and status in allowed and not LicenseStatus(status).is_leased:
                    issues.append(self._issue(
                        index, "leaseInfo", IssueCode.SUSPICIOUS_VALUE,
                        f"Lease details present on a license with status {status}",
                        severity=IssueSeverity.WARNING,
                    ))

        binding_info = candidate.get("bindingInfo")
        if binding_info is not None and not isinstance(binding_info, dict):
            issues.append(self._issue(
                index, "bindingInfo", IssueCode.INVALID_TYPE, "Binding info must be an object",
            ))

        return RecordValidationResult(
            index=index,
            candidate=candidate,
            issues=issues,
            is_duplicate=is_duplicate,
        )

    def sanitize_license(self, candidate: dict, index: int = 0) -> License:
        """
        Convert a valid license candidate into a License.

        `updatedAt` is set to now; `createdAt` is kept when supplied.

        Raises:
            FormatError: If the candidate does not validate
        """
        result = self.validate_license(candidate, index)
        if not result.is_valid:
            raise FormatError(
                "; ".join(i.message for i in result.errors),
                result.errors,
            )

        now = self._clock()
        data = {k: v for k, v in candidate.items() if v is not None}
        data.setdefault("createdAt", now)
        data["updatedAt"] = now
        try:
            license_ = License.model_validate(data)
        except ValidationError as e:
            issues = [
                self._issue(
                    index,
                    ".".join(str(p) for p in err["loc"]) or "license",
                    IssueCode.INVALID_VALUE,
                    err["msg"],
                )
                for err in e.errors()
            ]
            raise FormatError("; ".join(i.message for i in issues), issues)
        return license_

    # Batches

    def validate(
        self,
        candidate: Any,
        index: int = 0,
        kind: RecordKind = RecordKind.EARNING,
        existing_license_ids: Iterable[str] = (),
    ) -> RecordValidationResult:
        """Validate one candidate record of the given kind."""
        if kind == RecordKind.LICENSE:
            return self.validate_license(candidate, index, existing_license_ids)
        return self.validate_earning(candidate, index)

    def validate_batch(
        self,
        candidates: Any,
        kind: RecordKind = RecordKind.EARNING,
        existing_license_ids: Iterable[str] = (),
    ) -> BatchValidationResult:
        """
        Validate every candidate of a batch.

        A non-list input or an empty list is itself an error.
        """
        if not isinstance(candidates, list):
            return BatchValidationResult(batch_issues=[ValidationIssue(
                field="batch",
                issue_type=IssueCode.NO_DATA,
                message=f"Import data must be a list of {kind.value} records",
                severity=IssueSeverity.ERROR,
            )])
        if not candidates:
            return BatchValidationResult(batch_issues=[ValidationIssue(
                field="batch",
                issue_type=IssueCode.NO_DATA,
                message="Import data is empty",
                severity=IssueSeverity.ERROR,
            )])

        existing = {normalize_license_id(i) for i in existing_license_ids}
        results = [
            self.validate(candidate, index, kind, existing)
            for index, candidate in enumerate(candidates)
        ]
        batch = BatchValidationResult(results=results)

        logger.info(
            "batch_validated",
            kind=kind.value,
            total_count=batch.total_count,
            valid_count=batch.valid_count,
            invalid_count=batch.invalid_count,
        )
        return batch

    def summarize(self, result: BatchValidationResult) -> str:
        """
        Generate a user-friendly summary of validation results.

        This is what we show to the operator after an import attempt.
        """
        issues = result.all_issues
        errors = [i for i in issues if i.severity == IssueSeverity.ERROR]
        warnings = [i for i in issues if i.severity == IssueSeverity.WARNING]

        if result.is_valid and not warnings:
            return f"✅ All {result.total_count} entries passed validation."

        lines = []

        if errors:
            lines.append(
                f"❌ {result.invalid_count or len(errors)} of "
                f"{result.total_count} entries cannot be imported:"
            )
            for issue in errors:
                lines.append(f"   • {issue.message}")
                if issue.suggested_fix:
                    lines.append(f"     💡 {issue.suggested_fix}")

        if warnings:
            lines.append("")
            lines.append("⚠️ Please verify the following:")
            for issue in warnings:
                lines.append(f"   • {issue.message}")

        if result.valid_count:
            lines.append("")
            lines.append(f"{result.valid_count} valid entries can still be imported.")
        else:
            lines.append("")
            lines.append("Please fix the issues above before importing.")

        return "\n".join(lines).strip()
