"""
Validation Result Models

Validation issues are accumulated in full, never fail-fast: a record is
checked against every rule and all problems are reported together.

Errors block the record. Warnings never block persistence.
"""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field


class IssueSeverity(str, Enum):
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


class IssueCode(str, Enum):
    """Machine-readable issue types."""
    MISSING = "missing"
    INVALID_TYPE = "invalid_type"
    INVALID_FORMAT = "invalid_format"
    INVALID_VALUE = "invalid_value"
    SUSPICIOUS_VALUE = "suspicious_value"
    FUTURE_DATE = "future_date"
    UNKNOWN_STATUS = "unknown_status"
    DUPLICATE_LICENSE = "duplicate_license"
    NO_DATA = "no_data"


class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: IssueCode = Field(
        ...,
        description="Type of issue"
    )
    message: str = Field(
        ...,
        description="Human-readable description, prefixed with the entry number"
    )
    severity: IssueSeverity = Field(
        ...,
        description="Issue severity"
    )
    suggested_fix: Optional[str] = Field(
        default=None,
        description="Suggested fix if available"
    )


class FormatError(ValueError):
    """
    Malformed input: the record (or the whole input) cannot be used.

    Carries every issue found, not just the first.
    """

    def __init__(self, message: str, issues: Optional[list[ValidationIssue]] = None):
        super().__init__(message)
        self.issues = list(issues or [])


class RecordValidationResult(BaseModel):
    """Validation outcome for one candidate record."""

    index: int = Field(
        ...,
        ge=0,
        description="Zero-based position of the candidate in its batch"
    )
    issues: list[ValidationIssue] = Field(default_factory=list)
    is_duplicate: bool = Field(
        default=False,
        description="License id already present in the existing collection"
    )
    candidate: Any = Field(
        default=None,
        exclude=True,
        description="The raw candidate, kept for sanitization"
    )

    @property
    def errors(self) -> list[ValidationIssue]:
        return [i for i in self.issues if i.severity == IssueSeverity.ERROR]

    @property
    def warnings(self) -> list[ValidationIssue]:
        return [i for i in self.issues if i.severity == IssueSeverity.WARNING]

    @property
    def is_valid(self) -> bool:
        return not self.errors


class BatchValidationResult(BaseModel):
    """
    Aggregated validation of a batch.

    `batch_issues` holds problems with the batch itself (not a list, empty).
    """

    results: list[RecordValidationResult] = Field(default_factory=list)
    batch_issues: list[ValidationIssue] = Field(default_factory=list)

    @property
    def valid_count(self) -> int:
        return sum(1 for r in self.results if r.is_valid)

    @property
    def invalid_count(self) -> int:
        return sum(1 for r in self.results if not r.is_valid)

    @property
    def total_count(self) -> int:
        return len(self.results)

    @property
    def is_valid(self) -> bool:
        return not self.batch_issues and self.invalid_count == 0

    @property
    def valid_results(self) -> list[RecordValidationResult]:
        return [r for r in self.results if r.is_valid]

    @property
    def all_issues(self) -> list[ValidationIssue]:
        issues = list(self.batch_issues)
        for r in self.results:
            issues.extend(r.issues)
        return issues
