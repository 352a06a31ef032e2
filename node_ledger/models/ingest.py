"""
Ingestion Pipeline Models

Each stage of an import (parse, reconcile, merge, binding sweep) returns
one of these so the orchestrator can report exactly what happened.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from node_ledger.models.backup import BackupResult
from node_ledger.models.common import utc_now
from node_ledger.models.earning import Earning
from node_ledger.models.license import License
from node_ledger.models.validation import ValidationIssue


class UnparsedGroup(BaseModel):
    """A block of pasted lines that could not become a record."""

    text: str = Field(..., description="Raw lines of the group, newline-joined")
    missing: list[str] = Field(
        default_factory=list,
        description="Fields that could not be extracted (nodeId, amount, date)"
    )


class ParseResult(BaseModel):
    """Output of the free-text parser."""

    success: bool
    records: list[dict] = Field(
        default_factory=list,
        description="Candidate earnings with camelCase keys"
    )
    unparsed: list[UnparsedGroup] = Field(default_factory=list)
    error: Optional[str] = None

    @property
    def parsed_count(self) -> int:
        return len(self.records)

    @property
    def error_count(self) -> int:
        return len(self.unparsed)


class DuplicateReport(BaseModel):
    """
    Duplicate reconciliation of a candidate batch.

    `flags[i]` is True when candidate i matches a committed record or an
    earlier candidate of the same batch.
    """

    flags: list[bool] = Field(default_factory=list)
    duplicates: list[Earning] = Field(default_factory=list)
    uniques: list[Earning] = Field(default_factory=list)

    @property
    def duplicate_count(self) -> int:
        return len(self.duplicates)

    @property
    def unique_count(self) -> int:
        return len(self.uniques)


class LicenseDuplicateReport(BaseModel):
    """License reconciliation, keyed on the normalized license id."""

    flags: list[bool] = Field(default_factory=list)
    duplicates: list[License] = Field(default_factory=list)
    uniques: list[License] = Field(default_factory=list)

    @property
    def duplicate_count(self) -> int:
        return len(self.duplicates)

    @property
    def unique_count(self) -> int:
        return len(self.uniques)


class EarningsMergeResult(BaseModel):
    policy: str
    added_count: int = 0
    skipped_count: int = 0
    duplicate_count: int = 0
    replaced_count: int = Field(
        default=0,
        description="Records discarded by replace-all"
    )
    total_count: int = Field(default=0, description="Collection size after the commit")
    committed: bool = Field(
        default=True,
        description="False when the merge left the collection untouched"
    )
    accepted: list[Earning] = Field(
        default_factory=list,
        description="Records newly persisted by this merge"
    )
    duplicate_ids: list[str] = Field(
        default_factory=list,
        description="Ids of accepted records flagged as duplicates"
    )


class LicenseMergeResult(BaseModel):
    policy: str
    added_count: int = 0
    updated_count: int = 0
    skipped_count: int = 0
    duplicate_count: int = 0
    replaced_count: int = 0
    total_count: int = 0
    committed: bool = True
    accepted_ids: list[str] = Field(default_factory=list)


class BindingFailure(BaseModel):
    node_id: str
    reason: str


class BindingSweepResult(BaseModel):
    """Best-effort binding update run after an earnings commit."""

    bound: list[str] = Field(
        default_factory=list,
        description="License ids marked bound"
    )
    failures: list[BindingFailure] = Field(default_factory=list)


class ImportResult(BaseModel):
    """End-to-end result of an earnings import."""

    success: bool
    message: str
    correlation_id: Optional[UUID] = None
    policy: Optional[str] = None
    parsed_count: int = 0
    valid_count: int = 0
    invalid_count: int = 0
    added_count: int = 0
    skipped_count: int = 0
    duplicate_count: int = 0
    total_count: int = 0
    unparsed: list[UnparsedGroup] = Field(default_factory=list)
    issues: list[ValidationIssue] = Field(default_factory=list)
    binding: Optional[BindingSweepResult] = None
    backup: Optional[BackupResult] = None
    completed_at: datetime = Field(default_factory=utc_now)


class LicenseImportResult(BaseModel):
    """End-to-end result of a license import."""

    success: bool
    message: str
    correlation_id: Optional[UUID] = None
    policy: Optional[str] = None
    valid_count: int = 0
    invalid_count: int = 0
    added_count: int = 0
    updated_count: int = 0
    skipped_count: int = 0
    duplicate_count: int = 0
    total_count: int = 0
    issues: list[ValidationIssue] = Field(default_factory=list)
    backup: Optional[BackupResult] = None
    completed_at: datetime = Field(default_factory=utc_now)
