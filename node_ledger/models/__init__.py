"""
Data Models Package

This package contains all Pydantic models used in Node Ledger.
All data flowing through the system must conform to these schemas.
"""

from node_ledger.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)
from node_ledger.models.backup import (
    CHANGE_THRESHOLDS,
    AutoBackupSettings,
    BackupFrequency,
    BackupResult,
    BackupStatus,
)
from node_ledger.models.common import Clock, utc_now
from node_ledger.models.earning import DuplicateKey, Earning, EarningPatch, EarningStatus
from node_ledger.models.ingest import (
    BindingFailure,
    BindingSweepResult,
    DuplicateReport,
    EarningsMergeResult,
    ImportResult,
    LicenseImportResult,
    LicenseDuplicateReport,
    LicenseMergeResult,
    ParseResult,
    UnparsedGroup,
)
from node_ledger.models.license import (
    BindingInfo,
    LeaseInfo,
    License,
    LicenseStatus,
    is_valid_license_address,
    normalize_license_id,
    truncate_license_address,
)
from node_ledger.models.stats import (
    DailyEarning,
    EarningPattern,
    EarningsStats,
    ImportPreview,
    LicenseStats,
    LicenseTypeTotal,
    UnboundNode,
)
from node_ledger.models.validation import (
    BatchValidationResult,
    FormatError,
    IssueCode,
    IssueSeverity,
    RecordValidationResult,
    ValidationIssue,
)

__all__ = [
    # Earning models
    "DuplicateKey",
    "Earning",
    "EarningPatch",
    "EarningStatus",
    # License models
    "BindingInfo",
    "LeaseInfo",
    "License",
    "LicenseStatus",
    "is_valid_license_address",
    "normalize_license_id",
    "truncate_license_address",
    # Validation models
    "BatchValidationResult",
    "FormatError",
    "IssueCode",
    "IssueSeverity",
    "RecordValidationResult",
    "ValidationIssue",
    # Ingestion models
    "BindingFailure",
    "BindingSweepResult",
    "DuplicateReport",
    "EarningsMergeResult",
    "ImportResult",
    "LicenseImportResult",
    "LicenseDuplicateReport",
    "LicenseMergeResult",
    "ParseResult",
    "UnparsedGroup",
    # Backup models
    "CHANGE_THRESHOLDS",
    "AutoBackupSettings",
    "BackupFrequency",
    "BackupResult",
    "BackupStatus",
    # Read models
    "DailyEarning",
    "EarningPattern",
    "EarningsStats",
    "ImportPreview",
    "LicenseStats",
    "LicenseTypeTotal",
    "UnboundNode",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
    # Common
    "Clock",
    "utc_now",
]
