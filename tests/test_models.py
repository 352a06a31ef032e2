"""
Tests for Node Ledger models

Test strategy:
1. Unit tests for individual components (models, validators)
2. Integration tests for flows (in-memory store, pinned clock)
3. No real data directory in tests (use tmp_path)
"""

import pytest
from datetime import datetime, timedelta, timezone
from uuid import uuid4

from pydantic import ValidationError

from node_ledger.audit import AuditLogger, create_correlation_id
from node_ledger.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)
from node_ledger.models.backup import (
    AutoBackupSettings,
    BackupFrequency,
    CHANGE_THRESHOLDS,
)
from node_ledger.models.earning import Earning, EarningPatch, EarningStatus
from node_ledger.models.license import (
    BindingInfo,
    LeaseInfo,
    License,
    LicenseStatus,
    is_valid_license_address,
)
from node_ledger.models.validation import (
    BatchValidationResult,
    IssueCode,
    IssueSeverity,
    RecordValidationResult,
    ValidationIssue,
)


class TestEarningModels:
    """Tests for earning-related Pydantic models."""

    def test_earning_creation(self):
        """Test Earning model creation with defaults."""
        earning = Earning(node_id="0x01...a278", amount=0.07, date="2025-12-06")
        assert earning.id.startswith("earning-")
        assert earning.license_type == "Unknown"
        assert earning.status == EarningStatus.COMPLETED
        assert earning.timestamp == 1764979200000

    def test_earning_strips_whitespace(self):
        """Test that whitespace is stripped from the node id."""
        earning = Earning(node_id="  0x01...a278  ", amount=1, date="2025-12-06")
        assert earning.node_id == "0x01...a278"

    def test_earning_rejects_negative_amount(self):
        """Test that negative amounts are rejected."""
        with pytest.raises(ValidationError):
            Earning(node_id="0x01...a278", amount=-0.01, date="2025-12-06")

    def test_earning_rejects_impossible_date(self):
        """Test that a well-shaped but impossible date is rejected."""
        with pytest.raises(ValidationError):
            Earning(node_id="0x01...a278", amount=1, date="2025-02-30")

    def test_earning_camel_case_record(self):
        """Test the stored form uses camelCase names."""
        record = Earning(
            id="earning-1", node_id="0x01...a278", amount=1, date="2025-12-06",
        ).to_record()
        assert record == {
            "id": "earning-1",
            "nodeId": "0x01...a278",
            "licenseType": "Unknown",
            "amount": 1.0,
            "date": "2025-12-06",
            "status": "completed",
            "timestamp": 1764979200000,
        }

    def test_duplicate_key(self):
        """Test the duplicate key ignores id and status."""
        a = Earning(node_id="n", amount=1, date="2025-12-06", status="pending")
        b = Earning(node_id="n", amount=1, date="2025-12-06")
        assert a.duplicate_key == b.duplicate_key == ("n", 1.0, "2025-12-06")

    def test_patch_forbids_other_fields(self):
        """Test only status and license type may be patched."""
        assert EarningPatch(licenseType="Pro").license_type == "Pro"
        with pytest.raises(ValidationError):
            EarningPatch.model_validate({"date": "2025-12-07"})


class TestLicenseModels:
    """Tests for license-related Pydantic models."""

    def test_license_creation(self, license_a):
        """Test License model creation with defaults."""
        license_ = License(license_id=license_a)
        assert license_.status == LicenseStatus.AVAILABLE
        assert license_.binding_info == BindingInfo()
        assert license_.lease_info is None
        assert license_.short_id == "0x01aa...a278"

    def test_license_id_normalized(self, license_a):
        """Test that the address is stored in lower case."""
        license_ = License(license_id=license_a.upper().replace("0X", "0x"))
        assert license_.license_id == license_a

    @pytest.mark.parametrize("address", [
        "0x01...a278",
        "0x" + "a" * 63,
        "0x" + "g" * 64,
        "01" + "a" * 64,
    ])
    def test_invalid_addresses(self, address):
        """Test malformed addresses are rejected."""
        assert not is_valid_license_address(address)
        with pytest.raises(ValidationError):
            License(license_id=address)

    def test_updated_before_created(self, license_a):
        """Test timestamps must be ordered."""
        now = datetime(2025, 12, 10, tzinfo=timezone.utc)
        with pytest.raises(ValidationError):
            License(license_id=license_a, created_at=now, updated_at=now - timedelta(seconds=1))

    def test_revenue_split_bounds(self):
        """Test that the revenue split is a percentage."""
        assert LeaseInfo(revenue_split=100).revenue_split == 100
        with pytest.raises(ValidationError):
            LeaseInfo(revenue_split=101)

    def test_stored_record_loads(self, license_a):
        """Test a camelCase record with nulls loads."""
        license_ = License.model_validate({
            "licenseId": license_a,
            "status": "leased-unbound",
            "leaseInfo": {"customer": "Alice", "durationUnit": "days"},
            "bindingInfo": {"isBound": False, "downtimeDays": None},
            "notes": None,
        })
        assert license_.lease_info.duration_unit == "days"
        assert license_.binding_info.downtime_days == 0
        assert license_.notes == ""

    def test_leased_statuses(self):
        """Test which statuses count as leased."""
        assert LicenseStatus.LEASED_BOUND.is_leased
        assert LicenseStatus.LEASED_UNBOUND.is_leased
        assert not LicenseStatus.SELF_RUN.is_leased
        assert not LicenseStatus.AVAILABLE.is_leased


class TestBackupModels:
    """Tests for backup settings models."""

    def test_defaults(self):
        """Test auto-backup is off by default."""
        settings = AutoBackupSettings()
        assert settings.enabled is False
        assert settings.frequency == BackupFrequency.EVERY_10_CHANGES
        assert settings.change_threshold == 10

    def test_thresholds(self):
        """Test only change-based frequencies have thresholds."""
        assert CHANGE_THRESHOLDS[BackupFrequency.EVERY_50_CHANGES] == 50
        assert BackupFrequency.DAILY not in CHANGE_THRESHOLDS
        assert BackupFrequency.MANUAL not in CHANGE_THRESHOLDS

    def test_stored_names(self):
        """Test settings load from their stored camelCase form."""
        settings = AutoBackupSettings.model_validate({
            "enabled": True,
            "frequency": "weekly",
            "lastBackupTimestamp": 1764979200000,
        })
        assert settings.frequency == BackupFrequency.WEEKLY
        assert settings.last_backup_timestamp == 1764979200000


class TestAuditModels:
    """Tests for audit-related models."""

    def test_audit_event_creation(self):
        """Test AuditEvent model creation."""
        event = AuditEvent(
            event_type=AuditEventType.PARSE_COMPLETED,
            description="Parsed 1 records from text",
        )
        assert event.event_type == AuditEventType.PARSE_COMPLETED
        assert event.severity == AuditSeverity.INFO

    def test_audit_event_to_log_dict(self):
        """Test conversion to log dictionary."""
        event = AuditEvent(
            event_type=AuditEventType.MERGE_COMMITTED,
            description="Committed earning with policy skip",
            details={"policy": "skip", "added_count": 3},
        )
        log_dict = event.to_log_dict()
        assert "event_id" in log_dict
        assert log_dict["event_type"] == "merge_committed"
        assert log_dict["details"]["policy"] == "skip"
        assert log_dict["correlation_id"] is None

    def test_audit_event_builder_merge_committed(self):
        """Test AuditEventBuilder.merge_committed."""
        correlation_id = uuid4()
        event = AuditEventBuilder.merge_committed(
            entity_type="earning",
            policy="add-all",
            added_count=2,
            skipped_count=0,
            total_count=5,
            correlation_id=correlation_id,
        )
        assert event.event_type == AuditEventType.MERGE_COMMITTED
        assert event.correlation_id == correlation_id
        assert event.details["total_count"] == 5

    def test_audit_event_builder_validation_failed(self):
        """Test invalid records make the validation event a warning."""
        event = AuditEventBuilder.validation_result(
            entity_type="earning",
            valid_count=1,
            invalid_count=1,
            issues=[],
            correlation_id=uuid4(),
        )
        assert event.event_type == AuditEventType.VALIDATION_FAILED
        assert event.severity == AuditSeverity.WARNING

    def test_audit_event_builder_binding_failed(self):
        """Test AuditEventBuilder.binding_failed."""
        event = AuditEventBuilder.binding_failed("0x01...a278", "no license matches this node")
        assert event.entity_id == "0x01...a278"
        assert event.error_code == "state_inconsistency"

    def test_audit_logger_trail(self):
        """Test the logger keeps events and filters by correlation id."""
        audit = AuditLogger()
        first = create_correlation_id()
        audit.log_parse_completed("text", 1, 0, first)
        audit.log_commit_failed("earning", "quota exceeded", create_correlation_id())

        assert len(audit.events) == 2
        assert [e.event_type for e in audit.events_for(first)] == [AuditEventType.PARSE_COMPLETED]
        assert audit.events[1].severity == AuditSeverity.ERROR


class TestValidationResult:
    """Tests for validation result models."""

    def test_record_result_has_errors(self):
        """Test errors make a record invalid."""
        result = RecordValidationResult(
            index=0,
            issues=[
                ValidationIssue(
                    field="amount",
                    issue_type=IssueCode.MISSING,
                    message="Entry 1: Missing amount",
                    severity=IssueSeverity.ERROR,
                ),
            ],
        )
        assert result.is_valid is False
        assert len(result.errors) == 1

    def test_record_result_warnings_only(self):
        """Test that warnings don't count as errors."""
        result = RecordValidationResult(
            index=0,
            issues=[
                ValidationIssue(
                    field="date",
                    issue_type=IssueCode.FUTURE_DATE,
                    message="Entry 1: Date in future",
                    severity=IssueSeverity.WARNING,
                ),
            ],
        )
        assert result.is_valid is True
        assert result.warnings[0].field == "date"

    def test_batch_counts(self):
        """Test batch aggregation."""
        batch = BatchValidationResult(results=[
            RecordValidationResult(index=0),
            RecordValidationResult(index=1, issues=[ValidationIssue(
                field="nodeId",
                issue_type=IssueCode.MISSING,
                message="Entry 2: Missing node ID",
                severity=IssueSeverity.ERROR,
            )]),
        ])
        assert (batch.valid_count, batch.invalid_count, batch.total_count) == (1, 1, 2)
        assert not batch.is_valid
        assert len(batch.all_issues) == 1


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
