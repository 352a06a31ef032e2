"""
Tests for the record validator.

Errors block a record; warnings never do. Every issue of a batch is
returned, not just the first.
"""

import pytest

from node_ledger.config import ValidationSettings
from node_ledger.models.earning import EarningStatus
from node_ledger.models.license import LicenseStatus
from node_ledger.models.validation import IssueCode, IssueSeverity
from node_ledger.validation import (
    FormatError,
    RecordKind,
    RecordValidator,
    normalize_status,
)


class TestEarningValidation:
    """Tests for single earning candidates."""

    def test_valid_candidate(self, validator, earning_candidate):
        """Test a clean candidate has no issues."""
        result = validator.validate_earning(earning_candidate)
        assert result.is_valid
        assert result.issues == []

    def test_missing_fields_are_all_reported(self, validator):
        """Test every missing field is reported at once."""
        result = validator.validate_earning({})
        codes = {(i.field, i.issue_type) for i in result.errors}
        assert codes == {
            ("nodeId", IssueCode.MISSING),
            ("amount", IssueCode.MISSING),
            ("date", IssueCode.MISSING),
        }

    def test_non_numeric_amount(self, validator, earning_candidate):
        """Test a string amount is a type error with a fix hint."""
        earning_candidate["amount"] = "$0.07"
        result = validator.validate_earning(earning_candidate)
        [error] = result.errors
        assert error.issue_type == IssueCode.INVALID_TYPE
        assert error.suggested_fix

    def test_negative_amount(self, validator, earning_candidate):
        """Test negative amounts are rejected."""
        earning_candidate["amount"] = -1
        result = validator.validate_earning(earning_candidate)
        assert not result.is_valid
        assert result.errors[0].message == "Entry 1: Amount cannot be negative"

    def test_boolean_amount_is_not_a_number(self, validator, earning_candidate):
        """Test True is not accepted as an amount."""
        earning_candidate["amount"] = True
        assert not validator.validate_earning(earning_candidate).is_valid

    def test_bad_date(self, validator, earning_candidate):
        """Test an unparsable date is a format error."""
        earning_candidate["date"] = "2025-02-30"
        result = validator.validate_earning(earning_candidate, index=4)
        [error] = result.errors
        assert error.issue_type == IssueCode.INVALID_FORMAT
        assert error.message.startswith("Entry 5:")

    def test_zero_amount_warns(self, validator, earning_candidate):
        """Test a zero amount is valid with a warning."""
        earning_candidate["amount"] = 0
        result = validator.validate_earning(earning_candidate)
        assert result.is_valid
        assert [w.issue_type for w in result.warnings] == [IssueCode.SUSPICIOUS_VALUE]

    def test_large_amount_warns(self, clock, earning_candidate):
        """Test amounts above the configured maximum warn."""
        validator = RecordValidator(ValidationSettings(max_reasonable_amount=100), clock)
        earning_candidate["amount"] = 150.0
        result = validator.validate_earning(earning_candidate)
        assert result.is_valid
        assert "unusually high" in result.warnings[0].message

    def test_future_date_warns(self, validator, earning_candidate):
        """Test dates past the tolerance warn (clock is 2025-12-10)."""
        earning_candidate["date"] = "2025-12-11"
        assert validator.validate_earning(earning_candidate).warnings == []

        earning_candidate["date"] = "2025-12-12"
        result = validator.validate_earning(earning_candidate)
        assert result.is_valid
        assert result.warnings[0].issue_type == IssueCode.FUTURE_DATE

    def test_unusual_node_id_warns(self, validator, earning_candidate):
        """Test a node id that does not look like an address warns."""
        earning_candidate["nodeId"] = "my-node"
        result = validator.validate_earning(earning_candidate)
        assert result.is_valid
        assert result.warnings[0].field == "nodeId"

    def test_unknown_status_warns(self, validator, earning_candidate):
        """Test an unknown status warns and names the mapped status."""
        earning_candidate["status"] = "paid out"
        result = validator.validate_earning(earning_candidate)
        assert result.is_valid
        [warning] = result.warnings
        assert warning.issue_type == IssueCode.UNKNOWN_STATUS
        assert "completed" in warning.message

    def test_not_an_object(self, validator):
        """Test non-dict candidates are invalid."""
        result = validator.validate_earning(["0x01...a278", 1.0])
        assert result.errors[0].issue_type == IssueCode.INVALID_TYPE


class TestStatusNormalization:
    """Tests for normalize_status."""

    @pytest.mark.parametrize("raw,expected", [
        ("completed", EarningStatus.COMPLETED),
        ("PENDING", EarningStatus.PENDING),
        ("Payment failed", EarningStatus.FAILED),
        ("something else", EarningStatus.COMPLETED),
        (None, EarningStatus.COMPLETED),
        ("", EarningStatus.COMPLETED),
    ])
    def test_normalize(self, raw, expected):
        """Test exact values, keywords and the completed default."""
        assert normalize_status(raw) == expected


class TestEarningSanitization:
    """Tests for converting candidates into Earning records."""

    def test_sanitize_normalizes(self, validator):
        """Test date, status and defaults are normalized."""
        earning = validator.sanitize_earning({
            "nodeId": " 0x01...a278 ",
            "amount": 5,
            "date": "Dec 06, 2025",
            "status": "Pending",
        })
        assert earning.node_id == "0x01...a278"
        assert earning.amount == 5.0
        assert earning.date == "2025-12-06"
        assert earning.status == EarningStatus.PENDING
        assert earning.license_type == "Unknown"
        assert earning.id.startswith("earning-")

    def test_license_type_from_mapping(self, validator, earning_candidate):
        """Test the node mapping fills a missing license type."""
        earning = validator.sanitize_earning(earning_candidate, {"0x01...a278": "Pro"})
        assert earning.license_type == "Pro"

    def test_license_type_from_callable(self, validator, earning_candidate):
        """Test a callable lookup works like a mapping."""
        earning = validator.sanitize_earning(earning_candidate, lambda node_id: "Lite")
        assert earning.license_type == "Lite"

    def test_explicit_license_type_wins(self, validator, earning_candidate):
        """Test a candidate's own license type is kept."""
        earning_candidate["licenseType"] = "Max"
        earning = validator.sanitize_earning(earning_candidate, {"0x01...a278": "Pro"})
        assert earning.license_type == "Max"

    def test_string_id_is_kept(self, validator, earning_candidate):
        """Test a supplied id survives sanitization."""
        earning_candidate["id"] = "earning-1"
        assert validator.sanitize_earning(earning_candidate).id == "earning-1"

    def test_invalid_candidate_raises(self, validator):
        """Test sanitizing an invalid candidate raises FormatError with issues."""
        with pytest.raises(FormatError) as exc_info:
            validator.sanitize_earning({"nodeId": "0x01...a278"})
        assert len(exc_info.value.issues) == 2


class TestLicenseValidation:
    """Tests for license candidates."""

    def test_valid_license(self, validator, license_a):
        """Test a well-formed license candidate."""
        result = validator.validate_license({"licenseId": license_a, "status": "self-run"})
        assert result.is_valid
        assert not result.is_duplicate

    def test_bad_address_rejected(self, validator):
        """Test a non-hex address is a format error."""
        result = validator.validate_license({"licenseId": "0xZZ...not-hex"})
        assert not result.is_valid
        assert result.errors[0].issue_type == IssueCode.INVALID_FORMAT

    def test_bad_address_cannot_be_sanitized(self, validator):
        """Test a bad address never becomes a License."""
        with pytest.raises(FormatError):
            validator.sanitize_license({"licenseId": "0xZZ...not-hex"})

    def test_invalid_status(self, validator, license_a):
        """Test an unknown license status is an error."""
        result = validator.validate_license({"licenseId": license_a, "status": "retired"})
        assert result.errors[0].field == "status"

    @pytest.mark.parametrize("status", [["self-run"], {"value": "self-run"}, 3])
    def test_non_string_status(self, validator, license_a, status):
        """Test a status of the wrong type is a type error, even with lease details."""
        result = validator.validate_license({
            "licenseId": license_a,
            "status": status,
            "leaseInfo": {"customer": "Alice"},
        })
        assert not result.is_valid
        assert [(i.field, i.issue_type) for i in result.errors] == [
            ("status", IssueCode.INVALID_TYPE),
        ]
        assert result.warnings == []


    def test_revenue_split_range(self, validator, license_a):
        """Test the revenue split is a percentage."""
        result = validator.validate_license({
            "licenseId": license_a,
            "status": "leased-bound",
            "leaseInfo": {"customer": "Alice", "revenueSplit": 150},
        })
        assert result.errors[0].field == "leaseInfo.revenueSplit"

    def test_lease_on_self_run_warns(self, validator, license_a):
        """Test lease details on a non-leased license only warn."""
        result = validator.validate_license({
            "licenseId": license_a,
            "status": "self-run",
            "leaseInfo": {"customer": "Alice"},
        })
        assert result.is_valid
        assert result.warnings[0].field == "leaseInfo"

    def test_existing_license_is_flagged_not_blocked(self, validator, license_a):
        """Test a duplicate id is an informational flag."""
        result = validator.validate_license(
            {"licenseId": license_a.upper().replace("0X", "0x")},
            existing_ids=[license_a],
        )
        assert result.is_valid
        assert result.is_duplicate
        assert result.issues[0].severity == IssueSeverity.INFO

    def test_sanitize_license(self, validator, clock, license_a):
        """Test sanitizing normalizes the id and stamps the timestamps."""
        license_ = validator.sanitize_license({
            "licenseId": f"  {license_a.upper().replace('0X', '0x')}  ",
            "status": "leased-bound",
            "leaseInfo": {"customer": "Alice", "revenueSplit": 70},
        })
        assert license_.license_id == license_a
        assert license_.status == LicenseStatus.LEASED_BOUND
        assert license_.lease_info.revenue_split == 70
        assert license_.created_at == clock.now
        assert license_.updated_at == clock.now


class TestBatchValidation:
    """Tests for batch aggregation and the summary text."""

    def test_mixed_batch(self, validator, earning_candidate):
        """Test valid and invalid records are counted separately."""
        batch = validator.validate_batch([earning_candidate, {"nodeId": "x"}])
        assert batch.valid_count == 1
        assert batch.invalid_count == 1
        assert not batch.is_valid
        assert len(batch.valid_results) == 1

    def test_not_a_list(self, validator):
        """Test a non-list batch is a batch-level error."""
        batch = validator.validate_batch({"nodeId": "x"})
        assert batch.batch_issues[0].issue_type == IssueCode.NO_DATA
        assert batch.total_count == 0

    def test_empty_batch(self, validator):
        """Test an empty batch is a batch-level error."""
        batch = validator.validate_batch([])
        assert batch.batch_issues[0].message == "Import data is empty"

    def test_license_batch_flags_duplicates(self, validator, license_a, license_b):
        """Test duplicate flags in a license batch."""
        batch = validator.validate_batch(
            [{"licenseId": license_a}, {"licenseId": license_b}],
            kind=RecordKind.LICENSE,
            existing_license_ids=[license_a],
        )
        assert [r.is_duplicate for r in batch.results] == [True, False]
        assert batch.is_valid

    def test_license_batch_with_bad_status_type(self, validator, license_a, license_b):
        """Test one malformed license status blocks only that record."""
        batch = validator.validate_batch(
            [{"licenseId": license_a, "status": ["self-run"]},
             {"licenseId": license_b, "status": "available"}],
            kind=RecordKind.LICENSE,
        )
        assert (batch.valid_count, batch.invalid_count) == (1, 1)
        assert batch.valid_results[0].candidate["licenseId"] == license_b


    def test_summary_all_clear(self, validator, earning_candidate):
        """Test the summary for a clean batch."""
        batch = validator.validate_batch([earning_candidate])
        assert validator.summarize(batch) == "✅ All 1 entries passed validation."

    def test_summary_lists_problems(self, validator, earning_candidate):
        """Test the summary lists errors, warnings and what can still land."""
        zero = dict(earning_candidate, amount=0)
        batch = validator.validate_batch([zero, {"nodeId": "0x01...a278"}])
        summary = validator.summarize(batch)
        assert "❌ 1 of 2 entries cannot be imported:" in summary
        assert "Amount is zero" in summary
        assert "1 valid entries can still be imported." in summary
