"""
Tests for license CRUD and binding state.
"""

import pytest

from node_ledger.licenses import (
    LicenseTracker,
    StateInconsistencyError,
    match_license,
    node_matches_license,
    truncate_license_address,
)
from node_ledger.models.license import BindingInfo, License, LicenseStatus
from node_ledger.models.validation import FormatError
from node_ledger.services.storage import DuplicateError, NotFoundError


@pytest.fixture
def tracker(repos, clock) -> LicenseTracker:
    return LicenseTracker(repos.licenses, clock)


class TestNodeMatching:
    """Tests for tying (abbreviated) node ids to licenses."""

    def test_exact_and_abbreviated(self, license_a):
        """Test both the full address and the dashboard form match."""
        assert node_matches_license(license_a, license_a)
        assert node_matches_license(license_a.upper().replace("0X", "0x"), license_a)
        assert node_matches_license("0x01...a278", license_a)
        assert not node_matches_license("0x01...ffff", license_a)
        assert not node_matches_license("my-node", license_a)

    def test_match_single_license(self, license_a, license_b):
        """Test an abbreviated id resolves to its license."""
        licenses = {
            license_a: License(license_id=license_a),
            license_b: License(license_id=license_b),
        }
        assert match_license("0x02...b999", licenses).license_id == license_b

    def test_no_match(self, license_a):
        """Test an unknown node raises StateInconsistencyError."""
        with pytest.raises(StateInconsistencyError) as exc_info:
            match_license("0x09...0000", {license_a: License(license_id=license_a)})
        assert exc_info.value.node_id == "0x09...0000"

    def test_ambiguous_match(self, license_a):
        """Test a node id that fits two licenses is rejected."""
        other = "0x01" + "c" * 58 + "a278"
        licenses = {
            license_a: License(license_id=license_a),
            other: License(license_id=other),
        }
        with pytest.raises(StateInconsistencyError, match="ambiguous"):
            match_license("0x01...a278", licenses)

    def test_truncate_address(self, license_a):
        """Test the display form of a full address."""
        assert truncate_license_address(license_a) == "0x01aa...a278"
        assert truncate_license_address("0x01") == "0x01"


class TestLicenseCrud:
    """Tests for adding, updating and deleting licenses."""

    def test_add_license(self, tracker, repos, clock, license_a):
        """Test a new license is persisted, normalized and timestamped."""
        license_ = tracker.add_license(license_a.upper().replace("0X", "0x"), "self-run")
        assert license_.license_id == license_a
        assert license_.status == LicenseStatus.SELF_RUN
        assert license_.created_at == clock.now
        assert license_.binding_info.is_bound is False
        assert license_a in repos.licenses.load()

    def test_add_duplicate(self, tracker, license_a):
        """Test adding the same address twice raises DuplicateError."""
        tracker.add_license(license_a)
        with pytest.raises(DuplicateError):
            tracker.add_license(license_a)

    def test_add_bad_address(self, tracker, repos):
        """Test a malformed address raises FormatError and stores nothing."""
        with pytest.raises(FormatError) as exc_info:
            tracker.add_license("0xZZ...not-hex")
        assert exc_info.value.issues[0].field == "licenseId"
        assert repos.licenses.load() == {}

    def test_update_license(self, tracker, clock, license_a):
        """Test status and lease details can be changed."""
        tracker.add_license(license_a)
        clock.advance(hours=1)
        updated = tracker.update_license(license_a, {
            "status": "leased-bound",
            "lease_info": {"customer": "Alice", "revenue_split": 60},
        })
        assert updated.status == LicenseStatus.LEASED_BOUND
        assert updated.lease_info.customer == "Alice"
        assert updated.updated_at == clock.now
        assert updated.created_at < updated.updated_at

    def test_update_forbidden_field(self, tracker, license_a):
        """Test the address and timestamps cannot be updated."""
        tracker.add_license(license_a)
        with pytest.raises(FormatError, match="license_id"):
            tracker.update_license(license_a, {"license_id": "0x00"})

    def test_update_invalid_value(self, tracker, license_a):
        """Test invalid values are reported as FormatError."""
        tracker.add_license(license_a)
        with pytest.raises(FormatError):
            tracker.update_license(license_a, {"status": "retired"})

    def test_update_missing(self, tracker, license_a):
        """Test updating an unknown license raises NotFoundError."""
        with pytest.raises(NotFoundError):
            tracker.update_license(license_a, {"notes": "x"})

    def test_list_and_delete(self, tracker, license_a, license_b):
        """Test listing by status and deleting."""
        tracker.add_license(license_a, "self-run")
        tracker.add_license(license_b)
        assert [item.license_id for item in tracker.list_licenses(LicenseStatus.AVAILABLE)] == [license_b]
        assert tracker.delete_license(license_a) is True
        assert tracker.delete_license(license_a) is False
        assert tracker.get_license(license_a) is None

    def test_clear_all(self, tracker, license_a):
        """Test clearing the inventory."""
        tracker.add_license(license_a)
        tracker.clear_all()
        assert tracker.list_licenses() == []


class TestBinding:
    """Tests for the binding sub-state."""

    def test_bind_sets_last_active(self, tracker, clock, license_a):
        """Test binding refreshes lastActive and keeps status."""
        tracker.add_license(license_a, "self-run")
        license_ = tracker.update_binding_status(license_a, True, phone_id="phone-1")
        assert license_.binding_info.is_bound
        assert license_.binding_info.last_active == clock.now
        assert license_.binding_info.phone_id == "phone-1"
        assert license_.status == LicenseStatus.SELF_RUN

    def test_unbind_records_downtime(self, tracker, clock, license_a):
        """Test bound -> unbound records whole days since last activity."""
        tracker.add_license(license_a)
        tracker.update_binding_status(license_a, True, phone_id="phone-1")
        bound_at = clock.now
        clock.advance(days=3, hours=5)

        license_ = tracker.update_binding_status(license_a, False)
        assert license_.binding_info.is_bound is False
        assert license_.binding_info.downtime_days == 3
        assert license_.binding_info.last_active == bound_at
        assert license_.binding_info.phone_id == "phone-1"

    def test_downtime_frozen_while_unbound(self, tracker, clock, license_a):
        """Test unbinding an unbound license keeps the recorded downtime."""
        tracker.add_license(license_a)
        tracker.update_binding_status(license_a, True)
        clock.advance(days=2)
        tracker.update_binding_status(license_a, False)
        clock.advance(days=10)
        license_ = tracker.update_binding_status(license_a, False)
        assert license_.binding_info.downtime_days == 2

    def test_rebind_clears_downtime(self, tracker, clock, license_a):
        """Test binding again resets the downtime."""
        tracker.add_license(license_a)
        tracker.update_binding_status(license_a, True)
        clock.advance(days=2)
        tracker.update_binding_status(license_a, False)
        license_ = tracker.update_binding_status(license_a, True)
        assert license_.binding_info.downtime_days == 0

    def test_binding_missing_license(self, tracker, license_a):
        """Test binding an unknown license raises NotFoundError."""
        with pytest.raises(NotFoundError):
            tracker.update_binding_status(license_a, True)


class TestBindingSweep:
    """Tests for the binding side effect of an earnings commit."""

    def test_sweep_binds_matched_licenses(self, tracker, clock, license_a, license_b):
        """Test every matched license is bound with lastActive = now."""
        tracker.add_license(license_a, binding_info=BindingInfo(phone_id="phone-1", downtime_days=4))
        tracker.add_license(license_b)
        clock.advance(hours=2)

        result = tracker.mark_bound_from_earnings(["0x01...a278", "0x01...a278"])
        assert result.bound == [license_a]
        assert result.failures == []

        bound = tracker.get_license(license_a)
        assert bound.binding_info.is_bound
        assert bound.binding_info.last_active == clock.now
        assert bound.binding_info.downtime_days == 0
        assert bound.binding_info.phone_id == "phone-1"
        assert tracker.get_license(license_b).binding_info.is_bound is False

    def test_sweep_reports_unmatched_nodes(self, tracker, license_a):
        """Test unknown and ambiguous nodes are reported, not raised."""
        tracker.add_license(license_a)
        tracker.add_license("0x01" + "c" * 58 + "a278")

        result = tracker.mark_bound_from_earnings(["0x01...a278", "0x09...0000"])
        assert result.bound == []
        assert {f.node_id for f in result.failures} == {"0x01...a278", "0x09...0000"}

    def test_sweep_with_no_nodes(self, tracker):
        """Test an empty sweep does nothing."""
        result = tracker.mark_bound_from_earnings([])
        assert result.bound == []
        assert result.failures == []
