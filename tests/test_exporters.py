"""
Tests for the JSON, CSV, Markdown and snapshot exporters.
"""

import csv
import io
import json
from datetime import datetime, timezone

import pytest

from node_ledger.exports import (
    EARNINGS_CSV_COLUMNS,
    LICENSE_EXPORT_COLUMNS,
    earnings_to_csv,
    earnings_to_json,
    earnings_to_markdown,
    export_snapshot,
    license_to_row,
    licenses_to_csv,
    licenses_to_json,
    licenses_to_markdown,
    parse_snapshot,
)
from node_ledger.models.earning import Earning
from node_ledger.models.license import BindingInfo, LeaseInfo, License
from node_ledger.models.validation import FormatError
from node_ledger.parsing import parse_license_csv


GENERATED_AT = datetime(2025, 12, 10, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def earnings() -> list[Earning]:
    return [
        Earning(id="earning-1", node_id="0x01...a278", license_type="Pro", amount=0.07,
                date="2025-12-06"),
        Earning(id="earning-2", node_id="0x02...b999", license_type="", amount=12.5,
                date="2025-12-08", status="pending"),
    ]


@pytest.fixture
def licenses(license_a, license_b) -> dict[str, License]:
    return {
        license_a: License(
            license_id=license_a,
            status="leased-bound",
            lease_info=LeaseInfo(customer="Alice", email="alice@example.com", revenue_split=70.0),
            binding_info=BindingInfo(is_bound=True, phone_id="phone-1"),
            created_at=GENERATED_AT,
            updated_at=GENERATED_AT,
        ),
        license_b: License(license_id=license_b, created_at=GENERATED_AT, updated_at=GENERATED_AT),
    }


class TestEarningsExport:
    """Tests for earnings JSON and CSV."""

    def test_json_is_stored_form(self, earnings):
        """Test JSON export reloads into the same records."""
        data = json.loads(earnings_to_json(earnings))
        assert data[0]["nodeId"] == "0x01...a278"
        assert [Earning.model_validate(item) for item in data] == earnings

    def test_csv(self, earnings):
        """Test CSV columns, two-decimal amounts and the Unmapped type."""
        rows = list(csv.DictReader(io.StringIO(earnings_to_csv(earnings))))
        assert list(rows[0]) == EARNINGS_CSV_COLUMNS
        assert rows[0]["Amount ($)"] == "0.07"
        assert rows[1]["Amount ($)"] == "12.50"
        assert rows[1]["License Type"] == "Unmapped"
        assert rows[1]["Status"] == "pending"

    def test_empty_csv_is_header_only(self):
        """Test an empty collection exports just the header."""
        assert earnings_to_csv([]) == ",".join(EARNINGS_CSV_COLUMNS) + "\n"


class TestLicenseExport:
    """Tests for license JSON and CSV."""

    def test_json_keyed_by_id(self, licenses, license_a):
        """Test license JSON keeps the id-keyed map."""
        data = json.loads(licenses_to_json(licenses))
        assert data[license_a]["leaseInfo"]["customer"] == "Alice"

    def test_row_flattening(self, licenses, license_a, license_b):
        """Test N/A markers, Yes/No and whole-number percentages."""
        leased = license_to_row(licenses[license_a])
        assert leased["Revenue Split (%)"] == "70"
        assert leased["Customer Phone"] == "N/A"
        assert leased["Is Currently Bound"] == "Yes"
        assert leased["Duration Unit"] == "months"

        available = license_to_row(licenses[license_b])
        assert available["Customer Name"] == "N/A"
        assert available["Is Currently Bound"] == "No"
        assert available["Created At"] == GENERATED_AT.isoformat()

    def test_csv_reimports(self, licenses, license_a):
        """Test the license CSV can be read back by the license CSV parser."""
        text = licenses_to_csv(licenses)
        assert text.splitlines()[0] == ",".join(LICENSE_EXPORT_COLUMNS)

        candidates = {c["licenseId"]: c for c in parse_license_csv(text)}
        assert candidates[license_a]["status"] == "leased-bound"
        assert candidates[license_a]["leaseInfo"]["email"] == "alice@example.com"
        assert candidates[license_a]["leaseInfo"]["revenueSplit"] == 70.0
        assert candidates[license_a]["bindingInfo"]["phoneId"] == "phone-1"


class TestMarkdown:
    """Tests for the Markdown reports."""

    def test_earnings_report(self, earnings):
        """Test the report sections and table rows."""
        report = earnings_to_markdown(earnings, generated_at=GENERATED_AT)
        assert report.startswith("# Node Earnings Report")
        assert "- Generated: 2025-12-10 12:00 UTC" in report
        assert "- Total Earnings: $12.57" in report
        assert "| Unmapped | 1 | $12.50 | 99.4% |" in report
        assert "| 2025-12-08 | `0x02...b999` | Unmapped | $12.50 | pending |" in report

    def test_recent_transactions_newest_first(self, earnings):
        """Test the recent table is ordered by date and capped."""
        report = earnings_to_markdown(earnings, generated_at=GENERATED_AT, recent_count=1)
        assert "`0x02...b999`" in report
        assert "`0x01...a278`" not in report

    def test_empty_earnings_report(self):
        """Test an empty report says so."""
        report = earnings_to_markdown([], generated_at=GENERATED_AT)
        assert "_No earnings recorded._" in report
        assert "## By License Type" not in report

    def test_license_report(self, licenses):
        """Test the inventory report lists every status and license."""
        report = licenses_to_markdown(licenses, generated_at=GENERATED_AT)
        assert "| leased-bound | 1 |" in report
        assert "| leased-unbound | 0 |" in report
        assert "| `0x01aa...a278` | leased-bound | Alice | yes | 0 |" in report
        assert "| `0x02bb...b999` | available | - | no | 0 |" in report


class TestSnapshot:
    """Tests for the combined snapshot document."""

    def test_snapshot_round_trip(self, earnings, licenses, license_a):
        """Test a snapshot parses back into the stored forms."""
        text = export_snapshot(earnings, licenses, exported_at=GENERATED_AT)
        document = json.loads(text)
        assert document["version"] == 1
        assert document["exportedAt"] == GENERATED_AT.isoformat()
        assert document["generator"].startswith("node-ledger ")

        raw_earnings, raw_licenses = parse_snapshot(text)
        assert [item["id"] for item in raw_earnings] == ["earning-1", "earning-2"]
        assert raw_licenses[license_a]["status"] == "leased-bound"

    def test_missing_collections_default_empty(self):
        """Test a snapshot may omit a collection."""
        assert parse_snapshot('{"earnings": []}') == ([], {})

    @pytest.mark.parametrize("text", [
        "not json",
        "[]",
        '{"earnings": {}}',
        '{"licenses": []}',
    ])
    def test_invalid_snapshots(self, text):
        """Test malformed snapshots raise FormatError."""
        with pytest.raises(FormatError) as exc_info:
            parse_snapshot(text)
        assert exc_info.value.issues[0].field == "snapshot"
