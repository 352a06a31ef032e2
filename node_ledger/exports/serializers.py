"""
Serializers for the two collections.

JSON is full fidelity and re-imports unchanged. CSV is flattened for
spreadsheets: `Unmapped` stands in for a missing license type, `N/A` for
missing optional license fields, and amounts carry two decimals.

The snapshot is one JSON document with both collections; it is what the
backup scheduler writes and what restore reads back.
"""

import csv
import io
import json
from datetime import datetime
from typing import Any, Optional

from node_ledger import __version__
from node_ledger.models.common import utc_now
from node_ledger.models.earning import Earning
from node_ledger.models.license import License
from node_ledger.models.validation import (
    FormatError,
    IssueCode,
    IssueSeverity,
    ValidationIssue,
)
from node_ledger.parsing.csv_import import LICENSE_CSV_COLUMNS


EARNINGS_CSV_COLUMNS = ["Date", "Node ID", "License Type", "Amount ($)", "Status"]

LICENSE_EXPORT_COLUMNS = LICENSE_CSV_COLUMNS + ["Created At", "Updated At"]

SNAPSHOT_VERSION = 1

MISSING = "N/A"


def earnings_to_json(earnings: list[Earning]) -> str:
    return json.dumps([e.to_record() for e in earnings], indent=2)


def earnings_to_csv(earnings: list[Earning]) -> str:
    """Header plus one row per earning; header only when empty."""
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=EARNINGS_CSV_COLUMNS, lineterminator="\n")
    writer.writeheader()
    for earning in earnings:
        writer.writerow({
            "Date": earning.date,
            "Node ID": earning.node_id,
            "License Type": earning.license_type or "Unmapped",
            "Amount ($)": f"{earning.amount:.2f}",
            "Status": earning.status.value,
        })
    return buffer.getvalue()


def licenses_to_json(licenses: dict[str, License]) -> str:
    return json.dumps(
        {license_id: license_.to_record() for license_id, license_ in licenses.items()},
        indent=2,
    )


def _optional(value: Any) -> str:
    if value is None or value == "":
        return MISSING
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def license_to_row(license_: License) -> dict[str, str]:
    lease = license_.lease_info
    binding = license_.binding_info
    return {
        "License Address": license_.license_id,
        "Status": license_.status.value,
        "Customer Name": _optional(lease.customer if lease else None),
        "Customer Email": _optional(lease.email if lease else None),
        "Customer Phone": _optional(lease.phone if lease else None),
        "Lease Start Date": _optional(lease.start_date if lease else None),
        "Lease Duration": _optional(lease.duration if lease else None),
        "Duration Unit": lease.duration_unit if lease else "months",
        "Revenue Split (%)": _optional(lease.revenue_split if lease else None),
        "Monthly Fee ($)": _optional(lease.monthly_fee if lease else None),
        "Is Currently Bound": "Yes" if binding.is_bound else "No",
        "Phone/Device ID": _optional(binding.phone_id),
        "Notes": license_.notes,
        "Created At": license_.created_at.isoformat(),
        "Updated At": license_.updated_at.isoformat(),
    }


def licenses_to_csv(licenses: dict[str, License]) -> str:
    """Same columns as the license CSV import, plus the two timestamps."""
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=LICENSE_EXPORT_COLUMNS, lineterminator="\n")
    writer.writeheader()
    for license_ in licenses.values():
        writer.writerow(license_to_row(license_))
    return buffer.getvalue()


def export_snapshot(
    earnings: list[Earning],
    licenses: dict[str, License],
    exported_at: Optional[datetime] = None,
) -> str:
    """Both collections in one JSON document."""
    exported_at = exported_at or utc_now()
    return json.dumps(
        {
            "version": SNAPSHOT_VERSION,
            "generator": f"node-ledger {__version__}",
            "exportedAt": exported_at.isoformat(),
            "earnings": [e.to_record() for e in earnings],
            "licenses": {
                license_id: license_.to_record()
                for license_id, license_ in licenses.items()
            },
        },
        indent=2,
    )


def _snapshot_error(message: str) -> FormatError:
    return FormatError(message, [ValidationIssue(
        field="snapshot",
        issue_type=IssueCode.INVALID_FORMAT,
        message=message,
        severity=IssueSeverity.ERROR,
    )])


def parse_snapshot(text: str) -> tuple[list[Any], dict[str, Any]]:
    """
    Raw earnings and license candidates from a snapshot document.

    The candidates still go through validation before they are restored.

    Raises:
        FormatError: If the text is not a snapshot
    """
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise _snapshot_error(f"Snapshot is not valid JSON: {e.msg}")

    if not isinstance(data, dict):
        raise _snapshot_error("Snapshot must be a JSON object")

    earnings = data.get("earnings", [])
    licenses = data.get("licenses", {})
    if not isinstance(earnings, list):
        raise _snapshot_error("Snapshot 'earnings' must be an array")
    if not isinstance(licenses, dict):
        raise _snapshot_error("Snapshot 'licenses' must be an object keyed by license id")
    return earnings, licenses
