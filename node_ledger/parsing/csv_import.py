"""
CSV import.

Earnings CSV: the header row is mapped to fields automatically
(date / node / license type / amount / status) or through an explicit
EarningsColumnMap. Rows become candidate dicts for the validator; values
that cannot be converted are passed through raw so the validator can
report them.

License CSV: the columns written by the license exporter, matched by
exact (case-insensitive) header name.
"""

import csv
import io
from typing import Optional

import structlog
from pydantic import BaseModel, Field

from node_ledger.models.license import LicenseStatus
from node_ledger.models.validation import (
    FormatError,
    IssueCode,
    IssueSeverity,
    ValidationIssue,
)


logger = structlog.get_logger(__name__)


MISSING_MARKERS = {"", "n/a"}


class EarningsColumnMap(BaseModel):
    """Zero-based column indices of an earnings CSV."""

    date: int = Field(..., ge=0)
    node_id: int = Field(..., ge=0)
    amount: int = Field(..., ge=0)
    license_type: Optional[int] = Field(default=None, ge=0)
    status: Optional[int] = Field(default=None, ge=0)


def read_csv_rows(text: str) -> list[list[str]]:
    """All non-blank rows of a CSV document (quoted fields, doubled quotes)."""
    reader = csv.reader(io.StringIO(text.lstrip("\ufeff")))
    return [row for row in reader if any(cell.strip() for cell in row)]


def detect_columns(header_row: list[str]) -> Optional[EarningsColumnMap]:
    """
    Guess the column map from a header row.

    Each header is matched against the field rules in order and assigned
    to the first rule it satisfies. Returns None when date, node or
    amount is not found.
    """
    if not header_row:
        return None

    found: dict[str, int] = {}
    for index, header in enumerate(header_row):
        normalized = header.strip().lower()

        if "date" in normalized or normalized == "day":
            found["date"] = index
        elif "node" in normalized or "id" in normalized:
            found["node_id"] = index
        elif "license" in normalized or "type" in normalized:
            found["license_type"] = index
        elif "amount" in normalized or "$" in normalized or normalized == "earnings":
            found["amount"] = index
        elif "status" in normalized:
            found["status"] = index

    if not {"date", "node_id", "amount"} <= found.keys():
        return None
    return EarningsColumnMap(**found)


def _cell(row: list[str], index: Optional[int]) -> Optional[str]:
    if index is None or index >= len(row):
        return None
    value = row[index].strip()
    return value or None


def _clean_amount(raw: Optional[str]):
    if raw is None:
        return None
    cleaned = raw.replace("$", "").replace(",", "").strip()
    try:
        return float(cleaned)
    except ValueError:
        return raw


def row_to_candidate(row: list[str], column_map: EarningsColumnMap) -> dict:
    candidate = {
        "nodeId": _cell(row, column_map.node_id),
        "amount": _clean_amount(_cell(row, column_map.amount)),
        "date": _cell(row, column_map.date),
    }
    status = _cell(row, column_map.status)
    if status is not None:
        candidate["status"] = status
    license_type = _cell(row, column_map.license_type)
    if license_type is not None:
        candidate["licenseType"] = license_type
    return candidate


def parse_earnings_csv(
    text: str,
    column_map: Optional[EarningsColumnMap] = None,
) -> tuple[list[dict], EarningsColumnMap]:
    """
    Parse an earnings CSV document into candidate dicts.

    Raises:
        FormatError: If the document has no data rows, or the columns
            cannot be detected and no explicit map was given
    """
    rows = read_csv_rows(text or "")
    if len(rows) < 2:
        raise FormatError(
            "CSV file must have at least a header row and one data row",
            [ValidationIssue(
                field="csv",
                issue_type=IssueCode.NO_DATA,
                message="CSV file has no data rows",
                severity=IssueSeverity.ERROR,
            )],
        )

    header, data_rows = rows[0], rows[1:]
    if column_map is None:
        column_map = detect_columns(header)
        if column_map is None:
            raise FormatError(
                "Could not detect the date, node and amount columns",
                [ValidationIssue(
                    field="header",
                    issue_type=IssueCode.MISSING,
                    message=f"Unrecognized CSV header: {', '.join(header)}",
                    severity=IssueSeverity.ERROR,
                    suggested_fix="Supply an explicit column map",
                )],
            )

    candidates = [row_to_candidate(row, column_map) for row in data_rows]
    logger.info("earnings_csv_parsed", row_count=len(candidates), columns=column_map.model_dump())
    return candidates, column_map


# License CSV

LICENSE_CSV_COLUMNS = [
    "License Address",
    "Status",
    "Customer Name",
    "Customer Email",
    "Customer Phone",
    "Lease Start Date",
    "Lease Duration",
    "Duration Unit",
    "Revenue Split (%)",
    "Monthly Fee ($)",
    "Is Currently Bound",
    "Phone/Device ID",
    "Notes",
]

DEFAULT_REVENUE_SPLIT = 70.0


def _license_cell(row: list[str], columns: dict[str, int], name: str) -> Optional[str]:
    index = columns.get(name)
    if index is None or index >= len(row):
        return None
    value = row[index].strip()
    return None if value.lower() in MISSING_MARKERS else value


def _number(raw: Optional[str]) -> Optional[float]:
    if raw is None:
        return None
    try:
        return float(raw.replace("$", "").replace("%", "").replace(",", ""))
    except ValueError:
        return None


def license_row_to_candidate(row: list[str], columns: dict[str, int]) -> dict:
    """One license CSV row as a license candidate dict (camelCase keys)."""
    def get(name: str) -> Optional[str]:
        return _license_cell(row, columns, name)

    # Unknown statuses fall back to available.
    status = get("Status")
    if status not in {s.value for s in LicenseStatus}:
        status = LicenseStatus.AVAILABLE.value

    candidate = {
        "licenseId": get("License Address"),
        "status": status,
        "leaseInfo": None,
        "bindingInfo": {
            "isBound": (get("Is Currently Bound") or "").lower() in {"yes", "true"},
            "phoneId": get("Phone/Device ID"),
            "lastActive": None,
            "downtimeDays": 0,
        },
        "notes": get("Notes") or "",
    }

    customer = get("Customer Name")
    if customer and status.startswith("leased"):
        revenue_split = _number(get("Revenue Split (%)"))
        candidate["leaseInfo"] = {
            "customer": customer,
            "email": get("Customer Email"),
            "phone": get("Customer Phone"),
            "startDate": get("Lease Start Date"),
            "duration": _number(get("Lease Duration")),
            "durationUnit": get("Duration Unit") or "months",
            "revenueSplit": DEFAULT_REVENUE_SPLIT if revenue_split is None else revenue_split,
            "monthlyFee": _number(get("Monthly Fee ($)")),
        }
    return candidate


def parse_license_csv(text: str) -> list[dict]:
    """
    Parse a license CSV document into candidate dicts.

    Raises:
        FormatError: If there are no data rows or no License Address column
    """
    rows = read_csv_rows(text or "")
    if len(rows) < 2:
        raise FormatError(
            "CSV file must have at least a header row and one data row",
            [ValidationIssue(
                field="csv",
                issue_type=IssueCode.NO_DATA,
                message="CSV file has no data rows",
                severity=IssueSeverity.ERROR,
            )],
        )

    header = [h.strip().lower() for h in rows[0]]
    columns = {
        name: header.index(name.lower())
        for name in LICENSE_CSV_COLUMNS
        if name.lower() in header
    }
    if "License Address" not in columns:
        raise FormatError(
            'Required column "License Address" not found',
            [ValidationIssue(
                field="header",
                issue_type=IssueCode.MISSING,
                message='Missing required "License Address" column',
                severity=IssueSeverity.ERROR,
            )],
        )

    candidates = [license_row_to_candidate(row, columns) for row in rows[1:]]
    logger.info("license_csv_parsed", row_count=len(candidates))
    return candidates
