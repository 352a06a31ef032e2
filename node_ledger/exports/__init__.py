"""Export package: JSON, CSV, Markdown and combined snapshots."""

from node_ledger.exports.markdown import earnings_to_markdown, licenses_to_markdown
from node_ledger.exports.serializers import (
    EARNINGS_CSV_COLUMNS,
    LICENSE_EXPORT_COLUMNS,
    earnings_to_csv,
    earnings_to_json,
    export_snapshot,
    license_to_row,
    licenses_to_csv,
    licenses_to_json,
    parse_snapshot,
)

__all__ = [
    "EARNINGS_CSV_COLUMNS",
    "LICENSE_EXPORT_COLUMNS",
    "earnings_to_csv",
    "earnings_to_json",
    "earnings_to_markdown",
    "export_snapshot",
    "license_to_row",
    "licenses_to_csv",
    "licenses_to_json",
    "licenses_to_markdown",
    "parse_snapshot",
]
