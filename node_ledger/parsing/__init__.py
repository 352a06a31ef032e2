"""Text and CSV parsing package."""

from node_ledger.parsing.csv_import import (
    LICENSE_CSV_COLUMNS,
    EarningsColumnMap,
    detect_columns,
    parse_earnings_csv,
    parse_license_csv,
    read_csv_rows,
)
from node_ledger.parsing.dates import find_date, normalize_date
from node_ledger.parsing.text import (
    GroupingState,
    LineGrouper,
    example_format,
    extract_amount,
    extract_node_id,
    extract_status,
    group_lines,
    parse_earnings_text,
)

__all__ = [
    "LICENSE_CSV_COLUMNS",
    "EarningsColumnMap",
    "GroupingState",
    "LineGrouper",
    "detect_columns",
    "example_format",
    "extract_amount",
    "extract_node_id",
    "extract_status",
    "find_date",
    "group_lines",
    "normalize_date",
    "parse_earnings_csv",
    "parse_earnings_text",
    "parse_license_csv",
    "read_csv_rows",
]
