"""Read-side query package."""

from node_ledger.queries.executor import (
    LedgerQueries,
    build_import_preview,
    compute_earnings_stats,
    compute_license_stats,
)

__all__ = [
    "LedgerQueries",
    "build_import_preview",
    "compute_earnings_stats",
    "compute_license_stats",
]
