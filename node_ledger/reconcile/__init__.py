"""Duplicate reconciliation package."""

from node_ledger.reconcile.duplicates import (
    find_duplicates,
    find_license_duplicates,
    is_duplicate,
)

__all__ = ["find_duplicates", "find_license_duplicates", "is_duplicate"]
