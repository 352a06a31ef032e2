"""License state tracking package."""

from node_ledger.licenses.tracker import (
    LicenseTracker,
    StateInconsistencyError,
    match_license,
    node_matches_license,
)
from node_ledger.models.license import truncate_license_address

__all__ = [
    "LicenseTracker",
    "StateInconsistencyError",
    "match_license",
    "node_matches_license",
    "truncate_license_address",
]
