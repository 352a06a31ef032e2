"""Record validation package."""

from node_ledger.models.validation import FormatError
from node_ledger.validation.validator import (
    RecordKind,
    RecordValidator,
    normalize_status,
)

__all__ = [
    "FormatError",
    "RecordKind",
    "RecordValidator",
    "normalize_status",
]
