"""
Earning Models

An earning is one payout event for a node. Earnings are created only by
ingestion (paste, CSV, JSON); after that only status and license type
may be patched.

DESIGN DECISION: The duplicate key (node_id, amount, date) is exposed as
a property so the reconciler and the merge engine never disagree on it.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import ConfigDict, Field, field_validator, model_validator

from node_ledger.models.common import CamelModel, iso_date_to_millis, new_earning_id


class EarningStatus(str, Enum):
    """Payout status reported by the node dashboard."""
    COMPLETED = "completed"
    PENDING = "pending"
    FAILED = "failed"
    PROCESSING = "processing"


DuplicateKey = tuple[str, float, str]


class Earning(CamelModel):
    """
    A persisted earning record.

    `date` is always canonical YYYY-MM-DD; `timestamp` is derived from it
    (epoch milliseconds of UTC midnight) and only used for ordering.
    """

    id: str = Field(
        default_factory=new_earning_id,
        min_length=1,
        description="Opaque unique identifier, immutable once persisted"
    )
    node_id: str = Field(
        ...,
        min_length=1,
        description="Identifier of the producing node/license (often abbreviated)"
    )
    license_type: str = Field(
        default="Unknown",
        description="License type, from the node mapping when known"
    )
    amount: float = Field(
        ...,
        ge=0,
        description="Payout amount in dollars"
    )
    date: str = Field(
        ...,
        pattern=r"^\d{4}-\d{2}-\d{2}$",
        description="Calendar date of the payout (YYYY-MM-DD)"
    )
    status: EarningStatus = Field(
        default=EarningStatus.COMPLETED,
        description="Payout status"
    )
    timestamp: int = Field(
        default=0,
        description="Epoch milliseconds of `date`, derived"
    )

    @field_validator('date')
    @classmethod
    def validate_calendar_date(cls, v: str) -> str:
        """Reject well-shaped but impossible dates such as 2025-02-30."""
        try:
            datetime.strptime(v, "%Y-%m-%d")
        except ValueError:
            raise ValueError(f"Not a real calendar date: {v}")
        return v

    @model_validator(mode='after')
    def derive_timestamp(self) -> 'Earning':
        self.timestamp = iso_date_to_millis(self.date)
        return self

    @property
    def duplicate_key(self) -> DuplicateKey:
        return (self.node_id, self.amount, self.date)


class EarningPatch(CamelModel):
    """
    The only fields of an earning that may change after ingestion.

    Anything else (amount, date, node) is rejected so a stored record can
    never drift away from its duplicate key.
    """
    model_config = ConfigDict(extra="forbid")

    status: Optional[EarningStatus] = None
    license_type: Optional[str] = Field(default=None, min_length=1)
