"""
Read-side models returned by the query layer.

These are views computed from the persisted collections; nothing here is
stored.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from node_ledger.models.common import utc_now


class LicenseTypeTotal(BaseModel):
    count: int = 0
    total: float = 0.0


class EarningsStats(BaseModel):
    """Summary statistics over the earnings collection."""

    total: float = Field(default=0.0, description="Sum of all amounts")
    count: int = 0
    average: float = 0.0
    by_license_type: dict[str, LicenseTypeTotal] = Field(default_factory=dict)
    unique_nodes: int = 0
    first_date: Optional[str] = None
    last_date: Optional[str] = None


class LicenseStats(BaseModel):
    """Inventory breakdown of the license mapping."""

    total: int = 0
    by_status: dict[str, int] = Field(default_factory=dict)
    bound: int = 0
    unbound: int = Field(
        default=0,
        description="Leased-unbound licenses that are not currently bound"
    )
    leased: int = 0
    self_run: int = 0
    available: int = 0


class DailyEarning(BaseModel):
    date: str
    total: float = 0.0
    count: int = 0


class EarningPattern(BaseModel):
    """Day-by-day earnings of one license over a trailing window."""

    license_id: str
    days: int = Field(..., ge=1)
    daily: list[DailyEarning] = Field(default_factory=list)
    total: float = 0.0
    active_days: int = Field(
        default=0,
        description="Days in the window with at least one earning"
    )
    last_earning_date: Optional[str] = None
    is_bound: bool = Field(
        default=False,
        description="Stored binding flag, reported independently of the window"
    )


class UnboundNode(BaseModel):
    """A node whose most recent earning is older than the requested window."""

    node_id: str
    license_type: str
    last_earning_date: str
    days_since_last_earning: int


class ImportPreview(BaseModel):
    """What a batch would add, shown before the operator commits."""

    total_count: int = 0
    preview_items: list[dict] = Field(default_factory=list)
    total_amount: float = 0.0
    date_range: Optional[tuple[str, str]] = None
    unique_nodes: int = 0
    license_types: list[str] = Field(default_factory=list)
    generated_at: datetime = Field(default_factory=utc_now)
