"""
License Models

A license is one node license in the operator's inventory, keyed by its
full on-chain address. The collection is a mapping, never a list, so the
address is unique by construction.

License Status Types:
- "self-run": Operator runs this license themselves
- "leased-bound": Leased to a customer and actively earning
- "leased-unbound": Leased to a customer but not earning (revenue loss)
- "available": Not leased, available for lease

Binding (is the license producing earnings right now?) is tracked in
BindingInfo, independently of the status above.
"""

import re
from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import Field, field_validator, model_validator

from node_ledger.models.common import CamelModel, ensure_utc, utc_now


LICENSE_ADDRESS_RE = re.compile(r"^0x[a-fA-F0-9]{64}$")


def normalize_license_id(value: str) -> str:
    return value.strip().lower()


def is_valid_license_address(value: object) -> bool:
    """True for `0x` followed by exactly 64 hexadecimal characters."""
    if not isinstance(value, str):
        return False
    return bool(LICENSE_ADDRESS_RE.match(value.strip()))


def truncate_license_address(address: str) -> str:
    """Display form of a full address, e.g. "0x01ab...a278"."""
    if not address or len(address) < 10:
        return address
    return f"{address[:6]}...{address[-4:]}"


class LicenseStatus(str, Enum):
    """Lifecycle status, set directly by the operator or by import."""
    SELF_RUN = "self-run"
    LEASED_BOUND = "leased-bound"
    LEASED_UNBOUND = "leased-unbound"
    AVAILABLE = "available"

    @property
    def is_leased(self) -> bool:
        return self.value.startswith("leased")


class LeaseInfo(CamelModel):
    """Customer and commercial terms of a lease."""

    customer: Optional[str] = Field(
        default=None,
        max_length=200,
        description="Customer name or identity"
    )
    email: Optional[str] = None
    phone: Optional[str] = None
    start_date: Optional[str] = Field(
        default=None,
        description="Lease start date as entered"
    )
    duration: Optional[float] = Field(default=None, ge=0)
    duration_unit: str = Field(
        default="months",
        description="Unit for `duration` (months or days)"
    )
    revenue_split: Optional[float] = Field(
        default=None,
        ge=0,
        le=100,
        description="Customer share of revenue in percent"
    )
    monthly_fee: Optional[float] = Field(
        default=None,
        ge=0,
        description="Flat monthly fee in dollars"
    )


class BindingInfo(CamelModel):
    """
    Binding sub-state.

    `downtime_days` is computed when the license goes from bound to
    unbound and stays frozen until it binds again.
    """

    is_bound: bool = False
    phone_id: Optional[str] = Field(
        default=None,
        description="Phone/device currently running the license"
    )
    last_active: Optional[datetime] = Field(
        default=None,
        description="Last time the license was seen producing earnings"
    )
    downtime_days: int = Field(default=0, ge=0)

    @field_validator('last_active')
    @classmethod
    def last_active_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(v) if v is not None else None

    @field_validator('downtime_days', mode='before')
    @classmethod
    def none_downtime_to_zero(cls, v: object) -> object:
        return 0 if v is None else v


class License(CamelModel):
    """A license record as persisted in the license mapping."""

    license_id: str = Field(
        ...,
        description="Full license address, normalized to lower case"
    )
    status: LicenseStatus = Field(
        default=LicenseStatus.AVAILABLE,
        description="Lifecycle status"
    )
    lease_info: Optional[LeaseInfo] = None
    binding_info: BindingInfo = Field(default_factory=BindingInfo)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    notes: str = Field(default="", max_length=2000)

    @field_validator('license_id', mode='before')
    @classmethod
    def normalize_and_check_address(cls, v: object) -> str:
        if not is_valid_license_address(v):
            raise ValueError(
                "Invalid license address format. "
                "Must be 0x followed by 64 hexadecimal characters."
            )
        return normalize_license_id(v)

    @field_validator('created_at', 'updated_at')
    @classmethod
    def timestamps_utc(cls, v: datetime) -> datetime:
        return ensure_utc(v)

    @field_validator('binding_info', mode='before')
    @classmethod
    def none_binding_to_default(cls, v: object) -> object:
        return {} if v is None else v

    @field_validator('notes', mode='before')
    @classmethod
    def none_notes_to_empty(cls, v: object) -> object:
        return "" if v is None else v

    @model_validator(mode='after')
    def validate_timestamps(self) -> 'License':
        if self.updated_at < self.created_at:
            raise ValueError("updatedAt cannot be before createdAt")
        return self

    @property
    def short_id(self) -> str:
        return truncate_license_address(self.license_id)
