"""
Shared model helpers: the clock type, id generation and date/epoch conversion.

Every component that needs "now" takes a Clock so tests can pin time.
"""

from datetime import datetime, timezone
from typing import Callable
from uuid import uuid4

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


Clock = Callable[[], datetime]

MILLIS_PER_DAY = 24 * 60 * 60 * 1000


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def new_earning_id() -> str:
    return f"earning-{uuid4().hex}"


def ensure_utc(moment: datetime) -> datetime:
    """Naive datetimes are taken as UTC."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment


def epoch_millis(moment: datetime) -> int:
    """Milliseconds since the epoch. Naive datetimes are taken as UTC."""
    return int(ensure_utc(moment).timestamp() * 1000)


def from_epoch_millis(value: int) -> datetime:
    return datetime.fromtimestamp(value / 1000, tz=timezone.utc)


def iso_date_to_millis(value: str) -> int:
    """Epoch milliseconds of UTC midnight for a canonical YYYY-MM-DD date."""
    parsed = datetime.strptime(value, "%Y-%m-%d").replace(tzinfo=timezone.utc)
    return epoch_millis(parsed)


class CamelModel(BaseModel):
    """
    Base for persisted records.

    Python attributes are snake_case; the stored JSON uses camelCase so
    blobs written by the browser tool load without translation.
    """
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )

    def to_record(self) -> dict:
        """JSON-safe dict with the stored (camelCase) field names."""
        return self.model_dump(by_alias=True, mode="json")
