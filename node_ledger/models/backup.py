"""
Backup Scheduler Models

The scheduler state is an explicit object: settings plus a separately
persisted change counter. Decisions are made on a snapshot of it.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from node_ledger.models.common import CamelModel, utc_now


class BackupFrequency(str, Enum):
    """When automatic backups fire."""
    EVERY_10_CHANGES = "every_10_changes"
    EVERY_25_CHANGES = "every_25_changes"
    EVERY_50_CHANGES = "every_50_changes"
    DAILY = "daily"
    WEEKLY = "weekly"
    MANUAL = "manual"


# Change-count triggers. Time-based and manual frequencies have no threshold.
CHANGE_THRESHOLDS: dict[BackupFrequency, int] = {
    BackupFrequency.EVERY_10_CHANGES: 10,
    BackupFrequency.EVERY_25_CHANGES: 25,
    BackupFrequency.EVERY_50_CHANGES: 50,
}


class AutoBackupSettings(CamelModel):
    """Persisted auto-backup settings."""

    enabled: bool = Field(
        default=False,
        description="Automatic backups are off until explicitly enabled"
    )
    frequency: BackupFrequency = Field(
        default=BackupFrequency.EVERY_10_CHANGES,
        description="Trigger rule"
    )
    change_threshold: int = Field(
        default=10,
        ge=0,
        description="Changes per backup; 0 for time-based or manual"
    )
    last_backup_timestamp: Optional[int] = Field(
        default=None,
        description="Epoch milliseconds of the last successful backup"
    )
    last_backup_change_count: int = Field(
        default=0,
        ge=0,
        description="Counter value when the last backup fired"
    )
    total_backups: int = Field(default=0, ge=0)


class BackupResult(BaseModel):
    """Outcome of one backup attempt."""

    success: bool
    message: str
    filename: Optional[str] = None
    location: Optional[str] = Field(
        default=None,
        description="Where the sink put the snapshot (path, key, ...)"
    )
    timestamp: Optional[int] = Field(
        default=None,
        description="Epoch milliseconds recorded as lastBackupTimestamp"
    )
    error: Optional[str] = None


class BackupStatus(BaseModel):
    """Human-readable scheduler status."""

    enabled: bool
    frequency: BackupFrequency
    status_message: str
    next_backup_info: str
    change_count: int
    last_backup_timestamp: Optional[int] = None
    last_backup_date: Optional[datetime] = None
    total_backups: int = 0
    checked_at: datetime = Field(default_factory=utc_now)
