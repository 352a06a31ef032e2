"""
Backup Scheduler

DESIGN DECISION: The scheduler state (settings plus the change counter)
is an explicit object loaded from and saved to the store through
BackupStateStore. The trigger decision is a pure function of a snapshot
of that state and a clock reading, so it can be tested without a store.

Counting a change and checking the trigger are separate calls: callers
increment after every mutating operation and then ask whether a backup
is due.
"""

import math
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional

import structlog
from pydantic import ValidationError

from node_ledger.models.backup import (
    CHANGE_THRESHOLDS,
    AutoBackupSettings,
    BackupFrequency,
    BackupResult,
    BackupStatus,
)
from node_ledger.models.common import (
    MILLIS_PER_DAY,
    Clock,
    epoch_millis,
    from_epoch_millis,
    utc_now,
)
from node_ledger.services.storage import KeyValueStore, StorageError


logger = structlog.get_logger(__name__)

MILLIS_PER_HOUR = MILLIS_PER_DAY // 24

ExportFunction = Callable[[], str]


class BackupSink(ABC):
    """Destination for backup snapshots."""

    @abstractmethod
    def write(self, filename: str, payload: str) -> str:
        """
        Persist one snapshot.

        Returns:
            Where it was written (a path, a key, ...)

        Raises:
            StorageError: If the snapshot could not be written
        """
        pass


class FileBackupSink(BackupSink):
    """Writes snapshots as files into a directory."""

    def __init__(self, directory: Path):
        self._directory = Path(directory)

    def write(self, filename: str, payload: str) -> str:
        path = self._directory / filename
        try:
            self._directory.mkdir(parents=True, exist_ok=True)
            path.write_text(payload, encoding="utf-8")
        except OSError as e:
            raise StorageError(f"Failed to write backup {path}: {e}")
        return str(path)


class MemoryBackupSink(BackupSink):
    """Keeps snapshots in a dict; for tests and dry runs."""

    def __init__(self):
        self.snapshots: dict[str, str] = {}

    def write(self, filename: str, payload: str) -> str:
        self.snapshots[filename] = payload
        return f"memory://{filename}"


class BackupStateStore:
    """Load/save of the scheduler state: settings and change counter."""

    def __init__(self, store: KeyValueStore, settings_key: str, counter_key: str):
        self._store = store
        self._settings_key = settings_key
        self._counter_key = counter_key

    def load_settings(self) -> AutoBackupSettings:
        """Stored settings over the defaults. Unreadable settings load as defaults."""
        raw = self._store.get(self._settings_key)
        if not raw:
            return AutoBackupSettings()
        try:
            return AutoBackupSettings.model_validate_json(raw)
        except ValidationError as e:
            logger.warning(
                "backup_settings_reset",
                key=self._settings_key,
                error_count=e.error_count(),
            )
            return AutoBackupSettings()

    def save_settings(self, settings: AutoBackupSettings) -> None:
        self._store.set(self._settings_key, settings.model_dump_json(by_alias=True))

    def get_counter(self) -> int:
        raw = self._store.get(self._counter_key)
        if not raw:
            return 0
        try:
            return max(0, int(raw.strip()))
        except ValueError:
            logger.warning("backup_counter_reset", key=self._counter_key, value=raw[:20])
            return 0

    def set_counter(self, value: int) -> None:
        self._store.set(self._counter_key, str(value))

    def increment(self, by: int = 1) -> int:
        value = self.get_counter() + by
        self.set_counter(value)
        return value

    def reset_counter(self) -> None:
        self.set_counter(0)

    def clear(self) -> None:
        self._store.delete(self._settings_key)
        self._store.delete(self._counter_key)


def should_trigger(settings: AutoBackupSettings, counter: int, now: datetime) -> bool:
    """
    Whether a backup is due.

    Change-based frequencies fire once the counter reaches the threshold;
    daily and weekly fire when there was no backup yet or enough time has
    passed. Manual and disabled never fire.
    """
    if not settings.enabled:
        return False

    frequency = settings.frequency
    if frequency in CHANGE_THRESHOLDS:
        return counter >= CHANGE_THRESHOLDS[frequency]

    if frequency in (BackupFrequency.DAILY, BackupFrequency.WEEKLY):
        if settings.last_backup_timestamp is None:
            return True
        elapsed = epoch_millis(now) - settings.last_backup_timestamp
        window = MILLIS_PER_DAY if frequency == BackupFrequency.DAILY else 7 * MILLIS_PER_DAY
        return elapsed >= window

    return False


def backup_filename(prefix: str, now: datetime) -> str:
    return f"{prefix}-{now.strftime('%Y-%m-%d-%H%M%S')}.json"


class BackupScheduler:
    """Change counting, trigger evaluation and the backup side effect."""

    def __init__(
        self,
        state: BackupStateStore,
        clock: Clock = utc_now,
        filename_prefix: str = "unity-earnings-backup",
    ):
        self._state = state
        self._clock = clock
        self._prefix = filename_prefix

    @property
    def state(self) -> BackupStateStore:
        return self._state

    def record_change(self, count: int = 1) -> int:
        """Count mutating operations; returns the new counter value."""
        return self._state.increment(count)

    def should_trigger(self) -> bool:
        return should_trigger(
            self._state.load_settings(),
            self._state.get_counter(),
            self._clock(),
        )

    def perform_backup(self, export: ExportFunction, sink: BackupSink) -> BackupResult:
        """
        Export a snapshot through `sink` and record it.

        On success the settings get the backup time, the counter value at
        backup time and one more total, and the counter resets. On failure
        nothing is recorded and the error is returned in the result.
        """
        now = self._clock()
        filename = backup_filename(self._prefix, now)

        try:
            payload = export()
            location = sink.write(filename, payload)
        except Exception as e:
            logger.error("backup_failed", filename=filename, error=str(e), exc_info=True)
            return BackupResult(
                success=False,
                message=f"Auto-backup failed: {e}",
                filename=filename,
                error=str(e),
            )

        settings = self._state.load_settings()
        settings.last_backup_timestamp = epoch_millis(now)
        settings.last_backup_change_count = self._state.get_counter()
        settings.total_backups += 1
        self._state.save_settings(settings)
        self._state.reset_counter()

        logger.info(
            "backup_completed",
            filename=filename,
            location=location,
            change_count=settings.last_backup_change_count,
            total_backups=settings.total_backups,
        )
        return BackupResult(
            success=True,
            message=f"Auto-backup saved: {filename}",
            filename=filename,
            location=location,
            timestamp=settings.last_backup_timestamp,
        )

    def check_and_backup(
        self,
        export: ExportFunction,
        sink: BackupSink,
    ) -> Optional[BackupResult]:
        """Run a backup if one is due; None when it is not."""
        if not self.should_trigger():
            return None
        return self.perform_backup(export, sink)

    def toggle(self, enabled: bool) -> AutoBackupSettings:
        """Enable or disable auto-backup. The first enable resets the counter."""
        settings = self._state.load_settings()
        settings.enabled = enabled
        if enabled and settings.last_backup_timestamp is None:
            self._state.reset_counter()
        self._state.save_settings(settings)
        logger.info("backup_toggled", enabled=enabled)
        return settings

    def update_frequency(self, frequency: BackupFrequency) -> AutoBackupSettings:
        frequency = BackupFrequency(frequency)
        settings = self._state.load_settings()
        settings.frequency = frequency
        settings.change_threshold = CHANGE_THRESHOLDS.get(frequency, 0)
        self._state.save_settings(settings)
        logger.info("backup_frequency_updated", frequency=frequency.value)
        return settings

    def get_status(self, now: Optional[datetime] = None) -> BackupStatus:
        """Human-readable status and next-backup information."""
        settings = self._state.load_settings()
        change_count = self._state.get_counter()
        now = now or self._clock()
        frequency = settings.frequency
        last = settings.last_backup_timestamp

        next_info = ""
        if not settings.enabled:
            message = "Auto-backup is disabled"
        elif frequency in CHANGE_THRESHOLDS:
            threshold = CHANGE_THRESHOLDS[frequency]
            message = f"Auto-backup every {threshold} changes"
            next_info = f"{change_count}/{threshold} changes"
        elif frequency == BackupFrequency.DAILY:
            message = "Auto-backup daily"
            if last is None:
                next_info = "No backup yet"
            else:
                hours_since = (epoch_millis(now) - last) / MILLIS_PER_HOUR
                next_info = f"{max(0, math.floor(24 - hours_since))} hours until next backup"
        elif frequency == BackupFrequency.WEEKLY:
            message = "Auto-backup weekly"
            if last is None:
                next_info = "No backup yet"
            else:
                days_since = (epoch_millis(now) - last) / MILLIS_PER_DAY
                next_info = f"{max(0, math.floor(7 - days_since))} days until next backup"
        else:
            message = "Manual backup only"
            next_info = "Backup when you run the backup command"

        return BackupStatus(
            enabled=settings.enabled,
            frequency=frequency,
            status_message=message,
            next_backup_info=next_info,
            change_count=change_count,
            last_backup_timestamp=last,
            last_backup_date=from_epoch_millis(last) if last is not None else None,
            total_backups=settings.total_backups,
            checked_at=now,
        )

    def reset(self) -> None:
        """Forget all scheduler state (settings and counter)."""
        self._state.clear()
        logger.info("backup_state_reset")
