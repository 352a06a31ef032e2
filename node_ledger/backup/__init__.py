"""Backup scheduling package."""

from node_ledger.backup.scheduler import (
    BackupScheduler,
    BackupSink,
    BackupStateStore,
    FileBackupSink,
    MemoryBackupSink,
    backup_filename,
    should_trigger,
)
from node_ledger.models.backup import AutoBackupSettings, BackupFrequency

__all__ = [
    "AutoBackupSettings",
    "BackupFrequency",
    "BackupScheduler",
    "BackupSink",
    "BackupStateStore",
    "FileBackupSink",
    "MemoryBackupSink",
    "backup_filename",
    "should_trigger",
]
