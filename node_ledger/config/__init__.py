"""Configuration package."""

from node_ledger.config.settings import (
    AppSettings,
    BackupOutputSettings,
    Settings,
    StorageSettings,
    ValidationSettings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "BackupOutputSettings",
    "Settings",
    "StorageSettings",
    "ValidationSettings",
    "get_settings",
    "validate_all_settings",
]
