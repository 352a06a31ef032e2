"""
Configuration Management for Node Ledger

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
Store key names, validation thresholds and backup output locations are
all visible in one place and validated at startup.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class StorageSettings(BaseSettings):
    """Key-value store configuration."""

    model_config = SettingsConfigDict(
        env_prefix="NODE_LEDGER_STORAGE_",
        extra="ignore"
    )

    backend: str = Field(
        default="file",
        description="Store backend: 'file' (durable) or 'memory' (tests, dry runs)"
    )
    data_dir: Path = Field(
        default=Path(".node_ledger"),
        description="Directory holding one JSON blob per store key"
    )

    # Store keys. Defaults match the keys written by the browser tool so
    # exported local storage can be dropped in unchanged.
    earnings_key: str = Field(default="unity-nodes-earnings")
    licenses_key: str = Field(default="unity-nodes-licenses")
    node_mapping_key: str = Field(default="unity-nodes-node-mapping")
    backup_settings_key: str = Field(default="unity-nodes-auto-backup-settings")
    backup_counter_key: str = Field(default="unity-nodes-backup-counter")

    @field_validator('backend')
    @classmethod
    def validate_backend(cls, v: str) -> str:
        """Only the two shipped adapters are accepted."""
        v = v.strip().lower()
        if v not in {"file", "memory"}:
            raise ValueError(f"Unsupported storage backend: {v}. Allowed: file, memory")
        return v


class ValidationSettings(BaseSettings):
    """Thresholds for the semantic validation stage."""

    model_config = SettingsConfigDict(
        env_prefix="NODE_LEDGER_VALIDATION_",
        extra="ignore"
    )

    max_reasonable_amount: float = Field(
        default=10000.0,
        gt=0,
        description="Single earning amounts above this produce a warning"
    )
    future_date_tolerance_days: int = Field(
        default=1,
        ge=0,
        description="How many days in the future an earning date can be before warning"
    )
    default_license_type: str = Field(
        default="Unknown",
        description="License type assigned when a node has no mapping"
    )


class BackupOutputSettings(BaseSettings):
    """Where automatic backups are written."""

    model_config = SettingsConfigDict(
        env_prefix="NODE_LEDGER_BACKUP_",
        extra="ignore"
    )

    directory: Path = Field(
        default=Path("backups"),
        description="Directory receiving backup snapshot files"
    )
    filename_prefix: str = Field(
        default="unity-earnings-backup",
        min_length=1,
        description="Backup file name prefix"
    )


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Environment
    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )
    log_level: str = Field(
        default="INFO",
        description="Minimum level for local structured logs"
    )

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        v = v.strip().upper()
        if v not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return v


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Sub-settings are built on access so a broken section only fails
    # the code paths that need it.

    @property
    def storage(self) -> StorageSettings:
        return StorageSettings()

    @property
    def validation(self) -> ValidationSettings:
        return ValidationSettings()

    @property
    def backup(self) -> BackupOutputSettings:
        return BackupOutputSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Uses LRU cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}, plus
    {setting_name}_error entries for the sections that failed.
    Useful for startup checks.
    """
    results = {}

    settings = get_settings()

    sections = {
        "storage": lambda: settings.storage,
        "validation": lambda: settings.validation,
        "backup": lambda: settings.backup,
        "app": lambda: settings.app,
    }

    for name, load in sections.items():
        try:
            load()
            results[name] = True
        except ValueError as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
