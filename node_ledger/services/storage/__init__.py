"""
Storage Services Package

Provides the abstract key-value store interface, its two implementations
and the typed repositories on top of it.
"""

from pathlib import Path
from typing import Optional

from node_ledger.config import StorageSettings, get_settings
from node_ledger.services.storage.interface import (
    DuplicateError,
    KeyValueStore,
    NotFoundError,
    StorageError,
)
from node_ledger.services.storage.json_file import JsonFileStore
from node_ledger.services.storage.memory import InMemoryStore
from node_ledger.services.storage.repositories import (
    EarningsRepository,
    JsonBlobRepository,
    LicenseRepository,
    NodeMappingRepository,
    Repositories,
)


def create_store(
    settings: Optional[StorageSettings] = None,
    data_dir: Optional[Path] = None,
) -> KeyValueStore:
    """Build the store selected by `NODE_LEDGER_STORAGE_BACKEND`."""
    settings = settings or get_settings().storage
    if settings.backend == "memory":
        return InMemoryStore()
    return JsonFileStore(data_dir or settings.data_dir)


__all__ = [
    # Interface
    "KeyValueStore",
    # Exceptions
    "DuplicateError",
    "NotFoundError",
    "StorageError",
    # Implementations
    "InMemoryStore",
    "JsonFileStore",
    "create_store",
    # Repositories
    "EarningsRepository",
    "JsonBlobRepository",
    "LicenseRepository",
    "NodeMappingRepository",
    "Repositories",
]
