"""Services package."""

from node_ledger.services.storage import (
    DuplicateError,
    InMemoryStore,
    JsonFileStore,
    KeyValueStore,
    NotFoundError,
    Repositories,
    StorageError,
    create_store,
)

__all__ = [
    # Storage services
    "DuplicateError",
    "InMemoryStore",
    "JsonFileStore",
    "KeyValueStore",
    "NotFoundError",
    "Repositories",
    "StorageError",
    "create_store",
]
