"""In-memory key-value store for tests and dry runs."""

from typing import Optional

from node_ledger.services.storage.interface import KeyValueStore, StorageError


class InMemoryStore(KeyValueStore):
    """
    Dict-backed store.

    An optional `quota_bytes` mimics a browser storage quota: a write that
    would push the total size over it raises StorageError and changes
    nothing.
    """

    def __init__(self, quota_bytes: Optional[int] = None):
        self._data: dict[str, str] = {}
        self._quota_bytes = quota_bytes
        self.write_count = 0

    def _size_with(self, key: str, value: str) -> int:
        size = sum(
            len(k) + len(v) for k, v in self._data.items() if k != key
        )
        return size + len(key) + len(value)

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        if not isinstance(value, str):
            raise StorageError(f"Store values must be strings, got {type(value).__name__}")
        if self._quota_bytes is not None and self._size_with(key, value) > self._quota_bytes:
            raise StorageError(
                f"Storage quota exceeded writing '{key}' "
                f"({self._size_with(key, value)} > {self._quota_bytes} bytes)"
            )
        self._data[key] = value
        self.write_count += 1

    def delete(self, key: str) -> bool:
        return self._data.pop(key, None) is not None

    def keys(self) -> list[str]:
        return sorted(self._data)
