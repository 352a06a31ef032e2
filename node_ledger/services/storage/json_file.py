"""
JSON File Store

One file per key under a data directory. Writes go to a temporary file
in the same directory and are moved into place with os.replace, so a
failed write never leaves a half-written blob behind.
"""

import os
import tempfile
from pathlib import Path
from typing import Optional

import structlog

from node_ledger.services.storage.interface import KeyValueStore, StorageError


logger = structlog.get_logger(__name__)

_SUFFIX = ".json"


class JsonFileStore(KeyValueStore):
    """Durable local store backed by a directory of JSON files."""

    def __init__(self, data_dir: Path):
        self._data_dir = Path(data_dir)

    @property
    def data_dir(self) -> Path:
        return self._data_dir

    def _path_for(self, key: str) -> Path:
        if not key or "/" in key or "\\" in key or key.startswith("."):
            raise StorageError(f"Invalid store key: {key!r}")
        return self._data_dir / f"{key}{_SUFFIX}"

    def get(self, key: str) -> Optional[str]:
        path = self._path_for(key)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            raise StorageError(f"Failed to read '{key}': {e}")

    def set(self, key: str, value: str) -> None:
        path = self._path_for(key)
        tmp_name = None
        try:
            self._data_dir.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                mode="w",
                encoding="utf-8",
                dir=self._data_dir,
                prefix=f".{key}.",
                suffix=".tmp",
                delete=False,
            ) as handle:
                tmp_name = handle.name
                handle.write(value)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_name, path)
            tmp_name = None
        except OSError as e:
            raise StorageError(f"Failed to write '{key}': {e}")
        finally:
            if tmp_name is not None and os.path.exists(tmp_name):
                os.unlink(tmp_name)

        logger.debug("store_write", key=key, bytes=len(value))

    def delete(self, key: str) -> bool:
        path = self._path_for(key)
        try:
            path.unlink()
            return True
        except FileNotFoundError:
            return False
        except OSError as e:
            raise StorageError(f"Failed to delete '{key}': {e}")

    def keys(self) -> list[str]:
        if not self._data_dir.is_dir():
            return []
        return sorted(
            p.name[: -len(_SUFFIX)]
            for p in self._data_dir.iterdir()
            if p.is_file() and p.name.endswith(_SUFFIX) and not p.name.startswith(".")
        )
