"""
Typed repositories over the key-value store.

Each repository owns one store key and converts between the stored JSON
blob and pydantic models. Collections are always read and written whole:
one `save` is one store write.

Loading is lenient about individual entries (an invalid entry is dropped
with a warning) but strict about the blob itself: unparsable JSON raises
StorageError rather than silently reading as empty.
"""

import json
from typing import Any, Optional

import structlog
from pydantic import ValidationError

from node_ledger.config import StorageSettings, get_settings
from node_ledger.models.earning import Earning
from node_ledger.models.license import License, normalize_license_id
from node_ledger.services.storage.interface import KeyValueStore, StorageError


logger = structlog.get_logger(__name__)


class JsonBlobRepository:
    """Shared JSON (de)serialization for a single store key."""

    def __init__(self, store: KeyValueStore, key: str):
        self._store = store
        self._key = key

    @property
    def key(self) -> str:
        return self._key

    def _read(self, default: Any) -> Any:
        raw = self._store.get(self._key)
        if raw is None or raw == "":
            return default
        try:
            return json.loads(raw)
        except json.JSONDecodeError as e:
            raise StorageError(f"Stored value for '{self._key}' is not valid JSON: {e}")

    def _write(self, payload: Any) -> None:
        self._store.set(self._key, json.dumps(payload))

    def clear(self) -> bool:
        return self._store.delete(self._key)


class EarningsRepository(JsonBlobRepository):
    """The earnings array."""

    def load(self) -> list[Earning]:
        data = self._read([])
        if not isinstance(data, list):
            raise StorageError(f"Stored value for '{self._key}' is not a list")

        earnings = []
        for position, entry in enumerate(data):
            try:
                earnings.append(Earning.model_validate(entry))
            except ValidationError as e:
                logger.warning(
                    "stored_earning_dropped",
                    key=self._key,
                    position=position,
                    error_count=e.error_count(),
                )
        return earnings

    def save(self, earnings: list[Earning]) -> None:
        self._write([e.to_record() for e in earnings])


class LicenseRepository(JsonBlobRepository):
    """The license mapping, keyed by normalized license id."""

    def load(self) -> dict[str, License]:
        data = self._read({})
        if not isinstance(data, dict):
            raise StorageError(f"Stored value for '{self._key}' is not an object")

        licenses = {}
        for stored_key, entry in data.items():
            try:
                license_ = License.model_validate(entry)
            except ValidationError as e:
                logger.warning(
                    "stored_license_dropped",
                    key=self._key,
                    license_key=stored_key,
                    error_count=e.error_count(),
                )
                continue
            licenses[license_.license_id] = license_
        return licenses

    def save(self, licenses: dict[str, License]) -> None:
        self._write({
            normalize_license_id(license_id): license_.to_record()
            for license_id, license_ in licenses.items()
        })


class NodeMappingRepository(JsonBlobRepository):
    """nodeId -> license type."""

    def load(self) -> dict[str, str]:
        data = self._read({})
        if not isinstance(data, dict):
            raise StorageError(f"Stored value for '{self._key}' is not an object")
        return {str(k): str(v) for k, v in data.items() if v}

    def save(self, mapping: dict[str, str]) -> None:
        self._write(mapping)

    def get_license_type(self, node_id: str, default: str = "Unknown") -> str:
        return self.load().get(node_id, default)


class Repositories:
    """The three record repositories of one store, built from settings."""

    def __init__(
        self,
        store: KeyValueStore,
        settings: Optional[StorageSettings] = None,
    ):
        settings = settings or get_settings().storage
        self.store = store
        self.earnings = EarningsRepository(store, settings.earnings_key)
        self.licenses = LicenseRepository(store, settings.licenses_key)
        self.node_mapping = NodeMappingRepository(store, settings.node_mapping_key)
