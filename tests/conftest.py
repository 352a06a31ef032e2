from datetime import datetime, timedelta, timezone

import pytest

from node_ledger.audit import AuditLogger
from node_ledger.backup import MemoryBackupSink
from node_ledger.config import Settings, StorageSettings, ValidationSettings
from node_ledger.orchestrator import NodeLedger
from node_ledger.services.storage import InMemoryStore, Repositories
from node_ledger.validation import RecordValidator


class FakeClock:
    """A clock that stays put until a test moves it."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock() -> FakeClock:
    """Pinned at 2025-12-10 12:00 UTC."""
    return FakeClock(datetime(2025, 12, 10, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def settings() -> Settings:
    return Settings()


@pytest.fixture
def storage_settings() -> StorageSettings:
    return StorageSettings(backend="memory")


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def repos(store, storage_settings) -> Repositories:
    return Repositories(store, storage_settings)


@pytest.fixture
def validator(clock) -> RecordValidator:
    return RecordValidator(ValidationSettings(), clock)


@pytest.fixture
def backup_sink() -> MemoryBackupSink:
    return MemoryBackupSink()


@pytest.fixture
def ledger(repos, settings, validator, clock) -> NodeLedger:
    """A ledger over an empty in-memory store, without automatic backups."""
    return NodeLedger(
        repositories=repos,
        settings=settings,
        validator=validator,
        audit_logger=AuditLogger(),
        clock=clock,
    )


@pytest.fixture
def earning_candidate() -> dict:
    return {
        "nodeId": "0x01...a278",
        "amount": 0.07,
        "date": "2025-12-06",
        "status": "completed",
    }


@pytest.fixture
def license_a() -> str:
    """A full address that the abbreviated node id "0x01...a278" refers to."""
    return "0x01" + "a" * 58 + "a278"


@pytest.fixture
def license_b() -> str:
    return "0x02" + "b" * 58 + "b999"


@pytest.fixture
def sample_paste() -> str:
    """One earning as copied from the node dashboard."""
    return "0x01...a278\n+ $0.07\ncompleted / 06 Dec 2025"
