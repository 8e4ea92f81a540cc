"""Shared test fixtures for all test modules."""

import os
import tempfile
from datetime import datetime, timedelta, timezone

import pytest

# ── Environment overrides (must be set before importing fleeting modules) ────
_tmp = tempfile.mkdtemp(prefix="fleeting_pytest_")
os.environ["FLEETING_DATA_DIR"] = _tmp
os.environ["FLEETING_DB_PATH"] = os.path.join(_tmp, "test.db")
os.environ["FLEETING_BLOB_DIR"] = os.path.join(_tmp, "uploads")
os.environ["FLEETING_BASE_URL"] = "http://testserver"
os.environ["FLEETING_SWEEP_ENABLED"] = "false"


class FakeClock:
    """A clock the test moves by hand."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2025, 1, 15, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
async def db(tmp_path):
    from fleeting.database import connect

    conn = await connect(tmp_path / "content.db")
    yield conn
    await conn.close()


@pytest.fixture
def store(db):
    from fleeting.services.store import SqliteContentStore

    return SqliteContentStore(db)


@pytest.fixture
def blobs(tmp_path):
    from fleeting.services.blob_store import LocalBlobStore

    return LocalBlobStore(tmp_path / "blobs")


@pytest.fixture
def engine(store, blobs, clock):
    from fleeting.services.lifecycle import LifecycleEngine

    return LifecycleEngine(store, blobs, clock=clock)


@pytest.fixture
def sweeper(engine):
    from fleeting.services.sweeper import Sweeper

    return Sweeper(engine, interval=0.05)


@pytest.fixture
def service(engine, blobs, sweeper):
    from fleeting.services.content_service import ContentService

    return ContentService(engine, blobs, sweeper)
