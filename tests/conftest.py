import asyncio
import os
import tempfile

# configure before any application module reads the environment
_TMP = tempfile.mkdtemp(prefix="witely-tests-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_TMP}/test.db"
os.environ["APP_ENV"] = "test"
os.environ["REDIS_URL"] = ""
os.environ["UPLOAD_DIR"] = os.path.join(_TMP, "uploads")
os.environ["LOG_FILE"] = os.path.join(_TMP, "logs.json")
os.environ["SMOOTH_STREAM_DELAY_MS"] = "0"
os.environ["JWT_SECRET"] = "test-secret"

import pytest
from httpx import ASGITransport, AsyncClient

from core.security import create_access_token
from db.database import AsyncSessionLocal, Base, async_engine
from db.queries import create_user
from main import app
from services.limiting import limiter
from services.resumable_stream import ResumableStreamContext
import db.models  # noqa: F401


@pytest.fixture
async def database():
    async with async_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    yield
    # pooled aiosqlite connections belong to this test's event loop
    await async_engine.dispose()


@pytest.fixture
async def session(database):
    async with AsyncSessionLocal() as s:
        yield s


@pytest.fixture
async def client(database):
    limiter.reset()
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c


@pytest.fixture
def make_user(database):
    async def _make(email="tester@example.com", type="dev", password="secret123", name="Test User"):
        async with AsyncSessionLocal() as s:
            return await create_user(s, email=email, password=password, name=name, type=type)

    return _make


@pytest.fixture
async def user(make_user):
    return await make_user()


def _auth_headers(user) -> dict:
    token, _ = create_access_token(data={"sub": str(user.id)})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def auth_for():
    return _auth_headers


@pytest.fixture
def headers(user):
    return _auth_headers(user)


class InMemoryStreams:
    """The handful of Redis stream commands the resumable context issues."""

    def __init__(self):
        self.streams: dict = {}
        self.ttls: dict = {}
        self.reads = 0
        self._changed = asyncio.Event()

    async def xadd(self, key, fields):
        entries = self.streams.setdefault(key, [])
        entry_id = f"{len(entries) + 1}-0"
        entries.append((entry_id, dict(fields)))
        self._changed.set()
        return entry_id

    async def expire(self, key, seconds):
        self.ttls[key] = seconds
        return True

    async def exists(self, key):
        return int(key in self.streams)

    async def xrevrange(self, key, count=None):
        entries = list(reversed(self.streams.get(key, [])))
        return entries[:count] if count else entries

    def _after(self, key, last_id, count):
        seq = int(last_id.split("-")[0])
        return [e for e in self.streams.get(key, []) if int(e[0].split("-")[0]) > seq][:count]

    async def xread(self, streams, block=None, count=None):
        self.reads += 1
        (key, last_id), = streams.items()
        entries = self._after(key, last_id, count)
        if not entries and block:
            self._changed.clear()
            try:
                await asyncio.wait_for(self._changed.wait(), block / 1000)
            except asyncio.TimeoutError:
                return []
            entries = self._after(key, last_id, count)
        return [[key, entries]] if entries else []


@pytest.fixture
def redis_streams():
    return InMemoryStreams()


@pytest.fixture
def stream_context(redis_streams):
    return ResumableStreamContext(redis_streams, ttl_seconds=120)
