from __future__ import annotations
import asyncio
import io
import os

# cluehunt.db builds its engine at import time
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("FEED_REDIS_CHANNEL", "")  # no cross-process relay under test

import httpx
import pytest
import pytest_asyncio
from PIL import Image
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from cluehunt.config import settings
from cluehunt.db import Base, get_session
import cluehunt.models.team  # noqa: F401  register tables
import cluehunt.models.clue  # noqa: F401
import cluehunt.models.submission  # noqa: F401
import cluehunt.models.notice  # noqa: F401
import cluehunt.models.mystery  # noqa: F401
import cluehunt.models.finale  # noqa: F401
from cluehunt.deps import get_feed, get_job_queue, get_media_store
from cluehunt.models.clue import Clue
from cluehunt.security import make_identity_token
from cluehunt.services.changefeed import ChangeFeed
from cluehunt.services.media_store import MediaUploadError, StoredMedia


class FakeMediaStore:
    """
    Scripted media backend. `script` holds one outcome per upload call:
    "ok", "error" (adapter failure) or "hang" (never answers in time).
    Once the script runs out every upload succeeds.
    """

    def __init__(self, script: list[str] | None = None):
        self.script = list(script or [])
        self.uploads: list[bytes] = []
        self.deleted: list[str] = []
        self.calls = 0

    async def upload(self, data: bytes, content_type: str) -> StoredMedia:
        self.calls += 1
        outcome = self.script.pop(0) if self.script else "ok"
        if outcome == "error":
            raise MediaUploadError("storage unavailable")
        if outcome == "hang":
            await asyncio.sleep(30)
        self.uploads.append(data)
        n = len(self.uploads)
        return StoredMedia(url=f"https://media.test/photo-{n}.png", delete_handle=f"submissions/photo-{n}.png")

    async def delete(self, handle: str) -> None:
        self.deleted.append(handle)


class RecordingQueue:
    def __init__(self):
        self.scheduled = []

    def enqueue_in(self, delay, func, *args, **kwargs):
        self.scheduled.append((delay, func))


def png_bytes(color=(200, 30, 30)) -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", (8, 8), color).save(buf, format="PNG")
    return buf.getvalue()


@pytest.fixture(autouse=True)
def fast_uploads(monkeypatch):
    # Keep retry/timeout paths quick; values mirror the production shape (2 attempts).
    monkeypatch.setattr(settings, "upload_timeout_seconds", 0.05)
    monkeypatch.setattr(settings, "upload_backoff_seconds", 0)
    monkeypatch.setattr(settings, "upload_attempts", 2)
    monkeypatch.setattr(settings, "delete_media_on_approve", True)


@pytest_asyncio.fixture
async def session_factory():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, expire_on_commit=False)
    await engine.dispose()


@pytest_asyncio.fixture
async def session(session_factory):
    async with session_factory() as s:
        yield s


@pytest.fixture
def feed():
    return ChangeFeed(queue_size=16)


@pytest.fixture
def media():
    return FakeMediaStore()


@pytest.fixture
def jobs():
    return RecordingQueue()


async def add_clues(session, *rows):
    """rows: (title, answer_kind[, expected_answer]) in hunt order."""
    clues = []
    for i, row in enumerate(rows):
        title, kind = row[0], row[1]
        expected = row[2] if len(row) > 2 else ""
        clues.append(Clue(order_index=i, title=title, body=f"Find {title}", answer_kind=kind, expected_answer=expected))
    session.add_all(clues)
    await session.commit()
    return clues


@pytest_asyncio.fixture
async def client(session_factory, feed, media, jobs):
    from cluehunt.main import app

    async def override_session():
        async with session_factory() as s:
            yield s

    app.dependency_overrides[get_session] = override_session
    app.dependency_overrides[get_feed] = lambda: feed
    app.dependency_overrides[get_media_store] = lambda: media
    app.dependency_overrides[get_job_queue] = lambda: jobs
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


def staff_headers() -> dict:
    return {"Authorization": f"Bearer {make_identity_token('coordinator')}"}


def team_headers(team_id) -> dict:
    return {"Authorization": f"Bearer {make_identity_token('player', str(team_id))}"}
