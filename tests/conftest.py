"""Pytest configuration helpers.

This conftest puts `backend/` on `sys.path` so tests can import the
`sora_studio` package regardless of how pytest is invoked, and points the
settings at a throwaway SQLite database and media directory before any
application module is imported.
"""
import asyncio
import os
import sys
import tempfile

import httpx
import pytest

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
BACKEND = os.path.join(ROOT, "backend")
if BACKEND not in sys.path:
    sys.path.insert(0, BACKEND)

_TMP = tempfile.mkdtemp(prefix="sora-studio-tests-")

os.environ.update({
    "DEBUG": "false",
    "DB_URL": f"sqlite+aiosqlite:///{os.path.join(_TMP, 'test.db')}",
    "AI_PROVIDER": "openai",
    "OPENAI_API_KEY": "test-key",
    "OPENAI_BASE_URL": "https://api.openai.test/v1",
    "AZURE_API_KEY": "azure-key",
    "AZURE_ENDPOINT": "https://example.openai.azure.test/openai/v1",
    "STORAGE_BACKEND": "local",
    "MEDIA_VOLUME": os.path.join(_TMP, "media"),
    "PUBLIC_BASE_URL": "http://testserver",
    "POLL_BACKEND": "local",
    "AUTH_ENABLED": "false",
    "SUPABASE_JWT_SECRET": "test-jwt-secret",
})

from sora_studio.config import get_settings  # noqa: E402
from sora_studio.database import Base, engine  # noqa: E402
import sora_studio.models  # noqa: E402,F401


@pytest.fixture
def settings():
    return get_settings()


@pytest.fixture
def db():
    """Fresh `videos` table for each test."""

    async def _create():
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def _drop():
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)

    asyncio.run(_create())
    yield
    asyncio.run(_drop())


class FakeProvider:
    """Scripted provider API behind an httpx.MockTransport.

    `statuses` is consumed one entry per status request; each entry is either
    a status payload dict or an int HTTP error code. The last entry repeats.
    """

    def __init__(self, statuses=None, content=b"fake-mp4-bytes", content_status=200):
        self.statuses = list(statuses or [])
        self.content = content
        self.content_status = content_status
        self.requests: list[httpx.Request] = []
        self.status_calls = 0

    def _next_status(self):
        if not self.statuses:
            return {"id": "video_123", "status": "in_progress"}
        if len(self.statuses) > 1:
            return self.statuses.pop(0)
        return self.statuses[0]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if request.method == "GET" and (path.endswith("/content") or path.endswith("/content/video")):
            if self.content_status != 200:
                return httpx.Response(self.content_status, json={"error": {"message": "gone"}})
            return httpx.Response(200, content=self.content)

        if request.method == "GET":
            self.status_calls += 1
            entry = self._next_status()
            if isinstance(entry, int):
                return httpx.Response(entry, json={"error": {"message": "upstream unavailable"}})
            return httpx.Response(200, json=entry)

        if path.endswith("/remix"):
            return httpx.Response(200, json={"id": "video_remix_1", "status": "queued"})
        return httpx.Response(200, json={"id": "video_123", "status": "queued"})

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))


@pytest.fixture
def fake_provider():
    return FakeProvider()
