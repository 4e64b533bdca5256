"""Shared test fixtures.

Tests run against an in-memory SQLite database built from the ORM metadata.
Redis is left uninitialized, so rate limiting and event publishing are skipped
unless a test passes a mock explicitly.
"""

from __future__ import annotations

import os
import uuid
from collections.abc import AsyncGenerator

os.environ["TRIPPEY_DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["TRIPPEY_REDIS_URL"] = ""
os.environ["TRIPPEY_SEED_ON_STARTUP"] = "false"
os.environ["TRIPPEY_SERVICE_ROLE_KEY"] = "test-service-key"
os.environ["TRIPPEY_VISION_API_KEY"] = ""
os.environ["TRIPPEY_LOG_FORMAT"] = "console"

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy import select  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession  # noqa: E402

from trippey.auth.jwt import create_access_token  # noqa: E402
from trippey.config import get_settings  # noqa: E402
from trippey.database import close_db, get_engine, init_db, session_scope  # noqa: E402
from trippey.db.base import Base  # noqa: E402
from trippey.db.models import Quest  # noqa: E402
from trippey.main import create_app  # noqa: E402
from trippey.quests.seed import seed_quests  # noqa: E402
from trippey.store.seed import seed_store_items  # noqa: E402
from trippey.verification.evidence import EvidenceExtractor  # noqa: E402
from trippey.verification.pipeline import get_evidence_extractor  # noqa: E402
from trippey.verification.vision import BaseVisionProvider, VisionProviderError  # noqa: E402

get_settings.cache_clear()

SERVICE_HEADERS = {"X-Service-Key": "test-service-key"}


class FakeVisionProvider(BaseVisionProvider):
    """Scripted vision answers. Location prompts get `location`, everything else `text`."""

    def __init__(self) -> None:
        self.text = '{"text": ""}'
        self.location = '{"isValid": false, "detectedLocation": ""}'
        self.error: Exception | None = None
        self.calls: list[str] = []

    async def describe(self, image_url: str, instruction: str, max_tokens: int = 1000) -> str:
        self.calls.append(instruction)
        if self.error is not None:
            raise self.error
        if "location" in instruction.lower():
            return self.location
        return self.text

    def fail(self, message: str = "vision service unavailable") -> None:
        self.error = VisionProviderError(message)


def auth_headers(user_id: uuid.UUID) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(str(user_id))}"}


@pytest_asyncio.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Fresh schema per test; a direct session for setup and assertions."""
    await init_db(get_settings().database_url)
    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    async with session_scope() as session:
        yield session
    await close_db()


@pytest_asyncio.fixture
async def seeded_db(db_session: AsyncSession) -> AsyncSession:
    await seed_quests(db_session)
    await seed_store_items(db_session)
    return db_session


@pytest.fixture
def fake_vision() -> FakeVisionProvider:
    return FakeVisionProvider()


@pytest_asyncio.fixture
async def client(seeded_db: AsyncSession, fake_vision: FakeVisionProvider) -> AsyncGenerator[AsyncClient, None]:
    app = create_app()
    app.dependency_overrides[get_evidence_extractor] = lambda: EvidenceExtractor(fake_vision)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def user_id() -> uuid.UUID:
    return uuid.uuid4()


async def quest_by_slug(db: AsyncSession, slug: str) -> Quest:
    result = await db.execute(select(Quest).where(Quest.slug == slug))
    return result.scalar_one()
