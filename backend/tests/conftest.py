"""
IELTS Prep - Test Configuration
Pytest fixtures and configuration for testing
"""
import os

# Settings are read at import time; point them at test values first
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DATABASE_URL_OVERRIDE", "sqlite+aiosqlite:///./test.db")
os.environ.setdefault("ANTHROPIC_API_KEY", "")
os.environ.setdefault("OPENAI_API_KEY", "")

import time
import uuid
from collections.abc import AsyncGenerator
from datetime import datetime, timedelta, timezone
from typing import Any
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from ieltsprep.ai.pipeline import EvaluationPipeline, Scored, get_evaluation_pipeline
from ieltsprep.api.deps import get_clock
from ieltsprep.core.database import Base, get_db
from ieltsprep.core.security import create_access_token
from ieltsprep.main import app
from ieltsprep.models import Content, ContentType, Module, User
from ieltsprep.services.locks import (
    EXTEND_SCRIPT,
    RELEASE_SCRIPT,
    DistributedLockService,
    get_lock_service,
)


class FakeRedis:
    """
    In-memory stand-in for the few Redis commands the lock service uses.

    Scripts are recognised by identity with the service's Lua sources.
    """

    def __init__(self):
        self.store: dict[str, str] = {}
        self.expires_at: dict[str, float] = {}
        self.eval_calls = 0

    def _now_ms(self) -> float:
        return time.time() * 1000

    def _purge(self, key: str) -> None:
        deadline = self.expires_at.get(key)
        if deadline is not None and deadline <= self._now_ms():
            self.store.pop(key, None)
            self.expires_at.pop(key, None)

    async def ping(self) -> bool:
        return True

    async def get(self, key: str) -> str | None:
        self._purge(key)
        return self.store.get(key)

    async def set(self, key: str, value: str, nx: bool = False, px: int | None = None):
        self._purge(key)
        if nx and key in self.store:
            return None
        self.store[key] = value
        if px is not None:
            self.expires_at[key] = self._now_ms() + px
        return True

    async def pttl(self, key: str) -> int:
        self._purge(key)
        if key not in self.store:
            return -2
        return int(self.expires_at[key] - self._now_ms())

    async def eval(self, script: str, numkeys: int, key: str, token: str, *args: Any) -> int:
        self.eval_calls += 1
        self._purge(key)
        if self.store.get(key) != token:
            return 0
        if script == RELEASE_SCRIPT:
            del self.store[key]
            self.expires_at.pop(key, None)
            return 1
        if script == EXTEND_SCRIPT:
            self.expires_at[key] = self._now_ms() + int(args[0])
            return 1
        raise AssertionError("unexpected script")

    def expire_now(self, key: str) -> None:
        """Simulate TTL expiry."""
        self.expires_at[key] = self._now_ms() - 1

    async def aclose(self) -> None:
        pass


class FrozenClock:
    """Clock that only moves when told to."""

    def __init__(self, now: datetime | None = None):
        self.now = now or datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now = self.now + timedelta(**kwargs)


def scored(band: float, transcript: str | None = None) -> Scored:
    return Scored(
        band=band,
        rubric_breakdown={"lexical_resource": {"band": band}},
        metrics={"totalWords": 120},
        feedback="Estimated band feedback.",
        transcript=transcript,
    )


def make_pipeline(writing_band: float = 6.5, speaking_band: float = 6.0) -> EvaluationPipeline:
    """Pipeline whose evaluate_* calls are AsyncMocks returning fixed bands."""
    pipeline = EvaluationPipeline(enabled=True)
    pipeline.evaluate_writing = AsyncMock(return_value=scored(writing_band))
    pipeline.evaluate_speaking = AsyncMock(
        side_effect=lambda **kwargs: scored(speaking_band, kwargs.get("transcript") or "transcribed")
    )
    return pipeline


# =============================================================================
# Database
# =============================================================================

@pytest_asyncio.fixture(scope="function")
async def session_maker(tmp_path) -> AsyncGenerator[async_sessionmaker, None]:
    """A fresh SQLite database file per test."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session(session_maker) -> AsyncGenerator[AsyncSession, None]:
    """Create a fresh database session for each test."""
    async with session_maker() as session:
        yield session


# =============================================================================
# Collaborators
# =============================================================================

@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def lock_service(fake_redis: FakeRedis) -> DistributedLockService:
    return DistributedLockService(
        redis_client=fake_redis,
        default_ttl_ms=1000,
        default_retry_attempts=0,
        retry_delay_ms=1,
    )


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def pipeline() -> EvaluationPipeline:
    return make_pipeline()


# =============================================================================
# Data
# =============================================================================

@pytest_asyncio.fixture
async def user(db_session: AsyncSession) -> User:
    user = User(id=uuid.uuid4(), email="candidate@example.com", name="Candidate", is_active=True)
    db_session.add(user)
    await db_session.commit()
    return user


@pytest_asyncio.fixture
async def other_user(db_session: AsyncSession) -> User:
    user = User(id=uuid.uuid4(), email="someone@example.com", name="Someone", is_active=True)
    db_session.add(user)
    await db_session.commit()
    return user


LISTENING_KEY = {f"q{i}": "true" if i % 2 else ["a", "c"] for i in range(1, 41)}
READING_KEY = {f"q{i}": str(i) for i in range(1, 41)}


@pytest_asyncio.fixture
async def seeded_content(db_session: AsyncSession) -> dict[str, Content]:
    """One content item per section slot, plus a Part 3 linked to the Part 2."""
    part2_id = uuid.uuid4()
    items = {
        "listening": Content(
            module=Module.LISTENING.value,
            type=ContentType.LISTENING_SECTION.value,
            title="Campus Tour",
            content_data={"audioUrl": "https://cdn.example.com/a.mp3", "questions": [{"id": "q1"}]},
            answers=LISTENING_KEY,
        ),
        "reading": Content(
            module=Module.READING.value,
            type=ContentType.READING_PASSAGE.value,
            variant="ACADEMIC",
            title="Coral Reefs",
            content_data={"passage": "Coral reefs are...", "questions": [{"id": "q1"}]},
            answers=READING_KEY,
        ),
        "task1": Content(
            module=Module.WRITING.value,
            type=ContentType.TASK1_ACADEMIC.value,
            title="Energy chart",
            content_data={"prompt": "Summarise the chart.", "imageUrl": "chart.png"},
        ),
        "task2": Content(
            module=Module.WRITING.value,
            type=ContentType.TASK2.value,
            variant="ACADEMIC",
            content_data={"prompt": "Discuss both views.", "topic": "Education"},
        ),
        "part1": Content(
            module=Module.SPEAKING.value,
            type=ContentType.SPEAKING_PART1.value,
            content_data={"topic": "Hometown", "questions": ["Where are you from?"]},
        ),
        "part2": Content(
            id=part2_id,
            module=Module.SPEAKING.value,
            type=ContentType.SPEAKING_PART2.value,
            content_data={
                "topic": "A journey",
                "cueCard": {"mainTask": "Describe a journey", "bulletPoints": ["where", "why"]},
            },
        ),
        "part3_unrelated": Content(
            module=Module.SPEAKING.value,
            type=ContentType.SPEAKING_PART3.value,
            content_data={"topic": "Food", "questions": ["Why do diets change?"]},
        ),
        "part3": Content(
            module=Module.SPEAKING.value,
            type=ContentType.SPEAKING_PART3.value,
            content_data={
                "topic": "Travel",
                "questions": ["Why do people travel?"],
                "relatedPart2Id": str(part2_id),
            },
        ),
    }
    db_session.add_all(items.values())
    await db_session.commit()
    return items


def auth_headers(user: User, **token_kwargs: Any) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(str(user.id), **token_kwargs)}"}


# =============================================================================
# HTTP
# =============================================================================

@pytest_asyncio.fixture(scope="function")
async def client(
    db_session: AsyncSession,
    lock_service: DistributedLockService,
    pipeline: EvaluationPipeline,
    clock: FrozenClock,
) -> AsyncGenerator[AsyncClient, None]:
    """Create a test client with database and collaborator overrides."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_lock_service] = lambda: lock_service
    app.dependency_overrides[get_evaluation_pipeline] = lambda: pipeline
    app.dependency_overrides[get_clock] = lambda: clock

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test"
    ) as ac:
        yield ac

    app.dependency_overrides.clear()
