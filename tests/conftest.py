"""Shared test fixtures.

Tests run against an in-memory SQLite database (one per test) with Redis
left uninitialized, so realtime publishing and rate limiting are skipped.
"""

from __future__ import annotations

import os
from collections.abc import AsyncGenerator, Awaitable, Callable

os.environ["WD_DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["WD_JWT_ALGORITHM"] = "HS256"
os.environ["WD_JWT_SECRET"] = "test-secret-key-for-wordduel-tests-0123456789abcdef"
os.environ["WD_LOG_FORMAT"] = "console"

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from wordduel.auth.jwt import create_access_token, reset_keys
from wordduel.config import get_settings
from wordduel.database import close_db, create_all, get_session, init_db
from wordduel.db.models import Profile, User, UserRole, Word
from wordduel.gamification.seed import seed_all

get_settings.cache_clear()
reset_keys()

ProfileFactory = Callable[..., Awaitable[Profile]]


@pytest_asyncio.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """A session on a fresh, seeded in-memory database."""
    get_settings.cache_clear()
    reset_keys()
    await init_db(get_settings().database_url)
    await create_all()
    async for session in get_session():
        await seed_all(session)
        yield session
        break
    await close_db()


@pytest_asyncio.fixture
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client for the app, sharing the test database."""
    from wordduel.main import create_app

    app = create_app()
    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def make_profile(db_session: AsyncSession) -> ProfileFactory:
    """Create a user and profile directly in the database (committed)."""
    counter = {"n": 0}

    async def _make(
        username: str | None = None,
        grade: int = 7,
        class_name: str | None = None,
        admin: bool = False,
        **fields: object,
    ) -> Profile:
        counter["n"] += 1
        username = username or f"player{counter['n']}"
        user = User(email=f"{username.lower()}@example.com", password_hash="unused")
        db_session.add(user)
        await db_session.flush()
        profile = Profile(user_id=user.id, username=username, grade=grade, class_name=class_name, **fields)
        db_session.add(profile)
        await db_session.flush()
        if admin:
            db_session.add(UserRole(profile_id=profile.id, role="admin"))
        await db_session.commit()
        return profile

    return _make


@pytest.fixture
def auth_headers() -> Callable[[Profile], dict[str, str]]:
    def _headers(profile: Profile) -> dict[str, str]:
        return {"Authorization": f"Bearer {create_access_token(profile.user_id, profile.id)}"}

    return _headers


@pytest_asyncio.fixture
async def words(db_session: AsyncSession) -> list[Word]:
    """A small English word list for grade 7 plus a few math terms."""
    rows = [
        Word(subject="english", word=f"word{i}", meaning=f"meaning {i}", grade=7, unit=1 + i // 10, difficulty=1)
        for i in range(20)
    ] + [
        Word(subject="math", word=f"term{i}", meaning=f"definition {i}", grade=7, unit=1, difficulty=2, topic="algebra")
        for i in range(5)
    ]
    db_session.add_all(rows)
    await db_session.commit()
    return rows
