"""
ChampStep Backend — Test Configuration (conftest.py)
======================================================

What:  Shared pytest fixtures for the entire test suite.
How:   Each test gets a fresh in-memory SQLite database (aiosqlite) with the
       full schema, so service tests run real SQL including the partial
       unique indexes and foreign keys. Route tests talk to a fresh app through httpx's
       ASGITransport with the session dependency pointed at that database.

Fixture Hierarchy:
    db_engine ──▶ session_factory ──▶ db_session       (service tests)
                              └────▶ test_client      (route tests)
    mock_db_session                                   (failure paths)
    make_dancer / make_crew / make_competition        (row factories)
    user_actor / other_actor / admin_actor            (explicit actors)
    make_token / auth_headers                         (bearer tokens)
"""

import os

# Must be set before app.config is imported anywhere
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["JWT_SECRET"] = "test-secret-not-real"
os.environ["ADMIN_EMAILS"] = "admin@champstep.test"
os.environ["LOG_LEVEL"] = "WARNING"

import time
import uuid
from typing import Optional
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from jose import jwt
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.auth import Actor
from app.config import settings
from app.database import Base, enable_sqlite_foreign_keys, get_db_session
from app.models.competition import Competition, CompetitionResult
from app.models.identity import Crew, Dancer

# Registered on Base.metadata for create_all
from app.models import claim, recommendation  # noqa: F401

ADMIN_EMAIL = "admin@champstep.test"


# ══════════════════════════════════════════════════════════════════════════
# Database
# ══════════════════════════════════════════════════════════════════════════

@pytest_asyncio.fixture
async def db_engine():
    """In-memory SQLite; StaticPool keeps one connection so every session sees the same data."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    enable_sqlite_foreign_keys(engine)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def mock_db_session():
    """
    Mock async session for failure paths a real SQLite database cannot
    produce on demand (dropped connections).
    """
    session = AsyncMock()
    session.execute = AsyncMock()
    session.flush = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.close = AsyncMock()
    session.add = MagicMock()
    return session


# ══════════════════════════════════════════════════════════════════════════
# Row factories
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def make_dancer(db_session):
    async def _make(
        nickname: str,
        name: str,
        user_id: Optional[uuid.UUID] = None,
        is_verified: bool = False,
        **fields,
    ) -> Dancer:
        dancer = Dancer(nickname=nickname, name=name, user_id=user_id, is_verified=is_verified, **fields)
        db_session.add(dancer)
        await db_session.flush()
        return dancer
    return _make


@pytest.fixture
def make_crew(db_session):
    async def _make(name: str, user_id: Optional[uuid.UUID] = None, is_verified: bool = False, **fields) -> Crew:
        crew = Crew(name=name, user_id=user_id, is_verified=is_verified, **fields)
        db_session.add(crew)
        await db_session.flush()
        return crew
    return _make


@pytest.fixture
def make_competition(db_session):
    async def _make(event_name: str, placements=None, **metrics) -> Competition:
        """placements: {dancer_id: placement or None}"""
        competition = Competition(event_name=event_name, **metrics)
        db_session.add(competition)
        await db_session.flush()
        for dancer_id, placement in (placements or {}).items():
            db_session.add(
                CompetitionResult(competition_id=competition.id, dancer_id=dancer_id, placement=placement)
            )
        await db_session.flush()
        return competition
    return _make


# ══════════════════════════════════════════════════════════════════════════
# Actors & tokens
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def user_actor() -> Actor:
    return Actor(user_id=uuid.uuid4(), email="dancer@champstep.test")


@pytest.fixture
def other_actor() -> Actor:
    return Actor(user_id=uuid.uuid4(), email="other@champstep.test")


@pytest.fixture
def admin_actor() -> Actor:
    return Actor(user_id=uuid.uuid4(), email=ADMIN_EMAIL, is_admin=True)


@pytest.fixture
def make_token():
    """Mints tokens shaped like the auth provider's, signed with the test secret."""
    def _make(
        user_id: Optional[uuid.UUID] = None,
        email: Optional[str] = None,
        role: Optional[str] = None,
        expires_in: int = 3600,
        secret: Optional[str] = None,
        audience: Optional[str] = None,
    ) -> str:
        now = int(time.time())
        claims = {
            "sub": str(user_id or uuid.uuid4()),
            "aud": audience or settings.jwt_audience,
            "iat": now,
            "exp": now + expires_in,
        }
        if email:
            claims["email"] = email
        if role:
            claims["app_metadata"] = {"role": role}
        return jwt.encode(claims, secret or settings.jwt_secret, algorithm=settings.jwt_algorithm)
    return _make


@pytest.fixture
def auth_headers(make_token):
    def _headers(actor: Actor) -> dict:
        return {"Authorization": f"Bearer {make_token(user_id=actor.user_id, email=actor.email)}"}
    return _headers


# ══════════════════════════════════════════════════════════════════════════
# HTTP client
# ══════════════════════════════════════════════════════════════════════════

@pytest_asyncio.fixture
async def test_client(session_factory):
    """
    Fresh app per test (fresh rate limiter) with get_db_session bound to the
    test database. Commit / rollback semantics match production.
    """
    from app.main import create_app

    app = create_app()

    async def _test_session():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db_session] = _test_session

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
