"""Pytest configuration and shared fixtures for API and service tests."""

import os
import tempfile

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import delete

# Set test DB before app imports so config/engine use it
_DB_DIR = tempfile.mkdtemp(prefix="liubai-tests-")
os.environ.setdefault("DATABASE_URL", f"sqlite+aiosqlite:///{os.path.join(_DB_DIR, 'test.db')}")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("GOOGLE_GEMINI_API_KEY", "")

from liubai.core.auth import create_access_token, hash_password
from liubai.db.base import Base
from liubai.db.session import async_session_maker, engine, init_db
from liubai.main import app
from liubai.models.user import User
from liubai.services.reply_orchestrator import ReplyOrchestrator

pytest_plugins = ["pytest_asyncio"]


class FakeGenerator:
    """Scripted reply generator: yields `fragments`, then raises `error` if set."""

    def __init__(self, fragments=(), error: Exception | None = None):
        self.fragments = list(fragments)
        self.error = error
        self.calls: list[tuple[str, str]] = []

    async def stream(self, system_instruction: str, context: str):
        self.calls.append((system_instruction, context))
        for fragment in self.fragments:
            yield fragment
        if self.error is not None:
            raise self.error


@pytest_asyncio.fixture
async def ensure_db():
    """Create tables (idempotent). No scheduler, no Gemini."""
    await init_db()
    yield


async def _delete_all():
    """Delete all rows in reverse dependency order so tests start clean."""
    async with engine.begin() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            await conn.execute(delete(table))


@pytest_asyncio.fixture
async def clean_db(ensure_db):
    """Empty all tables; pooled connections are dropped afterwards since each test has its own loop."""
    await _delete_all()
    yield
    await engine.dispose()


@pytest.fixture
def make_generator():
    return FakeGenerator


@pytest.fixture
def fake_generator():
    return FakeGenerator(["今天辛苦了，", "早点休息吧。"])


@pytest.fixture
def orchestrator(fake_generator):
    return ReplyOrchestrator(async_session_maker, fake_generator)


@pytest_asyncio.fixture
async def client(clean_db, orchestrator):
    """AsyncClient against the app; lifespan does not run, so the orchestrator is set here."""
    app.state.reply_orchestrator = orchestrator
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac
    await orchestrator.wait_idle()


@pytest_asyncio.fixture
async def test_user(clean_db):
    """Create a user via DB (committed) and return (user_id, email, access_token)."""
    async with async_session_maker() as session:
        user = User(
            email="test@test.com",
            password_hash=hash_password("password123"),
            name="小林",
            energy_reserve_ratio=0.3,
        )
        session.add(user)
        await session.commit()
        await session.refresh(user)
        token = create_access_token(user.id, user.email)
        return user.id, user.email, token


@pytest.fixture
def auth_headers(test_user):
    """Return dict of Authorization header for test_user."""
    _, __, token = test_user
    return {"Authorization": f"Bearer {token}"}
