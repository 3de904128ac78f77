"""
Pytest configuration and fixtures for TeamInova tests.
"""

import os
from types import SimpleNamespace

# The app module builds its engine at import time; keep it off Postgres
os.environ.setdefault("TEAMINOVA_DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("TEAMINOVA_LOG_LEVEL", "WARNING")

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel

from teaminova.main import app
from teaminova.auth import AuthenticatedUser, get_auth_provider, get_current_user
from teaminova.database import enable_sqlite_savepoints, get_session
from teaminova.error_reporting import ErrorReporter, get_error_reporter
from teaminova.models import UserRole


TEST_DATABASE_URL = "sqlite+aiosqlite://"

ALICE = AuthenticatedUser(uid="uid-alice", email="alice@example.com", name="Alice Admin")
BOB = AuthenticatedUser(uid="uid-bob", email="bob.builder@example.com", name="Bob Builder")
CAROL = AuthenticatedUser(uid="uid-carol", email="carol@example.com", name=None)


class Identity:
    """Who the test client is signed in as; switch with `identity.user = ...`."""

    def __init__(self, user: AuthenticatedUser):
        self.user = user


class FakeAuthProvider:
    """Records auth collaborator calls instead of talking to Firebase."""

    def __init__(self):
        self.resets: list[str] = []
        self.deleted: list[str] = []

    def send_password_reset(self, email: str) -> str:
        self.resets.append(email)
        return f"https://auth.example/reset?email={email}"

    def delete_account(self, uid: str) -> None:
        self.deleted.append(uid)


@pytest_asyncio.fixture(scope="function")
async def test_engine():
    """Create an in-memory test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_savepoints(engine)

    # Create all tables
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def session_maker(test_engine):
    return async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@pytest_asyncio.fixture(scope="function")
async def test_session(session_maker):
    """Create a test database session."""
    async with session_maker() as session:
        yield session


@pytest.fixture
def users():
    """The fake accounts tests sign in as."""
    return SimpleNamespace(alice=ALICE, bob=BOB, carol=CAROL)


@pytest.fixture
def identity():
    return Identity(BOB)


@pytest.fixture
def reporter():
    return ErrorReporter(buffer_size=50)


@pytest.fixture
def auth_provider():
    return FakeAuthProvider()


@pytest_asyncio.fixture(scope="function")
async def client(session_maker, identity, reporter, auth_provider):
    """Create an async test client with test database and a fake viewer."""

    async def override_get_session():
        async with session_maker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_session] = override_get_session
    app.dependency_overrides[get_current_user] = lambda: identity.user
    app.dependency_overrides[get_error_reporter] = lambda: reporter
    app.dependency_overrides[get_auth_provider] = lambda: auth_provider

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture(scope="function")
async def grant_role(session_maker):
    """Insert a role row for an account directly."""

    async def _grant(user: AuthenticatedUser, role: str) -> None:
        async with session_maker() as session:
            session.add(UserRole(user_id=user.uid, role=role))
            await session.commit()

    return _grant


@pytest_asyncio.fixture(scope="function")
async def project(client):
    """A project created through the API by the default viewer."""
    response = await client.post("/projects/", json={"name": "Website Relaunch"})
    assert response.status_code == 201
    return response.json()
