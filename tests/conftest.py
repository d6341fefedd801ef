# tests/conftest.py
import os
from typing import AsyncGenerator
from unittest.mock import AsyncMock

# Settings are read at import time, so the test environment goes in first
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["JWT_SECRET"] = "test-access-secret-0123456789abcdefghij"
os.environ["JWT_REFRESH_SECRET"] = "test-refresh-secret-0123456789abcdefghij"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["GOOGLE_CLIENT_ID"] = "test-client-id.apps.googleusercontent.com"
os.environ["LOG_JSON"] = "false"
os.environ["LOG_LEVEL"] = "WARNING"

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine

from src.affiliate.models import Affiliate, AffiliateStatus
from src.auth.dependencies import get_auth_service
from src.auth.models import User, UserStatus, UserType
from src.auth.oauth import FederatedIdentity
from src.auth.service import AuthService
from src.database import Base, build_session_factory, get_async_session
from src.main import app as fastapi_app
from src.otp.service import OtpService
from src.profile.models import Club
from src.tasks import BackgroundTaskRunner


@pytest.fixture
def sqlite_engine(tmp_path):
    """File-backed SQLite so every session gets its own connection."""
    return create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
        echo=False,
    )


@pytest_asyncio.fixture
async def setup_db(sqlite_engine):
    async with sqlite_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    await sqlite_engine.dispose()


@pytest.fixture
def session_factory(sqlite_engine, setup_db):
    return build_session_factory(sqlite_engine)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def runner(setup_db) -> AsyncGenerator[BackgroundTaskRunner, None]:
    """Background runner drained at teardown so no task outlives its test."""
    task_runner = BackgroundTaskRunner()
    yield task_runner
    await task_runner.drain()


@pytest.fixture
def mailer() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def google_identity() -> FederatedIdentity:
    return FederatedIdentity(
        email="google.user@test.com",
        name="Google User",
        picture="https://lh3.googleusercontent.com/a/photo.jpg",
        subject="google-sub-123",
    )


@pytest.fixture
def identity_verifier(google_identity) -> AsyncMock:
    verifier = AsyncMock()
    verifier.verify_identity_token.return_value = google_identity
    return verifier


@pytest.fixture
def auth_service(mailer, identity_verifier, runner, session_factory) -> AuthService:
    return AuthService(
        OtpService(),
        mailer,
        identity_verifier,
        tasks=runner,
        session_factory=session_factory,
    )


@pytest.fixture
def make_club(db_session: AsyncSession):
    """Create an invited club: a user plus its pre-built club profile."""

    async def _make_club(
        email: str = "club@test.com",
        ref_code: str = "CLUB-001",
        status: UserStatus = UserStatus.PENDING,
    ) -> tuple[User, Club]:
        user = User(
            email=email,
            name=None,
            password_hash=None,
            user_type=UserType.CLUB,
            status=status,
            uses_federated_auth=False,
        )
        db_session.add(user)
        await db_session.flush()
        club = Club(
            user_id=user.id, name="Harbour FC", ref_code=ref_code, onboarding_steps=[1, 2]
        )
        db_session.add(club)
        await db_session.commit()
        return user, club

    return _make_club


@pytest.fixture
def invite(db_session: AsyncSession):
    """Create a pending club invitation for an email address."""

    async def _invite(
        email: str, club: Club, user_type: UserType = UserType.PLAYER
    ) -> Affiliate:
        affiliate = Affiliate(
            email=email,
            club_id=club.id,
            type=user_type,
            status=AffiliateStatus.PENDING,
            ref_code=club.ref_code,
            purpose="Invitation",
            is_approved=False,
        )
        db_session.add(affiliate)
        await db_session.commit()
        return affiliate

    return _invite


@pytest.fixture
def signup_player(auth_service: AuthService, db_session: AsyncSession, make_club, invite):
    """Sign up an invited PLAYER and return (response, club)."""

    async def _signup_player(
        email: str = "player@test.com", password: str = "Password123!"
    ):
        _, club = await make_club()
        await invite(email, club)
        response = await auth_service.signup(
            "Test Player", UserType.PLAYER, email, password, club.ref_code, db_session
        )
        return response, club

    return _signup_player


@pytest_asyncio.fixture
async def app(session_factory, auth_service) -> AsyncGenerator[FastAPI, None]:
    """FastAPI app wired to the test database and collaborators."""

    async def get_test_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    fastapi_app.dependency_overrides[get_async_session] = get_test_db
    fastapi_app.dependency_overrides[get_auth_service] = lambda: auth_service

    yield fastapi_app

    fastapi_app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def async_client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client
