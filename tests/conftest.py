"""Test configuration and fixtures.

Each test gets its own in-memory SQLite database (aiosqlite + StaticPool, so
every session shares the one connection), a frozen clock, and recording
collaborators for email and post-commit hooks. Workflows may commit freely;
the database disappears with the engine at the end of the test.
"""

import os
from collections.abc import AsyncGenerator
from datetime import UTC, datetime
from pathlib import Path

from dotenv import load_dotenv

# Settings are read at import time, so the environment must be ready first
test_env_path = Path(__file__).parent.parent / ".env.test"
load_dotenv(test_env_path, override=True)
os.environ.setdefault("ENVIRONMENT", "development")
os.environ.setdefault("POSTGRES_URL", "sqlite+aiosqlite://")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-that-is-long-enough-for-hs256")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from src.database.base import Base  # noqa: E402
from src.database.dependencies import get_db_session  # noqa: E402
from src.features.account.models import Account, AccountRole, AccountStatus, normalize_email  # noqa: E402
from src.features.auth.jwt_utils import TokenService  # noqa: E402
from src.features.auth.service import AuthService  # noqa: E402
from src.main import app  # noqa: E402
from src.shared.clock import FrozenClock, get_clock  # noqa: E402
from src.shared.events import AuthEvent, EventDispatcher, get_event_dispatcher  # noqa: E402
from src.shared.external_id import EntityPrefix, generate_external_id  # noqa: E402
from src.shared.mailer import EmailDeliveryError, get_email_sender  # noqa: E402

DEFAULT_PASSWORD = "P@ssw0rd1"


class RecordingEmailSender:
    """Keeps every message instead of sending it; can be told to fail."""

    def __init__(self):
        self.verifications: list[tuple[str, str, str]] = []
        self.password_resets: list[tuple[str, str, str]] = []
        self.welcomes: list[tuple[str, str]] = []
        self.fail = False

    def _check(self) -> None:
        if self.fail:
            raise EmailDeliveryError("SMTP server unavailable")

    async def send_email_verification(self, to_email: str, to_name: str, otp_code: str) -> None:
        self._check()
        self.verifications.append((to_email, to_name, otp_code))

    async def send_password_reset(self, to_email: str, to_name: str, otp_code: str) -> None:
        self._check()
        self.password_resets.append((to_email, to_name, otp_code))

    async def send_welcome(self, to_email: str, to_name: str) -> None:
        self._check()
        self.welcomes.append((to_email, to_name))


class RecordingHook:
    def __init__(self):
        self.events: list[AuthEvent] = []

    async def __call__(self, events) -> None:
        self.events.extend(events)


# Time


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(datetime(2026, 3, 2, 9, 30, tzinfo=UTC))


# Database Setup - Function Scope (Fresh Database Per Test)


@pytest_asyncio.fixture
async def db_engine() -> AsyncGenerator[AsyncEngine]:
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def session(db_engine: AsyncEngine) -> AsyncGenerator[AsyncSession]:
    session_factory = async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as async_session:
        yield async_session


# Collaborators


@pytest.fixture
def email_sender() -> RecordingEmailSender:
    return RecordingEmailSender()


@pytest.fixture
def recording_hook() -> RecordingHook:
    return RecordingHook()


@pytest.fixture
def dispatcher(recording_hook: RecordingHook) -> EventDispatcher:
    return EventDispatcher([recording_hook])


@pytest.fixture
def token_service(clock: FrozenClock) -> TokenService:
    return TokenService(clock)


@pytest.fixture
def auth_service(session, clock, token_service, email_sender, dispatcher) -> AuthService:
    return AuthService(
        session,
        clock=clock,
        token_service=token_service,
        email_sender=email_sender,
        dispatcher=dispatcher,
    )


# FastAPI Client & Dependency Overrides


@pytest_asyncio.fixture(autouse=True)
async def override_dependencies(session, clock, email_sender, dispatcher):
    """Point the app at the test session, clock and recording collaborators."""

    async def _get_test_session():
        yield session

    app.dependency_overrides[get_db_session] = _get_test_session
    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[get_email_sender] = lambda: email_sender
    app.dependency_overrides[get_event_dispatcher] = lambda: dispatcher
    yield
    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def client() -> AsyncGenerator[AsyncClient]:
    """Async HTTP client speaking to the app in-process.

    HTTPS so the Secure refresh-token cookie is sent back.
    """
    async with AsyncClient(transport=ASGITransport(app=app), base_url="https://test") as ac:
        yield ac


# Test Account Factories


@pytest_asyncio.fixture
async def make_account(session: AsyncSession, clock: FrozenClock):
    """Factory fixture to create test accounts with custom fields.

    Usage:
        account = await make_account()                                 # confirmed customer
        pending = await make_account(email_confirmed=False)            # unverified
        admin = await make_account(roles=[AccountRole.ADMIN])          # admin
        banned = await make_account(status=AccountStatus.BANNED)       # banned

    The account is committed so that workflows sharing the session see it.
    """
    counter = 0

    async def _factory(
        email=None,
        password=DEFAULT_PASSWORD,
        first_name="Test",
        last_name="User",
        roles=None,
        status=AccountStatus.ACTIVE,
        email_confirmed=True,
        **kwargs,
    ) -> Account:
        nonlocal counter
        counter += 1

        if email is None:
            email = f"testuser{counter}@example.com"

        account = Account(
            external_id=generate_external_id(EntityPrefix.ACCOUNT),
            email=email,
            normalized_email=normalize_email(email),
            first_name=first_name,
            last_name=last_name,
            hashed_password=Account.hash_password(password),
            security_stamp=f"stamp-{counter}",
            email_confirmed=email_confirmed,
            roles=[role.value for role in (roles or [AccountRole.CUSTOMER])],
            status=status.value,
            failed_login_attempts=kwargs.pop("failed_login_attempts", 0),
            created_at=clock.now(),
            updated_at=clock.now(),
            **kwargs,
        )
        session.add(account)
        await session.commit()
        return account

    yield _factory


@pytest.fixture
def access_token_for(token_service: TokenService):
    """Issue a valid access token for an account."""

    def _issue(account: Account) -> str:
        return token_service.issue_access_token(
            account_id=account.id,
            external_id=account.external_id,
            email=account.email,
            full_name=account.full_name,
            roles=list(account.roles),
            security_stamp=account.security_stamp,
        )

    return _issue
