import re
import uuid
from collections.abc import AsyncGenerator
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any

import jwt
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from pydantic import SecretStr
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from workradar.core.config import Settings
from workradar.core.database import build_session_factory
from workradar.models.base import Base
from workradar.models.user import User
from workradar.services.auth_service import AuthService

# Security: test-only secrets. Production uses real secrets from env.
TEST_AUTH_SECRET = "test-secret-key-that-is-at-least-32-characters-long"  # nosec B105  # gitleaks:allow
TEST_OTP_PEPPER = "test-otp-pepper-0123456789abcdef"  # nosec B105
TEST_PASSWORD = "Secret123"  # nosec B105

TEST_EMAIL = "alice@example.com"
TEST_HANDLE = "alice"

# Matches REG-123456 / PWD-123456 or a bare 6-digit code in an email body
_CODE_IN_TEXT = re.compile(r"\b(?:(?:REG|PWD)-)?[0-9]{6}\b")


def make_test_settings(**overrides: Any) -> Settings:
    """Settings for tests: cheap bcrypt, fixed secrets, no email key.

    Args:
        **overrides: Field values replacing the defaults below.

    Returns:
        Settings instance independent of the process settings.
    """
    values: dict[str, Any] = {
        "environment": "test",
        "auth_secret": SecretStr(TEST_AUTH_SECRET),
        "otp_pepper": SecretStr(TEST_OTP_PEPPER),
        "resend_api_key": SecretStr(""),
        "auth_cookie_secure": False,
        "bcrypt_rounds": 4,  # Low cost factor for fast tests
    }
    values.update(overrides)
    return Settings(**values)


def create_test_jwt(
    user_id: uuid.UUID,
    *,
    secret: str = TEST_AUTH_SECRET,
    expires_delta: timedelta | None = None,
    iat: datetime | None = None,
    audience: str = "workradar",
) -> str:
    """Create a signed JWT for test authentication.

    Args:
        user_id: User UUID to encode in the sub claim.
        secret: Signing secret (must match test settings).
        expires_delta: Time until expiration. Defaults to 1 hour.
        iat: Issued-at time. Defaults to now.
        audience: aud claim.

    Returns:
        Encoded JWT string.
    """
    now = datetime.now(UTC)
    payload = {
        "sub": str(user_id),
        "aud": audience,
        "iss": "workradar",
        "exp": now + (expires_delta or timedelta(hours=1)),
        "iat": iat or now,
    }
    return jwt.encode(payload, secret, algorithm="HS256")


def extract_code(text: str) -> str:
    """Pull the one-time code out of a rendered email body."""
    match = _CODE_IN_TEXT.search(text)
    assert match is not None, "no code in email body"
    return match.group(0)


@dataclass
class SentEmail:
    """One message captured by FakeDispatcher."""

    to: str
    subject: str
    html: str
    text: str | None


class FakeDispatcher:
    """EmailDispatcher that records messages instead of sending them.

    Args:
        configured: Value reported by is_configured().
        succeed: Value returned by send().
    """

    def __init__(self, *, configured: bool = True, succeed: bool = True) -> None:
        self.configured = configured
        self.succeed = succeed
        self.sent: list[SentEmail] = []

    def is_configured(self) -> bool:
        return self.configured

    async def send(
        self, to: str, subject: str, html: str, text: str | None = None
    ) -> bool:
        self.sent.append(SentEmail(to=to, subject=subject, html=html, text=text))
        return self.succeed

    def last_code(self) -> str:
        """Code carried by the most recent message."""
        assert self.sent, "no email sent"
        return extract_code(self.sent[-1].text or self.sent[-1].html)


# =============================================================================
# Database fixtures
# =============================================================================


@pytest_asyncio.fixture(scope="function")
async def db_engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """On-disk SQLite engine with all tables created.

    A file (not :memory:) so concurrent sessions see the same database.
    """
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'workradar_test.db'}",
        echo=False,
        connect_args={"timeout": 30},
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def session_factory(db_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory bound to the test engine."""
    return build_session_factory(db_engine)


@pytest_asyncio.fixture(scope="function")
async def db_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """Create test database session."""
    async with session_factory() as session:
        yield session
        await session.rollback()


# =============================================================================
# Service fixtures
# =============================================================================


@pytest.fixture
def test_settings() -> Settings:
    """Settings value shared by services and API overrides in a test."""
    return make_test_settings()


@pytest.fixture
def dispatcher() -> FakeDispatcher:
    """Configured dispatcher that records every message."""
    return FakeDispatcher()


@pytest.fixture
def auth_service(
    db_session: AsyncSession,
    test_settings: Settings,
    dispatcher: FakeDispatcher,
) -> AuthService:
    """AuthService over the test session with the recording dispatcher."""
    return AuthService(db_session, test_settings, dispatcher)


@pytest_asyncio.fixture
async def registered_user(auth_service: AuthService) -> User:
    """Unverified account alice@example.com / alice / TEST_PASSWORD."""
    result = await auth_service.register(TEST_EMAIL, TEST_HANDLE, TEST_PASSWORD)
    return result.user


@pytest_asyncio.fixture
async def verified_user(
    auth_service: AuthService,
    dispatcher: FakeDispatcher,
    registered_user: User,
) -> User:
    """registered_user after a successful email verification."""
    await auth_service.verify_email(dispatcher.last_code())
    return registered_user


# =============================================================================
# API fixtures
# =============================================================================


@pytest_asyncio.fixture
async def client(
    session_factory: async_sessionmaker[AsyncSession],
    test_settings: Settings,
    dispatcher: FakeDispatcher,
) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client wired to the test database, settings and dispatcher.

    Sets up:
    - get_db override yielding sessions on the test engine
    - get_settings override returning test_settings
    - get_email_dispatcher override returning the recording dispatcher
    """
    from workradar.api.deps import get_email_dispatcher
    from workradar.core.config import get_settings
    from workradar.core.database import get_db
    from workradar.main import app

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_settings] = lambda: test_settings
    app.dependency_overrides[get_email_dispatcher] = lambda: dispatcher

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
