import uuid
from collections.abc import AsyncGenerator, Iterator
from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock

import jwt
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from pydantic import SecretStr
from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from employme.core.config import Settings, settings
from employme.core.email import EmailSender
from employme.core.oauth import ProviderRegistry, build_provider_registry
from employme.core.passwords import hash_password
from employme.models import Account, ExternalIdentity
from employme.models.base import Base

# Security: This is a test-only secret. Production uses a real secret from env.
TEST_AUTH_SECRET = "test-secret-key-that-is-at-least-32-characters-long"  # nosec B105  # gitleaks:allow

TEST_PASSWORD = "correct-horse-battery"  # nosec B105


def create_test_jwt(
    account_id: uuid.UUID,
    *,
    secret: str = TEST_AUTH_SECRET,
    expires_delta: timedelta | None = None,
    iat: datetime | None = None,
    audience: str | None = None,
) -> str:
    """Create a signed session JWT for test authentication.

    Args:
        account_id: Account UUID to encode in the sub claim.
        secret: Signing secret (must match settings.auth_secret in tests).
        expires_delta: Time until expiration. Defaults to 1 hour.
        iat: Issued-at time. Defaults to now.
        audience: aud claim. Defaults to settings.auth_audience.

    Returns:
        Encoded JWT string.
    """
    now = datetime.now(UTC)
    payload = {
        "sub": str(account_id),
        "aud": audience or settings.auth_audience,
        "iss": settings.auth_issuer,
        "exp": now + (expires_delta or timedelta(hours=1)),
        "iat": iat or now,
    }
    return jwt.encode(payload, secret, algorithm="HS256")


async def create_account(
    db: AsyncSession,
    *,
    email: str = "seeker@example.com",
    password: str | None = TEST_PASSWORD,
    first_name: str = "Test",
    last_name: str = "Seeker",
    role: str = "JOB_SEEKER",
    is_verified: bool = True,
    is_active: bool = True,
    **fields,
) -> Account:
    """Insert an Account directly (bypassing services) and flush it."""
    account = Account(
        email=email.lower(),
        password_hash=hash_password(password) if password is not None else None,
        first_name=first_name,
        last_name=last_name,
        role=role,
        is_verified=is_verified,
        is_active=is_active,
        **fields,
    )
    db.add(account)
    await db.flush()
    await db.refresh(account)
    return account


async def deliver_outbox(service) -> None:
    """Send everything a service queued, as the route's background tasks would."""
    for email in service.outbox:
        await email.deliver()
    service.outbox.clear()


async def link_identity_row(
    db: AsyncSession,
    account: Account,
    *,
    provider: str = "google",
    provider_external_id: str = "g-1",
    email_claim: str | None = None,
) -> ExternalIdentity:
    """Insert an ExternalIdentity directly and flush it."""
    identity = ExternalIdentity(
        account_id=account.id,
        provider=provider,
        provider_external_id=provider_external_id,
        email_claim=email_claim or account.email,
    )
    db.add(identity)
    await db.flush()
    await db.refresh(identity)
    return identity


@pytest.fixture(autouse=True)
def _test_settings() -> Iterator[None]:
    """Fast, deterministic settings for every test.

    - bcrypt cost 4 keeps hashing cheap
    - non-Secure cookies so the http://test client sends them back
    - no Resend key, so a real EmailSender never touches the network
    """
    overrides = {
        "auth_secret": SecretStr(TEST_AUTH_SECRET),
        "bcrypt_rounds": 4,
        "auth_cookie_secure": False,
        "resend_api_key": SecretStr(""),
        "environment": "test",
    }
    originals = {key: getattr(settings, key) for key in overrides}
    for key, value in overrides.items():
        setattr(settings, key, value)
    yield
    for key, value in originals.items():
        setattr(settings, key, value)


@pytest_asyncio.fixture
async def db_engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """On-disk SQLite engine with schema created.

    pysqlite/aiosqlite defer BEGIN on their own, which breaks SAVEPOINT.
    The listeners hand transaction control to SQLAlchemy, and foreign keys
    are switched on so ON DELETE CASCADE behaves as in PostgreSQL.
    """
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")

    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, _connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(db_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory bound to the test engine."""
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """Create test database session."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def mock_email_sender() -> AsyncMock:
    """EmailSender double; every send method is an AsyncMock."""
    return AsyncMock(spec=EmailSender)


@pytest.fixture
def providers() -> ProviderRegistry:
    """Provider registry with test credentials for all providers."""
    return build_provider_registry(
        Settings(
            google_client_id="google-client-id",
            google_client_secret=SecretStr("google-client-secret"),
            linkedin_client_id="linkedin-client-id",
            linkedin_client_secret=SecretStr("linkedin-client-secret"),
            facebook_client_id="facebook-client-id",
            facebook_client_secret=SecretStr("facebook-client-secret"),
        )
    )


@pytest_asyncio.fixture
async def client(
    session_factory: async_sessionmaker[AsyncSession],
    mock_email_sender: AsyncMock,
    providers: ProviderRegistry,
) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client wired to the test database and collaborators.

    Each request gets its own session, committed on success like get_db.
    Tests seed and inspect data through session_factory so no transaction
    is held open across requests (SQLite locks the whole file).
    """
    from employme.api.deps import get_email_sender, get_provider_registry
    from employme.core.database import get_db
    from employme.main import app

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_email_sender] = lambda: mock_email_sender
    app.dependency_overrides[get_provider_registry] = lambda: providers

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
