"""Shared test fixtures for async database, stores, services, and a controllable clock."""

import uuid
from collections.abc import AsyncGenerator
from datetime import UTC, datetime, timedelta

import pytest
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from brgy_api.core.config import Settings
from brgy_api.core.security import PasswordHasher, TokenIssuer
from brgy_api.lib.storage import LocalDocumentStorage
from brgy_api.models.base import Base
from brgy_api.models.user import User, UserRole
from brgy_api.services.admin_service import AdminService
from brgy_api.services.auth_service import AuthService
from brgy_api.services.notifier import ConsoleNotifier
from brgy_api.services.otp_store import OtpStore
from brgy_api.services.user_store import UserStore

TEST_SECRET = "test-secret-key-not-for-production"


class FakeClock:
    """Callable clock whose time only moves when a test says so."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta: timedelta) -> None:
        self.now += delta


@pytest.fixture
def settings(tmp_path) -> Settings:
    """Test application settings."""
    return Settings(
        database_url="sqlite+aiosqlite:///:memory:",
        jwt_secret_key=TEST_SECRET,
        jwt_algorithm="HS256",
        email_backend="console",
        upload_dir=str(tmp_path / "uploads"),
    )


@pytest.fixture
async def async_engine() -> AsyncGenerator[AsyncEngine]:
    """Create an in-memory async SQLite engine for testing."""
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
async def async_session(async_engine: AsyncEngine) -> AsyncGenerator[AsyncSession]:
    """Create a per-test async session."""
    session_factory = async_sessionmaker(async_engine, expire_on_commit=False)
    async with session_factory() as session:
        yield session


@pytest.fixture
def user_store(async_session: AsyncSession) -> UserStore:
    return UserStore(async_session)


@pytest.fixture
def otp_store(async_session: AsyncSession) -> OtpStore:
    return OtpStore(async_session)


@pytest.fixture(scope="session")
def hasher() -> PasswordHasher:
    return PasswordHasher()


@pytest.fixture
def token_issuer() -> TokenIssuer:
    return TokenIssuer(TEST_SECRET)


@pytest.fixture
def notifier() -> ConsoleNotifier:
    """Notifier that records every code it is asked to send."""
    return ConsoleNotifier()


@pytest.fixture
def document_storage(settings: Settings) -> LocalDocumentStorage:
    return LocalDocumentStorage(settings.upload_dir)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2026, 10, 18, 8, 0, 0, tzinfo=UTC))


@pytest.fixture
def auth_service(
    user_store: UserStore,
    otp_store: OtpStore,
    hasher: PasswordHasher,
    token_issuer: TokenIssuer,
    notifier: ConsoleNotifier,
    clock: FakeClock,
) -> AuthService:
    return AuthService(user_store, otp_store, hasher, token_issuer, notifier, clock=clock)


@pytest.fixture
def admin_service(
    user_store: UserStore, otp_store: OtpStore, hasher: PasswordHasher, document_storage: LocalDocumentStorage
) -> AdminService:
    return AdminService(user_store, otp_store, hasher, document_storage)


@pytest.fixture
async def sample_user(async_session: AsyncSession, hasher: PasswordHasher) -> User:
    """Create a resident account with password 'secret1'."""
    user = User(
        id=uuid.uuid4(),
        name="Juan Dela Cruz",
        email="juan@example.com",
        hashed_password=hasher.hash("secret1"),
        mobile_number="09171234567",
        role=UserRole.RESIDENT,
        address="Purok 3, Barangay San Isidro",
    )
    async_session.add(user)
    await async_session.commit()
    await async_session.refresh(user)
    return user
