"""Unit tests for the authentication service."""

import asyncio
import uuid
from datetime import date, timedelta
from unittest.mock import AsyncMock

import pytest
from passlib.context import CryptContext
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from brgy_api.core.errors import (
    EmailTakenError,
    InvalidCredentialsError,
    InvalidOtpError,
    InvalidTokenError,
    NotificationFailureError,
    OtpAlreadyUsedError,
    OtpExpiredError,
    TokenExpiredError,
    UserNotFoundError,
)
from brgy_api.core.security import PasswordHasher, TokenIssuer
from brgy_api.models.base import Base
from brgy_api.models.otp import OneTimePassword, OtpPurpose
from brgy_api.models.user import User, UserRole
from brgy_api.schemas.auth import AuthResponse, LoginRequest, ProfileUpdateRequest, RegisterRequest
from brgy_api.services.auth_service import AuthService, generate_otp_code
from brgy_api.services.notifier import ConsoleNotifier
from brgy_api.services.otp_store import OtpStore
from brgy_api.services.user_store import UserStore


def _register_request(**overrides) -> RegisterRequest:
    fields = {"email": "a@x.com", "password": "secret1", "mobile_number": "09171234567"}
    fields.update(overrides)
    return RegisterRequest.model_validate(fields)


class TestGenerateOtpCode:
    def test_six_digits_in_range(self) -> None:
        for _ in range(200):
            code = generate_otp_code()
            assert len(code) == 6
            assert code.isdigit()
            assert 100_000 <= int(code) <= 999_999


class TestRegister:
    async def test_register_then_login(self, auth_service: AuthService, token_issuer: TokenIssuer) -> None:
        registered = await auth_service.register(_register_request())
        assert registered.user.email == "a@x.com"
        assert registered.user.role == UserRole.RESIDENT
        assert registered.user.mobile_number == "09171234567"
        assert token_issuer.verify(registered.token).user_id == registered.user.id

        logged_in = await auth_service.login(LoginRequest(email="a@x.com", password="secret1"))
        assert logged_in.user.id == registered.user.id
        assert token_issuer.verify(logged_in.token).user_id == registered.user.id

    async def test_register_stores_hash_not_password(self, auth_service: AuthService, user_store: UserStore) -> None:
        await auth_service.register(_register_request())
        stored = await user_store.find_by_email("a@x.com")
        assert stored is not None
        assert stored.hashed_password != "secret1"
        assert stored.hashed_password.startswith("$argon2")

    async def test_response_has_no_password(self, auth_service: AuthService) -> None:
        registered = await auth_service.register(_register_request())
        dumped = registered.model_dump()
        assert "password" not in dumped["user"]
        assert "hashed_password" not in dumped["user"]

    async def test_register_profile_fields(self, auth_service: AuthService) -> None:
        registered = await auth_service.register(
            _register_request(name="Ana Reyes", address="Purok 5", birthdate="1990-05-01", user_type="staff")
        )
        assert registered.user.name == "Ana Reyes"
        assert registered.user.address == "Purok 5"
        assert registered.user.birthdate == date(1990, 5, 1)
        assert registered.user.role == UserRole.STAFF

    async def test_duplicate_email_case_insensitive(self, auth_service: AuthService) -> None:
        await auth_service.register(_register_request(email="a@x.com"))
        with pytest.raises(EmailTakenError):
            await auth_service.register(_register_request(email="A@X.COM"))

    async def test_insert_race_maps_to_email_taken(self, auth_service: AuthService, user_store: UserStore) -> None:
        await auth_service.register(_register_request())
        # Simulate a concurrent registration that passed the pre-check.
        user_store.find_by_email = AsyncMock(return_value=None)  # type: ignore[method-assign]
        with pytest.raises(EmailTakenError):
            await auth_service.register(_register_request())

    async def test_signing_failure_creates_no_user(
        self,
        auth_service: AuthService,
        token_issuer: TokenIssuer,
        async_session: AsyncSession,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        def _boom(*_args, **_kwargs) -> str:
            raise RuntimeError("signing backend down")

        monkeypatch.setattr(token_issuer, "issue", _boom)
        with pytest.raises(RuntimeError):
            await auth_service.register(_register_request())
        count = (await async_session.execute(select(func.count(User.id)))).scalar_one()
        assert count == 0


class TestConcurrentRegistration:
    async def test_same_email_has_one_winner(
        self, tmp_path, hasher: PasswordHasher, token_issuer: TokenIssuer, notifier: ConsoleNotifier
    ) -> None:
        engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'register-race.db'}")
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        session_factory = async_sessionmaker(engine, expire_on_commit=False)

        async def register_once() -> AuthResponse:
            async with session_factory() as session:
                service = AuthService(UserStore(session), OtpStore(session), hasher, token_issuer, notifier)
                return await service.register(_register_request())

        try:
            results = await asyncio.gather(register_once(), register_once(), return_exceptions=True)
            async with session_factory() as session:
                count = (await session.execute(select(func.count(User.id)))).scalar_one()
        finally:
            await engine.dispose()

        assert len([r for r in results if isinstance(r, AuthResponse)]) == 1
        assert len([r for r in results if isinstance(r, EmailTakenError)]) == 1
        assert count == 1


class TestLogin:
    async def test_unknown_email_and_wrong_password_indistinguishable(
        self, auth_service: AuthService, sample_user: User
    ) -> None:
        with pytest.raises(InvalidCredentialsError) as unknown:
            await auth_service.login(LoginRequest(email="nobody@example.com", password="secret1"))
        with pytest.raises(InvalidCredentialsError) as wrong:
            await auth_service.login(LoginRequest(email=sample_user.email, password="wrong-password"))
        assert type(unknown.value) is type(wrong.value)
        assert unknown.value.message == wrong.value.message
        assert unknown.value.code == wrong.value.code

    async def test_login_email_case_insensitive(self, auth_service: AuthService, sample_user: User) -> None:
        response = await auth_service.login(LoginRequest(email="JUAN@Example.com", password="secret1"))
        assert response.user.id == sample_user.id

    async def test_legacy_bcrypt_hash_upgraded_on_login(
        self,
        auth_service: AuthService,
        user_store: UserStore,
        hasher: PasswordHasher,
        sample_user: User,
    ) -> None:
        legacy_hash = CryptContext(schemes=["bcrypt"]).hash("oldpass1")
        await user_store.update(sample_user.id, {"hashed_password": legacy_hash})

        await auth_service.login(LoginRequest(email=sample_user.email, password="oldpass1"))

        stored = await user_store.find_by_id(sample_user.id)
        assert stored is not None
        assert hasher.scheme_of(stored.hashed_password) == "argon2"
        assert hasher.verify("oldpass1", stored.hashed_password)

    async def test_current_hash_left_alone(
        self, auth_service: AuthService, user_store: UserStore, sample_user: User
    ) -> None:
        before = sample_user.hashed_password
        await auth_service.login(LoginRequest(email=sample_user.email, password="secret1"))
        stored = await user_store.find_by_id(sample_user.id)
        assert stored is not None
        assert stored.hashed_password == before


class TestProfile:
    async def test_get_profile(self, auth_service: AuthService, sample_user: User) -> None:
        profile = await auth_service.get_profile(sample_user.id)
        assert profile.email == sample_user.email
        assert profile.name == "Juan Dela Cruz"

    async def test_get_profile_missing(self, auth_service: AuthService) -> None:
        with pytest.raises(UserNotFoundError):
            await auth_service.get_profile(uuid.uuid4())

    async def test_partial_update(self, auth_service: AuthService, sample_user: User) -> None:
        updated = await auth_service.update_profile(
            sample_user.id, ProfileUpdateRequest.model_validate({"address": "Purok 7"})
        )
        assert updated.address == "Purok 7"
        assert updated.name == "Juan Dela Cruz"
        assert updated.mobile_number == "09171234567"

    async def test_empty_update_is_noop(self, auth_service: AuthService, sample_user: User) -> None:
        before = await auth_service.get_profile(sample_user.id)
        after = await auth_service.update_profile(sample_user.id, ProfileUpdateRequest.model_validate({}))
        assert after == before

    async def test_explicit_null_clears(self, auth_service: AuthService, sample_user: User) -> None:
        updated = await auth_service.update_profile(
            sample_user.id, ProfileUpdateRequest.model_validate({"mobile_number": None})
        )
        assert updated.mobile_number is None

    async def test_update_missing_user(self, auth_service: AuthService) -> None:
        with pytest.raises(UserNotFoundError):
            await auth_service.update_profile(uuid.uuid4(), ProfileUpdateRequest.model_validate({"name": "X"}))

    async def test_set_clearance_document(self, auth_service: AuthService, sample_user: User) -> None:
        profile = await auth_service.set_clearance_document(sample_user.id, "clearances/2026/10/abc.pdf")
        assert profile.clearance_document == "clearances/2026/10/abc.pdf"


class TestOtp:
    async def test_request_sends_stored_code(
        self, auth_service: AuthService, notifier: ConsoleNotifier, otp_store: OtpStore, sample_user: User, clock
    ) -> None:
        expires_at = await auth_service.request_otp("Juan@example.com")
        assert expires_at == clock.now + timedelta(minutes=10)
        assert len(notifier.sent) == 1
        email, code = notifier.sent[0]
        assert email == sample_user.email
        assert await otp_store.find_active(sample_user.email, code, OtpPurpose.EMAIL_VERIFICATION) is not None

    async def test_request_unknown_email(self, auth_service: AuthService, notifier: ConsoleNotifier) -> None:
        with pytest.raises(UserNotFoundError):
            await auth_service.request_otp("nobody@example.com")
        assert not notifier.sent

    async def test_notification_failure_propagates(
        self, auth_service: AuthService, notifier: ConsoleNotifier, sample_user: User
    ) -> None:
        notifier.send_otp = AsyncMock(side_effect=NotificationFailureError)  # type: ignore[method-assign]
        with pytest.raises(NotificationFailureError):
            await auth_service.request_otp(sample_user.email)

    async def test_verify_then_already_used(
        self, auth_service: AuthService, notifier: ConsoleNotifier, sample_user: User
    ) -> None:
        await auth_service.request_otp(sample_user.email)
        code = notifier.sent[-1][1]
        await auth_service.verify_otp(sample_user.email, code)
        with pytest.raises(OtpAlreadyUsedError):
            await auth_service.verify_otp(sample_user.email, code)

    async def test_valid_at_exact_expiry(
        self, auth_service: AuthService, notifier: ConsoleNotifier, sample_user: User, clock
    ) -> None:
        await auth_service.request_otp(sample_user.email)
        clock.advance(timedelta(minutes=10))
        await auth_service.verify_otp(sample_user.email, notifier.sent[-1][1])

    async def test_expired_just_after_expiry(
        self, auth_service: AuthService, notifier: ConsoleNotifier, sample_user: User, clock
    ) -> None:
        await auth_service.request_otp(sample_user.email)
        clock.advance(timedelta(minutes=10, microseconds=1))
        with pytest.raises(OtpExpiredError):
            await auth_service.verify_otp(sample_user.email, notifier.sent[-1][1])

    async def test_new_code_invalidates_previous(
        self, auth_service: AuthService, notifier: ConsoleNotifier, async_session: AsyncSession, sample_user: User
    ) -> None:
        await auth_service.request_otp(sample_user.email)
        first = notifier.sent[-1][1]
        await auth_service.request_otp(sample_user.email)
        second = notifier.sent[-1][1]

        count = (
            await async_session.execute(
                select(func.count(OneTimePassword.id)).where(OneTimePassword.email == sample_user.email)
            )
        ).scalar_one()
        assert count == 1

        if first != second:
            with pytest.raises(InvalidOtpError):
                await auth_service.verify_otp(sample_user.email, first)
        await auth_service.verify_otp(sample_user.email, second)

    async def test_wrong_code(self, auth_service: AuthService, notifier: ConsoleNotifier, sample_user: User) -> None:
        await auth_service.request_otp(sample_user.email)
        code = notifier.sent[-1][1]
        wrong = "100000" if code != "100000" else "100001"
        with pytest.raises(InvalidOtpError):
            await auth_service.verify_otp(sample_user.email, wrong)

    async def test_verify_unknown_email(self, auth_service: AuthService) -> None:
        with pytest.raises(UserNotFoundError):
            await auth_service.verify_otp("nobody@example.com", "123456")

    async def test_codes_are_scoped_by_purpose(
        self, auth_service: AuthService, notifier: ConsoleNotifier, sample_user: User
    ) -> None:
        await auth_service.request_otp(sample_user.email, OtpPurpose.EMAIL_VERIFICATION)
        code = notifier.sent[-1][1]
        with pytest.raises(InvalidOtpError):
            await auth_service.verify_otp(sample_user.email, code, OtpPurpose.PASSWORD_RESET)

    async def test_custom_ttl(
        self,
        user_store: UserStore,
        otp_store: OtpStore,
        hasher: PasswordHasher,
        token_issuer: TokenIssuer,
        notifier: ConsoleNotifier,
        sample_user: User,
        clock,
    ) -> None:
        service = AuthService(
            user_store, otp_store, hasher, token_issuer, notifier, otp_ttl=timedelta(minutes=1), clock=clock
        )
        expires_at = await service.request_otp(sample_user.email)
        assert expires_at == clock.now + timedelta(minutes=1)


class TestResetPassword:
    async def test_reset_then_login_with_new_password(self, auth_service: AuthService, sample_user: User) -> None:
        await auth_service.reset_password(sample_user.email, "newsecret")
        with pytest.raises(InvalidCredentialsError):
            await auth_service.login(LoginRequest(email=sample_user.email, password="secret1"))
        response = await auth_service.login(LoginRequest(email=sample_user.email, password="newsecret"))
        assert response.user.id == sample_user.id

    async def test_reset_unknown_email(self, auth_service: AuthService) -> None:
        with pytest.raises(UserNotFoundError):
            await auth_service.reset_password("nobody@example.com", "newsecret")


class TestAuthenticateToken:
    async def test_valid_token(self, auth_service: AuthService, token_issuer: TokenIssuer, sample_user: User) -> None:
        user = await auth_service.authenticate_token(token_issuer.issue(sample_user.id))
        assert user.id == sample_user.id

    async def test_token_for_deleted_user(
        self, auth_service: AuthService, token_issuer: TokenIssuer, user_store: UserStore, sample_user: User
    ) -> None:
        token = token_issuer.issue(sample_user.id)
        await user_store.delete(sample_user.id)
        with pytest.raises(InvalidTokenError):
            await auth_service.authenticate_token(token)

    async def test_expired_token(self, auth_service: AuthService, token_issuer: TokenIssuer, sample_user: User) -> None:
        token = token_issuer.issue(sample_user.id, ttl=timedelta(seconds=-1))
        with pytest.raises(TokenExpiredError):
            await auth_service.authenticate_token(token)
