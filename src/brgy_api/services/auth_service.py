"""Authentication service.

Handles registration, login, profile retrieval and update, emailed one-time
codes, and password reset. Collaborators (stores, hasher, token issuer,
notifier) are passed in at construction; every operation re-reads the
records it works on and either returns a sanitized result or raises exactly
one ``BrgyApiError`` subclass.
"""

import secrets
import uuid
from collections.abc import Callable
from datetime import UTC, datetime, timedelta

from loguru import logger

from brgy_api.core.errors import (
    EmailTakenError,
    InvalidCredentialsError,
    InvalidOtpError,
    InvalidTokenError,
    OtpAlreadyUsedError,
    OtpExpiredError,
    UserNotFoundError,
)
from brgy_api.core.security import PasswordHasher, TokenIssuer
from brgy_api.models.otp import OtpPurpose
from brgy_api.models.user import User
from brgy_api.schemas.auth import AuthResponse, LoginRequest, ProfileUpdateRequest, RegisterRequest, UserResponse
from brgy_api.services.notifier import Notifier
from brgy_api.services.otp_store import OtpStore
from brgy_api.services.user_store import DuplicateEmailError, UserStore

OTP_TTL = timedelta(minutes=10)


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _as_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes read back from backends without timezone support."""
    return value if value.tzinfo is not None else value.replace(tzinfo=UTC)


def generate_otp_code() -> str:
    """Draw a six-digit code uniformly from 100000-999999."""
    return str(100_000 + secrets.randbelow(900_000))


class AuthService:
    """Orchestrates the account and one-time-code flows.

    Args:
        users: Credential store.
        otps: One-time code store.
        hasher: Password hasher.
        tokens: Session token issuer.
        notifier: OTP delivery channel.
        otp_ttl: How long an issued code stays valid.
        clock: Source of the current UTC time.
    """

    def __init__(
        self,
        users: UserStore,
        otps: OtpStore,
        hasher: PasswordHasher,
        tokens: TokenIssuer,
        notifier: Notifier,
        *,
        otp_ttl: timedelta = OTP_TTL,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._users = users
        self._otps = otps
        self._hasher = hasher
        self._tokens = tokens
        self._notifier = notifier
        self._otp_ttl = otp_ttl
        self._clock = clock

    async def register(self, request: RegisterRequest) -> AuthResponse:
        """Create an account and sign the new user in.

        The token is issued for the pre-assigned user id before the insert,
        so a signing failure cannot leave an account behind.

        Raises:
            EmailTakenError: If the email is already registered, including
                when a concurrent registration wins the insert.
        """
        if await self._users.find_by_email(request.email) is not None:
            raise EmailTakenError

        user = User(
            id=uuid.uuid4(),
            name=request.name,
            email=request.email,
            hashed_password=await self._hasher.hash_async(request.password),
            mobile_number=request.mobile_number,
            role=request.role,
            address=request.address,
            birthdate=request.birthdate,
        )
        token = self._tokens.issue(user.id)

        try:
            user = await self._users.insert(user)
        except DuplicateEmailError:
            raise EmailTakenError from None

        logger.info(f"Registered user {user.id} ({user.role})")
        return self._auth_response(user, token)

    async def login(self, request: LoginRequest) -> AuthResponse:
        """Verify credentials and issue a session token.

        Unknown email and wrong password raise the same error. A match
        against a hash in a deprecated scheme re-hashes the password.

        Raises:
            InvalidCredentialsError: If the credentials do not match.
        """
        user = await self._users.find_by_email(request.email)
        if user is None:
            raise InvalidCredentialsError

        matched, new_hash = await self._hasher.verify_and_update_async(request.password, user.hashed_password)
        if not matched:
            raise InvalidCredentialsError

        if new_hash is not None:
            await self._users.update(user.id, {"hashed_password": new_hash})
            logger.info(f"Upgraded password hash for user {user.id}")

        return self._auth_response(user, self._tokens.issue(user.id))

    async def get_profile(self, user_id: uuid.UUID) -> UserResponse:
        """Return a user's sanitized profile.

        Raises:
            UserNotFoundError: If no such user exists.
        """
        user = await self._users.find_by_id(user_id)
        if user is None:
            raise UserNotFoundError
        return UserResponse.model_validate(user)

    async def update_profile(self, user_id: uuid.UUID, update: ProfileUpdateRequest) -> UserResponse:
        """Apply the fields present in ``update`` to a user's profile.

        Raises:
            UserNotFoundError: If no such user exists.
        """
        user = await self._users.find_by_id(user_id)
        if user is None:
            raise UserNotFoundError

        fields = update.model_dump(exclude_unset=True)
        if not fields:
            return UserResponse.model_validate(user)

        updated = await self._users.update(user_id, fields)
        if updated is None:
            raise UserNotFoundError
        logger.info(f"Updated profile of user {user_id}: {sorted(fields)}")
        return UserResponse.model_validate(updated)

    async def set_clearance_document(self, user_id: uuid.UUID, stored_path: str | None) -> UserResponse:
        """Record (or clear) the stored clearance document reference.

        Raises:
            UserNotFoundError: If no such user exists.
        """
        updated = await self._users.update(user_id, {"clearance_document": stored_path})
        if updated is None:
            raise UserNotFoundError
        return UserResponse.model_validate(updated)

    async def request_otp(self, email: str, purpose: OtpPurpose = OtpPurpose.EMAIL_VERIFICATION) -> datetime:
        """Issue a fresh code for an address, replacing any earlier one, and email it.

        Returns:
            When the new code expires.

        Raises:
            UserNotFoundError: If the email is not registered.
            NotificationFailureError: If the email could not be sent.
        """
        user = await self._users.find_by_email(email)
        if user is None:
            raise UserNotFoundError

        code = generate_otp_code()
        expires_at = self._clock() + self._otp_ttl
        await self._otps.replace(user.email, code, expires_at, purpose)
        await self._notifier.send_otp(user.email, code)
        logger.info(f"Issued {purpose} OTP for user {user.id}, expires {expires_at.isoformat()}")
        return expires_at

    async def verify_otp(
        self,
        email: str,
        code: str,
        purpose: OtpPurpose = OtpPurpose.EMAIL_VERIFICATION,
    ) -> None:
        """Consume a code.

        A code is still valid at exactly its expiry instant.

        Raises:
            UserNotFoundError: If the email is not registered.
            InvalidOtpError: If the code does not match the current one.
            OtpAlreadyUsedError: If the code was already consumed.
            OtpExpiredError: If the code is past its expiry.
        """
        user = await self._users.find_by_email(email)
        if user is None:
            raise UserNotFoundError

        otp = await self._otps.find_active(user.email, code, purpose)
        if otp is None:
            raise InvalidOtpError
        if otp.verified:
            raise OtpAlreadyUsedError
        if self._clock() > _as_utc(otp.expires_at):
            raise OtpExpiredError
        if not await self._otps.mark_verified(otp):
            raise OtpAlreadyUsedError
        logger.info(f"Verified {purpose} OTP for user {user.id}")

    async def reset_password(self, email: str, new_password: str) -> None:
        """Replace a user's password. No token is issued; the user logs in again.

        Raises:
            UserNotFoundError: If the email is not registered.
        """
        user = await self._users.find_by_email(email)
        if user is None:
            raise UserNotFoundError
        await self._users.update(user.id, {"hashed_password": await self._hasher.hash_async(new_password)})
        logger.info(f"Password reset for user {user.id}")

    async def authenticate_token(self, token: str) -> User:
        """Resolve a bearer token to its current user record.

        Raises:
            InvalidTokenError: If the token is invalid or its user no longer exists.
            TokenExpiredError: If the token is past its expiry.
        """
        claims = self._tokens.verify(token)
        user = await self._users.find_by_id(claims.user_id)
        if user is None:
            raise InvalidTokenError
        return user

    def _auth_response(self, user: User, token: str) -> AuthResponse:
        return AuthResponse(
            token=token,
            expires_in=int(self._tokens.default_ttl.total_seconds()),
            user=UserResponse.model_validate(user),
        )
