"""Password hashing and session token signing.

Uses passlib for password hashing and PyJWT for bearer tokens. Hashes are
stored in modular-crypt format, so each one names its own scheme: argon2 is
the current scheme and bcrypt hashes from older deployments still verify.
A successful verification against a deprecated scheme yields a replacement
hash that callers persist, migrating accounts as their owners log in.
"""

import asyncio
import uuid
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

import jwt
from loguru import logger
from passlib.context import CryptContext

from brgy_api.core.errors import InvalidTokenError, SigningKeyMissingError, TokenExpiredError

CURRENT_SCHEME = "argon2"
LEGACY_SCHEMES = ("bcrypt",)


class PasswordHasher:
    """One-way salted password hashing with multi-scheme verification."""

    def __init__(self, schemes: tuple[str, ...] = (CURRENT_SCHEME, *LEGACY_SCHEMES)) -> None:
        self._context = CryptContext(schemes=list(schemes), deprecated="auto")

    def hash(self, password: str) -> str:
        """Hash a plaintext password with the current scheme.

        Args:
            password: The plaintext password to hash.

        Returns:
            The encoded hash string.
        """
        return self._context.hash(password)

    def verify(self, password: str, hashed_password: str) -> bool:
        """Verify a plaintext password against a stored hash of any known scheme.

        Args:
            password: The plaintext password to verify.
            hashed_password: The stored hash.

        Returns:
            True if the password matches, False otherwise (including
            hashes in an unrecognised format).
        """
        matched, _ = self.verify_and_update(password, hashed_password)
        return matched

    def verify_and_update(self, password: str, hashed_password: str) -> tuple[bool, str | None]:
        """Verify a password and compute a replacement hash when the stored one is outdated.

        Args:
            password: The plaintext password to verify.
            hashed_password: The stored hash.

        Returns:
            Tuple of (matched, new_hash). ``new_hash`` is None unless the
            password matched a hash using a deprecated scheme or settings.
        """
        try:
            return self._context.verify_and_update(password, hashed_password)
        except ValueError:
            logger.warning("Stored password hash is in an unrecognised format")
            return False, None

    def scheme_of(self, hashed_password: str) -> str | None:
        """Return the scheme name that produced ``hashed_password``, if known."""
        return self._context.identify(hashed_password, required=False)

    async def hash_async(self, password: str) -> str:
        """Hash a password in a worker thread so the event loop is not blocked."""
        return await asyncio.to_thread(self.hash, password)

    async def verify_and_update_async(self, password: str, hashed_password: str) -> tuple[bool, str | None]:
        """Run ``verify_and_update`` in a worker thread."""
        return await asyncio.to_thread(self.verify_and_update, password, hashed_password)


@dataclass(frozen=True)
class TokenClaims:
    """Verified contents of a session token."""

    user_id: uuid.UUID
    issued_at: datetime
    expires_at: datetime


class TokenIssuer:
    """Signs and verifies bearer session tokens.

    Args:
        secret_key: HMAC signing secret. Must be non-empty.
        algorithm: JWT signing algorithm.
        default_ttl: Token lifetime used when ``issue`` is called without one.

    Raises:
        SigningKeyMissingError: If no signing secret is provided.
    """

    def __init__(
        self,
        secret_key: str | None,
        algorithm: str = "HS256",
        default_ttl: timedelta = timedelta(days=7),
    ) -> None:
        if not secret_key:
            raise SigningKeyMissingError
        self._secret_key = secret_key
        self._algorithm = algorithm
        self.default_ttl = default_ttl

    def issue(self, user_id: uuid.UUID, ttl: timedelta | None = None) -> str:
        """Create a signed token for a user.

        Args:
            user_id: The user the token identifies.
            ttl: Token lifetime; defaults to ``default_ttl``.

        Returns:
            The encoded JWT string.
        """
        issued_at = datetime.now(UTC)
        expires_at = issued_at + (ttl if ttl is not None else self.default_ttl)
        payload = {
            "sub": str(user_id),
            "iat": issued_at,
            "exp": expires_at,
        }
        return jwt.encode(payload, self._secret_key, algorithm=self._algorithm)

    def verify(self, token: str) -> TokenClaims:
        """Decode and validate a token.

        Args:
            token: The JWT string to verify.

        Returns:
            The verified claims.

        Raises:
            TokenExpiredError: If the token is past its expiry.
            InvalidTokenError: If the signature, structure or subject is invalid.
        """
        try:
            payload = jwt.decode(
                token,
                self._secret_key,
                algorithms=[self._algorithm],
                options={"require": ["sub", "iat", "exp"]},
            )
        except jwt.ExpiredSignatureError as exc:
            raise TokenExpiredError from exc
        except jwt.InvalidTokenError as exc:
            raise InvalidTokenError from exc

        try:
            user_id = uuid.UUID(payload["sub"])
        except (TypeError, ValueError) as exc:
            raise InvalidTokenError from exc

        return TokenClaims(
            user_id=user_id,
            issued_at=datetime.fromtimestamp(payload["iat"], tz=UTC),
            expires_at=datetime.fromtimestamp(payload["exp"], tz=UTC),
        )
