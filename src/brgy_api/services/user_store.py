"""Credential store -- persistence of user accounts.

Emails are normalised (trimmed, lower-cased) on every read and write, so
uniqueness and lookups are case-insensitive. Uniqueness itself is enforced
by the database constraint on ``users.email``.
"""

import uuid
from collections.abc import Mapping
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from brgy_api.core.database import translate_store_errors
from brgy_api.models.user import User

_UPDATABLE_USER_FIELDS: frozenset[str] = frozenset(
    {
        "name",
        "mobile_number",
        "address",
        "birthdate",
        "role",
        "clearance_document",
        "hashed_password",
    }
)


class DuplicateEmailError(ValueError):
    """Raised when inserting a user whose email is already registered."""


def normalize_email(email: str) -> str:
    """Return the canonical stored form of an email address."""
    return email.strip().lower()


class UserStore:
    """User record access over one database session.

    Args:
        session: The database session.
    """

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def find_by_email(self, email: str) -> User | None:
        """Look up a user by email (case-insensitive)."""
        with translate_store_errors("find user by email"):
            result = await self._session.execute(select(User).where(User.email == normalize_email(email)))
            return result.scalar_one_or_none()

    async def find_by_id(self, user_id: uuid.UUID) -> User | None:
        """Look up a user by id."""
        with translate_store_errors("find user by id"):
            return await self._session.get(User, user_id, populate_existing=True)

    async def insert(self, user: User) -> User:
        """Persist a new user.

        Args:
            user: The transient User to insert. Its email is normalised.

        Returns:
            The stored User.

        Raises:
            DuplicateEmailError: If the email is already registered.
        """
        user.email = normalize_email(user.email)
        with translate_store_errors("insert user"):
            self._session.add(user)
            try:
                await self._session.commit()
            except IntegrityError:
                await self._session.rollback()
                msg = f"Email '{user.email}' is already registered"
                raise DuplicateEmailError(msg) from None
            await self._session.refresh(user)
        return user

    async def update(self, user_id: uuid.UUID, fields: Mapping[str, Any]) -> User | None:
        """Apply a partial update to a user.

        Only keys present in ``fields`` are written; a value of None clears
        the column. Keys that are not updatable user columns are ignored.

        Args:
            user_id: The user to update.
            fields: Column names mapped to new values.

        Returns:
            The updated User, or None if no such user exists.
        """
        user = await self.find_by_id(user_id)
        if user is None:
            return None
        with translate_store_errors("update user"):
            for field, value in fields.items():
                if field in _UPDATABLE_USER_FIELDS:
                    setattr(user, field, value)
            await self._session.commit()
            await self._session.refresh(user)
        return user

    async def delete(self, user_id: uuid.UUID) -> bool:
        """Delete a user.

        Returns:
            True if a user was deleted, False if it did not exist.
        """
        user = await self.find_by_id(user_id)
        if user is None:
            return False
        with translate_store_errors("delete user"):
            await self._session.delete(user)
            await self._session.commit()
        return True

    async def list_page(self, offset: int = 0, limit: int = 20) -> tuple[list[User], int]:
        """List users ordered by creation time.

        Returns:
            Tuple of (users page, total count).
        """
        with translate_store_errors("list users"):
            count_result = await self._session.execute(select(func.count(User.id)))
            total = count_result.scalar_one()
            result = await self._session.execute(select(User).order_by(User.created_at).offset(offset).limit(limit))
            return list(result.scalars().all()), total
