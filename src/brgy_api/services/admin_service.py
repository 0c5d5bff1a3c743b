"""Administrator user management.

Profile edits and password changes are separate operations: editing fields
never touches the password, and setting a password always hashes it.
"""

import uuid

from loguru import logger

from brgy_api.core.errors import UserNotFoundError
from brgy_api.core.security import PasswordHasher
from brgy_api.lib.storage import DocumentStorage
from brgy_api.schemas.auth import AdminUserUpdateRequest, UserResponse
from brgy_api.services.otp_store import OtpStore
from brgy_api.services.user_store import UserStore


class AdminService:
    """User administration on behalf of an admin account.

    Args:
        users: Credential store.
        otps: One-time code store, cleared when an account is deleted.
        hasher: Password hasher.
        storage: Clearance document storage.
    """

    def __init__(self, users: UserStore, otps: OtpStore, hasher: PasswordHasher, storage: DocumentStorage) -> None:
        self._users = users
        self._otps = otps
        self._hasher = hasher
        self._storage = storage

    async def list_users(self, page: int = 1, page_size: int = 20) -> tuple[list[UserResponse], int]:
        """List users with pagination.

        Args:
            page: Page number (1-based).
            page_size: Items per page.

        Returns:
            Tuple of (sanitized users, total count).
        """
        users, total = await self._users.list_page(offset=(page - 1) * page_size, limit=page_size)
        return [UserResponse.model_validate(u) for u in users], total

    async def get_user(self, user_id: uuid.UUID) -> UserResponse:
        """Get one user.

        Raises:
            UserNotFoundError: If no such user exists.
        """
        user = await self._users.find_by_id(user_id)
        if user is None:
            raise UserNotFoundError
        return UserResponse.model_validate(user)

    async def update_profile_fields(self, user_id: uuid.UUID, update: AdminUserUpdateRequest) -> UserResponse:
        """Apply the fields present in ``update``; the password is never changed here.

        Raises:
            UserNotFoundError: If no such user exists.
        """
        fields = update.model_dump(exclude_unset=True)
        if "role" in fields and fields["role"] is None:
            del fields["role"]
        user = await self._users.update(user_id, fields)
        if user is None:
            raise UserNotFoundError
        logger.info(f"Admin updated user {user_id}: {sorted(fields)}")
        return UserResponse.model_validate(user)

    async def change_password(self, user_id: uuid.UUID, new_password: str) -> UserResponse:
        """Hash and store a new password for a user.

        Raises:
            UserNotFoundError: If no such user exists.
        """
        user = await self._users.update(user_id, {"hashed_password": await self._hasher.hash_async(new_password)})
        if user is None:
            raise UserNotFoundError
        logger.info(f"Admin changed password of user {user_id}")
        return UserResponse.model_validate(user)

    async def delete_user(self, user_id: uuid.UUID) -> None:
        """Delete a user account with its outstanding codes and clearance document.

        Codes are removed for every purpose so that a later account
        registered under the same email cannot redeem them.

        Raises:
            UserNotFoundError: If no such user exists.
        """
        user = await self._users.find_by_id(user_id)
        if user is None:
            raise UserNotFoundError
        email, clearance_document = user.email, user.clearance_document

        if not await self._users.delete(user_id):
            raise UserNotFoundError
        removed = await self._otps.delete_all_for(email)

        if clearance_document:
            try:
                await self._storage.delete(clearance_document)
            except (FileNotFoundError, ValueError) as e:
                logger.warning(f"Could not remove clearance document {clearance_document}: {e}")
        logger.info(f"Admin deleted user {user_id} ({removed} pending codes removed)")
