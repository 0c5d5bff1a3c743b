"""OTP store -- persistence of emailed one-time codes."""

from datetime import datetime

from loguru import logger
from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import set_committed_value

from brgy_api.core.database import translate_store_errors
from brgy_api.core.errors import StoreUnavailableError
from brgy_api.models.otp import OneTimePassword
from brgy_api.services.user_store import normalize_email


class OtpStore:
    """One-time code access over one database session.

    The ``(email, purpose)`` unique constraint guarantees at most one stored
    code per purpose for each address.

    Args:
        session: The database session.
    """

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def delete_all_for(self, email: str, purpose: str | None = None) -> int:
        """Delete every stored code for an address, limited to one purpose when given.

        Returns:
            Number of rows removed.
        """
        conditions = [OneTimePassword.email == normalize_email(email)]
        if purpose is not None:
            conditions.append(OneTimePassword.purpose == purpose)
        with translate_store_errors("delete otps"):
            result = await self._session.execute(delete(OneTimePassword).where(*conditions))
            await self._session.commit()
            return result.rowcount

    async def create(self, email: str, code: str, expires_at: datetime, purpose: str) -> OneTimePassword:
        """Insert a new unverified code."""
        otp = OneTimePassword(
            email=normalize_email(email),
            code=code,
            expires_at=expires_at,
            purpose=purpose,
            verified=False,
        )
        with translate_store_errors("create otp"):
            self._session.add(otp)
            await self._session.commit()
            await self._session.refresh(otp)
        return otp

    async def replace(self, email: str, code: str, expires_at: datetime, purpose: str) -> OneTimePassword:
        """Delete prior codes and insert a new one in a single transaction.

        A concurrent request for the same address and purpose can win the
        insert race; the transaction is then retried once so the latest
        request's code is the one that survives.

        Raises:
            StoreUnavailableError: If the replacement keeps conflicting.
        """
        email = normalize_email(email)
        for attempt in range(2):
            otp = OneTimePassword(email=email, code=code, expires_at=expires_at, purpose=purpose, verified=False)
            with translate_store_errors("replace otp"):
                await self._session.execute(
                    delete(OneTimePassword).where(
                        OneTimePassword.email == email,
                        OneTimePassword.purpose == purpose,
                    )
                )
                self._session.add(otp)
                try:
                    await self._session.commit()
                except IntegrityError:
                    await self._session.rollback()
                    logger.warning(f"Concurrent OTP replacement for {email} ({purpose}), attempt {attempt + 1}")
                    continue
                await self._session.refresh(otp)
            return otp
        raise StoreUnavailableError

    async def find_active(self, email: str, code: str, purpose: str) -> OneTimePassword | None:
        """Return the stored code matching ``code`` for an address and purpose.

        The row is returned whatever its state; callers decide whether it
        is consumed or expired.
        """
        with translate_store_errors("find otp"):
            result = await self._session.execute(
                select(OneTimePassword)
                .where(
                    OneTimePassword.email == normalize_email(email),
                    OneTimePassword.purpose == purpose,
                    OneTimePassword.code == code,
                )
                .execution_options(populate_existing=True)
            )
            return result.scalar_one_or_none()

    async def mark_verified(self, otp: OneTimePassword) -> bool:
        """Consume a code.

        The update is conditional on the code still being unverified, so
        two concurrent verifications cannot both succeed.

        Returns:
            True if this call consumed the code, False if it was already used.
        """
        with translate_store_errors("mark otp verified"):
            result = await self._session.execute(
                update(OneTimePassword)
                .where(OneTimePassword.id == otp.id, OneTimePassword.verified.is_(False))
                .values(verified=True)
            )
            await self._session.commit()
        if result.rowcount == 0:
            return False
        set_committed_value(otp, "verified", True)
        return True
