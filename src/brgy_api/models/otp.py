"""One-time password model for email verification and password reset codes."""

import enum
from datetime import datetime

from sqlalchemy import Boolean, DateTime, String, UniqueConstraint, false, func
from sqlalchemy.orm import Mapped, mapped_column

from brgy_api.models.base import Base, UUIDMixin


class OtpPurpose(enum.StrEnum):
    """What an emailed code is allowed to prove."""

    EMAIL_VERIFICATION = "email_verification"
    PASSWORD_RESET = "password_reset"


class OneTimePassword(Base, UUIDMixin):
    """A six-digit code emailed to a user.

    At most one row exists per (email, purpose); requesting a new code
    replaces the previous one.
    """

    __tablename__ = "otps"
    __table_args__ = (UniqueConstraint("email", "purpose", name="uq_otps_email_purpose"),)

    email: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    purpose: Mapped[str] = mapped_column(String(32), nullable=False)
    code: Mapped[str] = mapped_column(String(6), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=false())
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
