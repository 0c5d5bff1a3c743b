"""User model for resident accounts and role-based access control."""

import enum
from datetime import date

from sqlalchemy import Date, Enum, String
from sqlalchemy.orm import Mapped, mapped_column

from brgy_api.models.base import Base, TimestampMixin, UUIDMixin


class UserRole(enum.StrEnum):
    """Account roles recognised by the portal."""

    RESIDENT = "resident"
    STAFF = "staff"
    ADMIN = "admin"


class User(Base, UUIDMixin, TimestampMixin):
    """A registered portal account.

    Attributes:
        name: Display name, optional at registration.
        email: Unique login identifier, stored lower-cased.
        hashed_password: Password hash in modular-crypt format. Never exposed.
        mobile_number: Philippine mobile number.
        address: Postal address within the barangay.
        birthdate: Date of birth.
        role: Account role (resident, staff or admin).
        clearance_document: Storage path of the uploaded barangay clearance.
    """

    __tablename__ = "users"

    name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    hashed_password: Mapped[str] = mapped_column(String(255), nullable=False)
    mobile_number: Mapped[str | None] = mapped_column(String(20), nullable=True)
    address: Mapped[str | None] = mapped_column(String(200), nullable=True)
    birthdate: Mapped[date | None] = mapped_column(Date, nullable=True)
    role: Mapped[UserRole] = mapped_column(
        Enum(UserRole, name="user_role", native_enum=False, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=UserRole.RESIDENT,
        server_default=UserRole.RESIDENT.value,
    )
    clearance_document: Mapped[str | None] = mapped_column(String(500), nullable=True)
