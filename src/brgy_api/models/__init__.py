"""ORM model registry: import all models so Alembic autogenerate discovers them."""

from brgy_api.models.otp import OneTimePassword, OtpPurpose
from brgy_api.models.user import User, UserRole

__all__ = [
    "OneTimePassword",
    "OtpPurpose",
    "User",
    "UserRole",
]
