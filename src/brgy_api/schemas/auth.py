"""Authentication, profile and user administration Pydantic v2 schemas.

Request models enforce the input field contracts (email format, password
length, Philippine mobile number format, role set) before the service layer
is called. Response models are sanitized projections of ``User``: the
password hash is never a field.
"""

from datetime import date, datetime
from uuid import UUID

from pydantic import AliasChoices, BaseModel, EmailStr, Field, field_validator

from brgy_api.models.otp import OtpPurpose
from brgy_api.models.user import UserRole
from brgy_api.schemas.common import PaginationMeta

MOBILE_NUMBER_PATTERN = r"^(\+63|0)9\d{9}$"
OTP_CODE_PATTERN = r"^\d{6}$"
MIN_PASSWORD_LENGTH = 6


def _strip(value: object) -> object:
    return value.strip() if isinstance(value, str) else value


class RegisterRequest(BaseModel):
    """Resident self-registration."""

    name: str | None = Field(default=None, min_length=1, max_length=100)
    email: EmailStr
    password: str = Field(min_length=MIN_PASSWORD_LENGTH)
    mobile_number: str | None = Field(default=None, pattern=MOBILE_NUMBER_PATTERN)
    role: UserRole = Field(
        default=UserRole.RESIDENT,
        validation_alias=AliasChoices("user_type", "role"),
        description="Account role; accepted as 'user_type' or 'role'",
    )
    address: str | None = Field(default=None, max_length=200)
    birthdate: date | None = None

    @field_validator("name", "mobile_number", "address", mode="before")
    @classmethod
    def strip_text(cls, v: object) -> object:
        return _strip(v)


class LoginRequest(BaseModel):
    """Login with email and password."""

    email: EmailStr
    password: str = Field(min_length=1)


class ProfileUpdateRequest(BaseModel):
    """Partial profile update.

    Only fields present in the request body are applied; an explicit null
    clears the stored value.
    """

    name: str | None = Field(default=None, min_length=1, max_length=100)
    mobile_number: str | None = Field(default=None, pattern=MOBILE_NUMBER_PATTERN)
    address: str | None = Field(default=None, max_length=200)
    birthdate: date | None = None

    @field_validator("name", "mobile_number", "address", mode="before")
    @classmethod
    def strip_text(cls, v: object) -> object:
        return _strip(v)


class AdminUserUpdateRequest(ProfileUpdateRequest):
    """Administrator update of profile fields, including the role."""

    role: UserRole | None = Field(default=None, validation_alias=AliasChoices("user_type", "role"))


class PasswordChangeRequest(BaseModel):
    """Administrator-set password."""

    password: str = Field(min_length=MIN_PASSWORD_LENGTH)


class OtpRequest(BaseModel):
    """Request an emailed one-time code."""

    email: EmailStr
    purpose: OtpPurpose = OtpPurpose.EMAIL_VERIFICATION


class OtpVerifyRequest(BaseModel):
    """Submit a one-time code."""

    email: EmailStr
    code: str = Field(pattern=OTP_CODE_PATTERN)
    purpose: OtpPurpose = OtpPurpose.EMAIL_VERIFICATION


class PasswordResetRequest(BaseModel):
    """Set a new password, proven by a password-reset code."""

    email: EmailStr
    code: str = Field(pattern=OTP_CODE_PATTERN)
    new_password: str = Field(min_length=MIN_PASSWORD_LENGTH)


class UserResponse(BaseModel):
    """User information without credentials."""

    id: UUID
    name: str | None = None
    email: str
    mobile_number: str | None = None
    role: UserRole
    address: str | None = None
    birthdate: date | None = None
    clearance_document: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    model_config = {"from_attributes": True}


class AuthResponse(BaseModel):
    """Session token plus the authenticated user's profile."""

    token: str
    token_type: str = "bearer"
    expires_in: int = Field(description="Token lifetime in seconds")
    user: UserResponse


class UserListResponse(BaseModel):
    """Paginated list of users."""

    items: list[UserResponse]
    pagination: PaginationMeta
