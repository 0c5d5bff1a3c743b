"""Authentication and profile API endpoints.

POST /auth/register, POST /auth/login, GET|PATCH /auth/my-profile,
POST /auth/my-profile/clearance, POST /auth/request-otp,
POST /auth/verify-otp, POST /auth/reset-password, GET /health, GET /info.

Service errors propagate as ``BrgyApiError`` and are rendered by the
application-level exception handler.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, UploadFile, status
from loguru import logger

from brgy_api import __version__
from brgy_api.core.config import Settings
from brgy_api.core.errors import BrgyApiError
from brgy_api.core.dependencies import (
    get_app_settings,
    get_auth_service,
    get_current_user,
    get_document_storage,
)
from brgy_api.lib.storage import DocumentStorage, validate_document_content_type, validate_document_extension
from brgy_api.models.otp import OtpPurpose
from brgy_api.models.user import User
from brgy_api.schemas.auth import (
    AuthResponse,
    LoginRequest,
    OtpRequest,
    OtpVerifyRequest,
    PasswordResetRequest,
    ProfileUpdateRequest,
    RegisterRequest,
    UserResponse,
)
from brgy_api.schemas.common import MessageResponse, error_responses
from brgy_api.services.auth_service import AuthService

router = APIRouter(tags=["auth"])

AuthServiceDep = Annotated[AuthService, Depends(get_auth_service)]
CurrentUser = Annotated[User, Depends(get_current_user)]


@router.get("/health", status_code=200)
async def health_check() -> dict:
    """Health check endpoint (no authentication required)."""
    return {"status": "healthy"}


@router.get("/info", status_code=200)
async def info(
    settings: Annotated[Settings, Depends(get_app_settings)],
) -> dict:
    """Return application version and environment."""
    return {
        "version": __version__,
        "environment": settings.environment,
    }


@router.post(
    "/auth/register", response_model=AuthResponse, status_code=201, responses=error_responses(409)
)
async def register(request: RegisterRequest, auth_service: AuthServiceDep) -> AuthResponse:
    """Register a new account and return a session token."""
    return await auth_service.register(request)


@router.post("/auth/login", response_model=AuthResponse, responses=error_responses(401))
async def login(request: LoginRequest, auth_service: AuthServiceDep) -> AuthResponse:
    """Authenticate with email and password."""
    return await auth_service.login(request)


@router.get("/auth/my-profile", response_model=UserResponse, responses=error_responses(401, 404))
async def get_my_profile(current_user: CurrentUser, auth_service: AuthServiceDep) -> UserResponse:
    """Get the authenticated user's profile."""
    return await auth_service.get_profile(current_user.id)


@router.patch("/auth/my-profile", response_model=UserResponse, responses=error_responses(401, 404))
async def update_my_profile(
    request: ProfileUpdateRequest,
    current_user: CurrentUser,
    auth_service: AuthServiceDep,
) -> UserResponse:
    """Partially update the authenticated user's profile."""
    return await auth_service.update_profile(current_user.id, request)


@router.post(
    "/auth/my-profile/clearance", response_model=UserResponse, responses=error_responses(401, 404, 413, 415)
)
async def upload_clearance_document(
    file: UploadFile,
    current_user: CurrentUser,
    auth_service: AuthServiceDep,
    storage: Annotated[DocumentStorage, Depends(get_document_storage)],
    settings: Annotated[Settings, Depends(get_app_settings)],
) -> UserResponse:
    """Upload the barangay clearance document (PDF or image), replacing any previous one."""
    filename = file.filename or ""
    if not validate_document_content_type(file.content_type or "") or not validate_document_extension(filename):
        raise HTTPException(
            status_code=status.HTTP_415_UNSUPPORTED_MEDIA_TYPE,
            detail="Only PDF and image files are allowed",
        )

    content = await file.read()
    max_file_size_bytes = settings.upload_max_file_size_mb * 1024 * 1024
    if len(content) > max_file_size_bytes:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"File exceeds maximum size of {settings.upload_max_file_size_mb} MB",
        )

    previous = current_user.clearance_document
    stored_path = await storage.save(content, filename)
    try:
        profile = await auth_service.set_clearance_document(current_user.id, stored_path)
    except BrgyApiError:
        await storage.delete(stored_path)
        raise

    if previous:
        try:
            await storage.delete(previous)
        except (FileNotFoundError, ValueError) as e:
            logger.warning(f"Could not remove previous clearance document {previous}: {e}")
    return profile


@router.post("/auth/request-otp", response_model=MessageResponse, responses=error_responses(404, 502))
async def request_otp(request: OtpRequest, auth_service: AuthServiceDep) -> MessageResponse:
    """Email a one-time code to a registered address."""
    await auth_service.request_otp(request.email, request.purpose)
    return MessageResponse(message="OTP sent successfully")


@router.post("/auth/verify-otp", response_model=MessageResponse, responses=error_responses(400))
async def verify_otp(request: OtpVerifyRequest, auth_service: AuthServiceDep) -> MessageResponse:
    """Consume a one-time code."""
    await auth_service.verify_otp(request.email, request.code, request.purpose)
    return MessageResponse(message="OTP verified successfully")


@router.post(
    "/auth/reset-password", response_model=MessageResponse, responses=error_responses(400, 404)
)
async def reset_password(request: PasswordResetRequest, auth_service: AuthServiceDep) -> MessageResponse:
    """Set a new password after proving control of the email with a password-reset code."""
    await auth_service.verify_otp(request.email, request.code, OtpPurpose.PASSWORD_RESET)
    await auth_service.reset_password(request.email, request.new_password)
    return MessageResponse(message="Password reset successfully")
