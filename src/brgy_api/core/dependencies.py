"""FastAPI dependency injection for sessions, services, auth, and access control.

Process-wide collaborators (settings, database, password hasher, token
issuer, notifier, document storage) are built once by the application
factory and kept on ``app.state``. Request-scoped services are assembled
from them per request.
"""

from collections.abc import AsyncGenerator, Callable
from datetime import timedelta
from typing import Annotated, Any

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from brgy_api.core.config import Settings
from brgy_api.core.database import Database
from brgy_api.core.errors import InvalidTokenError
from brgy_api.core.security import PasswordHasher, TokenIssuer
from brgy_api.lib.storage import DocumentStorage
from brgy_api.models.user import User
from brgy_api.services.admin_service import AdminService
from brgy_api.services.auth_service import AuthService
from brgy_api.services.notifier import Notifier
from brgy_api.services.otp_store import OtpStore
from brgy_api.services.user_store import UserStore

bearer_scheme = HTTPBearer(auto_error=False, description="Session token returned by register or login")


def get_app_settings(request: Request) -> Settings:
    """Return the settings resolved at startup."""
    return request.app.state.settings


def get_password_hasher(request: Request) -> PasswordHasher:
    return request.app.state.password_hasher


def get_token_issuer(request: Request) -> TokenIssuer:
    return request.app.state.token_issuer


def get_notifier(request: Request) -> Notifier:
    return request.app.state.notifier


def get_document_storage(request: Request) -> DocumentStorage:
    return request.app.state.document_storage


async def get_async_session(request: Request) -> AsyncGenerator[AsyncSession]:
    """Yield an async database session with per-request lifecycle."""
    database: Database = request.app.state.database
    async with database.session() as session:
        yield session


def get_auth_service(
    session: Annotated[AsyncSession, Depends(get_async_session)],
    hasher: Annotated[PasswordHasher, Depends(get_password_hasher)],
    tokens: Annotated[TokenIssuer, Depends(get_token_issuer)],
    notifier: Annotated[Notifier, Depends(get_notifier)],
    settings: Annotated[Settings, Depends(get_app_settings)],
) -> AuthService:
    """Assemble the auth service for one request."""
    return AuthService(
        UserStore(session),
        OtpStore(session),
        hasher,
        tokens,
        notifier,
        otp_ttl=timedelta(minutes=settings.otp_ttl_minutes),
    )


def get_admin_service(
    session: Annotated[AsyncSession, Depends(get_async_session)],
    hasher: Annotated[PasswordHasher, Depends(get_password_hasher)],
    storage: Annotated[DocumentStorage, Depends(get_document_storage)],
) -> AdminService:
    """Assemble the administrator service for one request."""
    return AdminService(UserStore(session), OtpStore(session), hasher, storage)


async def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
    auth_service: Annotated[AuthService, Depends(get_auth_service)],
) -> User:
    """Verify the bearer token and return the authenticated user.

    Raises:
        HTTPException: 401 if the token is missing, invalid, expired, or its user is gone.
    """
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    try:
        return await auth_service.authenticate_token(credentials.credentials)
    except InvalidTokenError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=exc.message,
            headers={"WWW-Authenticate": "Bearer"},
        ) from exc


def require_role(*roles: str) -> Callable[..., Any]:
    """Factory that creates a dependency requiring specific user roles.

    Args:
        *roles: Allowed role names (e.g., "admin", "staff").

    Returns:
        A FastAPI dependency function that validates the user's role.
    """

    async def role_checker(
        current_user: Annotated[User, Depends(get_current_user)],
    ) -> User:
        if current_user.role not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Role '{current_user.role}' does not have access to this resource",
            )
        return current_user

    return role_checker
