"""Administrator user management API endpoints (admin role only).

GET /administrator/users, GET|PUT|DELETE /administrator/users/{user_id},
PUT /administrator/users/{user_id}/password.
"""

import math
import uuid
from typing import Annotated

from fastapi import APIRouter, Depends, Response, status

from brgy_api.core.dependencies import get_admin_service, require_role
from brgy_api.models.user import User
from brgy_api.schemas.auth import AdminUserUpdateRequest, PasswordChangeRequest, UserListResponse, UserResponse
from brgy_api.schemas.common import PaginationMeta, PaginationParams, error_responses
from brgy_api.services.admin_service import AdminService

administrator_router = APIRouter(
    prefix="/administrator", tags=["administrator"], responses=error_responses(401, 403, 404)
)

AdminUser = Annotated[User, Depends(require_role("admin"))]
AdminServiceDep = Annotated[AdminService, Depends(get_admin_service)]


@administrator_router.get("/users", response_model=UserListResponse)
async def list_users(
    _current_user: AdminUser,
    admin_service: AdminServiceDep,
    pagination: Annotated[PaginationParams, Depends()],
) -> UserListResponse:
    """List all users."""
    users, total = await admin_service.list_users(pagination.page, pagination.page_size)
    return UserListResponse(
        items=users,
        pagination=PaginationMeta(
            total=total,
            page=pagination.page,
            page_size=pagination.page_size,
            total_pages=max(1, math.ceil(total / pagination.page_size)),
        ),
    )


@administrator_router.get("/users/{user_id}", response_model=UserResponse)
async def get_user(user_id: uuid.UUID, _current_user: AdminUser, admin_service: AdminServiceDep) -> UserResponse:
    """Get one user."""
    return await admin_service.get_user(user_id)


@administrator_router.put("/users/{user_id}", response_model=UserResponse)
async def update_user(
    user_id: uuid.UUID,
    request: AdminUserUpdateRequest,
    _current_user: AdminUser,
    admin_service: AdminServiceDep,
) -> UserResponse:
    """Update a user's profile fields or role."""
    return await admin_service.update_profile_fields(user_id, request)


@administrator_router.put("/users/{user_id}/password", response_model=UserResponse)
async def change_user_password(
    user_id: uuid.UUID,
    request: PasswordChangeRequest,
    _current_user: AdminUser,
    admin_service: AdminServiceDep,
) -> UserResponse:
    """Set a new password for a user."""
    return await admin_service.change_password(user_id, request.password)


@administrator_router.delete("/users/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_user(user_id: uuid.UUID, _current_user: AdminUser, admin_service: AdminServiceDep) -> Response:
    """Delete a user account."""
    await admin_service.delete_user(user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
