"""Root API router and middleware registration."""

from fastapi import APIRouter, FastAPI

from brgy_api.api.middleware import (
    RateLimitMiddleware,
    RequestLoggingMiddleware,
    SecurityHeadersMiddleware,
    setup_cors,
)
from brgy_api.core.config import Settings


def create_router(settings: Settings) -> APIRouter:
    """Create the root API router with all sub-routers included.

    Args:
        settings: Application settings.

    Returns:
        Configured API router.
    """
    from brgy_api.api.v1.administrator import administrator_router
    from brgy_api.api.v1.auth import router as auth_router

    root_router = APIRouter(prefix=settings.api_prefix)
    root_router.include_router(auth_router)
    root_router.include_router(administrator_router)

    return root_router


def setup_middleware(app: FastAPI, settings: Settings) -> None:
    """Register all middleware on the FastAPI app.

    Args:
        app: The FastAPI application.
        settings: Application settings.
    """
    setup_cors(app, settings)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        RateLimitMiddleware,
        max_requests=settings.rate_limit_max_requests,
        window_seconds=settings.rate_limit_window_seconds,
        trusted_proxy_headers=settings.trusted_proxy_header_list,
    )
    app.add_middleware(RequestLoggingMiddleware)
