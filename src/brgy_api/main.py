"""FastAPI application factory.

Creates the FastAPI app with lifespan management, exception handlers,
and OpenAPI metadata.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import timedelta

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from loguru import logger

from brgy_api import __version__
from brgy_api.core.config import Settings, get_settings
from brgy_api.core.database import Database
from brgy_api.core.errors import BrgyApiError, InvalidTokenError
from brgy_api.core.logging import setup_logging
from brgy_api.core.security import PasswordHasher, TokenIssuer
from brgy_api.lib.storage import LocalDocumentStorage
from brgy_api.services.notifier import build_notifier


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    """Manage application lifecycle: open the database on startup, dispose on shutdown."""
    settings: Settings = app.state.settings
    setup_logging(settings.log_level, settings.log_dir)
    app.state.database = Database(settings.database_url, schema=settings.database_schema)
    logger.info(f"BrgyKonek API {__version__} starting ({settings.environment})")

    yield

    await app.state.database.dispose()


def register_exception_handlers(app: FastAPI) -> None:
    """Render domain errors as ``{"detail": ..., "code": ...}`` JSON responses.

    Args:
        app: The FastAPI application.
    """

    @app.exception_handler(BrgyApiError)
    async def brgy_api_error_handler(request: Request, exc: BrgyApiError) -> JSONResponse:
        headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, InvalidTokenError) else None
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.message, "code": exc.code},
            headers=headers,
        )


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Signing key and email transport are validated here so that a
    misconfigured deployment fails at startup instead of on first use.

    Args:
        settings: Settings to use. Resolved from the environment when omitted.

    Returns:
        Configured FastAPI application instance.

    Raises:
        SigningKeyMissingError: If no JWT secret is configured.
        EmailNotConfiguredError: If the SMTP backend is selected without credentials.
    """
    settings = settings or get_settings()

    app = FastAPI(
        title="BrgyKonek API",
        description="Barangay resident accounts, authentication and one-time passcodes",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.password_hasher = PasswordHasher()
    app.state.token_issuer = TokenIssuer(
        settings.jwt_secret_key or "",
        algorithm=settings.jwt_algorithm,
        default_ttl=timedelta(days=settings.jwt_expires_in_days),
    )
    app.state.notifier = build_notifier(settings)
    app.state.document_storage = LocalDocumentStorage(settings.upload_dir)

    register_exception_handlers(app)

    # Register middleware and routers
    from brgy_api.api.router import create_router, setup_middleware

    setup_middleware(app, settings)
    app.include_router(create_router(settings))

    return app
