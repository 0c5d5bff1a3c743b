"""CORS, rate limiting, security headers, and request logging middleware."""

import time
from typing import Any

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.types import ASGIApp

from brgy_api.core.config import Settings


def get_client_ip(request: Request, trusted_headers: list[str] | None = None) -> str:
    """Extract the client IP from trusted proxy headers or the direct connection.

    Only headers named in ``trusted_headers`` are consulted, so a deployment
    without a reverse proxy must leave the list empty. For X-Forwarded-For the
    rightmost entry is used: it is the hop appended by the trusted proxy,
    while entries to its left are whatever the client sent.

    Args:
        request: The incoming Starlette request.
        trusted_headers: Ordered list of header names to check. None or
            empty means proxy headers are ignored.

    Returns:
        The client IP address string, or "unknown" if not determinable.
    """
    for header in trusted_headers or []:
        value = request.headers.get(header, "").strip()
        if not value:
            continue
        # X-Forwarded-For: "client, proxy1, proxy2"
        if header.lower() == "x-forwarded-for":
            hops = [hop.strip() for hop in value.split(",") if hop.strip()]
            if hops:
                return hops[-1]
            continue
        return value

    if request.client:
        return request.client.host
    return "unknown"


def setup_cors(app: FastAPI, settings: Settings) -> None:
    """Configure CORS middleware on the FastAPI app.

    Args:
        app: The FastAPI application.
        settings: Application settings.
    """
    kwargs: dict[str, Any] = {
        "allow_credentials": True,
        "allow_methods": ["*"],
        "allow_headers": ["*"],
    }
    if settings.cors_origin_list:
        kwargs["allow_origins"] = settings.cors_origin_list
    if settings.cors_origin_regex.strip():
        kwargs["allow_origin_regex"] = settings.cors_origin_regex.strip()
    app.add_middleware(CORSMiddleware, **kwargs)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["X-XSS-Protection"] = "1; mode=block"
        response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        response.headers["Referrer-Policy"] = "no-referrer"
        return response


class RateLimitMiddleware(BaseHTTPMiddleware):
    """In-memory sliding-window rate limiting per client IP.

    Args:
        app: The wrapped ASGI app.
        max_requests: Requests allowed per client within one window.
        window_seconds: Window length in seconds.
        trusted_proxy_headers: Headers consulted for the real client IP.
    """

    def __init__(
        self,
        app: ASGIApp,
        max_requests: int = 100,
        window_seconds: float = 900.0,
        trusted_proxy_headers: list[str] | None = None,
    ) -> None:
        super().__init__(app)
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.trusted_proxy_headers = trusted_proxy_headers
        self._request_times: dict[str, list[float]] = {}
        self._last_sweep = 0.0

    def _sweep(self, window_start: float) -> None:
        """Drop clients with no requests inside the current window."""
        stale = [ip for ip, times in self._request_times.items() if not times or times[-1] <= window_start]
        for ip in stale:
            del self._request_times[ip]

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        client_ip = get_client_ip(request, self.trusted_proxy_headers)
        now = time.time()
        window_start = now - self.window_seconds

        if now - self._last_sweep >= self.window_seconds:
            self._sweep(window_start)
            self._last_sweep = now

        recent = [t for t in self._request_times.get(client_ip, []) if t > window_start]
        if len(recent) >= self.max_requests:
            self._request_times[client_ip] = recent
            retry_after = max(1, int(recent[0] + self.window_seconds - now))
            return Response(
                content='{"detail":"Too many requests from this IP, please try again later."}',
                status_code=429,
                media_type="application/json",
                headers={"Retry-After": str(retry_after)},
            )

        recent.append(now)
        self._request_times[client_ip] = recent
        return await call_next(request)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log method, path, status and duration of every request. Bodies are never logged."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            elapsed_ms = (time.perf_counter() - started) * 1000
            logger.exception(f"{request.method} {request.url.path} failed after {elapsed_ms:.1f}ms")
            raise
        elapsed_ms = (time.perf_counter() - started) * 1000
        logger.info(f"{request.method} {request.url.path} -> {response.status_code} ({elapsed_ms:.1f}ms)")
        return response
