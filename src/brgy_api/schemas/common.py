"""Common Pydantic v2 schemas shared across the API.

Provides pagination, error response, and other shared schemas.
"""

from typing import Any

from pydantic import BaseModel, Field


class PaginationParams(BaseModel):
    """Query parameters for paginated endpoints."""

    page: int = Field(default=1, ge=1, description="Page number (1-based)")
    page_size: int = Field(default=20, ge=1, le=100, description="Items per page")


class PaginationMeta(BaseModel):
    """Pagination metadata included in paginated responses."""

    total: int = Field(description="Total number of items")
    page: int = Field(description="Current page number")
    page_size: int = Field(description="Items per page")
    total_pages: int = Field(description="Total number of pages")


class ErrorResponse(BaseModel):
    """Standard error response body."""

    detail: str = Field(description="Human-readable error message")
    code: str | None = Field(default=None, description="Machine-readable error code")


def error_responses(*status_codes: int) -> dict[int | str, dict[str, Any]]:
    """Build a route ``responses=`` mapping documenting ``ErrorResponse`` bodies."""
    return {status_code: {"model": ErrorResponse} for status_code in status_codes}


class MessageResponse(BaseModel):
    """Acknowledgement for operations that return no resource."""

    message: str
