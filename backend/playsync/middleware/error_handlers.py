"""Centralized error handling for the playback API.

Every error response shares one shape:
``{"error": {"category", "code", "detail", "suggestions"?, "metadata"?}}``
"""

import logging
from typing import Any
from uuid import UUID

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError

from playsync.exceptions import ResourceNotFoundError


logger = logging.getLogger(__name__)


# === Error Categories ===


class ErrorCategory:
    """Error category constants."""

    VALIDATION = "VALIDATION_ERROR"
    RESOURCE_NOT_FOUND = "RESOURCE_NOT_FOUND"
    INTERNAL = "INTERNAL_ERROR"


class ErrorCode:
    """Specific error codes for better client handling."""

    # Validation errors
    INVALID_INPUT = "INVALID_INPUT"

    # Resource errors
    NOT_FOUND = "NOT_FOUND"

    # Internal errors
    INTERNAL = "INTERNAL_ERROR"


# === Error Response Formatting ===


def format_error_response(
    category: str,
    code: str,
    detail: str,
    status_code: int,
    suggestions: list[str] | None = None,
    metadata: dict[str, Any] | None = None,
) -> JSONResponse:
    """Format a consistent error response."""
    content = {
        "error": {
            "category": category,
            "code": code,
            "detail": detail,
        }
    }

    if suggestions:
        content["error"]["suggestions"] = suggestions

    if metadata:
        content["error"]["metadata"] = metadata

    return JSONResponse(status_code=status_code, content=content)


async def handle_not_found_errors(request: Request, exc: ResourceNotFoundError) -> JSONResponse:
    """Handle lookups of progress records or scenes that do not exist."""
    logger.info(f"Not found on {request.method} {request.url.path}: {exc.message}")

    return format_error_response(
        category=ErrorCategory.RESOURCE_NOT_FOUND,
        code=ErrorCode.NOT_FOUND,
        detail=exc.message,
        status_code=status.HTTP_404_NOT_FOUND,
        suggestions=["No progress has been reported for this video and user yet"],
    )


async def handle_validation_errors(
    request: Request, exc: PydanticValidationError | RequestValidationError
) -> JSONResponse:
    """Handle validation errors from Pydantic and FastAPI request parsing."""
    logger.info(f"Validation error on {request.method} {request.url.path}", extra={"error": str(exc)})

    errors = []
    for error in exc.errors():
        field = " -> ".join(str(loc) for loc in error["loc"])
        errors.append({"field": field, "message": error["msg"], "type": error["type"]})

    return format_error_response(
        category=ErrorCategory.VALIDATION,
        code=ErrorCode.INVALID_INPUT,
        detail="Invalid input data",
        status_code=422,
        metadata={"errors": errors},
    )


# === Utility Functions ===


def log_error_context(request: Request, exc: Exception, error_id: UUID | None = None) -> None:
    """Log comprehensive error context for debugging."""
    context = {
        "error_id": str(error_id) if error_id else None,
        "method": request.method,
        "path": request.url.path,
        "query_params": dict(request.query_params),
        "client_host": request.client.host if request.client else "unknown",
        "error_type": type(exc).__name__,
        "error_message": str(exc),
    }

    logger.error("Request failed", extra=context, exc_info=exc)
