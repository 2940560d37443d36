"""
FastAPI Middleware for the Persona API

Provides CORS configuration, request logging, and global error handling.
Application errors (errors.PersonaError) map to HTTP statuses here, in one
place, using the standard error envelope.
"""

import os
import re
import time
import logging
from datetime import datetime, timezone
from typing import Callable, List, Optional

from fastapi import FastAPI, Request, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from errors import (
    AuthRequiredError,
    NotFoundError,
    PersonaError,
    ProviderError,
    StorageError,
    StorageFullError,
    ValidationError,
)
from log_utils import sanitize_for_logging

logger = logging.getLogger(__name__)

# Default allowed origins for localhost development
DEFAULT_CORS_ORIGINS = [
    "http://localhost:3000",
    "http://localhost:5173",
    "http://127.0.0.1:3000",
    "http://127.0.0.1:5173",
]

EXPOSED_HEADERS = ["X-Request-ID", "X-Processing-Time-MS"]
ALLOWED_METHODS = ["GET", "POST", "PATCH", "DELETE", "OPTIONS"]

# Most specific first
ERROR_STATUS = (
    (ValidationError, 422),
    (AuthRequiredError, 401),
    (NotFoundError, 404),
    (StorageFullError, 507),
    (StorageError, 503),
    (ProviderError, 502),
)


def _build_cors_regex_pattern(allowed_origins: List[str]) -> tuple:
    """Build a regex for CORS from origins that may contain subdomain wildcards.

    Args:
        allowed_origins: Allowed origins, e.g. https://*.example.app

    Returns:
        Tuple of (combined_regex_pattern or None, exact_origins list)
    """
    regex_patterns = []
    exact_origins = []

    for origin in allowed_origins:
        if "*." in origin:
            scheme, _, host = origin.partition("://")
            suffix = re.escape(host.split("*.", 1)[1])
            regex_patterns.append(rf"{re.escape(scheme or 'https')}://[\w-]+\.{suffix}")
        else:
            exact_origins.append(origin)

    if not regex_patterns:
        return None, exact_origins

    combined_regex = "|".join(f"({p})" for p in regex_patterns)
    if exact_origins:
        exact_escaped = "|".join(re.escape(o) for o in exact_origins)
        combined_regex = f"({combined_regex})|({exact_escaped})"

    return combined_regex, exact_origins


def setup_cors(app: FastAPI, origins: Optional[List[str]] = None) -> None:
    """Configure CORS middleware for the application.

    Origins come from the api.cors_origins config section, and can be
    overridden with the CORS_ORIGINS environment variable (comma-separated).
    Subdomain wildcards like https://*.example.app are supported.
    """
    cors_origins_env = os.getenv("CORS_ORIGINS", "")
    if cors_origins_env:
        allowed_origins = [origin.strip() for origin in cors_origins_env.split(",") if origin.strip()]
    else:
        allowed_origins = origins or DEFAULT_CORS_ORIGINS

    combined_regex, exact_origins = _build_cors_regex_pattern(allowed_origins)
    if combined_regex:
        app.add_middleware(
            CORSMiddleware,
            allow_origin_regex=combined_regex,
            allow_credentials=True,
            allow_methods=ALLOWED_METHODS,
            allow_headers=["*"],
            expose_headers=EXPOSED_HEADERS,
        )
    else:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=exact_origins,
            allow_credentials=True,
            allow_methods=ALLOWED_METHODS,
            allow_headers=["*"],
            expose_headers=EXPOSED_HEADERS,
        )


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Logs every request with a request id and processing time.

    Bodies are never logged: they carry the names being searched.
    """

    async def dispatch(self, request: Request, call_next: Callable):
        start_time = time.time()
        request_id = request.headers.get("X-Request-ID", str(time.time_ns()))

        request.state.request_id = request_id
        request.state.start_time = start_time

        sanitized_path = sanitize_for_logging(str(request.url.path))
        logger.info(
            "Request: method=%s path=%s request_id=%s",
            request.method,
            sanitized_path,
            request_id,
        )

        try:
            response = await call_next(request)

            processing_time_ms = int((time.time() - start_time) * 1000)
            response.headers["X-Request-ID"] = request_id
            response.headers["X-Processing-Time-MS"] = str(processing_time_ms)

            logger.info(
                "Response: status=%d processing_time_ms=%d request_id=%s",
                response.status_code,
                processing_time_ms,
                request_id,
            )
            return response

        except Exception as exc:
            processing_time_ms = int((time.time() - start_time) * 1000)
            logger.error(
                "Request failed: error=%s processing_time_ms=%d request_id=%s",
                sanitize_for_logging(str(exc)),
                processing_time_ms,
                request_id,
            )
            raise


def create_error_response(
    code: str,
    message: str,
    status_code: int = 500,
    field: str = None,
    suggestion: str = None,
) -> JSONResponse:
    """Create a standardized error response.

    Args:
        code: Error code for programmatic handling
        message: Human-readable message
        status_code: HTTP status code
        field: Field that caused the error (optional)
        suggestion: How to fix the error (optional)
    """
    error_detail = {
        "code": code,
        "message": message,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }

    if field:
        error_detail["field"] = field
    if suggestion:
        error_detail["suggestion"] = suggestion

    return JSONResponse(status_code=status_code, content={"error": error_detail})


def status_for(exc: PersonaError) -> int:
    for error_type, status_code in ERROR_STATUS:
        if isinstance(exc, error_type):
            return status_code
    return 500


async def persona_exception_handler(request: Request, exc: PersonaError) -> JSONResponse:
    """Map application errors to their HTTP status."""
    request_id = getattr(request.state, "request_id", "unknown")
    status_code = status_for(exc)

    log = logger.error if status_code >= 500 else logger.warning
    log(
        "Request error: type=%s status=%d message=%s request_id=%s",
        type(exc).__name__,
        status_code,
        sanitize_for_logging(str(exc)),
        request_id,
    )

    if status_code == 500:
        message = "An unexpected error occurred. Please try again later."
    elif isinstance(exc, StorageError) and not isinstance(exc, (NotFoundError, StorageFullError)):
        # Database messages can leak schema details
        message = "Storage is temporarily unavailable. Please try again later."
    else:
        message = str(exc)

    return create_error_response(
        code=exc.code,
        message=message,
        status_code=status_code,
        field=getattr(exc, "field", None),
        suggestion=exc.suggestion or None,
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Request body/query validation failures, in the standard envelope."""
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = ".".join(str(part) for part in first.get("loc", ())[1:]) or None
    return create_error_response(
        code=ValidationError.code,
        message=first.get("msg", "Invalid request"),
        status_code=422,
        field=field,
    )


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Global exception handler for unhandled errors.

    Sanitizes error messages to prevent information leakage.
    """
    from config_manager import ConfigurationError

    request_id = getattr(request.state, "request_id", "unknown")

    logger.error(
        "Unhandled exception: type=%s message=%s request_id=%s",
        type(exc).__name__,
        sanitize_for_logging(str(exc)),
        request_id,
    )

    if isinstance(exc, ConfigurationError):
        return create_error_response(
            code="CONFIGURATION_ERROR",
            message="Service configuration is invalid. Please contact administrator.",
            status_code=503,
        )

    return create_error_response(
        code="INTERNAL_ERROR",
        message="An unexpected error occurred. Please try again later.",
        status_code=500,
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Handler for HTTP exceptions."""
    request_id = getattr(request.state, "request_id", "unknown")

    logger.warning(
        "HTTP exception: status=%d detail=%s request_id=%s",
        exc.status_code,
        sanitize_for_logging(str(exc.detail)),
        request_id,
    )

    return create_error_response(
        code=f"HTTP_{exc.status_code}",
        message=exc.detail if isinstance(exc.detail, str) else str(exc.detail),
        status_code=exc.status_code,
    )


def setup_exception_handlers(app: FastAPI) -> None:
    """Configure exception handlers for the application."""
    app.add_exception_handler(Exception, global_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(PersonaError, persona_exception_handler)
