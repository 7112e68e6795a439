"""
FastAPI application for overall.

Use ``create_app(services)`` to build an app bound to a store and engine.
Errors from the core are mapped to HTTP statuses in one place so route
handlers can simply let them propagate.
"""

from __future__ import annotations

import logging
import traceback
from enum import Enum

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from overall import __version__
from overall.api.routes import groups, local, pulls, settings, sync
from overall.core.config.loader import load_config
from overall.core.errors import (
    ConfigError,
    Conflict,
    InvalidOwner,
    LocalScanFailed,
    NotFound,
    OverallError,
    PersistenceFailed,
    RemoteNotFound,
    RemoteRateLimited,
    RemoteUnavailable,
)
from overall.core.services import Services, build_services

logger = logging.getLogger(__name__)

# Browser origins allowed to call the API: the local web UI dev servers
LOCAL_ORIGINS = [
    "http://localhost:5173",
    "http://localhost:3000",
    "http://127.0.0.1:5173",
    "http://127.0.0.1:3000",
]


class ErrorCode(str, Enum):
    """Standard error codes for API responses."""

    # Client errors (4xx)
    VALIDATION_ERROR = "VALIDATION_ERROR"
    NOT_FOUND = "NOT_FOUND"
    CONFLICT = "CONFLICT"
    INVALID_PATH = "INVALID_PATH"
    RATE_LIMITED = "RATE_LIMITED"

    # Server errors (5xx)
    PERSISTENCE_ERROR = "PERSISTENCE_ERROR"
    REMOTE_UNAVAILABLE = "REMOTE_UNAVAILABLE"
    CONFIG_ERROR = "CONFIG_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class ErrorResponse(BaseModel):
    """Standard error response model."""

    error_code: ErrorCode
    message: str
    detail: str | None = None


# Most specific first; the first isinstance match wins.
ERROR_STATUS: list[tuple[type[Exception], int, ErrorCode]] = [
    (RemoteNotFound, status.HTTP_404_NOT_FOUND, ErrorCode.NOT_FOUND),
    (NotFound, status.HTTP_404_NOT_FOUND, ErrorCode.NOT_FOUND),
    (RemoteRateLimited, status.HTTP_429_TOO_MANY_REQUESTS, ErrorCode.RATE_LIMITED),
    (RemoteUnavailable, status.HTTP_502_BAD_GATEWAY, ErrorCode.REMOTE_UNAVAILABLE),
    (PersistenceFailed, status.HTTP_500_INTERNAL_SERVER_ERROR, ErrorCode.PERSISTENCE_ERROR),
    (Conflict, status.HTTP_409_CONFLICT, ErrorCode.CONFLICT),
    (InvalidOwner, status.HTTP_422_UNPROCESSABLE_ENTITY, ErrorCode.VALIDATION_ERROR),
    (LocalScanFailed, status.HTTP_400_BAD_REQUEST, ErrorCode.INVALID_PATH),
    (ConfigError, status.HTTP_500_INTERNAL_SERVER_ERROR, ErrorCode.CONFIG_ERROR),
]


def map_error(exc: Exception) -> tuple[int, ErrorCode]:
    """
    HTTP status and error code for a core exception.

    Example:
        >>> map_error(RemoteRateLimited("slow down"))
        (429, <ErrorCode.RATE_LIMITED: 'RATE_LIMITED'>)
    """
    for exc_type, http_status, code in ERROR_STATUS:
        if isinstance(exc, exc_type):
            return http_status, code
    return status.HTTP_502_BAD_GATEWAY, ErrorCode.REMOTE_UNAVAILABLE


def _error_body(code: ErrorCode, message: str, detail: str | None = None) -> dict[str, str | None]:
    return ErrorResponse(error_code=code, message=message, detail=detail).model_dump(mode="json")


async def overall_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Map OverallError subclasses to status codes with a consistent body."""
    http_status, code = map_error(exc)
    log = logger.error if http_status >= 500 else logger.info
    log("HTTP %d on %s %s: %s", http_status, request.method, request.url.path, exc)

    headers: dict[str, str] = {}
    if isinstance(exc, RemoteRateLimited) and exc.retry_after is not None:
        headers["Retry-After"] = str(exc.retry_after)

    return JSONResponse(
        status_code=http_status,
        content=_error_body(code, str(exc), type(exc).__name__),
        headers=headers or None,
    )


async def value_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Plain ValueErrors from the core (bad repository id, blank name) are client errors."""
    logger.info("Invalid request on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=_error_body(ErrorCode.VALIDATION_ERROR, str(exc)),
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Render HTTPException in the standard error format."""
    error_code = ErrorCode.INTERNAL_ERROR
    if exc.status_code == status.HTTP_404_NOT_FOUND:
        error_code = ErrorCode.NOT_FOUND
    elif exc.status_code == status.HTTP_409_CONFLICT:
        error_code = ErrorCode.CONFLICT
    elif exc.status_code < 500:
        error_code = ErrorCode.VALIDATION_ERROR

    if exc.status_code >= 500:
        logger.error(
            "HTTP %d on %s %s: %s", exc.status_code, request.method, request.url.path, exc.detail
        )
    else:
        logger.info(
            "HTTP %d on %s %s: %s", exc.status_code, request.method, request.url.path, exc.detail
        )

    detail_msg = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(error_code, detail_msg, detail_msg),
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Return the first validation problem without internal details."""
    logger.warning(
        "Validation error on %s %s: %s", request.method, request.url.path, exc.errors()
    )

    first_error = exc.errors()[0] if exc.errors() else {}
    field = " -> ".join(str(loc) for loc in first_error.get("loc", []))
    error_msg = first_error.get("msg", "Invalid input")

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=_error_body(
            ErrorCode.VALIDATION_ERROR,
            "Request validation failed",
            f"{field}: {error_msg}" if field else error_msg,
        ),
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Log unexpected exceptions with a traceback; return a clean 500."""
    logger.error(
        "Unhandled exception on %s %s: %s\n%s",
        request.method,
        request.url.path,
        exc,
        traceback.format_exc(),
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=_error_body(ErrorCode.INTERNAL_ERROR, "An internal server error occurred", str(exc)),
    )


def create_app(services: Services | None = None) -> FastAPI:
    """
    Create the API application.

    Args:
        services: Pre-built services; built from the loaded config if omitted

    Example:
        >>> app = create_app(build_services(OverallConfig()))
        >>> TestClient(app).get("/health").json()
        {'status': 'healthy'}
    """
    if services is None:
        services = build_services(load_config())

    app = FastAPI(
        title="overall API",
        description="Repository tracker: groups, priorities, sync and local status",
        version=__version__,
    )
    app.state.services = services

    app.add_middleware(
        CORSMiddleware,
        allow_origins=LOCAL_ORIGINS,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(groups.router, prefix="/api", tags=["groups"])
    app.include_router(sync.router, prefix="/api", tags=["sync"])
    app.include_router(local.router, prefix="/api", tags=["local"])
    app.include_router(settings.router, prefix="/api", tags=["config"])
    app.include_router(pulls.router, prefix="/api", tags=["pull requests"])

    app.add_exception_handler(OverallError, overall_error_handler)
    app.add_exception_handler(ValueError, value_error_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, validation_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, general_exception_handler)

    @app.get("/health")
    def health() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "healthy"}

    return app
