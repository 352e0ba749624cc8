"""
FastAPI application setup for the agileboard API.

Creates the FastAPI app and registers routes. The app owns one
SyncService: it is started (subscribed and loaded) when the app starts
and closed when it shuts down.
"""

import logging
import traceback
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from enum import Enum

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from agileboard import __version__
from agileboard.api.deps import get_service
from agileboard.api.routes import items, reports, snapshot, sprints, users
from agileboard.core.backend import BackendError
from agileboard.core.sync import RecordingNotifier, SyncService

logger = logging.getLogger(__name__)


class ErrorCode(str, Enum):
    """Standard error codes for API responses."""

    # Client errors (4xx)
    VALIDATION_ERROR = "VALIDATION_ERROR"
    NOT_FOUND = "NOT_FOUND"
    INVALID_REQUEST = "INVALID_REQUEST"

    # Server errors (5xx)
    BACKEND_ERROR = "BACKEND_ERROR"
    NOT_CONFIGURED = "NOT_CONFIGURED"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class ErrorResponse(BaseModel):
    """Standard error response model."""

    error_code: ErrorCode
    message: str
    detail: str | None = None
    request_id: str | None = None


def _error_code_for(status_code: int) -> ErrorCode:
    if status_code == status.HTTP_404_NOT_FOUND:
        return ErrorCode.NOT_FOUND
    if status_code == status.HTTP_503_SERVICE_UNAVAILABLE:
        return ErrorCode.NOT_CONFIGURED
    if status_code == status.HTTP_502_BAD_GATEWAY:
        return ErrorCode.BACKEND_ERROR
    if status_code < 500:
        return ErrorCode.INVALID_REQUEST
    return ErrorCode.INTERNAL_ERROR


def _error_response(
    request: Request, status_code: int, error_code: ErrorCode, message: str, detail: str | None
) -> JSONResponse:
    body = ErrorResponse(
        error_code=error_code,
        message=message,
        detail=detail,
        request_id=str(id(request)),
    )
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """
    Handle HTTPException with the standard error response format.

    Logs errors for debugging without exposing stack traces to clients.
    """
    level = logging.ERROR if exc.status_code >= 500 else logging.INFO
    logger.log(
        level,
        "HTTP %d on %s %s: %s",
        exc.status_code,
        request.method,
        request.url.path,
        exc.detail,
        extra={"request_id": id(request)},
    )

    detail_msg = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
    return _error_response(
        request, exc.status_code, _error_code_for(exc.status_code), detail_msg, detail_msg
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Handle validation errors from request bodies and query parameters."""
    logger.warning(
        "Validation error on %s %s: %s",
        request.method,
        request.url.path,
        exc.errors(),
        extra={"request_id": id(request)},
    )

    # Extract first error for user-friendly message
    first_error = exc.errors()[0] if exc.errors() else {}
    field = " -> ".join(str(loc) for loc in first_error.get("loc", []))
    error_msg = first_error.get("msg", "Invalid input")

    return _error_response(
        request,
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        ErrorCode.VALIDATION_ERROR,
        "Request validation failed",
        f"{field}: {error_msg}" if field else error_msg,
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Handle all uncaught exceptions.

    Logs the full traceback but returns a clean error to the client.
    """
    logger.error(
        "Unhandled exception on %s %s: %s\n%s",
        request.method,
        request.url.path,
        str(exc),
        traceback.format_exc(),
        extra={"request_id": id(request)},
    )

    if isinstance(exc, BackendError):
        return _error_response(
            request,
            status.HTTP_502_BAD_GATEWAY,
            ErrorCode.BACKEND_ERROR,
            "Backend operation failed",
            exc.message,
        )
    return _error_response(
        request,
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        ErrorCode.INTERNAL_ERROR,
        "An internal server error occurred",
        str(exc),
    )


def create_app(service: SyncService | None = None) -> FastAPI:
    """
    Build the API around a service.

    Args:
        service: Service to serve; built from the loaded configuration on
            startup when None

    Returns:
        FastAPI application
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if app.state.service is None:
            app.state.service = SyncService.from_config(notifier=RecordingNotifier())
        current: SyncService = app.state.service
        await current.start()
        logger.info("Dashboard API started (configured=%s)", current.configured)
        try:
            yield
        finally:
            await current.aclose()

    app = FastAPI(
        title="Agileboard API",
        description="REST API over the agile dashboard snapshot",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.service = service

    # Configure CORS for local development
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:5173", "http://localhost:3000"],  # Vite default ports
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(snapshot.router, prefix="/api", tags=["snapshot"])
    app.include_router(items.router, prefix="/api", tags=["items"])
    app.include_router(sprints.router, prefix="/api", tags=["sprints"])
    app.include_router(users.router, prefix="/api", tags=["users"])
    app.include_router(reports.router, prefix="/api", tags=["reports"])

    @app.get("/")
    async def root() -> dict[str, str]:
        """Root endpoint - API health check."""
        return {"status": "ok", "message": "Agileboard API"}

    @app.get("/health")
    async def health(request: Request) -> dict[str, object]:
        """Health check endpoint."""
        current = get_service(request)
        return {
            "status": "healthy",
            "configured": current is not None and current.configured,
            "subscribed": current is not None and current.subscribed,
        }

    app.add_exception_handler(HTTPException, http_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(
        RequestValidationError, validation_exception_handler  # type: ignore[arg-type]
    )
    app.add_exception_handler(Exception, general_exception_handler)
    return app


app = create_app()
