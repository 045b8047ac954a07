"""
Application error taxonomy and the FastAPI handlers that render it.

Client errors (validation, auth, invalid state, not found) carry their
message to the caller. Upstream and persistence failures are logged in
full but answered with a generic status line.
"""
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from app.core.logging import get_logger

logger = get_logger(__name__)


class AppError(Exception):
    """Base class for errors that map to an HTTP status."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    public_message: str | None = None

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    @property
    def detail(self) -> str:
        return self.public_message or self.message


class ValidationError(AppError):
    """A required request field is missing or malformed."""

    status_code = status.HTTP_400_BAD_REQUEST


class AuthError(AppError):
    """Missing/invalid store credential or a failed signature check."""

    status_code = status.HTTP_401_UNAUTHORIZED


class InvalidStateError(AppError):
    """The requested transition violates a linkage invariant."""

    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundError(AppError):
    """No linkage or store record exists."""

    status_code = status.HTTP_404_NOT_FOUND


class UpstreamError(AppError):
    """Shopify answered with a non-success status or a GraphQL error payload."""

    status_code = status.HTTP_502_BAD_GATEWAY
    public_message = "Upstream commerce platform error"

    def __init__(self, message: str | list, upstream_status: int | None = None) -> None:
        if isinstance(message, list):
            message = "; ".join(str(e.get("message", e)) if isinstance(e, dict) else str(e) for e in message)
        super().__init__(message)
        self.upstream_status = upstream_status


class PersistenceError(AppError):
    """A local database operation failed."""

    public_message = "Internal server error"


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(
            "Request failed",
            error=exc.message,
            error_type=type(exc).__name__,
            path=request.url.path,
        )
    else:
        logger.info(
            "Request rejected",
            reason=exc.message,
            error_type=type(exc).__name__,
            path=request.url.path,
        )
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "type": type(exc).__name__},
    )


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Render body/query validation failures as 400 with readable field names."""
    problems = []
    for err in exc.errors():
        location = ".".join(str(part) for part in err.get("loc", ()) if part != "body")
        problems.append(f"{location}: {err.get('msg')}" if location else str(err.get("msg")))

    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "detail": "Invalid request: " + "; ".join(problems),
            "type": "ValidationError",
        },
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
