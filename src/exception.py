# src/exception.py
from fastapi import FastAPI, HTTPException, Request, status
from fastapi.responses import JSONResponse

from src.logging import get_logger

logger = get_logger(__name__)


class AppException(HTTPException):
    """Base for errors raised by the service layer.

    Each subclass pins an HTTP status and a stable ``code`` that clients can
    branch on; ``detail`` stays a human readable message.
    """

    status_code: int = status.HTTP_400_BAD_REQUEST
    code: str = "bad_request"
    message: str = "Request could not be processed"

    def __init__(self, detail: str | None = None, *, code: str | None = None):
        super().__init__(status_code=self.status_code, detail=detail or self.message)
        if code is not None:
            self.code = code


class ValidationError(AppException):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "VALIDATION_ERROR"
    message = "Invalid request"


class AuthenticationError(AppException):
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "UNAUTHORIZED"
    message = "Could not validate credentials"


class ConflictError(AppException):
    status_code = status.HTTP_409_CONFLICT
    code = "CONFLICT"
    message = "Resource already exists"


class IntegrityFault(AppException):
    """A persisted invariant owned by another flow is broken."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "INTEGRITY_FAULT"
    message = "Data integrity violation"


class OperationFailed(AppException):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "SERVER_ERROR"
    message = "An unexpected error occurred"


def register_exception_handlers(app: FastAPI) -> None:
    """Render service errors as ``{"detail": ..., "code": ...}``."""

    @app.exception_handler(AppException)
    async def handle_app_exception(request: Request, exc: AppException):
        log_fn = logger.error if exc.status_code >= 500 else logger.warning
        log_fn(
            "request_failed",
            path=request.url.path,
            method=request.method,
            status_code=exc.status_code,
            code=exc.code,
            detail=exc.detail,
        )
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail, "code": exc.code},
            headers=exc.headers,
        )
