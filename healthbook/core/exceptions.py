"""
Error taxonomy and the exception handlers that render it as JSON.
"""
from fastapi import Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
import logging

logger = logging.getLogger(__name__)

GENERIC_SERVER_ERROR = "An unexpected error occurred. Please try again later."


class AppException(Exception):
    """
    Base exception class for application-specific exceptions.

    ``remove_token`` tells the client to discard any cached credentials.
    """
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, detail: str, status_code: int = None, remove_token: bool = False):
        super().__init__(detail)
        self.detail = detail
        if status_code is not None:
            self.status_code = status_code
        self.remove_token = remove_token


class AuthenticationError(AppException):
    status_code = status.HTTP_401_UNAUTHORIZED

    def __init__(self, detail: str = "Could not validate credentials", remove_token: bool = False):
        super().__init__(detail, remove_token=remove_token)


class AuthorizationError(AppException):
    status_code = status.HTTP_403_FORBIDDEN

    def __init__(self, detail: str = "Invalid or expired token", remove_token: bool = True):
        super().__init__(detail, remove_token=remove_token)


class NotFoundError(AppException):
    status_code = status.HTTP_404_NOT_FOUND


class ConflictError(AppException):
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, detail: str, field: str = None):
        super().__init__(detail)
        self.field = field


class ServiceError(AppException):
    """Storage or other server-side failure; the detail is never shown."""

    def __init__(self, detail: str = GENERIC_SERVER_ERROR, remove_token: bool = False):
        super().__init__(detail, remove_token=remove_token)


class ConfigurationError(ServiceError):
    """Required process configuration is missing."""


async def app_exception_handler(request: Request, exc: AppException):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.detail}")
        message = GENERIC_SERVER_ERROR
    else:
        logger.info(f"{request.method} {request.url.path} rejected ({exc.status_code}): {exc.detail}")
        message = exc.detail

    content = {"message": message}
    if isinstance(exc, ConflictError) and exc.field:
        content["field"] = exc.field
    if exc.remove_token:
        content["removeToken"] = True
    return JSONResponse(status_code=exc.status_code, content=content)


def _field_name(loc) -> str:
    parts = [str(part) for part in loc if part != "body"]
    return ".".join(parts) or "body"


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = [
        {"field": _field_name(error.get("loc", ())), "message": error.get("msg", "Invalid value")}
        for error in exc.errors()
    ]
    logger.info(f"Validation error on {request.url.path}: {errors}")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"message": "Invalid input data", "errors": errors},
    )


def register_exception_handlers(app):
    """Register all exception handlers with the FastAPI application."""
    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
