"""
Error taxonomy and the uniform response envelope.

Every error leaves the API as ``{"success": false, "message": ...}``.
Route handlers and services raise the subclasses below (they are plain
``HTTPException`` subclasses, so FastAPI treats them the same way), and
``register_exception_handlers`` renders them.
"""

import logging
from typing import Any, Optional
from fastapi import FastAPI, HTTPException, Request, status
from starlette.exceptions import HTTPException as StarletteHTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)


class ApiError(HTTPException):
    """Base class for errors with a fixed status code"""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Internal server error"

    def __init__(self, message: Optional[str] = None, headers: Optional[dict] = None):
        super().__init__(
            status_code=self.status_code,
            detail=message or self.default_message,
            headers=headers,
        )


class Unauthenticated(ApiError):
    """No credential was presented"""
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Authentication required"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message, headers={"WWW-Authenticate": "Bearer"})


class InvalidToken(ApiError):
    """A credential was presented but failed verification"""
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Invalid access token"


class Unauthorized(ApiError):
    """Valid credential, insufficient role"""
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Insufficient permissions"


class MalformedInput(ApiError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid request"


class MalformedSnapshot(ApiError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid backup file"


class StorageFailure(ApiError):
    # Message stays generic; the cause is only logged server-side
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Database error occurred"


class NotFound(ApiError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Not found"


def envelope(data: Any = None, message: Optional[str] = None, success: bool = True) -> dict:
    """Build the ``{success, data?, message?}`` body shared by every endpoint"""
    body: dict = {"success": success}
    if data is not None:
        body["data"] = data
    if message is not None:
        body["message"] = message
    return body


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    message = exc.detail if isinstance(exc.detail, str) else "Request failed"
    return JSONResponse(
        status_code=exc.status_code,
        content=envelope(message=message, success=False),
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    # Body validation is reported as 400, like every other input error
    errors = exc.errors()
    if errors:
        first = errors[0]
        field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"{field}: {first.get('msg')}" if field else str(first.get("msg"))
    else:
        message = "Invalid request"
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=envelope(message=message, success=False),
    )


async def storage_exception_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    # Query errors that no route mapped itself surface as StorageFailure
    logger.exception(f"Database error on {request.method} {request.url.path}")
    return await http_exception_handler(request, StorageFailure())


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=envelope(message=ApiError.default_message, success=False),
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(SQLAlchemyError, storage_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
