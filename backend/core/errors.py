"""
Domain error taxonomy and the FastAPI handlers that turn it into a uniform
JSON envelope: {"detail": <message>, "error": <code>, "status": <http status>}.

Services raise these at the point of detection; nothing below the API layer
raises HTTPException.
"""
import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class AppError(Exception):
    status_code: int = 500
    code: str = "INTERNAL_ERROR"
    message: str = "Internal server error"
    headers: Optional[dict] = None

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.message
        super().__init__(self.message)


class ValidationError(AppError):
    status_code = 400
    code = "VALIDATION_ERROR"
    message = "Invalid input"


class MissingAsset(AppError):
    status_code = 400
    code = "MISSING_ASSET"
    message = "Required upload is missing"


class InvalidCredentials(AppError):
    status_code = 401
    code = "INVALID_CREDENTIALS"
    # Same wording for unknown identifier and wrong password
    message = "Invalid credentials"


class InvalidToken(AppError):
    status_code = 401
    code = "INVALID_TOKEN"
    message = "Invalid or expired token"


class TokenMismatch(AppError):
    status_code = 401
    code = "TOKEN_MISMATCH"
    message = "Invalid or mismatched refresh token"


class Unauthenticated(AppError):
    status_code = 401
    code = "UNAUTHENTICATED"
    message = "Could not validate credentials"
    headers = {"WWW-Authenticate": "Bearer"}


class Forbidden(AppError):
    status_code = 403
    code = "FORBIDDEN"
    message = "You are not allowed to perform this action"


class NotFound(AppError):
    status_code = 404
    code = "NOT_FOUND"
    message = "Resource not found"


class Conflict(AppError):
    status_code = 409
    code = "CONFLICT"
    message = "Resource already exists"


class DuplicateUser(Conflict):
    code = "DUPLICATE_USER"
    message = "User already exists"


class DuplicateCategory(Conflict):
    code = "DUPLICATE_CATEGORY"
    message = "Category already exists"


class DuplicatePost(Conflict):
    code = "DUPLICATE_POST"
    message = "A post with this slug already exists"


class Internal(AppError):
    pass


class ConfigurationError(Internal):
    message = "Server is misconfigured"


class MediaUploadError(Internal):
    message = "Error while uploading the image"


def error_response(code: str, message: str, status_code: int, headers: Optional[dict] = None) -> JSONResponse:
    payload = {"detail": message, "error": code, "status": status_code}
    return JSONResponse(status_code=status_code, content=payload, headers=headers)


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(AppError)
    async def handle_app_error(request: Request, exc: AppError):
        if exc.status_code >= 500:
            logger.error(f"{exc.code} at {request.url.path}: {exc.message}")
        else:
            logger.info(f"{exc.code} at {request.url.path}: {exc.message}")
        return error_response(exc.code, exc.message, exc.status_code, headers=exc.headers)

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        first = errors[0] if errors else {}
        field = ".".join(str(p) for p in first.get("loc", []) if p not in ("body", "query", "path", "form"))
        message = f"{field}: {first.get('msg')}" if field else (first.get("msg") or "Invalid input")
        return error_response(ValidationError.code, message, 400)

    # Global exception handler to ensure 500s for unexpected errors
    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled error at {request.url.path}: {exc}")
        return error_response(Internal.code, Internal.message, 500)
