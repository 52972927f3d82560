from http import HTTPStatus
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from loguru import logger
from sqlalchemy.exc import SQLAlchemyError


class AppError(Exception):
    """
    Base for every failure a request handler reports to the client.

    message is user-facing and ends up in the {"error": ...} body, so it
    must never contain a password or a token.
    """
    status: HTTPStatus = HTTPStatus.INTERNAL_SERVER_ERROR
    message: str = "Internal server error"

    def __init__(self, message: Optional[str] = None, *, status: Optional[HTTPStatus] = None) -> None:
        if message is not None:
            self.message = message
        if status is not None:
            self.status = status
        super().__init__(self.message)

    @property
    def status_code(self) -> int:
        return int(self.status)

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.message}


class ValidationError(AppError):
    status = HTTPStatus.BAD_REQUEST
    message = "Invalid request"


class WeakPasswordError(ValidationError):
    message = "Password is too weak"

    def __init__(self, min_length: int) -> None:
        super().__init__(f"Password must be at least {min_length} characters")


class IncorrectCurrentPasswordError(ValidationError):
    message = "Current password is incorrect"


class CourseNotAvailableError(ValidationError):
    message = "This course is not available"


class AuthError(AppError):
    status = HTTPStatus.UNAUTHORIZED
    message = "Authentication required"


class UnauthenticatedError(AuthError):
    message = "No authentication token provided"


class InvalidTokenError(AuthError):
    message = "Invalid authentication token"


class TokenExpiredError(InvalidTokenError):
    message = "Token expired. Please login again."


class InvalidCredentialsError(AuthError):
    message = "Invalid email or password"


class SessionNotFoundError(AuthError):
    message = "Invalid or expired session"


class SessionExpiredError(AuthError):
    message = "Session expired. Please login again."


class NotFoundError(AppError):
    status = HTTPStatus.NOT_FOUND
    message = "Not found"


class CourseNotFoundError(NotFoundError):
    message = "Course not found"


class NotEnrolledError(NotFoundError):
    message = "Not enrolled in this course"


class ConflictError(AppError):
    status = HTTPStatus.CONFLICT
    message = "Conflict"


class DuplicateEmailError(ConflictError):
    message = "Email already registered"


class DuplicateCourseCodeError(ConflictError):
    message = "Course code already exists"


class DuplicateEnrollmentError(ConflictError):
    message = "Already enrolled in this course"


class InternalError(AppError):
    pass


def _validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return ValidationError.message
    first = errors[0]
    field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = str(first.get("msg", ValidationError.message))
    # pydantic prefixes custom validator messages
    message = message.removeprefix("Value error, ")
    return f"{field}: {message}" if field else message


def register_exception_handlers(app: FastAPI) -> None:
    """
    Map every failure onto the JSON error body.

    Auth failures also clear the session cookie so a browser holding a dead
    token stops sending it.
    """

    @app.exception_handler(AppError)
    async def _app_error(request: Request, exc: AppError):
        logger.info(f"{request.method} {request.url.path} -> {exc.status_code} {exc.message}")
        response = JSONResponse(status_code=exc.status_code, content=exc.to_dict())
        if isinstance(exc, AuthError):
            settings = request.app.state.context.settings
            response.delete_cookie(
                key=settings.cookie_name,
                path="/",
                domain=settings.cookie_domain,
                secure=settings.secure_cookies,
                httponly=True,
                samesite=settings.cookie_samesite,
            )
        return response

    @app.exception_handler(RequestValidationError)
    async def _request_validation(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=int(HTTPStatus.BAD_REQUEST),
            content={"error": _validation_message(exc)},
        )

    @app.exception_handler(SQLAlchemyError)
    async def _store_error(request: Request, exc: SQLAlchemyError):
        logger.opt(exception=exc).error(f"Database error on {request.method} {request.url.path}")
        return JSONResponse(status_code=500, content=InternalError().to_dict())

    @app.exception_handler(Exception)
    async def _unhandled(request: Request, exc: Exception):
        logger.opt(exception=exc).error(f"Unhandled error on {request.method} {request.url.path}")
        return JSONResponse(status_code=500, content=InternalError().to_dict())
