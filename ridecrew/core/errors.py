"""
Uniform error envelope for the domain API.

Every domain operation returns an ``ApiResponse`` instead of raising. Failures
detected locally are raised as ``AppError`` inside the operation; anything the
Supabase client (or httpx) throws is classified by ``map_supabase_error``.
"""

import functools
import logging
from enum import Enum
from typing import Any, Callable, Dict, Generic, Optional, TypeVar

import httpx
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from pydantic import BaseModel

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ApiErrorCode(str, Enum):
    # Auth errors
    INVALID_CREDENTIALS = "INVALID_CREDENTIALS"
    USER_NOT_FOUND = "USER_NOT_FOUND"
    EMAIL_ALREADY_EXISTS = "EMAIL_ALREADY_EXISTS"
    WEAK_PASSWORD = "WEAK_PASSWORD"
    UNAUTHORIZED = "UNAUTHORIZED"

    # Data errors
    NOT_FOUND = "NOT_FOUND"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    DUPLICATE_ENTRY = "DUPLICATE_ENTRY"

    # System errors
    NETWORK_ERROR = "NETWORK_ERROR"
    SERVER_ERROR = "SERVER_ERROR"
    RATE_LIMITED = "RATE_LIMITED"

    # Ride rules
    RIDE_FULL = "RIDE_FULL"
    RIDE_EXPIRED = "RIDE_EXPIRED"
    ALREADY_PARTICIPANT = "ALREADY_PARTICIPANT"
    NOT_PARTICIPANT = "NOT_PARTICIPANT"
    CANNOT_LEAVE_OWN_RIDE = "CANNOT_LEAVE_OWN_RIDE"


ERROR_MESSAGES: Dict[ApiErrorCode, str] = {
    ApiErrorCode.INVALID_CREDENTIALS: "Invalid email or password. Please try again.",
    ApiErrorCode.USER_NOT_FOUND: "User account not found.",
    ApiErrorCode.EMAIL_ALREADY_EXISTS: "An account with this email already exists.",
    ApiErrorCode.WEAK_PASSWORD: "Password is too weak. Please choose a stronger password.",
    ApiErrorCode.UNAUTHORIZED: "You are not authorized to perform this action.",
    ApiErrorCode.NOT_FOUND: "The requested resource was not found.",
    ApiErrorCode.VALIDATION_ERROR: "Please check your input and try again.",
    ApiErrorCode.DUPLICATE_ENTRY: "This entry already exists.",
    ApiErrorCode.NETWORK_ERROR: "Network error. Please check your connection and try again.",
    ApiErrorCode.SERVER_ERROR: "Something went wrong. Please try again later.",
    ApiErrorCode.RATE_LIMITED: "Too many requests. Please wait a moment and try again.",
    ApiErrorCode.RIDE_FULL: "This ride is already full.",
    ApiErrorCode.RIDE_EXPIRED: "This ride has already started or expired.",
    ApiErrorCode.ALREADY_PARTICIPANT: "You are already participating in this ride.",
    ApiErrorCode.NOT_PARTICIPANT: "You are not participating in this ride.",
    ApiErrorCode.CANNOT_LEAVE_OWN_RIDE: "You cannot leave a ride you created. Cancel the ride instead.",
}

HTTP_STATUS_BY_CODE: Dict[ApiErrorCode, int] = {
    ApiErrorCode.INVALID_CREDENTIALS: 401,
    ApiErrorCode.UNAUTHORIZED: 401,
    ApiErrorCode.USER_NOT_FOUND: 404,
    ApiErrorCode.NOT_FOUND: 404,
    ApiErrorCode.EMAIL_ALREADY_EXISTS: 409,
    ApiErrorCode.DUPLICATE_ENTRY: 409,
    ApiErrorCode.RIDE_FULL: 409,
    ApiErrorCode.RIDE_EXPIRED: 409,
    ApiErrorCode.ALREADY_PARTICIPANT: 409,
    ApiErrorCode.NOT_PARTICIPANT: 409,
    ApiErrorCode.CANNOT_LEAVE_OWN_RIDE: 403,
    ApiErrorCode.WEAK_PASSWORD: 422,
    ApiErrorCode.VALIDATION_ERROR: 422,
    ApiErrorCode.RATE_LIMITED: 429,
    ApiErrorCode.NETWORK_ERROR: 502,
    ApiErrorCode.SERVER_ERROR: 500,
}

# PostgREST: ".single()" matched zero rows
NO_ROWS_CODE = "PGRST116"


class AppError(Exception):
    def __init__(
        self,
        code: ApiErrorCode,
        message: str,
        user_message: Optional[str] = None,
        details: Any = None,
    ):
        super().__init__(message)
        self.code = code
        self.message = message
        self.user_message = user_message or ERROR_MESSAGES.get(code, "An error occurred")
        self.details = details


class ApiError(BaseModel):
    code: ApiErrorCode
    message: str
    user_message: str
    details: Optional[Any] = None


class ApiResponse(BaseModel, Generic[T]):
    data: Optional[T] = None
    error: Optional[ApiError] = None
    success: bool


def create_api_error(
    code: ApiErrorCode,
    message: Optional[str] = None,
    user_message: Optional[str] = None,
    details: Any = None,
) -> ApiError:
    return ApiError(
        code=code,
        message=message or code.value,
        user_message=user_message or ERROR_MESSAGES.get(code, "An error occurred"),
        details=details,
    )


def success_response(data: Any) -> ApiResponse:
    return ApiResponse(data=data, error=None, success=True)


def error_response(error: ApiError) -> ApiResponse:
    return ApiResponse(data=None, error=error, success=False)


def is_no_rows_error(exc: Exception) -> bool:
    return getattr(exc, "code", None) == NO_ROWS_CODE


def map_supabase_error(exc: Exception) -> ApiError:
    """Classify an exception raised by the Supabase client into an ApiError."""
    if isinstance(exc, httpx.HTTPError):
        return create_api_error(ApiErrorCode.NETWORK_ERROR, str(exc))

    message = getattr(exc, "message", None) or str(exc) or "Unknown error"
    if not isinstance(message, str):
        message = str(message)
    code = getattr(exc, "code", None)
    status = getattr(exc, "status", None)
    lowered = message.lower()

    if "invalid login credentials" in lowered:
        return create_api_error(ApiErrorCode.INVALID_CREDENTIALS, message)
    if "user not found" in lowered:
        return create_api_error(ApiErrorCode.USER_NOT_FOUND, message)
    if "already registered" in lowered or ("already exists" in lowered and "user" in lowered):
        return create_api_error(ApiErrorCode.EMAIL_ALREADY_EXISTS, message)
    if "password should be" in lowered:
        return create_api_error(ApiErrorCode.WEAK_PASSWORD, message)
    if "jwt" in lowered or "unauthorized" in lowered:
        return create_api_error(ApiErrorCode.UNAUTHORIZED, message)
    if code == "23503" or "foreign key" in lowered:
        return create_api_error(ApiErrorCode.NOT_FOUND, message, "Referenced item not found")
    if code == "23505" or "duplicate" in lowered:
        return create_api_error(ApiErrorCode.DUPLICATE_ENTRY, message)
    if code == "23514" or code == "22P02":
        return create_api_error(ApiErrorCode.VALIDATION_ERROR, message)
    if status == 429 or "rate limit" in lowered:
        return create_api_error(ApiErrorCode.RATE_LIMITED, message)
    if "network" in lowered or "fetch" in lowered or "connection" in lowered:
        return create_api_error(ApiErrorCode.NETWORK_ERROR, message)

    return create_api_error(
        ApiErrorCode.SERVER_ERROR,
        message,
        ERROR_MESSAGES[ApiErrorCode.SERVER_ERROR],
        {"type": type(exc).__name__, "code": code},
    )


def handle_api_operation(operation: Callable[[], T]) -> ApiResponse:
    """Run an operation and wrap its outcome in the response envelope."""
    try:
        return success_response(operation())
    except AppError as e:
        logger.info(f"API operation rejected: {e.code.value} ({e.message})")
        return error_response(
            ApiError(code=e.code, message=e.message, user_message=e.user_message, details=e.details)
        )
    except Exception as e:
        logger.error(f"API operation failed: {e}")
        return error_response(map_supabase_error(e))


def api_operation(func: Callable[..., T]) -> Callable[..., ApiResponse]:
    """Decorator form of handle_api_operation for service methods."""
    @functools.wraps(func)
    def wrapper(*args, **kwargs) -> ApiResponse:
        return handle_api_operation(lambda: func(*args, **kwargs))
    return wrapper


def envelope_response(response: ApiResponse, success_status: int = 200) -> JSONResponse:
    """Render an envelope as JSON with a status code derived from its error code."""
    status_code = success_status
    if not response.success and response.error is not None:
        status_code = HTTP_STATUS_BY_CODE.get(response.error.code, 500)
    return JSONResponse(status_code=status_code, content=jsonable_encoder(response))
