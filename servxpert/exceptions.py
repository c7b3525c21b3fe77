from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from typing import Optional
import logging

logger = logging.getLogger(__name__)

GENERIC_FAILURE_MESSAGE = "Something went wrong on our side. Please try again later."


class ServiceError(Exception):
    """Base class for every error the auth flow reports to a caller.

    ``kind`` is the stable name clients switch on, ``status_code`` the HTTP
    status the boundary responds with. Errors with ``public = False`` are
    operator faults: their message is logged but the caller only ever sees
    the generic "try again later" text.
    """

    kind = "ServiceError"
    status_code = 500
    public = False
    default_message = GENERIC_FAILURE_MESSAGE

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    @property
    def public_message(self) -> str:
        return self.message if self.public else GENERIC_FAILURE_MESSAGE


# Input shape
class ValidationError(ServiceError):
    kind = "ValidationError"
    status_code = 400
    public = True
    default_message = "Invalid request"


# Verification flow
class NoActiveCode(ServiceError):
    kind = "NoActiveCode"
    status_code = 400
    public = True
    default_message = "No code found. Please request a new one."


class CodeExpired(ServiceError):
    kind = "CodeExpired"
    status_code = 400
    public = True
    default_message = "Code has expired. Please request a new one."


class CodeMismatch(ServiceError):
    kind = "CodeMismatch"
    status_code = 400
    public = True
    default_message = "Invalid code. Please try again."


class CodeAlreadyUsed(ServiceError):
    kind = "CodeAlreadyUsed"
    status_code = 400
    public = True
    default_message = "This code has already been used. Please request a new one."


class TooManyAttempts(ServiceError):
    kind = "TooManyAttempts"
    status_code = 429
    public = True
    default_message = "Too many incorrect attempts. Please request a new code."


class RateLimited(ServiceError):
    kind = "RateLimited"
    status_code = 429
    public = True
    default_message = "Too many code requests. Please try again later."


# Delivery channel
class DeliveryError(ServiceError):
    kind = "DeliveryError"


class UnverifiedDestination(DeliveryError):
    kind = "UnverifiedDestination"
    status_code = 500
    public = True
    default_message = "This destination must be verified with our messaging provider before it can receive codes."


class InvalidDestination(DeliveryError):
    kind = "InvalidDestination"
    status_code = 400
    public = True
    default_message = "Invalid destination format"


class UndeliverableDestination(DeliveryError):
    kind = "UndeliverableDestination"
    status_code = 500
    public = True
    default_message = "This destination cannot receive verification codes"


class ProviderUnavailable(DeliveryError):
    kind = "ProviderUnavailable"
    status_code = 500
    public = True
    default_message = "Messaging service is temporarily unavailable. Please try again."


class ProviderConfigError(DeliveryError):
    kind = "ProviderConfigError"


# Operator faults
class StorageError(ServiceError):
    kind = "StorageError"


class ReconciliationError(ServiceError):
    kind = "ReconciliationError"


# Sessions and identities
class NotAuthenticated(ServiceError):
    kind = "NotAuthenticated"
    status_code = 401
    public = True
    default_message = "Invalid or expired token"


class PermissionDenied(ServiceError):
    kind = "PermissionDenied"
    status_code = 403
    public = True
    default_message = "You are not allowed to do this"


class IdentityNotFound(ServiceError):
    kind = "IdentityNotFound"
    status_code = 404
    public = True
    default_message = "User not found"


class ProfileAlreadyComplete(ServiceError):
    kind = "ProfileAlreadyComplete"
    status_code = 409
    public = True
    default_message = "Profile is already complete"


def create_error_response(error_message: str, kind: Optional[str] = None) -> dict:
    """Create a standardized error response"""
    return {
        "success": False,
        "data": None,
        "error": error_message,
        "kind": kind,
    }


async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    if exc.public:
        logger.warning(f"{exc.kind} on {request.url.path}: {exc.message}")
    else:
        logger.error(f"{exc.kind} on {request.url.path}: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content=create_error_response(exc.public_message, exc.kind),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed request bodies are a 400 like any other validation failure"""
    errors = exc.errors()
    if errors:
        first = errors[0]
        field = ".".join(str(part) for part in first.get("loc", ())[1:]) or "body"
        message = f"{field}: {first.get('msg', 'invalid value')}"
    else:
        message = "Invalid request"
    return JSONResponse(
        status_code=400,
        content=create_error_response(message, ValidationError.kind),
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Custom exception handler for HTTPException"""
    # Convert 403 from HTTPBearer to 401 for missing authentication
    if exc.status_code == 403 and "Not authenticated" in str(exc.detail):
        return JSONResponse(
            status_code=401,
            content=create_error_response("Authentication required", NotAuthenticated.kind)
        )

    return JSONResponse(
        status_code=exc.status_code,
        content=create_error_response(exc.detail)
    )
