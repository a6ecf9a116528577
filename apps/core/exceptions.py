# apps/core/exceptions.py

"""
Service errors shared by the order, payment and refund apps.

Every business rule violation is raised as a ``ServiceError`` subclass that
carries a stable ``code``. The DRF exception handler below renders all errors
as ``{"error": ..., "code": ..., "details": ...}``.
"""

import structlog
from django.core.exceptions import PermissionDenied
from django.http import Http404
from rest_framework import exceptions as drf_exceptions
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler

from apps.core.middleware import get_current_user

logger = structlog.get_logger(__name__)


class ServiceError(drf_exceptions.APIException):
    """Base class for errors raised by the marketplace services."""

    status_code = status.HTTP_400_BAD_REQUEST
    code = "SERVICE_ERROR"
    default_detail = "The request could not be processed."

    def __init__(self, message=None, details=None):
        self.message = message or self.default_detail
        self.details = details or {}
        super().__init__(detail=self.message, code=self.code)

    def __str__(self):
        return self.message


class ValidationFailed(ServiceError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "VALIDATION_ERROR"
    default_detail = "Invalid input."


class Unauthorized(ServiceError):
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "UNAUTHORIZED"
    default_detail = "Authentication credentials were not provided."


class Forbidden(ServiceError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "FORBIDDEN"
    default_detail = "You do not have permission to perform this action."


class NotFound(ServiceError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "NOT_FOUND"
    default_detail = "Not found."


class OutOfStock(ServiceError):
    status_code = status.HTTP_409_CONFLICT
    code = "OUT_OF_STOCK"
    default_detail = "Requested quantity exceeds available stock."


class ProductUnavailable(ServiceError):
    status_code = status.HTTP_409_CONFLICT
    code = "PRODUCT_UNAVAILABLE"
    default_detail = "Product is not available for purchase."


class InvalidTransition(ServiceError):
    status_code = status.HTTP_409_CONFLICT
    code = "INVALID_TRANSITION"
    default_detail = "This action is not allowed in the current state."


class SignatureInvalid(ServiceError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "SIGNATURE_INVALID"
    default_detail = "Payment signature verification failed."


class GatewayFailure(ServiceError):
    status_code = status.HTTP_502_BAD_GATEWAY
    code = "GATEWAY_ERROR"
    default_detail = "The payment gateway could not process the request."


class Duplicate(ServiceError):
    status_code = status.HTTP_409_CONFLICT
    code = "DUPLICATE"
    default_detail = "A record already exists for this resource."


class AlreadyProcessed(ServiceError):
    status_code = status.HTTP_409_CONFLICT
    code = "ALREADY_PROCESSED"
    default_detail = "This request has already been processed."


# DRF and Django exceptions mapped onto the service codes
_DRF_CODE_MAP = (
    (drf_exceptions.ValidationError, ValidationFailed.code),
    (drf_exceptions.ParseError, ValidationFailed.code),
    (drf_exceptions.NotAuthenticated, Unauthorized.code),
    (drf_exceptions.AuthenticationFailed, Unauthorized.code),
    (drf_exceptions.PermissionDenied, Forbidden.code),
    (drf_exceptions.NotFound, NotFound.code),
    (drf_exceptions.MethodNotAllowed, "METHOD_NOT_ALLOWED"),
    (drf_exceptions.Throttled, "THROTTLED"),
)


def _code_for(exc):
    for exc_class, code in _DRF_CODE_MAP:
        if isinstance(exc, exc_class):
            return code
    return "ERROR"


def service_exception_handler(exc, context):
    """Render every API error in one envelope and log unexpected failures."""
    view = context.get("view")
    view_name = view.__class__.__name__ if view else None

    if isinstance(exc, ServiceError):
        payload = {"error": exc.message, "code": exc.code}
        if exc.details:
            payload["details"] = exc.details
        logger.info(
            "service_error",
            code=exc.code,
            message=exc.message,
            view=view_name,
        )
        return Response(payload, status=exc.status_code)

    if isinstance(exc, Http404):
        exc = drf_exceptions.NotFound()
    elif isinstance(exc, PermissionDenied):
        exc = drf_exceptions.PermissionDenied()

    response = exception_handler(exc, context)
    if response is None:
        user = get_current_user()
        logger.exception(
            "unhandled_exception",
            view=view_name,
            user_id=str(getattr(user, "pk", None)),
            error=str(exc),
        )
        return Response(
            {"error": "Internal server error", "code": "INTERNAL_ERROR"},
            status=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    data = response.data
    if isinstance(exc, drf_exceptions.ValidationError):
        payload = {
            "error": "Invalid input.",
            "code": ValidationFailed.code,
            "details": data,
        }
    else:
        message = data.get("detail", data) if isinstance(data, dict) else data
        payload = {"error": str(message), "code": _code_for(exc)}
    response.data = payload
    return response
