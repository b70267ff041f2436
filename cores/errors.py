import logging

from django.core.exceptions import PermissionDenied as DjangoPermissionDenied
from django.http import Http404
from django.utils import timezone
from rest_framework import exceptions, status
from rest_framework.response import Response

logger = logging.getLogger(__name__)


class ApplicationError(Exception):
    """Base class for errors the API knows how to render."""
    code = "APPLICATION_ERROR"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message, context=None, details=None):
        super().__init__(message)
        self.message = message
        self.context = context or {}
        self.details = details
        self.timestamp = timezone.now()


class ValidationError(ApplicationError):
    code = "VALIDATION_ERROR"
    status_code = status.HTTP_400_BAD_REQUEST


class AuthenticationError(ApplicationError):
    code = "AUTHENTICATION_ERROR"
    status_code = status.HTTP_401_UNAUTHORIZED

    def __init__(self, message="Authentication required", **kwargs):
        super().__init__(message, **kwargs)


class AuthorizationError(ApplicationError):
    code = "AUTHORIZATION_ERROR"
    status_code = status.HTTP_403_FORBIDDEN

    def __init__(self, message="Insufficient permissions", **kwargs):
        super().__init__(message, **kwargs)


class NotFoundError(ApplicationError):
    code = "NOT_FOUND_ERROR"
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, resource, **kwargs):
        super().__init__(f"{resource} not found", **kwargs)


class ExternalServiceError(ApplicationError):
    code = "EXTERNAL_SERVICE_ERROR"
    status_code = status.HTTP_502_BAD_GATEWAY

    def __init__(self, service, message, **kwargs):
        super().__init__(f"{service}: {message}", **kwargs)


# DRF exception class -> public error code
DRF_ERROR_CODES = {
    exceptions.NotAuthenticated: "AUTHENTICATION_ERROR",
    exceptions.AuthenticationFailed: "AUTHENTICATION_ERROR",
    exceptions.PermissionDenied: "AUTHORIZATION_ERROR",
    exceptions.NotFound: "NOT_FOUND_ERROR",
    exceptions.ValidationError: "VALIDATION_ERROR",
    exceptions.ParseError: "VALIDATION_ERROR",
    exceptions.UnsupportedMediaType: "VALIDATION_ERROR",
    exceptions.MethodNotAllowed: "METHOD_NOT_ALLOWED",
    exceptions.Throttled: "RATE_LIMITED",
}


def error_payload(message, code, details=None):
    payload = {
        "message": message,
        "code": code,
        "timestamp": timezone.now().isoformat(),
    }
    if details is not None:
        payload["details"] = details
    return {"error": payload}


def _drf_code(exc):
    for exc_class, code in DRF_ERROR_CODES.items():
        if isinstance(exc, exc_class):
            return code
    return "API_ERROR"


def api_exception_handler(exc, context):
    """
    REST_FRAMEWORK["EXCEPTION_HANDLER"].

    Known categories are rendered as {"error": {...}} with their status;
    anything else is logged with its traceback and becomes a generic 500.
    """
    view = context.get("view")
    request = context.get("request")
    endpoint = request.path if request is not None else None

    if isinstance(exc, ApplicationError):
        logger.warning(
            "Operational error on %s: %s (%s) context=%s",
            endpoint, exc.message, exc.code, exc.context,
        )
        return Response(
            error_payload(exc.message, exc.code, exc.details),
            status=exc.status_code,
        )

    if isinstance(exc, Http404):
        exc = exceptions.NotFound()
    elif isinstance(exc, DjangoPermissionDenied):
        exc = exceptions.PermissionDenied()

    if isinstance(exc, exceptions.APIException):
        headers = {}
        if getattr(exc, "auth_header", None):
            headers["WWW-Authenticate"] = exc.auth_header
        if getattr(exc, "wait", None):
            headers["Retry-After"] = "%d" % exc.wait

        if isinstance(exc, exceptions.ValidationError):
            message = "Validation failed"
            details = exc.detail
        else:
            message = str(exc.detail)
            details = None

        return Response(
            error_payload(message, _drf_code(exc), details),
            status=exc.status_code,
            headers=headers,
        )

    logger.exception(
        "Unexpected error in %s on %s",
        view.__class__.__name__ if view is not None else "unknown view",
        endpoint,
    )
    return Response(
        error_payload("Internal server error", "INTERNAL_ERROR"),
        status=status.HTTP_500_INTERNAL_SERVER_ERROR,
    )
