from __future__ import annotations

import logging
from typing import Any, Optional

from django.db import InterfaceError, OperationalError
from rest_framework import exceptions as drf_exceptions
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler as drf_exception_handler
from rest_framework.views import set_rollback


logger = logging.getLogger(__name__)


class ServiceError(Exception):
    """Base class for failures raised by the service layer."""

    status_code = status.HTTP_400_BAD_REQUEST
    code = "service_error"
    default_message = "Request could not be completed."

    def __init__(self, message: Optional[str] = None, detail: Any = None):
        self.message = message or self.default_message
        self.detail = detail
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        payload = {
            "success": False,
            "message": self.message,
            "code": self.code,
        }
        if self.detail is not None:
            payload["error"] = self.detail
        return payload


class ValidationError(ServiceError):
    code = "validation_error"
    default_message = "Missing or malformed required fields."


class DuplicateIdentity(ServiceError):
    status_code = status.HTTP_409_CONFLICT
    code = "duplicate_identity"
    default_message = "A user with these details already exists."


class DuplicatePeriod(ServiceError):
    status_code = status.HTTP_409_CONFLICT
    code = "duplicate_period"
    default_message = "A payslip for this employee and period already exists."


class DuplicateReference(ServiceError):
    status_code = status.HTTP_409_CONFLICT
    code = "duplicate_reference"
    default_message = "This reference number is already in use."


class InvalidCredentials(ServiceError):
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "invalid_credentials"
    default_message = "Invalid username or password"


class InvalidTransition(ServiceError):
    status_code = status.HTTP_409_CONFLICT
    code = "invalid_transition"
    default_message = "This status change is not allowed."


class InvalidAmount(ServiceError):
    code = "invalid_amount"
    default_message = "Monetary amounts must be non-negative decimals."


class NotFound(ServiceError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "not_found"
    default_message = "Not found."


class StoreUnavailable(ServiceError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    code = "store_unavailable"
    default_message = "Service temporarily unavailable, please try again later."

    def to_dict(self) -> dict[str, Any]:
        # Internal store details never leave the process.
        return {"success": False, "message": self.message, "code": self.code}


def envelope_exception_handler(exc, context):
    """
    DRF exception handler rendering every failure as
    {"success": false, "message": ..., "code": ..., "error": ...}.
    """
    if isinstance(exc, (OperationalError, InterfaceError)):
        logger.error("Store unavailable: %s", exc)
        exc = StoreUnavailable()

    if isinstance(exc, ServiceError):
        return Response(exc.to_dict(), status=exc.status_code)

    response = drf_exception_handler(exc, context)
    if response is None:
        logger.error("Unhandled error in %s", context.get("view").__class__.__name__, exc_info=exc)
        set_rollback()
        return Response(
            {
                "success": False,
                "message": "Something went wrong, please try again later.",
                "code": "server_error",
            },
            status=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    if isinstance(exc, drf_exceptions.ValidationError):
        response.data = {
            "success": False,
            "message": ValidationError.default_message,
            "code": ValidationError.code,
            "error": response.data,
        }
        return response

    detail = response.data.get("detail") if isinstance(response.data, dict) else response.data
    response.data = {
        "success": False,
        "message": str(detail),
        "code": getattr(detail, "code", None) or "error",
    }
    return response
