"""Project exception types and the DRF exception handler producing ``{"error": ...}`` bodies."""

import logging
from typing import Any

from django.conf import settings
from rest_framework import status
from rest_framework.exceptions import APIException, AuthenticationFailed, ValidationError
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)

GENERIC_MESSAGES = {
    status.HTTP_401_UNAUTHORIZED: "Unauthenticated",
    status.HTTP_404_NOT_FOUND: "Not found",
}


class StorageNotConfigured(APIException):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_detail = "Storage not configured"
    default_code = "storage_not_configured"


class StorageFetchFailed(APIException):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail = "Internal server error"
    default_code = "storage_fetch_failed"


def _first_message(detail: Any, field: str | None = None) -> str:
    """Flatten a DRF error detail (str / list / dict) into a single readable line."""
    if isinstance(detail, dict):
        for key, value in detail.items():
            return _first_message(value, None if key == "non_field_errors" else key)
        return "Validation error"
    if isinstance(detail, (list, tuple)):
        return _first_message(detail[0], field) if detail else "Validation error"
    message = str(detail)
    return f"{field}: {message}" if field else message


def api_exception_handler(exc: Exception, context: dict) -> Response:
    """Render every error as ``{"error": "<message>"}``.

    401/404 bodies are generic, except failed logins which say so. Anything DRF does not recognise becomes a 500
    without internals, unless DEBUG is on.
    """
    response = exception_handler(exc, context)

    if response is None:
        view = context.get("view")
        logger.exception("Unhandled error in %s", view.__class__.__name__ if view else "view")
        body = {"error": "Internal server error"}
        if settings.DEBUG:
            body["detail"] = repr(exc)
        return Response(body, status=status.HTTP_500_INTERNAL_SERVER_ERROR)

    code = response.status_code
    if isinstance(exc, AuthenticationFailed):
        message = _first_message(exc.detail)
    elif code in GENERIC_MESSAGES:
        message = GENERIC_MESSAGES[code]
    elif code >= 500 and code != status.HTTP_503_SERVICE_UNAVAILABLE:
        message = "Internal server error"
    elif isinstance(exc, ValidationError):
        message = _first_message(exc.detail)
    else:
        message = _first_message(response.data.get("detail", response.data)
                                 if isinstance(response.data, dict) else response.data)
    response.data = {"error": message}
    return response
