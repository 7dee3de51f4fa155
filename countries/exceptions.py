"""
Error taxonomy of the country cache and the DRF handler that renders it.

Every error reaches the client as ``{"error": <short message>}`` plus an
optional ``"details"`` entry.
"""
import logging

from rest_framework import status
from rest_framework.exceptions import APIException, ValidationError
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


class CountryAPIError(APIException):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail = "Internal server error"

    def __init__(self, details=None, message=None):
        self.message = message or self.default_detail
        self.details = details
        super().__init__(detail=self.message)

    def as_payload(self):
        payload = {"error": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class UpstreamUnavailable(CountryAPIError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_detail = "External data source unavailable"


class CountryNotFound(CountryAPIError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Country not found"


class SummaryImageNotFound(CountryAPIError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Summary image not found"


class ValidationFailed(CountryAPIError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Validation failed"


class InternalError(CountryAPIError):
    pass


class ArtifactGenerationFailed(Exception):
    """Summary image could not be produced. Logged, never returned to a client."""


def api_exception_handler(exc, context):
    if isinstance(exc, CountryAPIError):
        if isinstance(exc, InternalError):
            logger.error("Internal error in %s", _view_name(context), exc_info=exc)
        return Response(exc.as_payload(), status=exc.status_code)

    if isinstance(exc, ValidationError):
        return Response(
            {"error": "Validation failed", "details": exc.detail},
            status=status.HTTP_400_BAD_REQUEST,
        )

    response = exception_handler(exc, context)
    if response is not None:
        detail = response.data.get("detail") if isinstance(response.data, dict) else None
        response.data = {"error": str(detail) if detail else "Request failed"}
        return response

    logger.exception("Unhandled error in %s", _view_name(context), exc_info=exc)
    return Response(
        {"error": "Internal server error"},
        status=status.HTTP_500_INTERNAL_SERVER_ERROR,
    )


def _view_name(context):
    view = context.get("view") if context else None
    return type(view).__name__ if view is not None else "unknown view"
