"""
Domain error hierarchy and the DRF exception handler that renders it.

Service code raises these plain exceptions; views never build error
responses by hand. Every error body has the shape::

    {"error": "<kind>", "detail": "<human readable message>", ...}
"""
import logging

from django.core.exceptions import ValidationError as DjangoValidationError
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


class MarketplaceError(Exception):
    """Base class for errors raised by marketplace services."""
    status_code = status.HTTP_400_BAD_REQUEST
    error = 'Error'

    def __init__(self, detail=None):
        self.detail = detail or self.error
        super().__init__(self.detail)

    def as_payload(self):
        return {'error': self.error, 'detail': self.detail}


class ValidationFailed(MarketplaceError):
    """Malformed or missing input that passed serializer validation."""
    error = 'Validation Error'


class DomainError(MarketplaceError):
    """Operation is not allowed in the current state of the aggregate."""
    error = 'Domain Error'


class InvalidTransitionError(DomainError):
    """Raised when an order status transition is not permitted."""

    def __init__(self, current, requested, allowed, reason=None):
        self.current = current
        self.requested = requested
        self.allowed = tuple(allowed)
        allowed_text = ', '.join(str(s) for s in self.allowed) or 'none'
        detail = reason or f"Cannot move order from {current} to {requested}."
        super().__init__(f"{detail} Allowed next statuses: {allowed_text}")

    def as_payload(self):
        payload = super().as_payload()
        payload['current_status'] = str(self.current)
        payload['allowed_statuses'] = [str(s) for s in self.allowed]
        return payload


class EmptyOrderError(DomainError):
    """Raised when an order without line items is submitted."""

    def __init__(self, detail='Cannot place an order without items'):
        super().__init__(detail)


class VendorMismatchError(DomainError):
    """Raised when items from different vendors would share one order."""

    def __init__(self, detail='An order can only contain items from a single vendor'):
        super().__init__(detail)


class NotFoundError(MarketplaceError):
    status_code = status.HTTP_404_NOT_FOUND
    error = 'Not Found'


class OwnershipError(MarketplaceError):
    """The caller's role allows the action but not on this resource."""
    status_code = status.HTTP_403_FORBIDDEN
    error = 'Forbidden'


class SecondaryWriteError(MarketplaceError):
    """
    A follow-up write failed after the primary write was committed.

    The message names what already succeeded so the caller can reconcile.
    """
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    error = 'Partial Update'


_DRF_ERROR_LABELS = {
    status.HTTP_400_BAD_REQUEST: 'Validation Error',
    status.HTTP_401_UNAUTHORIZED: 'Authentication Error',
    status.HTTP_403_FORBIDDEN: 'Forbidden',
    status.HTTP_404_NOT_FOUND: 'Not Found',
    status.HTTP_405_METHOD_NOT_ALLOWED: 'Method Not Allowed',
    status.HTTP_429_TOO_MANY_REQUESTS: 'Rate limit exceeded',
}


def api_exception_handler(exc, context):
    """
    DRF EXCEPTION_HANDLER.

    - MarketplaceError subclasses map to their own status code.
    - DRF and Django exceptions keep DRF's status code, body is normalised.
    - Anything else is logged and reported as a generic 500.
    """
    if isinstance(exc, MarketplaceError):
        if exc.status_code >= 500:
            logger.error(f"{exc.__class__.__name__}: {exc.detail}")
        else:
            logger.warning(f"{exc.__class__.__name__}: {exc.detail}")
        return Response(exc.as_payload(), status=exc.status_code)

    if isinstance(exc, DjangoValidationError):
        detail = exc.message_dict if hasattr(exc, 'error_dict') else exc.messages
        return Response(
            {'error': 'Validation Error', 'detail': detail},
            status=status.HTTP_400_BAD_REQUEST
        )

    response = exception_handler(exc, context)
    if response is not None:
        detail = response.data
        if isinstance(detail, dict) and set(detail) == {'detail'}:
            detail = detail['detail']
        response.data = {
            'error': _DRF_ERROR_LABELS.get(response.status_code, 'Error'),
            'detail': detail,
        }
        return response

    view = context.get('view')
    logger.exception(f"Unexpected error in {view.__class__.__name__ if view else 'view'}: {exc}")
    return Response(
        {'error': 'Server Error', 'detail': 'An unexpected error occurred'},
        status=status.HTTP_500_INTERNAL_SERVER_ERROR
    )

