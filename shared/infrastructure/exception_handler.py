"""
DRF exception handler for reservation errors

Domain code raises BookingError subclasses; this maps them to HTTP
responses so views do not repeat the translation.
"""

import logging

from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler

from shared.domain.exceptions import (
    AvailabilityConflictError,
    BookingError,
    BookingValidationError,
    NotFoundError,
    StateTransitionError,
)

logger = logging.getLogger(__name__)

STATUS_BY_ERROR = (
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (BookingValidationError, status.HTTP_400_BAD_REQUEST),
    (AvailabilityConflictError, status.HTTP_409_CONFLICT),
    (StateTransitionError, status.HTTP_409_CONFLICT),
)


def status_for(exc: BookingError) -> int:
    for error_cls, http_status in STATUS_BY_ERROR:
        if isinstance(exc, error_cls):
            return http_status
    return status.HTTP_400_BAD_REQUEST


def booking_exception_handler(exc, context):
    if not isinstance(exc, BookingError):
        return exception_handler(exc, context)

    http_status = status_for(exc)
    data = {'detail': exc.message or str(exc), 'code': exc.code}
    if exc.details:
        data['context'] = exc.details
    if isinstance(exc, AvailabilityConflictError):
        data['room_ids'] = exc.room_ids

    view = context.get('view')
    logger.info(
        f"{exc.__class__.__name__} in {view.__class__.__name__ if view else 'api'}: "
        f"{data['detail']} -> {http_status}"
    )
    return Response(data, status=http_status)
