"""
Journal error taxonomy and the DRF exception handler.

Access-control failures are raised as NotFoundError so callers cannot tell
a private sit from a missing one.
"""
from rest_framework.views import exception_handler
from rest_framework.response import Response
from rest_framework import status
from django.db import IntegrityError
import logging

logger = logging.getLogger(__name__)


class JournalError(Exception):
    """Base class for errors raised by the journal core."""


class NotFoundError(JournalError):
    """Referenced user, sit or edge does not exist (or is not visible)."""


class ValidationError(JournalError, ValueError):
    """Input rejected before any write."""


class InconsistentStateError(JournalError):
    """
    A sit's cached private marker disagrees with its owner's privacy
    setting. Repaired by visibility.repair_private_markers().
    """

    def __init__(self, user_id: int, sit_ids: list[int]):
        self.user_id = user_id
        self.sit_ids = sit_ids
        super().__init__(
            f"User {user_id} has {len(sit_ids)} sit(s) with a stale private marker"
        )


def custom_exception_handler(exc, context):
    """
    Custom exception handler that:
    1. Maps journal errors onto HTTP statuses
    2. Logs unexpected exceptions
    3. Provides consistent {'error': ...} format
    """
    response = exception_handler(exc, context)

    if response is not None:
        if not isinstance(response.data, dict) or 'error' not in response.data:
            response.data = {
                'error': str(exc),
                'details': response.data
            }
        return response

    if isinstance(exc, NotFoundError):
        return Response(
            {'error': 'Not found.'},
            status=status.HTTP_404_NOT_FOUND
        )

    if isinstance(exc, ValidationError):
        return Response(
            {'error': str(exc)},
            status=status.HTTP_400_BAD_REQUEST
        )

    if isinstance(exc, IntegrityError):
        logger.warning("IntegrityError: %s", exc)
        return Response(
            {'error': 'Data integrity error. This may be a duplicate entry.'},
            status=status.HTTP_409_CONFLICT
        )

    logger.exception("Unhandled exception: %s", exc)

    return Response(
        {'error': 'An unexpected error occurred.'},
        status=status.HTTP_500_INTERNAL_SERVER_ERROR
    )
