"""Celery tasks for the booking domain."""

from __future__ import annotations

import logging

from celery import shared_task  # type: ignore
from django.utils import timezone  # type: ignore

from shared.domain.exceptions import BookingError

from .application.command_handlers import expire_booking, mark_no_show
from .domain.entities import BookingStatus
from .holds import lapsed_filter
from .models import Booking

logger = logging.getLogger(__name__)


# ============================================================================
# PERIODIC TASKS (scheduled by Celery Beat, see config/celery.py)
# ============================================================================

@shared_task(name="bookings.expire_pending_bookings")
def expire_pending_bookings() -> dict[str, int]:
    """
    Release pending bookings whose hold lapsed.

    Selects with the same predicate the availability queries use to ignore
    lapsed holds, so the sweep never touches a booking that still blocks.
    Each booking is expired in its own transaction; one failure does not
    stop the sweep.

    Runs every minute.

    Returns:
        dict: {"expired": number of bookings released}
    """
    now = timezone.now()
    expired_count = 0

    booking_ids = list(
        Booking.objects.filter(lapsed_filter(now)).order_by("hold_expires_at").values_list("pk", flat=True)
    )

    for booking_id in booking_ids:
        try:
            if expire_booking(booking_id) is not None:
                expired_count += 1
        except Exception as e:
            logger.error(f"Error expiring booking {booking_id}: {e}", exc_info=True)

    if expired_count > 0:
        logger.info(f"Expired {expired_count} pending bookings")

    return {"expired": expired_count}


@shared_task(name="bookings.mark_no_show_bookings")
def mark_no_show_bookings() -> dict[str, int]:
    """
    Mark confirmed bookings as NO_SHOW when the guest never checked in.

    Picks bookings whose check-in date is already behind us. Runs daily.

    Returns:
        dict: {"marked": number of bookings marked}
    """
    today = timezone.localdate()
    marked_count = 0

    booking_ids = list(
        Booking.objects.filter(
            status=BookingStatus.CONFIRMED.value,
            check_in__lt=today,
        ).values_list("pk", flat=True)
    )

    for booking_id in booking_ids:
        try:
            mark_no_show(booking_id)
            marked_count += 1
        except BookingError as e:
            # Checked in or cancelled since it was selected
            logger.info(f"Skipping no-show for booking {booking_id}: {e}")
        except Exception as e:
            logger.error(f"Error marking booking {booking_id} as no-show: {e}", exc_info=True)

    if marked_count > 0:
        logger.info(f"Marked {marked_count} bookings as NO_SHOW")

    return {"marked": marked_count}
