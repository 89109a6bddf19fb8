"""Booking lifecycle.

    pending --> confirmed --> completed
       |            |
       +------------+--> cancelled

``completed`` and ``cancelled`` are terminal. Who may request which move is
decided by ``TRANSITIONS``; the payment flow uses ``confirm_from_payment``,
which is not subject to the actor table.
"""
import logging
from datetime import datetime

from sqlalchemy.orm.exc import StaleDataError

from models import db
from models.booking import Booking, BookingStatus
from utils.roles import ADMIN, CUSTOMER, PROVIDER
from core.errors import Conflict, InvalidStatus, NotFound, AccessDenied, TransitionNotAllowed

logger = logging.getLogger(__name__)

# role -> requested status -> statuses it may be requested from
TRANSITIONS = {
    CUSTOMER: {
        BookingStatus.CANCELLED: {BookingStatus.PENDING, BookingStatus.CONFIRMED},
    },
    PROVIDER: {
        BookingStatus.CONFIRMED: {BookingStatus.PENDING},
        BookingStatus.COMPLETED: {BookingStatus.PENDING, BookingStatus.CONFIRMED},
    },
    ADMIN: {
        BookingStatus.CONFIRMED: {BookingStatus.PENDING},
        BookingStatus.COMPLETED: {BookingStatus.PENDING, BookingStatus.CONFIRMED},
        BookingStatus.CANCELLED: {BookingStatus.PENDING, BookingStatus.CONFIRMED},
    },
}


def can_transition(role: str, current: str, requested: str) -> bool:
    return current in TRANSITIONS.get(role, {}).get(requested, ())


def is_owner(actor, booking: Booking) -> bool:
    if actor.role == ADMIN:
        return True
    if actor.role == CUSTOMER:
        return booking.customer_id == actor.id
    if actor.role == PROVIDER:
        return booking.provider is not None and booking.provider.user_id == actor.id
    return False


def update_status(actor, booking_id: int, requested: str) -> Booking:
    if requested not in BookingStatus.ALL:
        raise InvalidStatus()

    booking = Booking.query.filter_by(id=booking_id).with_for_update().first()
    if not booking:
        raise NotFound("Booking not found")

    if not is_owner(actor, booking):
        raise AccessDenied("Booking access denied")

    if not can_transition(actor.role, booking.status, requested):
        raise TransitionNotAllowed(
            f"Cannot move booking from {booking.status} to {requested}",
        )

    previous = booking.status
    booking.status = requested
    booking.updated_at = datetime.utcnow()
    try:
        db.session.commit()
    except StaleDataError:
        db.session.rollback()
        raise Conflict("Booking was modified concurrently, retry")

    logger.info("booking %s: %s -> %s by %s %s", booking.id, previous, requested, actor.role, actor.id)
    return booking


def confirm_from_payment(booking: Booking) -> bool:
    """
    System transition applied when the gateway reports a successful payment.
    Does not commit. Returns True if the booking changed.
    """
    if booking.status == BookingStatus.CONFIRMED:
        return False
    if booking.status != BookingStatus.PENDING:
        # paid after being cancelled/completed; needs a manual refund decision
        logger.warning(
            "payment succeeded for booking %s in status %s; leaving status unchanged",
            booking.id, booking.status,
        )
        return False

    booking.status = BookingStatus.CONFIRMED
    booking.updated_at = datetime.utcnow()
    return True
