import logging
import secrets
from datetime import datetime, timedelta, timezone

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from models import db
from models.booking import Booking, BookingStatus
from models.provider import Provider
from models.service import Service
from utils.roles import ADMIN, CUSTOMER, PROVIDER
from core.availability import slot_fits_availability
from core.conflicts import has_conflict, lock_provider_day
from core.errors import AccessDenied, Conflict, InternalFailure, NotFound, ValidationError
from core.state_machine import is_owner

logger = logging.getLogger(__name__)


def parse_date_time(value) -> datetime:
    """
    Parse an ISO-8601 appointment time. Aware values are converted to UTC;
    the result is always naive, matching how times are stored.
    """
    if not isinstance(value, str) or not value.strip():
        raise ValidationError("date_time is required")
    try:
        dt = datetime.fromisoformat(value.strip())
    except ValueError:
        raise ValidationError("Invalid date_time. Use ISO e.g. 2030-01-20T10:00:00")
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def generate_booking_number(now=None) -> str:
    now = now or datetime.utcnow()
    return "BK" + now.strftime("%Y%m%d") + secrets.token_hex(4).upper()


def create_booking(customer_id: int, service_id: int, start_time: datetime, notes=None, now=None) -> Booking:
    service = db.session.get(Service, service_id)
    if not service or not service.is_active:
        raise NotFound("Service not found")

    now = now or datetime.utcnow()
    if start_time <= now:
        raise ValidationError("Booking time must be in the future")

    duration = service.duration_minutes
    end_time = start_time + timedelta(minutes=duration)

    # availability + conflict check + insert happen under the provider/day lock
    lock_provider_day(service.provider_id, start_time.date())

    if not slot_fits_availability(service.provider_id, start_time, end_time):
        db.session.rollback()
        raise ValidationError("Provider not available at this time")

    if has_conflict(service.provider_id, start_time.date(), start_time.time(), duration):
        db.session.rollback()
        raise Conflict("Time slot already taken")

    booking = Booking(
        booking_number=generate_booking_number(now),
        customer_id=customer_id,
        provider_id=service.provider_id,
        service_id=service.id,
        start_time=start_time,
        duration_minutes=duration,
        price=service.base_price,
        status=BookingStatus.PENDING,
        notes=notes,
        created_at=now,
        updated_at=now,
    )
    db.session.add(booking)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        logger.warning("booking insert rejected for provider %s at %s", service.provider_id, start_time)
        raise Conflict("Time slot already taken")
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception("failed to create booking for service %s", service_id)
        raise InternalFailure()

    logger.info("booking %s created for provider %s at %s", booking.booking_number, booking.provider_id, start_time)
    return booking


def bookings_for(actor, status=None):
    q = Booking.query
    if actor.role == CUSTOMER:
        q = q.filter(Booking.customer_id == actor.id)
    elif actor.role == PROVIDER:
        provider = Provider.query.filter_by(user_id=actor.id).first()
        if not provider:
            return []
        q = q.filter(Booking.provider_id == provider.id)
    elif actor.role != ADMIN:
        return []

    if status in BookingStatus.ALL:
        q = q.filter(Booking.status == status)

    return q.order_by(Booking.start_time.desc()).all()


def get_booking_for(actor, booking_id: int) -> Booking:
    booking = db.session.get(Booking, booking_id)
    if not booking:
        raise NotFound("Booking not found")
    if not is_owner(actor, booking):
        raise AccessDenied("Booking access denied")
    return booking
