import logging
from datetime import datetime, time, timedelta

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from models import db
from models.booking import Booking, BookingStatus
from models.schedule_lock import ScheduleLock

logger = logging.getLogger(__name__)

DEFAULT_EXCLUDED = frozenset({BookingStatus.CANCELLED})


def overlaps(a_start, a_end, b_start, b_end) -> bool:
    # half-open intervals: touching endpoints are not an overlap
    return a_start < b_end and b_start < a_end


def has_conflict(provider_id: int, date, start_time, duration_minutes: int,
                 exclude_statuses=DEFAULT_EXCLUDED) -> bool:
    """
    Check ``[start, start + duration)`` on ``date`` against the provider's
    bookings that day. Bookings whose status is in ``exclude_statuses`` do not
    occupy the calendar. Completed bookings are also ignored since only
    pending/confirmed ones block a slot.
    """
    start = datetime.combine(date, start_time)
    end = start + timedelta(minutes=duration_minutes)

    day_start = datetime.combine(date, time.min)
    day_end = day_start + timedelta(days=1)

    blocking = [s for s in BookingStatus.ACTIVE if s not in exclude_statuses]
    if not blocking:
        return False

    existing = (
        Booking.query
        .filter(
            Booking.provider_id == provider_id,
            Booking.start_time >= day_start,
            Booking.start_time < day_end,
            Booking.status.in_(blocking),
        )
        .all()
    )
    return any(overlaps(b.start_time, b.end_time, start, end) for b in existing)


def lock_provider_day(provider_id: int, day) -> ScheduleLock:
    """
    Take the lock that serializes booking inserts for one provider/day.
    Must be called inside the transaction that performs the insert; the lock
    is released on commit or rollback.
    """
    lock = (
        ScheduleLock.query
        .filter_by(provider_id=provider_id, day=day)
        .with_for_update()
        .first()
    )
    if not lock:
        lock = ScheduleLock(provider_id=provider_id, day=day)
        db.session.add(lock)
        try:
            db.session.flush()
        except IntegrityError:
            # another request created the row first; wait on theirs
            db.session.rollback()
            logger.debug("schedule lock for provider=%s day=%s created concurrently", provider_id, day)
            lock = (
                ScheduleLock.query
                .filter_by(provider_id=provider_id, day=day)
                .with_for_update()
                .one()
            )

    # always write: SQLite ignores FOR UPDATE but an UPDATE takes its write lock
    db.session.execute(
        update(ScheduleLock)
        .where(ScheduleLock.id == lock.id)
        .values(touched_at=datetime.utcnow())
        .execution_options(synchronize_session=False)
    )
    return lock
