from models.db import db

class ScheduleLock(db.Model):
    """One row per provider and calendar day.

    Booking creation writes to this row before checking availability and
    conflicts, so the check and insert for a given provider/day run one at a
    time. On PostgreSQL the write takes the row lock; on SQLite it takes the
    database write lock.
    """
    __tablename__ = "schedule_locks"

    id = db.Column(db.Integer, primary_key=True)
    provider_id = db.Column(db.Integer, db.ForeignKey("providers.id"), nullable=False)
    day = db.Column(db.Date, nullable=False)
    touched_at = db.Column(db.DateTime, nullable=True)

    __table_args__ = (
        db.UniqueConstraint("provider_id", "day", name="uq_schedule_lock_provider_day"),
    )
