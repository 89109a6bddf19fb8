from datetime import datetime, timedelta
from models.db import db

class BookingStatus:
    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    ALL = (PENDING, CONFIRMED, COMPLETED, CANCELLED)
    # statuses that still occupy the provider's calendar
    ACTIVE = (PENDING, CONFIRMED)
    TERMINAL = (COMPLETED, CANCELLED)

class Booking(db.Model):
    __tablename__ = "bookings"

    id = db.Column(db.Integer, primary_key=True)
    booking_number = db.Column(db.String(32), unique=True, nullable=False, index=True)

    customer_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    provider_id = db.Column(db.Integer, db.ForeignKey("providers.id"), nullable=False, index=True)
    service_id = db.Column(db.Integer, db.ForeignKey("services.id"), nullable=False, index=True)

    start_time = db.Column(db.DateTime, nullable=False, index=True)
    # price and duration are copied from the service when the booking is made
    duration_minutes = db.Column(db.Integer, nullable=False)
    price = db.Column(db.Numeric(10, 2), nullable=False)

    status = db.Column(db.String(20), nullable=False, default=BookingStatus.PENDING, index=True)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    version = db.Column(db.Integer, nullable=False)

    customer = db.relationship("User")
    provider = db.relationship("Provider")
    service = db.relationship("Service")
    transaction = db.relationship("Transaction", back_populates="booking", uselist=False)

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        db.Index("ix_bookings_provider_start", "provider_id", "start_time"),
    )

    @property
    def end_time(self):
        return self.start_time + timedelta(minutes=self.duration_minutes)
