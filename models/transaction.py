from datetime import datetime
from models.db import db

class TransactionStatus:
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"

class Transaction(db.Model):
    __tablename__ = "transactions"

    id = db.Column(db.Integer, primary_key=True)
    # at most one settlement record per booking
    booking_id = db.Column(db.Integer, db.ForeignKey("bookings.id"), nullable=False, unique=True)

    amount = db.Column(db.Numeric(10, 2), nullable=False)
    commission = db.Column(db.Numeric(10, 2), nullable=False)
    provider_amount = db.Column(db.Numeric(10, 2), nullable=False)
    currency = db.Column(db.String(10), nullable=False)

    status = db.Column(db.String(20), nullable=False, default=TransactionStatus.PENDING)
    external_payment_ref = db.Column(db.String(255), nullable=False, unique=True, index=True)
    external_transfer_ref = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    version = db.Column(db.Integer, nullable=False)

    booking = db.relationship("Booking", back_populates="transaction")

    __mapper_args__ = {"version_id_col": version}
