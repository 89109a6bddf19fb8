from models.db import db

class Availability(db.Model):
    __tablename__ = "availability"

    id = db.Column(db.Integer, primary_key=True)
    provider_id = db.Column(db.Integer, db.ForeignKey("providers.id"), nullable=False)

    day_of_week = db.Column(db.SmallInteger, nullable=False)  # 0 = Sunday ... 6 = Saturday
    start_time = db.Column(db.Time, nullable=False)
    end_time = db.Column(db.Time, nullable=False)

    provider = db.relationship("Provider", back_populates="availability")

    __table_args__ = (
        db.CheckConstraint("day_of_week BETWEEN 0 AND 6", name="ck_availability_day_of_week"),
        db.CheckConstraint("end_time > start_time", name="ck_availability_window_order"),
        db.Index("ix_availability_provider_day", "provider_id", "day_of_week"),
    )
