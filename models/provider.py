from datetime import datetime
from models.db import db

class Provider(db.Model):
    __tablename__ = "providers"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, unique=True, index=True)

    business_name = db.Column(db.String(160), nullable=False)
    # Gateway connected account that receives the provider's share of each payment
    payout_account_id = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    user = db.relationship("User", back_populates="provider")
    availability = db.relationship("Availability", back_populates="provider", cascade="all, delete-orphan")
    services = db.relationship("Service", back_populates="provider")
