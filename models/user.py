from datetime import datetime
from models.db import db
from utils.roles import actor_role

# a user may hold several roles but acts with the strongest one (utils.roles.actor_role),
# so a provider who is also a customer cannot book as a customer
user_roles = db.Table(
    "user_roles",
    db.Column("user_id", db.Integer, db.ForeignKey("users.id"), primary_key=True),
    db.Column("role_id", db.Integer, db.ForeignKey("roles.id"), primary_key=True),
)

class User(db.Model):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)

    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)
    full_name = db.Column(db.String(120), nullable=True)
    phone_number = db.Column(db.String(30), nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    roles = db.relationship("Role", secondary=user_roles, back_populates="users")
    provider = db.relationship("Provider", back_populates="user", uselist=False)

    @property
    def acting_role(self):
        """Lower-case role the user acts with in booking and payment flows."""
        return actor_role(self.roles)

class Role(db.Model):
    __tablename__ = "roles"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(50), unique=True, nullable=False)  # CUSTOMER, PROVIDER, ADMIN

    users = db.relationship("User", secondary=user_roles, back_populates="roles")
