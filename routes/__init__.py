from flask import Blueprint, jsonify

health_bp = Blueprint("health", __name__)


@health_bp.get("/health")
def health():
    return jsonify(status="ok"), 200


from .auth import auth_bp  # noqa: E402
from .booking import booking_bp  # noqa: E402
from .payments import payments_bp  # noqa: E402
from .providers import provider_bp  # noqa: E402
