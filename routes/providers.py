from datetime import time
from decimal import Decimal, InvalidOperation

from flask import Blueprint, jsonify, g

from models import db
from models.availability import Availability
from models.provider import Provider
from models.service import Service
from core.errors import NotFound, ValidationError, InvalidState
from security.rbac import require_roles
from utils.audit import log_event
from utils.request_data import json_body, text_fields
from utils.roles import PROVIDER

provider_bp = Blueprint("providers", __name__, url_prefix="/providers")


def _parse_time(value, field):
    try:
        return time.fromisoformat(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid {field}. Use HH:MM or HH:MM:SS")


def _parse_price(value):
    try:
        price = Decimal(str(value)).quantize(Decimal("0.01"))
    except (InvalidOperation, ValueError):
        raise ValidationError("Invalid base_price")
    if not price.is_finite() or price <= 0:
        raise ValidationError("base_price must be positive")
    return price


def _parse_duration(value):
    try:
        duration = int(value)
    except (TypeError, ValueError):
        raise ValidationError("Invalid duration_minutes")
    if duration <= 0 or duration > 24 * 60:
        raise ValidationError("duration_minutes must be between 1 and 1440")
    return duration


def _my_provider():
    provider = Provider.query.filter_by(user_id=g.user.id).first()
    if not provider:
        raise InvalidState("Create your provider profile first")
    return provider


def _window_json(w):
    return {
        "id": w.id,
        "day_of_week": w.day_of_week,
        "start_time": w.start_time.strftime("%H:%M:%S"),
        "end_time": w.end_time.strftime("%H:%M:%S"),
    }


def _service_json(s):
    return {
        "id": s.id,
        "provider_id": s.provider_id,
        "name": s.name,
        "base_price": float(s.base_price),
        "duration_minutes": s.duration_minutes,
        "category_id": s.category_id,
        "is_active": s.is_active,
    }


@provider_bp.put("/me")
@require_roles(PROVIDER, allow_admin=False)
def upsert_profile():
    data = json_body()
    business_name, payout_account_id = text_fields(data, "business_name", "payout_account_id")
    business_name = business_name.strip()
    payout_account_id = payout_account_id.strip() or None

    provider = Provider.query.filter_by(user_id=g.user.id).first()
    if not provider:
        if not business_name:
            raise ValidationError("business_name is required")
        provider = Provider(user_id=g.user.id, business_name=business_name)
        db.session.add(provider)
    elif business_name:
        provider.business_name = business_name

    if "payout_account_id" in data:
        provider.payout_account_id = payout_account_id

    db.session.commit()
    log_event("PROVIDER_PROFILE_UPDATE", user_id=g.user.id, entity="provider", entity_id=provider.id)
    return jsonify(
        id=provider.id,
        business_name=provider.business_name,
        payout_account_id=provider.payout_account_id,
    ), 200


@provider_bp.get("/me/availability")
@require_roles(PROVIDER, allow_admin=False)
def my_availability():
    provider = _my_provider()
    rows = (
        Availability.query
        .filter_by(provider_id=provider.id)
        .order_by(Availability.day_of_week, Availability.start_time)
        .all()
    )
    return jsonify([_window_json(w) for w in rows]), 200


@provider_bp.post("/me/availability")
@require_roles(PROVIDER, allow_admin=False)
def add_availability():
    provider = _my_provider()
    data = json_body()

    day = data.get("day_of_week")
    if not isinstance(day, int) or isinstance(day, bool) or not 0 <= day <= 6:
        raise ValidationError("day_of_week must be 0 (Sunday) to 6 (Saturday)")
    start = _parse_time(data.get("start_time"), "start_time")
    end = _parse_time(data.get("end_time"), "end_time")
    if end <= start:
        raise ValidationError("end_time must be after start_time")

    window = Availability(provider_id=provider.id, day_of_week=day, start_time=start, end_time=end)
    db.session.add(window)
    db.session.commit()

    log_event("AVAILABILITY_CREATE", user_id=g.user.id, entity="availability", entity_id=window.id)
    return jsonify(_window_json(window)), 201


@provider_bp.delete("/me/availability/<int:window_id>")
@require_roles(PROVIDER, allow_admin=False)
def delete_availability(window_id: int):
    provider = _my_provider()
    window = Availability.query.filter_by(id=window_id, provider_id=provider.id).first()
    if not window:
        raise NotFound("Availability window not found")

    db.session.delete(window)
    db.session.commit()
    log_event("AVAILABILITY_DELETE", user_id=g.user.id, entity="availability", entity_id=window_id)
    return jsonify(message="Deleted"), 200


@provider_bp.get("/<int:provider_id>/availability")
def public_availability(provider_id: int):
    if not db.session.get(Provider, provider_id):
        raise NotFound("Provider not found")
    rows = (
        Availability.query
        .filter_by(provider_id=provider_id)
        .order_by(Availability.day_of_week, Availability.start_time)
        .all()
    )
    return jsonify([_window_json(w) for w in rows]), 200


@provider_bp.post("/me/services")
@require_roles(PROVIDER, allow_admin=False)
def create_service():
    provider = _my_provider()
    data = json_body()

    name = text_fields(data, "name").strip()
    if not name:
        raise ValidationError("name is required")

    service = Service(
        provider_id=provider.id,
        name=name,
        base_price=_parse_price(data.get("base_price")),
        duration_minutes=_parse_duration(data.get("duration_minutes")),
        category_id=data.get("category_id"),
        is_active=True,
    )
    db.session.add(service)
    db.session.commit()

    log_event("SERVICE_CREATE", user_id=g.user.id, entity="service", entity_id=service.id)
    return jsonify(_service_json(service)), 201


@provider_bp.patch("/me/services/<int:service_id>")
@require_roles(PROVIDER, allow_admin=False)
def update_service(service_id: int):
    provider = _my_provider()
    service = Service.query.filter_by(id=service_id, provider_id=provider.id).first()
    if not service:
        raise NotFound("Service not found")

    data = json_body()
    if "name" in data:
        name = text_fields(data, "name").strip()
        if not name:
            raise ValidationError("name cannot be empty")
        service.name = name
    if "base_price" in data:
        service.base_price = _parse_price(data.get("base_price"))
    if "duration_minutes" in data:
        service.duration_minutes = _parse_duration(data.get("duration_minutes"))
    if "is_active" in data:
        service.is_active = bool(data.get("is_active"))

    # existing bookings keep the price/duration they were made with
    db.session.commit()
    log_event("SERVICE_UPDATE", user_id=g.user.id, entity="service", entity_id=service.id)
    return jsonify(_service_json(service)), 200
