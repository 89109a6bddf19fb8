from flask import Blueprint, request, jsonify, g

from core.bookings import bookings_for, create_booking, get_booking_for, parse_date_time
from core.errors import ValidationError
from core.state_machine import update_status
from security.rbac import require_roles
from utils.auth_context import login_required
from utils.audit import entity_history, log_event
from utils.request_data import json_body, text_fields
from utils.roles import CUSTOMER

booking_bp = Blueprint("booking", __name__)


def _booking_json(b, detail=False):
    out = {
        "id": b.id,
        "booking_number": b.booking_number,
        "status": b.status,
        "date_time": b.start_time.isoformat(),
        "end_time": b.end_time.isoformat(),
        "duration_minutes": b.duration_minutes,
        "price": float(b.price),
        "notes": b.notes,
        "service_id": b.service_id,
        "provider_id": b.provider_id,
        "customer_id": b.customer_id,
    }
    txn = b.transaction
    out["payment"] = {"id": txn.id, "status": txn.status} if txn else None
    if detail:
        out["created_at"] = b.created_at.isoformat()
        out["updated_at"] = b.updated_at.isoformat()
        if b.service:
            out["service"] = {"id": b.service.id, "name": b.service.name}
        if b.provider:
            out["provider"] = {"id": b.provider.id, "business_name": b.provider.business_name}
        if txn:
            out["payment"].update(
                amount=float(txn.amount),
                commission=float(txn.commission),
                provider_amount=float(txn.provider_amount),
                currency=txn.currency,
                payment_intent_id=txn.external_payment_ref,
            )
        out["history"] = entity_history("booking", b.id)
    return out


@booking_bp.post("/bookings")
@require_roles(CUSTOMER, allow_admin=False)
def create():
    data = json_body()
    for field in ("service_id", "date_time"):
        if not data.get(field):
            raise ValidationError(f"{field} is required")

    try:
        service_id = int(data["service_id"])
    except (TypeError, ValueError):
        raise ValidationError("service_id must be an integer")

    start_time = parse_date_time(data["date_time"])
    notes = text_fields(data, "notes").strip() or None

    booking = create_booking(g.actor.id, service_id, start_time, notes=notes)

    log_event("BOOKING_CREATE", user_id=g.user.id, entity="booking", entity_id=booking.id,
              metadata={"booking_number": booking.booking_number, "service_id": service_id})
    return jsonify(_booking_json(booking)), 201


@booking_bp.get("/bookings")
@login_required
def list_bookings():
    status = request.args.get("status")
    rows = bookings_for(g.actor, status=status)
    return jsonify([_booking_json(b) for b in rows]), 200


@booking_bp.get("/bookings/<int:booking_id>")
@login_required
def get_booking(booking_id: int):
    booking = get_booking_for(g.actor, booking_id)
    return jsonify(_booking_json(booking, detail=True)), 200


@booking_bp.patch("/bookings/<int:booking_id>/status")
@login_required
def change_status(booking_id: int):
    data = json_body()
    requested = data.get("status")

    booking = update_status(g.actor, booking_id, requested)

    log_event("BOOKING_STATUS_UPDATE", user_id=g.user.id, entity="booking", entity_id=booking.id,
              metadata={"status": booking.status, "role": g.actor.role})
    return jsonify(id=booking.id, status=booking.status), 200
