from flask import Blueprint, request, jsonify, g, current_app

from core.errors import ValidationError
from security.rbac import require_roles
from utils.audit import log_event
from utils.request_data import json_body, text_fields
from utils.roles import CUSTOMER

payments_bp = Blueprint("payments", __name__, url_prefix="/payments")


def _settlement():
    return current_app.extensions["settlement"]


@payments_bp.post("/create-intent")
@require_roles(CUSTOMER, allow_admin=False)
def create_intent():
    data = json_body()
    booking_id = data.get("booking_id")
    if not booking_id:
        raise ValidationError("booking_id is required")
    try:
        booking_id = int(booking_id)
    except (TypeError, ValueError):
        raise ValidationError("booking_id must be an integer")

    result = _settlement().create_intent(booking_id, g.actor.id)

    log_event("PAYMENT_INTENT_CREATED", user_id=g.user.id, entity="booking", entity_id=booking_id,
              metadata={"payment_intent_id": result.external_ref, "amount": str(result.amount)})
    return jsonify(
        client_secret=result.client_secret,
        payment_intent_id=result.external_ref,
        amount=float(result.amount),
        currency=result.currency,
    ), 200


@payments_bp.post("/confirm")
@require_roles(CUSTOMER, allow_admin=False)
def confirm():
    data = json_body()
    intent_id = text_fields(data, "payment_intent_id").strip()
    if not intent_id:
        raise ValidationError("payment_intent_id is required")

    result = _settlement().confirm_payment(intent_id, g.actor.id)

    log_event("PAYMENT_CONFIRM", user_id=g.user.id, entity="booking", entity_id=result.booking_id,
              metadata={"payment_intent_id": intent_id, "status": result.status})
    return jsonify(
        status=result.status,
        booking_id=result.booking_id,
        booking_number=result.booking_number,
        amount=float(result.amount),
    ), 200


@payments_bp.post("/webhook")
def webhook():
    # signature is checked before anything touches the settlement engine
    gateway = current_app.extensions["payment_gateway"]
    event = gateway.parse_event(request.get_data(), request.headers.get("Stripe-Signature"))

    changed = _settlement().handle_gateway_event(event)
    if changed:
        log_event("PAYMENT_WEBHOOK_APPLIED", entity="payment", entity_id=event.intent_id,
                  metadata={"type": event.type})
    return jsonify(received=True), 200
