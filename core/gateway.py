"""Payment gateway adapter.

The settlement engine talks to the gateway only through the three calls on
``PaymentGateway``. ``StripeGateway`` is the production implementation
(Stripe Connect destination charges); tests inject their own object with the
same methods through ``app.extensions["payment_gateway"]``.
"""
import logging
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Protocol

import stripe

from core.errors import InternalFailure, UpstreamFailure, ValidationError

logger = logging.getLogger(__name__)

PAYMENT_SUCCEEDED = "payment_intent.succeeded"
PAYMENT_FAILED = "payment_intent.payment_failed"


@dataclass
class GatewayIntent:
    id: str
    client_secret: str


@dataclass
class GatewayEvent:
    type: str
    intent_id: Optional[str]
    transfer_ref: Optional[str] = None
    raw: dict = field(default_factory=dict)


class PaymentGateway(Protocol):
    def create_payment_intent(self, amount: Decimal, currency: str, application_fee: Decimal,
                              transfer_destination: str, metadata: dict) -> GatewayIntent: ...

    def retrieve_intent(self, intent_id: str) -> str: ...

    def parse_event(self, payload: bytes, signature_header: Optional[str]) -> GatewayEvent: ...


def to_minor_units(amount) -> int:
    # 12.34 -> 1234 (cents)
    return int((Decimal(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def event_from_dict(data: dict) -> GatewayEvent:
    obj = (data.get("data") or {}).get("object") or {}

    transfer_ref = obj.get("transfer")
    charge = obj.get("latest_charge")
    if not transfer_ref and isinstance(charge, dict):
        transfer_ref = charge.get("transfer")

    return GatewayEvent(
        type=data.get("type") or "",
        intent_id=obj.get("id"),
        transfer_ref=transfer_ref,
        raw=data,
    )


class StripeGateway:
    def __init__(self, api_key: Optional[str], webhook_secret: Optional[str], tolerance: int = 300):
        self.api_key = api_key
        self.webhook_secret = webhook_secret
        self.tolerance = tolerance

    def _require_key(self):
        if not self.api_key:
            raise InternalFailure("Stripe secret key missing (STRIPE_SECRET_KEY)")

    def create_payment_intent(self, amount, currency, application_fee, transfer_destination, metadata):
        self._require_key()
        try:
            intent = stripe.PaymentIntent.create(
                api_key=self.api_key,
                amount=to_minor_units(amount),
                currency=currency,
                application_fee_amount=to_minor_units(application_fee),
                transfer_data={"destination": transfer_destination},
                metadata={k: str(v) for k, v in metadata.items() if v is not None},
            )
        except stripe.StripeError as exc:
            logger.warning("stripe create PaymentIntent failed: %s", exc)
            raise UpstreamFailure(exc.user_message or str(exc))

        return GatewayIntent(id=intent.id, client_secret=intent.client_secret)

    def retrieve_intent(self, intent_id):
        self._require_key()
        try:
            intent = stripe.PaymentIntent.retrieve(intent_id, api_key=self.api_key)
        except stripe.StripeError as exc:
            logger.warning("stripe retrieve PaymentIntent %s failed: %s", intent_id, exc)
            raise UpstreamFailure(exc.user_message or str(exc))
        return intent.status

    def parse_event(self, payload, signature_header):
        if not self.webhook_secret:
            raise InternalFailure("Webhook secret not configured")
        if not signature_header:
            raise ValidationError("Invalid webhook signature")

        try:
            event = stripe.Webhook.construct_event(
                payload, signature_header, self.webhook_secret, tolerance=self.tolerance,
            )
        except stripe.SignatureVerificationError:
            raise ValidationError("Invalid webhook signature")
        except ValueError:
            # undecodable body or invalid JSON
            raise ValidationError("Invalid payload")

        return event_from_dict(event.to_dict())
