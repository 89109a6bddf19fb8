import hashlib
import hmac
import json
import os
import sys
import time
from datetime import datetime, time as dtime, timedelta
from decimal import Decimal

import pytest

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from app import create_app
from config import TestConfig
from core.errors import UpstreamFailure
from core.gateway import GatewayIntent, StripeGateway
from models import db
from models.availability import Availability
from models.provider import Provider
from models.service import Service
from models.user import User, Role
from security.session import create_session
from utils.seed import seed_roles

MONDAY = 1  # 0 = Sunday


class FakeGateway:
    """In-memory stand-in for the payment gateway."""

    def __init__(self, webhook_secret):
        self.created = []
        self.statuses = {}
        self.fail_with = None
        self._verifier = StripeGateway(api_key=None, webhook_secret=webhook_secret)

    def create_payment_intent(self, amount, currency, application_fee, transfer_destination, metadata):
        if self.fail_with:
            raise UpstreamFailure(self.fail_with)
        intent_id = f"pi_test_{len(self.created) + 1}"
        self.created.append({
            "id": intent_id,
            "amount": amount,
            "currency": currency,
            "application_fee": application_fee,
            "transfer_destination": transfer_destination,
            "metadata": metadata,
        })
        self.statuses[intent_id] = "requires_payment_method"
        return GatewayIntent(id=intent_id, client_secret=f"{intent_id}_secret_abc")

    def retrieve_intent(self, intent_id):
        return self.statuses[intent_id]

    def parse_event(self, payload, signature_header):
        return self._verifier.parse_event(payload, signature_header)


def sign_payload(payload: str, secret: str, timestamp=None) -> str:
    timestamp = timestamp or int(time.time())
    signed = f"{timestamp}.{payload}".encode("utf-8")
    signature = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={signature}"


def next_weekday_at(weekday: int, hour: int, minute: int = 0) -> datetime:
    """A date at least a week ahead whose 0=Sunday weekday is ``weekday``."""
    today = datetime.utcnow().date() + timedelta(days=7)
    delta = (weekday - today.isoweekday() % 7) % 7
    day = today + timedelta(days=delta)
    return datetime.combine(day, dtime(hour, minute))


@pytest.fixture
def gateway():
    return FakeGateway(TestConfig.STRIPE_WEBHOOK_SECRET)


@pytest.fixture
def app(gateway):
    app = create_app(TestConfig, gateway=gateway)
    with app.app_context():
        db.create_all()
        seed_roles()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


def make_user(email, role_name):
    user = User(email=email, password_hash="x", full_name=email.split("@")[0])
    user.roles.append(Role.query.filter_by(name=role_name).one())
    db.session.add(user)
    db.session.commit()
    return user


def auth_headers(user):
    return {"Authorization": f"Bearer {create_session(user.id)}"}


@pytest.fixture
def marketplace(app):
    """Provider working Mondays 09:00-17:00 offering a 60 minute service at 100.00."""
    provider_user = make_user("provider@test.com", "PROVIDER")
    customer = make_user("customer@test.com", "CUSTOMER")
    other_customer = make_user("other@test.com", "CUSTOMER")
    admin = make_user("admin@test.com", "ADMIN")

    provider = Provider(user_id=provider_user.id, business_name="Fix-It", payout_account_id="acct_provider")
    db.session.add(provider)
    db.session.flush()

    db.session.add(Availability(
        provider_id=provider.id, day_of_week=MONDAY, start_time=dtime(9, 0), end_time=dtime(17, 0),
    ))
    service = Service(
        provider_id=provider.id, name="Plumbing", base_price=Decimal("100.00"), duration_minutes=60,
    )
    db.session.add(service)
    db.session.commit()

    return {
        "provider_user": provider_user,
        "provider": provider,
        "customer": customer,
        "other_customer": other_customer,
        "admin": admin,
        "service": service,
        "headers": {
            "provider": auth_headers(provider_user),
            "customer": auth_headers(customer),
            "other_customer": auth_headers(other_customer),
            "admin": auth_headers(admin),
        },
    }


def webhook_body(event_type, intent_id, transfer=None):
    obj = {"id": intent_id, "object": "payment_intent"}
    if transfer:
        obj["transfer"] = transfer
    return json.dumps({"id": "evt_1", "type": event_type, "data": {"object": obj}})
