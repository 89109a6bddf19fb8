from datetime import datetime
from decimal import Decimal
from itertools import product

import pytest

from conftest import MONDAY, next_weekday_at
from core.errors import AccessDenied, InvalidStatus, NotFound, TransitionNotAllowed
from core.state_machine import can_transition, confirm_from_payment, update_status
from models import db
from models.booking import Booking, BookingStatus
from utils.auth_context import Actor

ALLOWED = {
    ("customer", "pending", "cancelled"),
    ("customer", "confirmed", "cancelled"),
    ("provider", "pending", "confirmed"),
    ("provider", "pending", "completed"),
    ("provider", "confirmed", "completed"),
    ("admin", "pending", "confirmed"),
    ("admin", "pending", "completed"),
    ("admin", "confirmed", "completed"),
    ("admin", "pending", "cancelled"),
    ("admin", "confirmed", "cancelled"),
}


@pytest.mark.parametrize(
    "role, current, requested",
    list(product(["customer", "provider", "admin"], BookingStatus.ALL, BookingStatus.ALL)),
)
def test_transition_table_is_exhaustive(role, current, requested):
    assert can_transition(role, current, requested) is ((role, current, requested) in ALLOWED)


def test_unknown_role_can_do_nothing():
    assert not can_transition("guest", "pending", "cancelled")


def _booking(marketplace, status=BookingStatus.PENDING):
    b = Booking(
        booking_number=f"BK{status.upper()}",
        customer_id=marketplace["customer"].id,
        provider_id=marketplace["provider"].id,
        service_id=marketplace["service"].id,
        start_time=next_weekday_at(MONDAY, 10),
        duration_minutes=60,
        price=Decimal("100.00"),
        status=status,
        updated_at=datetime(2020, 1, 1),
    )
    db.session.add(b)
    db.session.commit()
    return b


def _actor(user, role):
    return Actor(id=user.id, role=role)


def test_provider_confirms_and_stamps_updated_at(marketplace):
    booking = _booking(marketplace)
    updated = update_status(_actor(marketplace["provider_user"], "provider"), booking.id, "confirmed")

    assert updated.status == "confirmed"
    assert updated.updated_at > datetime(2020, 1, 1)


def test_customer_cannot_confirm_own_booking(marketplace):
    booking = _booking(marketplace)
    with pytest.raises(TransitionNotAllowed):
        update_status(_actor(marketplace["customer"], "customer"), booking.id, "confirmed")
    assert db.session.get(Booking, booking.id).status == "pending"


def test_customer_can_cancel_own_booking(marketplace):
    booking = _booking(marketplace, BookingStatus.CONFIRMED)
    updated = update_status(_actor(marketplace["customer"], "customer"), booking.id, "cancelled")
    assert updated.status == "cancelled"


def test_non_owner_is_denied_whatever_the_status(marketplace):
    booking = _booking(marketplace)
    stranger = _actor(marketplace["other_customer"], "customer")
    for requested in ("cancelled", "confirmed", "completed"):
        with pytest.raises(AccessDenied):
            update_status(stranger, booking.id, requested)


def test_invalid_status_is_rejected_before_lookup(marketplace):
    with pytest.raises(InvalidStatus):
        update_status(_actor(marketplace["admin"], "admin"), 424242, "archived")
    with pytest.raises(InvalidStatus):
        update_status(_actor(marketplace["admin"], "admin"), 424242, None)


def test_missing_booking_is_not_found(marketplace):
    with pytest.raises(NotFound):
        update_status(_actor(marketplace["admin"], "admin"), 424242, "cancelled")


def test_terminal_states_are_final_even_for_admin(marketplace):
    booking = _booking(marketplace, BookingStatus.COMPLETED)
    with pytest.raises(TransitionNotAllowed):
        update_status(_actor(marketplace["admin"], "admin"), booking.id, "cancelled")


def test_payment_confirmation_is_idempotent_and_never_resurrects(marketplace):
    pending = _booking(marketplace)
    assert confirm_from_payment(pending) is True
    assert confirm_from_payment(pending) is False
    assert pending.status == "confirmed"

    cancelled = _booking(marketplace, BookingStatus.CANCELLED)
    assert confirm_from_payment(cancelled) is False
    assert cancelled.status == "cancelled"


def test_status_endpoint_maps_errors(client, marketplace):
    booking = _booking(marketplace)
    h = marketplace["headers"]
    url = f"/bookings/{booking.id}/status"

    assert client.patch(url, json={"status": "bogus"}, headers=h["customer"]).status_code == 400
    assert client.patch("/bookings/999/status", json={"status": "cancelled"}, headers=h["admin"]).status_code == 404
    assert client.patch(url, json={"status": "cancelled"}, headers=h["other_customer"]).status_code == 403

    resp = client.patch(url, json={"status": "confirmed"}, headers=h["customer"])
    assert resp.status_code == 403

    resp = client.patch(url, json={"status": "confirmed"}, headers=h["provider"])
    assert resp.status_code == 200
    assert resp.get_json() == {"id": booking.id, "status": "confirmed"}

    resp = client.patch(url, json={"status": "completed"}, headers=h["provider"])
    assert resp.get_json()["status"] == "completed"
