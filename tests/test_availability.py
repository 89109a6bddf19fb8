from datetime import datetime, time, timedelta

from conftest import MONDAY, next_weekday_at
from core.availability import day_of_week_for, is_within_availability, slot_fits_availability
from models import db
from models.availability import Availability


def test_day_of_week_uses_sunday_as_zero():
    assert day_of_week_for(datetime(2030, 1, 6)) == 0   # Sunday
    assert day_of_week_for(datetime(2030, 1, 7)) == 1   # Monday
    assert day_of_week_for(datetime(2030, 1, 12)) == 6  # Saturday


def test_time_inside_window_is_available(marketplace):
    pid = marketplace["provider"].id
    assert is_within_availability(pid, MONDAY, time(9, 0))
    assert is_within_availability(pid, MONDAY, time(12, 30))
    # both ends of the window are inclusive
    assert is_within_availability(pid, MONDAY, time(17, 0))


def test_outside_window_or_other_day_is_not_available(marketplace):
    pid = marketplace["provider"].id
    assert not is_within_availability(pid, MONDAY, time(8, 59))
    assert not is_within_availability(pid, MONDAY, time(17, 1))
    assert not is_within_availability(pid, 2, time(10, 0))


def test_unknown_provider_is_simply_unavailable(app):
    assert is_within_availability(9999, MONDAY, time(10, 0)) is False


def test_slot_must_fit_inside_one_window(marketplace):
    pid = marketplace["provider"].id
    assert is_within_availability(pid, MONDAY, time(16, 0), end_time=time(17, 0))
    assert not is_within_availability(pid, MONDAY, time(16, 30), end_time=time(17, 30))


def test_overlapping_windows_only_need_one_match(marketplace):
    pid = marketplace["provider"].id
    db.session.add(Availability(provider_id=pid, day_of_week=MONDAY, start_time=time(16, 0), end_time=time(20, 0)))
    db.session.commit()

    assert is_within_availability(pid, MONDAY, time(16, 30), end_time=time(17, 30))
    assert is_within_availability(pid, MONDAY, time(10, 0), end_time=time(11, 0))


def test_slot_crossing_midnight_never_fits(marketplace):
    pid = marketplace["provider"].id
    db.session.add(Availability(provider_id=pid, day_of_week=MONDAY, start_time=time(20, 0), end_time=time(23, 59)))
    db.session.commit()

    start = next_weekday_at(MONDAY, 23, 30)
    assert not slot_fits_availability(pid, start, start + timedelta(minutes=60))
    assert slot_fits_availability(pid, start - timedelta(hours=1), start)
