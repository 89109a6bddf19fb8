from models.availability import Availability


def day_of_week_for(moment) -> int:
    """0 = Sunday ... 6 = Saturday."""
    return moment.isoweekday() % 7


def is_within_availability(provider_id: int, day_of_week: int, time_of_day, end_time=None) -> bool:
    """
    True if ``time_of_day`` falls inside one of the provider's windows for that
    weekday (both ends inclusive). When ``end_time`` is given the same window
    must also cover it, i.e. the whole slot has to fit in one window.
    """
    windows = Availability.query.filter_by(provider_id=provider_id, day_of_week=day_of_week).all()
    for w in windows:
        if not (w.start_time <= time_of_day <= w.end_time):
            continue
        if end_time is None or end_time <= w.end_time:
            return True
    return False


def slot_fits_availability(provider_id: int, start, end) -> bool:
    # a slot running past midnight never fits a single-day window
    if end.date() != start.date():
        return False
    return is_within_availability(provider_id, day_of_week_for(start), start.time(), end.time())
