from datetime import datetime, timedelta, timezone

from flask import current_app, has_app_context

DATE_FORMAT = "%Y-%m-%d"


def utc_now():
    """Naive UTC timestamp, the form stored in the database."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def current_time():
    # app.config["CLOCK"] overrides the wall clock when set
    if has_app_context():
        clock = current_app.config.get("CLOCK")
        if clock is not None:
            return clock()
    return utc_now()


def calendar_day(value):
    if isinstance(value, datetime):
        return value.date()
    return value


def to_date_key(value):
    return calendar_day(value).strftime(DATE_FORMAT)


def parse_date_key(key):
    return datetime.strptime(key, DATE_FORMAT).date()


def days_between(start, end):
    """Yield every calendar date from ``start`` up to but excluding ``end``."""
    current = start
    while current < end:
        yield current
        current += timedelta(days=1)


def window_start(today, days):
    """First day of the ``days``-long window that ends on ``today``."""
    return today - timedelta(days=days - 1)


def in_window(day, today, days):
    return window_start(today, days) <= day <= today
