from datetime import datetime

from evplanner.config import LOCAL_TZ
from evplanner.models import Date, Event

# 2024-06-03 is a Monday
MONDAY = Date(2024, 6, 3)


def at(date: Date, hour: int, minute: int = 0) -> datetime:
    return datetime(date.year, date.month, date.day, hour, minute, tzinfo=LOCAL_TZ)


def make_event(summary, date=MONDAY, start=None, end=None, location=""):
    """Event on ``date`` from ``start`` to ``end``, given as (hour, minute) or hour."""
    def _when(value):
        if value is None:
            return None
        if isinstance(value, tuple):
            return at(date, *value)
        return at(date, value)

    return Event(summary=summary, location=location, start=_when(start), end=_when(end))
