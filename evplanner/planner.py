"""Query validation and the end-to-end slot search."""
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Optional

from evplanner.calendar_utils import (
    fetch_events,
    find_available_slots,
    group_events_by_day,
    parse_search_start,
)
from evplanner.config import INCLUDE_OUT_OF_HOURS_EVENTS, WORKDAY_END, WORKDAY_START
from evplanner.distance_utils import DistanceProvider, rank_by_distance
from evplanner.models import Date, LocatedTimeSlot


class InvalidQueryError(ValueError):
    """Search parameters were rejected before any external call."""


# JSON booleans are ints in Python, so they are rejected explicitly
def _int_field(data: dict, key: str, default: int) -> int:
    value = data.get(key, default)
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidQueryError(f"{key} must be an integer")
    return value


def _bool_field(data: dict, key: str, default: bool) -> bool:
    value = data.get(key, default)
    if not isinstance(value, bool):
        raise InvalidQueryError(f"{key} must be true or false")
    return value


def _str_field(data: dict, key: str) -> str:
    value = data.get(key, "")
    if not isinstance(value, str):
        raise InvalidQueryError(f"{key} must be a string")
    return value.strip()


@dataclass
class Query:
    num_days: int
    event_loc: str
    start_loc: str
    duration: timedelta
    cal_ids: list[str] = field(default_factory=list)
    morning_cutoff: int = WORKDAY_START
    evening_cutoff: int = WORKDAY_END
    include_out_of_hours: bool = INCLUDE_OUT_OF_HOURS_EVENTS
    start: Optional[str] = None

    @classmethod
    def from_json(cls, data: dict) -> "Query":
        """Build a query from the request body; ``Duration`` is in minutes."""
        if not isinstance(data, dict):
            raise InvalidQueryError("query must be a JSON object")

        cal_ids = data.get("CalIds", [])
        if not isinstance(cal_ids, list) or not all(isinstance(c, str) for c in cal_ids):
            raise InvalidQueryError("CalIds must be a list of calendar ids")

        start = data.get("Start")
        if start is not None and not isinstance(start, str):
            raise InvalidQueryError("Start must be a string")

        return cls(
            num_days=_int_field(data, "NumDays", 0),
            event_loc=_str_field(data, "EventLoc"),
            start_loc=_str_field(data, "StartLoc"),
            duration=timedelta(minutes=_int_field(data, "Duration", 0)),
            cal_ids=cal_ids,
            morning_cutoff=_int_field(data, "MorningCutoff", WORKDAY_START),
            evening_cutoff=_int_field(data, "EveningCutoff", WORKDAY_END),
            include_out_of_hours=_bool_field(data, "IncludeOutOfHours", INCLUDE_OUT_OF_HOURS_EVENTS),
            start=start or None,
        )

    def validate(self) -> None:
        if self.num_days <= 0:
            raise InvalidQueryError("invalid number of days")
        if not self.event_loc:
            raise InvalidQueryError("invalid event location")
        if not self.start_loc:
            raise InvalidQueryError("invalid start location")
        if self.duration <= timedelta(0):
            raise InvalidQueryError("invalid duration")
        if not self.cal_ids:
            raise InvalidQueryError("no calendars given")
        if not 0 <= self.morning_cutoff < self.evening_cutoff <= 24:
            raise InvalidQueryError("invalid business hours")

    def search_window(self, now: Optional[datetime] = None) -> tuple[Date, Date]:
        """First and last (inclusive) date searched."""
        try:
            first = parse_search_start(self.start, now)
        except ValueError as e:
            raise InvalidQueryError(str(e)) from e
        return first, first.add_days(self.num_days - 1)


def find_slots(
    service,
    distance_provider: DistanceProvider,
    query: Query,
    now: Optional[datetime] = None,
) -> list[LocatedTimeSlot]:
    """
    Run the whole search for one request.

    Args:
        service: Authorised Google Calendar service
        distance_provider: Distance Matrix client
        query: Search parameters
        now: Reference time, defaults to the current time

    Returns:
        Slots ranked by added distance, empty when nothing is free

    Raises:
        InvalidQueryError: If the query is rejected
        DistanceProviderError: If the distance lookup fails
    """
    query.validate()
    first, last = query.search_window(now)

    events = fetch_events(service, query.cal_ids, first.to_datetime(), last.add_days(1).to_datetime())
    print(f"📅 Fetched {len(events)} events from {len(query.cal_ids)} calendar(s) for {first} → {last}")

    calendar = group_events_by_day(
        events,
        include_out_of_hours=query.include_out_of_hours,
        earliest=query.morning_cutoff,
        latest=query.evening_cutoff,
    )
    slots = find_available_slots(
        calendar, first, last, query.duration,
        earliest=query.morning_cutoff, latest=query.evening_cutoff,
    )
    print(f"📊 Found {len(slots)} free windows")
    if not slots:
        return []

    return rank_by_distance(slots, query.event_loc, query.start_loc, distance_provider)
