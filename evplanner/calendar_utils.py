from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional

import dateparser
from dateutil.parser import isoparse
from googleapiclient.discovery import build

from evplanner.config import LOCAL_TZ, WORKDAY_START, WORKDAY_END
from evplanner.models import Calendar, Date, Event, Schedule, TimeSlot

# ──────────────────────────────────────────────
# Time‑zone helpers
# ──────────────────────────────────────────────

def _to_local(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=LOCAL_TZ)
    return dt.astimezone(LOCAL_TZ)


def _to_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def _rfc3339(dt: datetime) -> str:
    """Return an RFC‑3339 string in UTC for Google Calendar API."""
    return _to_utc(dt).isoformat()


def parse_search_start(phrase: Optional[str] = None, now: Optional[datetime] = None) -> Date:
    """First day to search.

    Without a phrase this is the day after ``now``. A phrase such as
    'next monday' or '2 june' is resolved with dateparser relative to ``now``.
    """
    now = _to_local(now or datetime.now(LOCAL_TZ))
    if not phrase:
        return Date.from_datetime(now).add_days(1)

    parsed = dateparser.parse(
        phrase,
        settings={
            'TIMEZONE': str(LOCAL_TZ),
            'RETURN_AS_TIMEZONE_AWARE': True,
            'RELATIVE_BASE': now.replace(tzinfo=None),
            'PREFER_DATES_FROM': 'future',
        }
    )
    if not parsed:
        raise ValueError(f"Could not parse date from phrase: {phrase}")
    return Date.from_datetime(parsed)

# ──────────────────────────────────────────────
# Google API service
# ──────────────────────────────────────────────

def get_service(creds):
    return build("calendar", "v3", credentials=creds, cache_discovery=False)


def list_calendars(service) -> dict[str, str]:
    """Map of calendar summary → calendar id for every accessible calendar."""
    items = service.calendarList().list().execute().get("items", [])
    return {c.get("summary", c["id"]): c["id"] for c in items}

# ──────────────────────────────────────────────
# Fetch events → list[Event]
# ──────────────────────────────────────────────

def _parse_instant(raw: Optional[dict], summary: str) -> Optional[datetime]:
    if not raw or not raw.get("dateTime"):
        # all-day entries only carry a "date"
        return None
    try:
        return _to_local(isoparse(raw["dateTime"]))
    except ValueError as e:
        print(f"⚠️  malformed timestamp on event '{summary}': {raw['dateTime']} ({e})")
        return None


def event_from_google(item: dict) -> Event:
    summary = item.get("summary", "(No title)")
    return Event(
        summary=summary,
        location=item.get("location", "") or "",
        start=_parse_instant(item.get("start"), summary),
        end=_parse_instant(item.get("end"), summary),
    )


def list_events(service, calendar_id: str, start_dt: datetime, end_dt: datetime) -> list[Event]:
    items = (
        service.events()
        .list(
            calendarId=calendar_id,
            timeMin=_rfc3339(start_dt),
            timeMax=_rfc3339(end_dt),
            singleEvents=True,
            orderBy="startTime",
        )
        .execute()
        .get("items", [])
    )
    return [event_from_google(item) for item in items]


def fetch_events(service, calendar_ids: Iterable[str], start_dt: datetime, end_dt: datetime) -> list[Event]:
    """Events from every calendar in ``calendar_ids``, concatenated."""
    events: list[Event] = []
    for cal_id in calendar_ids:
        events.extend(list_events(service, cal_id, start_dt, end_dt))
    return events

# ──────────────────────────────────────────────
# Events → per-day schedules
# ──────────────────────────────────────────────

def group_events_by_day(
    events: Iterable[Optional[Event]],
    include_out_of_hours: bool = True,
    earliest: int = WORKDAY_START,
    latest: int = WORKDAY_END,
) -> Calendar:
    """Bucket events by local start date, each bucket sorted by start time.

    Args:
        events: Events in any order; ``None`` entries are tolerated
        include_out_of_hours: When False, events starting before ``earliest``
            or at/after ``latest`` (local hour) are dropped
        earliest: Start of the business day (hour)
        latest: End of the business day (hour)
    """
    days: Calendar = {}
    for event in events:
        if event is None:
            print("⚠️  skipping empty event")
            continue
        if event.start is None:
            print(f"⚠️  skipping event with no start time: {event.summary}")
            continue

        start_local = _to_local(event.start)
        if not include_out_of_hours and not (earliest <= start_local.hour < latest):
            print(f"⚠️  skipping out-of-hours event: {event.summary} ({start_local:%Y-%m-%d %H:%M})")
            continue

        date = Date.from_datetime(start_local)
        days.setdefault(date, Schedule()).insert(event)
    return days

# ──────────────────────────────────────────────
# Free‑slot scanner
# ──────────────────────────────────────────────

def _date_range(start_date: Date, end_date: Date):
    cur = start_date
    while cur <= end_date:
        yield cur
        cur = cur.add_days(1)


def find_available_slots(
    calendar: Calendar,
    start_date: Date,
    end_date: Date,
    min_duration: timedelta,
    earliest: int = WORKDAY_START,
    latest: int = WORKDAY_END,
) -> list[TimeSlot]:
    """Return the free windows of at least ``min_duration`` on business days.

    Each slot carries the events immediately around it: ``comes_after`` is the
    event that ends where the slot begins, ``comes_before`` the one that starts
    where it ends. The trailing slot of a day follows the last event of that
    day's schedule.
    """
    slots: list[TimeSlot] = []
    for date in _date_range(start_date, end_date):
        if date.is_weekend():
            continue

        day_start = date.at(earliest)
        day_end = date.at(latest)
        schedule = calendar.get(date)

        if not schedule:
            if day_end - day_start >= min_duration:
                slots.append(TimeSlot(date, day_start, day_end))
            continue

        last_end = day_start
        previous: Optional[Event] = None
        for event in schedule:
            if event.start is None or event.end is None:
                continue
            gap_end = min(_to_local(event.start), day_end)
            if gap_end - last_end >= min_duration:
                slots.append(TimeSlot(date, last_end, gap_end, comes_after=previous, comes_before=event))
            last_end = max(last_end, _to_local(event.end))
            previous = event

        if day_end - last_end >= min_duration:
            slots.append(TimeSlot(date, last_end, day_end, comes_after=schedule.events[-1]))

    return slots


def gather_locations(slots: Iterable[TimeSlot]) -> set[str]:
    """Distinct non-empty locations of the events bordering ``slots``."""
    locations: set[str] = set()
    for slot in slots:
        for neighbour in (slot.comes_after, slot.comes_before):
            if neighbour is not None and neighbour.location:
                locations.add(neighbour.location)
    return locations
