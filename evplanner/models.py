"""Value types for the availability-slot engine."""
import bisect
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import Optional

from evplanner.config import LOCAL_TZ


@dataclass(frozen=True, order=True)
class Date:
    """A calendar day in the local zone, no time of day."""
    year: int
    month: int
    day: int

    def compare(self, other: "Date") -> int:
        if self < other:
            return -1
        if self > other:
            return 1
        return 0

    def as_date(self) -> date:
        return date(self.year, self.month, self.day)

    def add_days(self, n: int) -> "Date":
        return Date.from_date(self.as_date() + timedelta(days=n))

    def is_weekend(self) -> bool:
        return self.as_date().weekday() >= 5  # 5 = Saturday, 6 = Sunday

    def at(self, hour: int, minute: int = 0) -> datetime:
        """Return this day at ``hour:minute`` local time."""
        if hour == 24:
            return datetime.combine(self.add_days(1).as_date(), time(0, minute), tzinfo=LOCAL_TZ)
        return datetime.combine(self.as_date(), time(hour, minute), tzinfo=LOCAL_TZ)

    def to_datetime(self) -> datetime:
        """Local midnight at the start of this day."""
        return self.at(0)

    @classmethod
    def from_date(cls, d: date) -> "Date":
        return cls(d.year, d.month, d.day)

    @classmethod
    def from_datetime(cls, dt: datetime) -> "Date":
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=LOCAL_TZ)
        return cls.from_date(dt.astimezone(LOCAL_TZ).date())

    def __str__(self) -> str:
        return self.as_date().isoformat()


@dataclass(frozen=True)
class Event:
    """A calendar entry as seen by the engine."""
    summary: str
    location: str = ""
    start: Optional[datetime] = None
    end: Optional[datetime] = None


def _schedule_key(event: Event):
    # events without a start sort after every dated event; naive starts are local time
    start = event.start
    if start is not None and start.tzinfo is None:
        start = start.replace(tzinfo=LOCAL_TZ)
    return (start is None, start)


@dataclass
class Schedule:
    """Events of a single day, kept sorted by start time."""
    events: list[Event] = field(default_factory=list)

    def insert(self, event: Event) -> "Schedule":
        """Ordered insert; equal start times keep insertion order."""
        bisect.insort_right(self.events, event, key=_schedule_key)
        return self

    def __len__(self) -> int:
        return len(self.events)

    def __iter__(self):
        return iter(self.events)


Calendar = dict[Date, Schedule]


@dataclass(frozen=True)
class TimeSlot:
    """A free window on ``date`` between two (optional) neighbouring events."""
    date: Date
    start: datetime
    end: datetime
    comes_after: Optional[Event] = None
    comes_before: Optional[Event] = None

    @property
    def duration(self) -> timedelta:
        return self.end - self.start


@dataclass(frozen=True)
class LocatedTimeSlot:
    """A TimeSlot plus the extra travel distance (meters) it would cost."""
    slot: TimeSlot
    added_distance: int = 0

    @property
    def date(self) -> Date:
        return self.slot.date

    @property
    def start(self) -> datetime:
        return self.slot.start

    @property
    def end(self) -> datetime:
        return self.slot.end

    @property
    def comes_after(self) -> Optional[Event]:
        return self.slot.comes_after

    @property
    def comes_before(self) -> Optional[Event]:
        return self.slot.comes_before
