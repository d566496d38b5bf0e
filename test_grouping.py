from datetime import datetime, timezone
from itertools import permutations
from unittest.mock import MagicMock

from conftest import MONDAY, at, make_event
from evplanner.calendar_utils import (
    event_from_google,
    fetch_events,
    group_events_by_day,
    list_calendars,
    list_events,
)
from evplanner.models import Date, Event

TUESDAY = MONDAY.add_days(1)


def test_groups_events_by_start_day_in_order():
    events = [
        make_event("tue", TUESDAY, start=10, end=11),
        make_event("mon late", start=15, end=16),
        make_event("mon early", start=9, end=10),
    ]

    calendar = group_events_by_day(events)

    assert set(calendar) == {MONDAY, TUESDAY}
    assert [e.summary for e in calendar[MONDAY]] == ["mon early", "mon late"]
    assert [e.summary for e in calendar[TUESDAY]] == ["tue"]


def test_skips_missing_events_with_a_notice(capsys):
    events = [None, make_event("no start"), make_event("ok", start=10, end=11)]

    calendar = group_events_by_day(events)

    assert [e.summary for e in calendar[MONDAY]] == ["ok"]
    out = capsys.readouterr().out
    assert "skipping empty event" in out
    assert "no start time: no start" in out


def test_event_without_end_is_kept():
    calendar = group_events_by_day([make_event("open ended", start=10)])
    assert [e.summary for e in calendar[MONDAY]] == ["open ended"]


def test_no_events_gives_empty_calendar():
    assert group_events_by_day([]) == {}
    assert group_events_by_day([None]) == {}


def test_aggregation_is_order_independent():
    events = [
        make_event("a", start=9, end=10),
        make_event("b", start=(11, 30), end=12),
        make_event("c", start=14, end=15),
        make_event("d", TUESDAY, start=8, end=9),
    ]
    expected = group_events_by_day(events)

    for perm in permutations(events):
        assert group_events_by_day(perm) == expected


def test_naive_and_aware_starts_sort_together():
    naive = Event("naive", start=datetime(2024, 6, 3, 10), end=datetime(2024, 6, 3, 11))
    events = [make_event("late", start=11, end=12), naive, make_event("early", start=9, end=10)]

    calendar = group_events_by_day(events)

    assert [e.summary for e in calendar[MONDAY]] == ["early", "naive", "late"]


def test_out_of_hours_events_included_by_default():
    events = [make_event("breakfast", start=7, end=8), make_event("dinner", start=19, end=20)]
    calendar = group_events_by_day(events)
    assert len(calendar[MONDAY]) == 2


def test_out_of_hours_events_can_be_excluded(capsys):
    events = [
        make_event("breakfast", start=(8, 59), end=(9, 30)),
        make_event("first thing", start=9, end=10),
        make_event("last thing", start=(16, 59), end=(17, 30)),
        make_event("after work", start=17, end=18),
    ]

    calendar = group_events_by_day(events, include_out_of_hours=False, earliest=9, latest=17)

    assert [e.summary for e in calendar[MONDAY]] == ["first thing", "last thing"]
    assert "out-of-hours event: breakfast" in capsys.readouterr().out


def test_event_from_google_parses_timed_event():
    item = {
        "summary": "Dentist",
        "location": "12 Main St",
        "start": {"dateTime": "2024-06-03T10:00:00Z"},
        "end": {"dateTime": "2024-06-03T11:00:00Z"},
    }

    event = event_from_google(item)

    assert event.summary == "Dentist"
    assert event.location == "12 Main St"
    assert event.start == datetime(2024, 6, 3, 10, tzinfo=timezone.utc)
    assert event.end == datetime(2024, 6, 3, 11, tzinfo=timezone.utc)


def test_event_from_google_all_day_has_no_start():
    item = {"summary": "Holiday", "start": {"date": "2024-06-03"}, "end": {"date": "2024-06-04"}}

    event = event_from_google(item)

    assert event.start is None
    assert event.end is None
    assert event.location == ""


def test_event_from_google_malformed_timestamp(capsys):
    item = {"start": {"dateTime": "not a date"}, "end": {"dateTime": "2024-06-03T11:00:00Z"}}

    event = event_from_google(item)

    assert event.summary == "(No title)"
    assert event.start is None
    assert "malformed timestamp" in capsys.readouterr().out
    assert group_events_by_day([event]) == {}


def _service(items_by_calendar):
    service = MagicMock()

    def _list(calendarId, **kwargs):
        request = MagicMock()
        request.execute.return_value = {"items": items_by_calendar.get(calendarId, [])}
        return request

    service.events.return_value.list.side_effect = _list
    return service


def test_list_events_queries_single_expanded_events():
    service = _service({"work": [{"summary": "Standup", "start": {"dateTime": "2024-06-03T09:00:00Z"},
                                  "end": {"dateTime": "2024-06-03T09:15:00Z"}}]})

    events = list_events(service, "work", at(MONDAY, 0), at(TUESDAY, 0))

    assert [e.summary for e in events] == ["Standup"]
    kwargs = service.events.return_value.list.call_args.kwargs
    assert kwargs["calendarId"] == "work"
    assert kwargs["singleEvents"] is True
    assert kwargs["orderBy"] == "startTime"
    assert kwargs["timeMin"].startswith("2024-06-0")


def test_fetch_events_concatenates_calendars():
    service = _service({
        "home": [{"summary": "School run", "start": {"dateTime": "2024-06-03T08:00:00Z"}}],
        "work": [{"summary": "Review", "start": {"dateTime": "2024-06-03T13:00:00Z"}}],
    })

    events = fetch_events(service, ["home", "work"], at(MONDAY, 0), at(TUESDAY, 0))

    assert [e.summary for e in events] == ["School run", "Review"]


def test_list_calendars_maps_summary_to_id():
    service = MagicMock()
    service.calendarList.return_value.list.return_value.execute.return_value = {
        "items": [{"summary": "Work", "id": "work@example.com"}, {"id": "shared@example.com"}]
    }

    assert list_calendars(service) == {
        "Work": "work@example.com",
        "shared@example.com": "shared@example.com",
    }
