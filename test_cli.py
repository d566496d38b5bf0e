import json
from unittest.mock import MagicMock

import pytest

from conftest import MONDAY, at, make_event
from evplanner import cli
from evplanner.calendar_utils import group_events_by_day
from evplanner.config import load_config
from evplanner.models import LocatedTimeSlot, TimeSlot
from evplanner.view_schedule import format_schedule, format_slots

CALENDARS = {"Work": "work@example.com", "Family": "family@example.com"}


def test_resolve_calendars_by_id_or_name():
    assert cli.resolve_calendars(["family", "work@example.com"], CALENDARS) == [
        "family@example.com", "work@example.com",
    ]
    assert cli.resolve_calendars(["primary"], CALENDARS) == ["primary"]


def test_resolve_calendars_unknown():
    with pytest.raises(LookupError, match="Nope"):
        cli.resolve_calendars(["Nope"], CALENDARS)


def test_load_config(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"start_address": "1 Home Rd"}))

    assert load_config(path) == {"start_address": "1 Home Rd", "end_address": None}


def test_format_schedule_lists_days_in_order():
    calendar = group_events_by_day([
        make_event("Lunch", MONDAY.add_days(1), start=12, end=13, location="Cafe"),
        make_event("Standup", start=9, end=(9, 15)),
        make_event("Errand", start=15),
    ])

    text = format_schedule(calendar).splitlines()

    assert text == [
        "Monday, June 03, 2024",
        "\t09:00 → 09:15  Standup",
        "\t15:00 → --:--  Errand",
        "Tuesday, June 04, 2024",
        "\t12:00 → 13:00  Lunch @ Cafe",
    ]


def test_format_schedule_empty():
    assert format_schedule({}) == "No events found."


def test_format_slots():
    gym = make_event("Gym", start=10, end=11, location="Gym")
    slot = LocatedTimeSlot(TimeSlot(MONDAY, at(MONDAY, 9), at(MONDAY, 10), comes_before=gym), 1609)

    line = format_slots([slot])

    assert line.startswith(" 1. Mon 2024-06-03 09:00-10:00 (+1.0 mi)")
    assert line.endswith("after start of day, before Gym")
    assert "No slots found" in format_slots([])


@pytest.fixture
def fake_google(monkeypatch):
    service = MagicMock()
    monkeypatch.setattr(cli, "_get_creds", lambda: object())
    monkeypatch.setattr(cli, "get_service", lambda creds: service)
    monkeypatch.setattr(cli, "list_calendars", lambda svc: CALENDARS)
    return service


def test_main_lists_calendars(fake_google, capsys):
    assert cli.main(["--list-cal"]) == 0

    out = capsys.readouterr().out
    assert "work@example.com" in out
    assert "family@example.com" in out


def test_main_show_schedule(fake_google, monkeypatch, capsys):
    fetched = {}

    def fake_fetch(service, cal_ids, start, end):
        fetched["cal_ids"] = cal_ids
        return [make_event("Standup", start=9, end=(9, 15))]

    monkeypatch.setattr(cli, "fetch_events", fake_fetch)

    assert cli.main(["--calendar", "Work", "--show-schedule", "--from", "2024-06-03"]) == 0

    assert fetched["cal_ids"] == ["work@example.com"]
    assert "Standup" in capsys.readouterr().out


def test_main_prompts_for_missing_locations(fake_google, monkeypatch, capsys, tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"start_address": "1 Home Rd"}))
    answers = iter(["Dentist"])
    monkeypatch.setattr("builtins.input", lambda: next(answers))
    seen = {}

    def fake_find_slots(service, provider, query):
        seen["query"] = query
        return []

    monkeypatch.setattr(cli, "find_slots", fake_find_slots)

    assert cli.main(["--config", str(path), "--days", "3", "--duration", "30"]) == 0

    query = seen["query"]
    assert (query.event_loc, query.start_loc) == ("Dentist", "1 Home Rd")
    assert query.num_days == 3
    assert query.cal_ids == ["primary"]
    assert "Enter the location you want to search for:" in capsys.readouterr().out


def test_main_unknown_calendar_exits(fake_google):
    with pytest.raises(SystemExit):
        cli.main(["--calendar", "Nope", "--show-schedule"])
