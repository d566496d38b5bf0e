#!/usr/bin/env python3
"""
cli.py – find free, nearby slots from the terminal

Usage
─────
# list all accessible calendars (IDs & names)
evplanner --list-cal

# best 60-minute slots over the next 5 days on two calendars
evplanner --calendar primary --calendar Work --days 5 --duration 60 \
          --event-location "Dentist, Main St" --start-location "Home"

# only print the aggregated schedule
evplanner --calendar primary --days 7 --show-schedule
"""
import argparse, os, pathlib, pickle, sys
from datetime import timedelta

from google_auth_oauthlib.flow import InstalledAppFlow
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials

from evplanner.calendar_utils import (
    fetch_events,
    get_service,
    group_events_by_day,
    list_calendars,
)
from evplanner.config import DEFAULT_DAYS, DEFAULT_SLOT_MINUTES, SCOPES, load_config
from evplanner.distance_utils import DistanceProviderError, GoogleDistanceMatrix
from evplanner.planner import InvalidQueryError, Query, find_slots
from evplanner.view_schedule import format_schedule, format_slots

# ── config ─────────────────────────────────────────────────────
CREDS_JSON = os.getenv("GOOGLE_CLIENT_SECRETS", "credentials.json")
TOKEN_FILE = pathlib.Path(os.getenv("PLANNER_TOKEN_FILE", "token.pickle"))


# ── credentials ────────────────────────────────────────────────
def _get_creds() -> Credentials:
    creds: Credentials | None = None
    if TOKEN_FILE.exists():
        creds = pickle.loads(TOKEN_FILE.read_bytes())

    if not creds or not creds.valid:
        if creds and creds.expired and creds.refresh_token:
            creds.refresh(Request())
        else:
            flow = InstalledAppFlow.from_client_secrets_file(CREDS_JSON, SCOPES)
            creds = flow.run_local_server(port=8080)
        TOKEN_FILE.write_bytes(pickle.dumps(creds))
    return creds


# ── helpers ────────────────────────────────────────────────────
def _read_input(prompt: str) -> str:
    print(prompt)
    return input().strip()


def resolve_calendars(wanted: list[str], available: dict[str, str]) -> list[str]:
    """Match each entry by exact id or case-insensitive summary."""
    ids = []
    for name in wanted:
        for summary, cal_id in available.items():
            if cal_id == name or summary.lower() == name.lower():
                ids.append(cal_id)
                break
        else:
            if name == "primary":
                ids.append(name)
                continue
            raise LookupError(f"Calendar '{name}' not found. Use --list-cal to view options.")
    return ids


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Find free calendar slots that add the least driving.")
    p.add_argument("--list-cal", action="store_true", help="List all accessible calendars")
    p.add_argument("--calendar", action="append", default=[], help="Calendar name or ID (repeatable, default: primary)")
    p.add_argument("--days", type=int, default=DEFAULT_DAYS, help="Number of days to search")
    p.add_argument("--duration", type=int, default=DEFAULT_SLOT_MINUTES, help="Event length in minutes")
    p.add_argument("--event-location", help="Where the new event takes place")
    p.add_argument("--start-location", help="Where you start from")
    p.add_argument("--from", dest="start", help="First day to search, e.g. 'next monday' (default: tomorrow)")
    p.add_argument("--config", help="JSON file with start_address / end_address defaults")
    p.add_argument("--show-schedule", action="store_true", help="Only print the per-day schedule")
    return p


# ── main ───────────────────────────────────────────────────────
def main(argv=None):
    argv = argv if argv is not None else sys.argv[1:]
    p = build_parser()
    args = p.parse_args(argv)

    defaults = load_config(args.config) if args.config else {}

    service = get_service(_get_creds())
    available = list_calendars(service)

    # ── list calendars and exit ────────────────────────────────
    if args.list_cal:
        print("\nAccessible calendars:\n")
        for summary, cal_id in available.items():
            print(f"• {summary:<40}  id: {cal_id}")
        return 0

    try:
        cal_ids = resolve_calendars(args.calendar or ["primary"], available)
    except LookupError as e:
        sys.exit(f"❌ {e}")

    event_loc = args.event_location or defaults.get("end_address") or ""
    start_loc = args.start_location or defaults.get("start_address") or ""
    if not args.show_schedule:
        if not event_loc:
            event_loc = _read_input("Enter the location you want to search for:")
        if not start_loc:
            start_loc = _read_input("Enter the location you want to start from:")

    query = Query(
        num_days=args.days,
        event_loc=event_loc,
        start_loc=start_loc,
        duration=timedelta(minutes=args.duration),
        cal_ids=cal_ids,
        start=args.start,
    )

    try:
        if args.show_schedule:
            if query.num_days <= 0:
                raise InvalidQueryError("invalid number of days")
            first, last = query.search_window()
            events = fetch_events(service, cal_ids, first.to_datetime(), last.add_days(1).to_datetime())
            print(format_schedule(group_events_by_day(events)))
            return 0

        slots = find_slots(service, GoogleDistanceMatrix(), query)
    except InvalidQueryError as e:
        p.error(str(e))
    except DistanceProviderError as e:
        sys.exit(f"❌ Distance lookup failed: {e}")

    print(f"\n✨ Available slots for '{event_loc}' starting from '{start_loc}':\n")
    print(format_slots(slots))
    return 0


if __name__ == "__main__":
    sys.exit(main())
