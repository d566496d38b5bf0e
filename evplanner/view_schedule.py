from evplanner.calendar_utils import _to_local
from evplanner.models import Calendar, LocatedTimeSlot


def format_schedule(calendar: Calendar) -> str:
    """Render each day's events, earliest day first."""
    if not calendar:
        return "No events found."

    lines = []
    for date in sorted(calendar):
        lines.append(f"{date.as_date():%A, %B %d, %Y}")
        for event in calendar[date]:
            start = f"{_to_local(event.start):%H:%M}" if event.start else "--:--"
            end = f"{_to_local(event.end):%H:%M}" if event.end else "--:--"
            where = f" @ {event.location}" if event.location else ""
            lines.append(f"\t{start} → {end}  {event.summary}{where}")
    return "\n".join(lines)


def format_slots(slots: list[LocatedTimeSlot]) -> str:
    if not slots:
        return "❌ No slots found matching your criteria."

    lines = []
    for i, slot in enumerate(slots, 1):
        after = slot.comes_after.summary if slot.comes_after else "start of day"
        before = slot.comes_before.summary if slot.comes_before else "end of day"
        lines.append(
            f"{i:>2}. {slot.date.as_date():%a %Y-%m-%d} "
            f"{_to_local(slot.start):%H:%M}-{_to_local(slot.end):%H:%M} "
            f"(+{slot.added_distance / 1609.344:.1f} mi) after {after}, before {before}"
        )
    return "\n".join(lines)
