"""
Activity list editing.

Every operation validates its input, returns a new list and passes it through
`normalize`, which re-derives the dense `order` field (and, for start-time
schedules, the chronological sort). Nothing here mutates a list in place.
"""
import logging
from dataclasses import dataclass
from datetime import date, timedelta, tzinfo
from typing import Any, Iterable, List, Optional

from pydantic import ValidationError

from .errors import ScheduleValidationError
from .models import Activity, AnchorMode, Schedule, parse_hhmm
from .resolver import start_time_on

log = logging.getLogger(__name__)

DEFAULT_NEW_NAME = "New Activity"
DEFAULT_NEW_DURATION = 5

# Countdown order: index 0 happens last, right before the deadline.
DEFAULT_ACTIVITIES = [
    ("⛳️ 20 Putts", 8),
    ("⛳️ 15 Chips", 8),
    ("🏌️‍♂️ 15 Drives", 7),
    ("🏌️‍♂️ 20 Irons", 7),
    ("🚙 Drive to Course", 15),
    ("☕️ Make Coffee", 5),
]


def _errors(exc: ValidationError) -> List[str]:
    return [f"{'.'.join(str(p) for p in err['loc']) or 'schedule'}: {err['msg']}" for err in exc.errors()]


def make_activity(name: str, duration_minutes: Any, start_time: Optional[str] = None, **extra) -> Activity:
    try:
        return Activity(name=name, duration_minutes=duration_minutes, explicit_start_time=start_time, **extra)
    except ValidationError as e:
        errors = _errors(e)
        raise ScheduleValidationError(f"Invalid activity '{name}': {'; '.join(errors)}", errors) from e


def _start_minutes(activity: Activity) -> int:
    hour, minute = parse_hhmm(activity.explicit_start_time)
    return hour * 60 + minute


def normalize(activities: Iterable[Activity], anchor_mode: AnchorMode) -> List[Activity]:
    """Returns copies sorted (start-time mode only, stable) with order = position."""
    items = list(activities)
    if anchor_mode == AnchorMode.START_TIME and all(a.explicit_start_time for a in items):
        items = sorted(items, key=_start_minutes)
    return [a.model_copy(update={"order": i}) for i, a in enumerate(items)]


def build_schedule(activities: Iterable[Activity], anchor_mode: AnchorMode) -> Schedule:
    """Validates and normalizes a list into a Schedule, or raises ScheduleValidationError."""
    items = list(activities)
    try:
        # Revalidate, the items may have been mutated after construction.
        items = [Activity.model_validate(a.model_dump()) for a in items]
        return Schedule(activities=normalize(items, anchor_mode), anchor_mode=anchor_mode)
    except ValidationError as e:
        errors = _errors(e)
        raise ScheduleValidationError(f"Invalid schedule: {'; '.join(errors)}", errors) from e


def add_activity(
    activities: List[Activity],
    anchor_mode: AnchorMode,
    name: str = DEFAULT_NEW_NAME,
    duration_minutes: Any = DEFAULT_NEW_DURATION,
    start_time: Optional[str] = None,
) -> List[Activity]:
    if anchor_mode == AnchorMode.START_TIME and start_time is None:
        raise ScheduleValidationError(f"Activity '{name}' needs a start time (HH:MM)")
    new_activity = make_activity(name, duration_minutes, start_time)
    return normalize([*activities, new_activity], anchor_mode)


def remove_activity(activities: List[Activity], anchor_mode: AnchorMode, activity_id: str) -> List[Activity]:
    if not any(a.id == activity_id for a in activities):
        raise ScheduleValidationError(f"No activity with id '{activity_id}'")
    if len(activities) <= 1:
        raise ScheduleValidationError("You must have at least one activity")
    return normalize([a for a in activities if a.id != activity_id], anchor_mode)


def move_activity(activities: List[Activity], anchor_mode: AnchorMode, from_index: int, to_index: int) -> List[Activity]:
    if not (0 <= from_index < len(activities)) or not (0 <= to_index < len(activities)):
        raise ScheduleValidationError(f"Cannot move activity {from_index} to {to_index}: out of range")
    items = list(activities)
    if from_index != to_index:
        moved = items.pop(from_index)
        items.insert(to_index, moved)
    return normalize(items, anchor_mode)


def update_activity(activities: List[Activity], anchor_mode: AnchorMode, activity_id: str, **changes) -> List[Activity]:
    unknown = set(changes) - {"name", "duration_minutes", "explicit_start_time"}
    if unknown:
        raise ScheduleValidationError(f"Cannot update field(s): {', '.join(sorted(unknown))}")

    updated = []
    found = False
    for activity in activities:
        if activity.id == activity_id:
            found = True
            data = {**activity.model_dump(), **changes}
            activity = make_activity(
                data["name"], data["duration_minutes"], data["explicit_start_time"], id=activity.id
            )
        updated.append(activity)
    if not found:
        raise ScheduleValidationError(f"No activity with id '{activity_id}'")
    return build_schedule(updated, anchor_mode).activities


def default_activities() -> List[Activity]:
    return normalize(
        [Activity(id=str(i), name=name, duration_minutes=minutes) for i, (name, minutes) in enumerate(DEFAULT_ACTIVITIES, 1)],
        AnchorMode.DEADLINE,
    )


def reset_to_defaults() -> List[Activity]:
    log.info("Replacing activities with the default preparation plan.")
    return default_activities()


# --- Text format: "HH:MM, duration, Name" per line ---

def parse_activities_text(text: str) -> List[Activity]:
    """
    Parses one activity per line. Lines with a bad time or duration are
    skipped; a missing name becomes 'Activity <line number>'.
    """
    activities = []
    lines = [line for line in text.strip().splitlines() if line.strip()]
    for index, line in enumerate(lines):
        parts = line.split(",")
        if len(parts) < 2:
            log.debug(f"Skipping line without duration: {line!r}")
            continue
        start_time = parts[0].strip()
        name = ",".join(parts[2:]).strip() or f"Activity {index + 1}"
        try:
            activities.append(make_activity(name, int(parts[1].strip()), start_time))
        except (ValueError, ScheduleValidationError) as e:
            log.debug(f"Skipping invalid line {line!r}: {e}")
    return normalize(activities, AnchorMode.START_TIME)


def format_activities_text(activities: Iterable[Activity]) -> str:
    return "\n".join(
        f"{a.explicit_start_time}, {a.duration_minutes}, {a.name}" for a in activities
    )


# --- Breaks between start-time activities ---

@dataclass(frozen=True)
class Gap:
    prev_index: int
    next_index: int
    start_time: str   # HH:MM the previous activity ends
    minutes: int


def find_gaps(activities: List[Activity], day: date, tz: Optional[tzinfo] = None) -> List[Gap]:
    """Positive whole-minute gaps between consecutive start-time activities."""
    gaps = []
    for i in range(len(activities) - 1):
        prev, nxt = activities[i], activities[i + 1]
        prev_end = start_time_on(day, prev.explicit_start_time, tz) + prev.duration
        next_start = start_time_on(day, nxt.explicit_start_time, tz)
        minutes = int((next_start - prev_end) // timedelta(minutes=1))
        if minutes > 0:
            gaps.append(Gap(prev_index=i, next_index=i + 1, start_time=f"{prev_end:%H:%M}", minutes=minutes))
    return gaps


def insert_break(
    activities: List[Activity],
    gap: Gap,
    name: str,
    duration_minutes: Any = None,
    start_time: Optional[str] = None,
) -> List[Activity]:
    """Turns a gap into a named activity; defaults fill the whole gap."""
    if not name or not name.strip():
        raise ScheduleValidationError("Please enter an activity name.")
    new_activity = make_activity(
        name,
        gap.minutes if duration_minutes is None else duration_minutes,
        start_time or gap.start_time,
    )
    items = list(activities)
    items.insert(gap.next_index, new_activity)
    return normalize(items, AnchorMode.START_TIME)
