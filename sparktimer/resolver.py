"""
Anchor resolution: turns a Schedule plus its anchor into absolute
[start, end) windows, one per activity, index-aligned with the schedule.

This is the only module that interprets array position as countdown order.
"""
import logging
from datetime import date, datetime, time, timedelta, tzinfo
from typing import List, Optional

from .models import AnchorMode, ResolvedWindow, Schedule, parse_hhmm

log = logging.getLogger(__name__)


def _deadline_windows(schedule: Schedule, session_start_time: datetime) -> List[ResolvedWindow]:
    # Index 0 ends last (closest to the deadline); the highest index starts first.
    windows: List[Optional[ResolvedWindow]] = [None] * len(schedule.activities)
    suffix_minutes = 0
    for i in range(len(schedule.activities) - 1, -1, -1):
        activity = schedule.activities[i]
        start = session_start_time + timedelta(minutes=suffix_minutes)
        windows[i] = ResolvedWindow(
            activity_id=activity.id,
            name=activity.name,
            duration_minutes=activity.duration_minutes,
            start_time=start,
            end_time=start + activity.duration,
        )
        suffix_minutes += activity.duration_minutes
    return windows


def start_time_on(day: date, hhmm: str, tz: Optional[tzinfo]) -> datetime:
    hour, minute = parse_hhmm(hhmm)
    return datetime.combine(day, time(hour, minute), tzinfo=tz)


def _start_time_windows(schedule: Schedule, day: date, tz: Optional[tzinfo]) -> List[ResolvedWindow]:
    windows = []
    for activity in schedule.activities:
        start = start_time_on(day, activity.explicit_start_time, tz)
        windows.append(ResolvedWindow(
            activity_id=activity.id,
            name=activity.name,
            duration_minutes=activity.duration_minutes,
            start_time=start,
            end_time=start + activity.duration,
        ))
    return windows


def resolve_windows(
    schedule: Schedule,
    session_start_time: Optional[datetime] = None,
    day: Optional[date] = None,
    tz: Optional[tzinfo] = None,
) -> List[ResolvedWindow]:
    """
    Computes the window of every activity.

    Deadline mode needs `session_start_time`; start-time mode needs the
    calendar `day` (and the zone) the HH:MM times are resolved on. Pure:
    the result depends only on the arguments.
    """
    if schedule.anchor_mode == AnchorMode.DEADLINE:
        if session_start_time is None:
            raise ValueError("Deadline-anchored schedules need a session start time")
        return _deadline_windows(schedule, session_start_time)

    if day is None:
        if session_start_time is None:
            raise ValueError("Start-time-anchored schedules need a calendar day")
        day = session_start_time.date()
        tz = tz or session_start_time.tzinfo
    return _start_time_windows(schedule, day, tz)


def plan_start_for_deadline(deadline: datetime, total_minutes: int) -> datetime:
    """The instant a deadline plan must begin so that it ends exactly at the deadline."""
    return deadline - timedelta(minutes=total_minutes)


def resolve_deadline(time_of_day: str, now: datetime) -> datetime:
    """
    Places an HH:MM deadline on today's date in `now`'s zone. A time that
    has already passed today is taken to mean tomorrow.
    """
    deadline = start_time_on(now.date(), time_of_day, now.tzinfo)
    if deadline < now:
        deadline += timedelta(days=1)
    return deadline


def suggest_deadline(now: datetime, total_minutes: int, buffer_minutes: int = 5) -> datetime:
    """Default deadline offered to the user: just enough time for the plan plus a buffer."""
    suggested = now + timedelta(minutes=total_minutes + buffer_minutes)
    return suggested.replace(second=0, microsecond=0)
