"""
Status evaluation: classifies every resolved window against "now" and
computes countdowns and whole-plan progress.
"""
import math
from datetime import datetime
from typing import Iterable, List, Optional

from .models import ActivityStatus, PerActivityStatus, PlanStatus, ResolvedWindow


def _floor_seconds(later: datetime, earlier: datetime) -> int:
    return max(0, math.floor((later - earlier).total_seconds()))


def evaluate(
    windows: List[ResolvedWindow],
    now: datetime,
    completed_ids: Iterable[str] = (),
) -> List[PerActivityStatus]:
    """Classifies each window as completed, current or future at `now`."""
    completed = set(completed_ids)
    statuses = []
    for window in windows:
        skipped = window.activity_id in completed
        if skipped or now >= window.end_time:
            status = ActivityStatus.COMPLETED
        elif window.start_time <= now:
            status = ActivityStatus.CURRENT
        else:
            status = ActivityStatus.FUTURE

        item = PerActivityStatus(
            activity_id=window.activity_id,
            name=window.name,
            status=status,
            start_time=window.start_time,
            end_time=window.end_time,
            skipped=skipped,
        )
        if status == ActivityStatus.CURRENT:
            item.seconds_remaining = _floor_seconds(window.end_time, now)
            total_s = window.duration_minutes * 60
            item.activity_progress = min(1.0, max(0.0, 1 - item.seconds_remaining / total_s))
        elif status == ActivityStatus.FUTURE:
            item.seconds_until_start = _floor_seconds(window.start_time, now)
        else:
            item.activity_progress = 1.0
        statuses.append(item)
    return statuses


def plan_progress(now: datetime, session_start_time: Optional[datetime], total_minutes: int) -> float:
    """
    Fraction of the plan elapsed, measured from the planned session start,
    so a late start shows the true elapsed share instead of 0%.
    """
    if session_start_time is None or total_minutes <= 0:
        return 0.0
    elapsed = (now - session_start_time).total_seconds()
    return min(1.0, max(0.0, elapsed / (total_minutes * 60)))


def evaluate_plan(
    windows: List[ResolvedWindow],
    now: datetime,
    session_start_time: Optional[datetime],
    completed_ids: Iterable[str] = (),
    deadline: Optional[datetime] = None,
    is_active: bool = True,
) -> PlanStatus:
    activities = evaluate(windows, now, completed_ids)
    total_minutes = sum(w.duration_minutes for w in windows)

    # Next is the soonest-starting future activity, whatever its array position.
    current = next((a for a in activities if a.status == ActivityStatus.CURRENT), None)
    upcoming = sorted((a for a in activities if a.status == ActivityStatus.FUTURE), key=lambda a: a.start_time)

    first_start = min((w.start_time for w in windows), default=None)
    status = PlanStatus(
        is_active=is_active,
        now=now,
        activities=activities,
        progress=plan_progress(now, session_start_time, total_minutes) if is_active else 0.0,
        current=current,
        next=upcoming[0] if upcoming else None,
        skipped_names=[a.name for a in activities if a.skipped],
        is_complete=bool(activities) and all(a.status == ActivityStatus.COMPLETED for a in activities),
    )
    if deadline is not None:
        status.seconds_until_deadline = _floor_seconds(deadline, now)
    if first_start is not None:
        status.seconds_until_first_start = _floor_seconds(first_start, now)
    return status


def format_countdown(seconds: int) -> str:
    """Formats a second count as m:ss."""
    seconds = abs(int(seconds))
    return f"{seconds // 60}:{seconds % 60:02d}"
