"""
Late-start reconciliation: decides, at the moment a session starts, which
activities are already over and must be force-marked completed (skipped).
"""
import logging
import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Set

from .errors import TooLateError
from .models import LateStartWarning, ResolvedWindow

log = logging.getLogger(__name__)


@dataclass
class Reconciliation:
    completed_ids: Set[str] = field(default_factory=set)
    skipped_names: List[str] = field(default_factory=list)
    late_minutes: int = 0
    warning: Optional[LateStartWarning] = None


def _minutes_between(later: datetime, earlier: datetime) -> int:
    return max(0, math.floor((later - earlier).total_seconds() / 60))


def reconcile(windows: List[ResolvedWindow], now: datetime, deadline: Optional[datetime] = None) -> Reconciliation:
    """
    Force-completes every window whose end is at or before `now`.

    Raises TooLateError when that covers every window. Returns a warning
    listing the skipped activities when only some of them are over.
    """
    if not windows:
        raise ValueError("Nothing to reconcile: no activity windows")

    result = Reconciliation()
    first_start = min(w.start_time for w in windows)
    result.late_minutes = _minutes_between(now, first_start)

    # Chronological order so the skipped names read the way they happened.
    for window in sorted(windows, key=lambda w: w.start_time):
        if window.end_time <= now:
            result.completed_ids.add(window.activity_id)
            result.skipped_names.append(window.name)

    if len(result.completed_ids) == len(windows):
        last_end = max(w.end_time for w in windows)
        if deadline is not None:
            ago = _minutes_between(now, deadline)
            message = (
                f"Your deadline of {deadline:%H:%M} was {ago} minutes ago and every activity "
                f"should already be complete. Please choose a later time."
            )
        else:
            ago = _minutes_between(now, last_end)
            message = (
                f"The last activity ended at {last_end:%H:%M}, {ago} minutes ago. "
                f"Every activity is already over for today."
            )
        log.info(f"Rejecting start: {message}")
        raise TooLateError(message, deadline=deadline, last_end=last_end)

    if result.skipped_names:
        message = (
            f"You're starting {result.late_minutes} minutes late. These activities will be "
            f"marked complete: {', '.join(result.skipped_names)}."
        )
        result.warning = LateStartWarning(
            late_minutes=result.late_minutes,
            skipped_names=list(result.skipped_names),
            message=message,
        )
        log.info(f"Late start: skipping {len(result.skipped_names)} of {len(windows)} activities.")
    return result
