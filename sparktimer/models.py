from __future__ import annotations

import enum
import logging
import re
import uuid
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Set

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator, model_validator

log = logging.getLogger(__name__)

HHMM_PATTERN = re.compile(r"^(\d{2}):(\d{2})$")


def parse_hhmm(value: str) -> tuple[int, int]:
    """Parses a 24-hour 'HH:MM' string into (hour, minute)."""
    m = HHMM_PATTERN.match(value.strip()) if isinstance(value, str) else None
    if not m:
        raise ValueError(f"Invalid time '{value}', expected HH:MM")
    hour, minute = int(m.group(1)), int(m.group(2))
    if hour > 23 or minute > 59:
        raise ValueError(f"Invalid time '{value}', hour must be 00-23 and minute 00-59")
    return hour, minute


class AnchorMode(str, enum.Enum):
    DEADLINE = "deadline"       # plan must finish exactly at a deadline
    START_TIME = "start_time"   # every activity carries its own clock time


class ActivityStatus(str, enum.Enum):
    COMPLETED = "completed"
    CURRENT = "current"
    FUTURE = "future"


class Activity(BaseModel):
    """
    One entry of the plan. `order` mirrors the array position and is
    re-derived by sparktimer.activities.normalize after every edit.
    """
    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    name: str
    duration_minutes: int = Field(..., gt=0)
    order: int = Field(0, ge=0)
    explicit_start_time: Optional[str] = Field(None, description="HH:MM, 24-hour")

    @field_validator('name')
    @classmethod
    def name_not_blank(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("Activity name must not be empty")
        return v

    @field_validator('explicit_start_time')
    @classmethod
    def check_start_time(cls, v):
        if v is None:
            return v
        hour, minute = parse_hhmm(v)
        return f"{hour:02d}:{minute:02d}"

    @property
    def duration(self) -> timedelta:
        return timedelta(minutes=self.duration_minutes)


class Schedule(BaseModel):
    activities: List[Activity]
    anchor_mode: AnchorMode = AnchorMode.DEADLINE

    @model_validator(mode='after')
    def check_activities(self):
        if not self.activities:
            raise ValueError("A schedule needs at least one activity")
        ids = [a.id for a in self.activities]
        if len(ids) != len(set(ids)):
            raise ValueError("Activity ids must be unique within a schedule")
        if self.anchor_mode == AnchorMode.START_TIME:
            missing = [a.name for a in self.activities if a.explicit_start_time is None]
            if missing:
                raise ValueError(f"Start time required for: {', '.join(missing)}")
        return self

    @property
    def total_duration_minutes(self) -> int:
        return sum(a.duration_minutes for a in self.activities)


class Session(BaseModel):
    anchor: Optional[datetime] = None               # the deadline, deadline mode only
    session_start_time: Optional[datetime] = None
    is_active: bool = False
    completed_activity_ids: Set[str] = Field(default_factory=set)

    @classmethod
    def idle(cls) -> "Session":
        return cls()

    @field_serializer('completed_activity_ids')
    def serialize_completed(self, ids: Set[str]) -> List[str]:
        return sorted(ids)


class SparkState(BaseModel):
    """The opaque document persisted per spark id."""
    schedule: Schedule
    session: Session = Field(default_factory=Session.idle)
    last_used: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class ResolvedWindow(BaseModel):
    model_config = ConfigDict(frozen=True)

    activity_id: str
    name: str
    duration_minutes: int
    start_time: datetime
    end_time: datetime


class PerActivityStatus(BaseModel):
    activity_id: str
    name: str
    status: ActivityStatus
    start_time: datetime
    end_time: datetime
    seconds_remaining: Optional[int] = None     # current activity only
    seconds_until_start: Optional[int] = None   # future activities only
    activity_progress: float = 0.0
    skipped: bool = False


class PlanStatus(BaseModel):
    is_active: bool
    now: datetime
    activities: List[PerActivityStatus] = Field(default_factory=list)
    progress: float = 0.0
    current: Optional[PerActivityStatus] = None
    next: Optional[PerActivityStatus] = None
    skipped_names: List[str] = Field(default_factory=list)
    seconds_until_deadline: Optional[int] = None
    seconds_until_first_start: Optional[int] = None
    is_complete: bool = False


class Boundary(BaseModel):
    """An instant a reminder can be scheduled against."""
    model_config = ConfigDict(frozen=True)

    key: str
    title: str
    time: datetime
    duration_minutes: int = 0

    def shifted(self, delta: timedelta) -> "Boundary":
        return self.model_copy(update={"time": self.time + delta})

    @property
    def end_time(self) -> datetime:
        return self.time + timedelta(minutes=self.duration_minutes)


class ReminderPlan(BaseModel):
    future: List[Boundary] = Field(default_factory=list)
    past: List[Boundary] = Field(default_factory=list)
    rollover: List[Boundary] = Field(default_factory=list)  # offered, not scheduled
    scheduled: List[str] = Field(default_factory=list)
    failures: List[str] = Field(default_factory=list)

    @property
    def needs_rollover_decision(self) -> bool:
        return not self.future and bool(self.rollover)


class LateStartWarning(BaseModel):
    late_minutes: int
    skipped_names: List[str]
    message: str


class StartResult(BaseModel):
    status: PlanStatus
    warning: Optional[LateStartWarning] = None
    reminders: ReminderPlan
