import pytest
from datetime import datetime, timedelta, timezone

from sparktimer.config import Settings
from sparktimer.models import Activity, AnchorMode, Schedule
from sparktimer.store import SparkStore

T0 = datetime(2025, 6, 1, 8, 0, 0, tzinfo=timezone.utc)


class ManualClock:
    """Clock whose time only moves when a test moves it; ticks fire on demand."""

    def __init__(self, now):
        self.current = now
        self.jobs = {}
        self._counter = 0

    def now(self):
        return self.current

    def advance(self, **kwargs):
        self.current += timedelta(**kwargs)

    def every(self, seconds, callback, name="tick"):
        self._counter += 1
        handle = f"{name}-{self._counter}"
        self.jobs[handle] = callback
        return handle

    def cancel(self, handle):
        self.jobs.pop(handle, None)

    def fire(self):
        for callback in list(self.jobs.values()):
            callback()


class RecordingNotifier:
    """Stands in for the reminder scheduler and records every call in order."""

    def __init__(self):
        self.calls = []
        self.scheduled = []
        self.fail_ids = set()
        self.fail_cancel = False

    def schedule_notification(self, title, fire_at, notification_id, group_label, group_id, icon):
        self.calls.append(("schedule", notification_id))
        if notification_id in self.fail_ids:
            raise RuntimeError("scheduler rejected the request")
        self.scheduled.append({
            "title": title,
            "fire_at": fire_at,
            "id": notification_id,
            "group_label": group_label,
            "group_id": group_id,
            "icon": icon,
        })

    def cancel_all_notifications(self, group_id):
        self.calls.append(("cancel", group_id))
        if self.fail_cancel:
            raise RuntimeError("cancel failed")
        self.scheduled = [n for n in self.scheduled if n["group_id"] != group_id]

    def scheduled_ids(self):
        return [n["id"] for n in self.scheduled]


@pytest.fixture
def abc_schedule():
    # Countdown order: C starts first, A ends at the deadline.
    return Schedule(
        activities=[
            Activity(id="a", name="A", duration_minutes=10, order=0),
            Activity(id="b", name="B", duration_minutes=5, order=1),
            Activity(id="c", name="C", duration_minutes=15, order=2),
        ],
        anchor_mode=AnchorMode.DEADLINE,
    )


@pytest.fixture
def clock():
    return ManualClock(T0)


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def settings(tmp_path):
    return Settings(
        local_tz="UTC",
        store_db_path=tmp_path / "state.sqlite",
        reminder_jobstore_url=None,
    )


@pytest.fixture
def store(settings):
    return SparkStore(settings.store_db_path)
