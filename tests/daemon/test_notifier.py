import logging
import pytest
from unittest.mock import MagicMock
from datetime import datetime, timedelta, timezone

from apscheduler.jobstores.base import JobLookupError

from sparktimer.clock import SystemClock
from sparktimer.daemon import describe
from sparktimer.models import PlanStatus
from sparktimer.notifier import REMINDER_JOBSTORE, ReminderScheduler, deliver_reminder
from sparktimer.status import evaluate_plan
from sparktimer.resolver import resolve_windows

from tests.conftest import T0

@pytest.fixture
def reminder_scheduler(settings):
    scheduler = ReminderScheduler(settings)
    scheduler.start(paused=True)
    yield scheduler
    scheduler.shutdown()

def schedule(scheduler, notification_id, group_id, minutes=30):
    fire_at = datetime.now(timezone.utc) + timedelta(minutes=minutes)
    scheduler.schedule_notification("Putts", fire_at, notification_id, "Tee Time Timer", group_id, "⛳")
    return fire_at

def test_memory_jobstore_without_url(reminder_scheduler):
    assert reminder_scheduler.scheduler.running
    store = reminder_scheduler.scheduler._lookup_jobstore(REMINDER_JOBSTORE)
    assert type(store).__name__ == "MemoryJobStore"

def test_schedule_notification_adds_one_shot_job(reminder_scheduler):
    fire_at = schedule(reminder_scheduler, "tee-time-timer-a", "tee-time-timer")

    jobs = reminder_scheduler.pending("tee-time-timer")
    assert [job.id for job in jobs] == ["tee-time-timer-a"]
    assert jobs[0].next_run_time == fire_at
    assert jobs[0].kwargs["title"] == "Putts"
    assert jobs[0].kwargs["icon"] == "⛳"

def test_rescheduling_same_id_replaces_job(reminder_scheduler):
    schedule(reminder_scheduler, "tee-time-timer-a", "tee-time-timer", minutes=30)
    fire_at = schedule(reminder_scheduler, "tee-time-timer-a", "tee-time-timer", minutes=45)

    jobs = reminder_scheduler.pending("tee-time-timer")
    assert len(jobs) == 1
    assert jobs[0].next_run_time == fire_at

def test_cancel_only_touches_its_group(reminder_scheduler):
    schedule(reminder_scheduler, "tee-time-timer-a", "tee-time-timer")
    schedule(reminder_scheduler, "tee-time-timer-b", "tee-time-timer")
    schedule(reminder_scheduler, "minute-minder-x", "minute-minder")

    assert reminder_scheduler.cancel_all_notifications("tee-time-timer") == 2
    assert reminder_scheduler.pending("tee-time-timer") == []
    assert [job.id for job in reminder_scheduler.pending("minute-minder")] == ["minute-minder-x"]
    assert reminder_scheduler.cancel_all_notifications("tee-time-timer") == 0

def test_cancel_tolerates_jobs_removed_concurrently(settings):
    mock_scheduler = MagicMock()
    mock_scheduler.get_jobs.return_value = [MagicMock(id="tee-time-timer-a", kwargs={"group_id": "tee-time-timer"})]
    mock_scheduler.remove_job.side_effect = JobLookupError("tee-time-timer-a")

    scheduler = ReminderScheduler(settings, scheduler=mock_scheduler)
    assert scheduler.cancel_all_notifications("tee-time-timer") == 0

def test_deliver_reminder_logs(caplog):
    with caplog.at_level(logging.WARNING, logger="sparktimer.notifier"):
        deliver_reminder("Putts", "tee-time-timer-a", "Tee Time Timer", "tee-time-timer", "⛳")
    assert "Time to start: Putts" in caplog.text
    assert "Tee Time Timer" in caplog.text

def test_system_clock_registers_and_cancels_interval_job():
    mock_scheduler = MagicMock()
    mock_scheduler.running = True
    mock_scheduler.add_job.return_value.id = "tick-1"
    clock = SystemClock(timezone.utc, scheduler=mock_scheduler)

    handle = clock.every(1, lambda: None, name="tick")
    assert handle == "tick-1"
    _, kwargs = mock_scheduler.add_job.call_args
    assert kwargs["max_instances"] == 1
    assert kwargs["coalesce"] is True

    mock_scheduler.remove_job.side_effect = JobLookupError("tick-1")
    clock.cancel(handle)
    mock_scheduler.remove_job.assert_called_once_with("tick-1")

def test_system_clock_is_zone_aware():
    now = SystemClock(timezone.utc).now()
    assert now.tzinfo is not None

def test_describe(abc_schedule):
    windows = resolve_windows(abc_schedule, session_start_time=T0)
    status = evaluate_plan(windows, T0 + timedelta(minutes=22), T0, deadline=T0 + timedelta(minutes=30))

    line = describe(status)
    assert line.startswith("NOW A (8:00 left)")
    assert "73% done" in line
    assert "deadline in 8:00" in line

    assert describe(PlanStatus(is_active=False, now=T0)) == "Idle."
    done = evaluate_plan(windows, T0 + timedelta(minutes=30), T0)
    assert describe(done) == "All activities complete."
