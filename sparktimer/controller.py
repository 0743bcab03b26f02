"""
Session controller.

Owns one spark's Schedule and Session and is the only writer of them. Four
events reach it: start, stop, edit and tick. Side effects (persistence,
reminders) follow the state change and never block it.
"""
import logging
import threading
from datetime import datetime
from typing import Callable, List, Optional

from .activities import build_schedule, default_activities
from .config import Settings, SparkProfile
from .errors import SessionStateError, TooLateError
from .models import (
    Activity,
    AnchorMode,
    PlanStatus,
    ReminderPlan,
    ResolvedWindow,
    Schedule,
    Session,
    SparkState,
    StartResult,
)
from .reconciler import reconcile
from .reminders import ReminderPartitioner
from .resolver import plan_start_for_deadline, resolve_windows, suggest_deadline
from .status import evaluate_plan

log = logging.getLogger(__name__)

IDLE = "idle"
RUNNING = "running"


class SessionController:
    def __init__(
        self,
        profile: SparkProfile,
        state: SparkState,
        store,
        notifier,
        clock,
        settings: Optional[Settings] = None,
    ):
        self.profile = profile
        self.spark_id = profile.spark_id
        self.schedule: Schedule = state.schedule
        self.session: Session = state.session
        self.store = store
        self.clock = clock
        self.settings = settings or Settings()
        self.reminders = ReminderPartitioner(notifier, profile)

        self.pending_rollover: Optional[ReminderPlan] = None
        self.last_status: Optional[PlanStatus] = None
        self._listeners: List[Callable[[PlanStatus], None]] = []
        self._tick_handle = None
        self._lock = threading.RLock()

    @classmethod
    def load(cls, profile: SparkProfile, store, notifier, clock, settings: Optional[Settings] = None) -> "SessionController":
        """Builds a controller from stored state (or defaults) and resumes ticking if a session was running."""
        state = store.load_schedule(profile.spark_id)
        if state is None:
            log.info(f"No stored state for {profile.spark_id}; starting from defaults.")
            state = SparkState(schedule=cls.default_schedule(profile))
        controller = cls(profile, state, store, notifier, clock, settings)
        if controller.session.is_active:
            controller._register_tick()
        return controller

    @staticmethod
    def default_schedule(profile: SparkProfile) -> Schedule:
        if profile.anchor_mode == AnchorMode.DEADLINE:
            return Schedule(activities=default_activities(), anchor_mode=AnchorMode.DEADLINE)
        # Start-time sparks have no sensible default plan; one placeholder keeps the schedule valid.
        return build_schedule(
            [Activity(name="Activity 1", duration_minutes=30, explicit_start_time="09:00")],
            AnchorMode.START_TIME,
        )

    # --- Derived views ---

    @property
    def state(self) -> str:
        return RUNNING if self.session.is_active else IDLE

    def windows(self, now: Optional[datetime] = None) -> List[ResolvedWindow]:
        now = now or self.clock.now()
        if self.schedule.anchor_mode == AnchorMode.DEADLINE:
            start = self.session.session_start_time
            if start is None:
                # Idle preview: the plan as it would run against the suggested deadline.
                total = self.schedule.total_duration_minutes
                start = plan_start_for_deadline(
                    suggest_deadline(now, total, self.settings.deadline_buffer_minutes), total
                )
            return resolve_windows(self.schedule, session_start_time=start)
        return resolve_windows(self.schedule, day=now.date(), tz=now.tzinfo)

    def snapshot(self, now: Optional[datetime] = None) -> PlanStatus:
        with self._lock:
            now = now or self.clock.now()
            return evaluate_plan(
                self.windows(now),
                now,
                self.session.session_start_time,
                self.session.completed_activity_ids if self.session.is_active else (),
                deadline=self.session.anchor,
                is_active=self.session.is_active,
            )

    def add_listener(self, callback: Callable[[PlanStatus], None]) -> None:
        self._listeners.append(callback)

    # --- Events ---

    def start(self, deadline: Optional[datetime] = None) -> StartResult:
        with self._lock:
            if self.session.is_active:
                raise SessionStateError(f"{self.profile.group_label} is already running; stop it first.")
            now = self.clock.now()

            if self.schedule.anchor_mode == AnchorMode.DEADLINE:
                if deadline is None:
                    raise ValueError("A deadline is required to start a deadline-anchored session")
                session_start = plan_start_for_deadline(deadline, self.schedule.total_duration_minutes)
                windows = resolve_windows(self.schedule, session_start_time=session_start)
            else:
                deadline = None
                windows = resolve_windows(self.schedule, day=now.date(), tz=now.tzinfo)
                # Progress counts from the first planned start, not from the button press.
                session_start = min(w.start_time for w in windows)

            # Raises TooLateError; nothing has been mutated yet.
            try:
                reconciliation = reconcile(windows, now, deadline)
            except TooLateError:
                log.info(f"{self.profile.group_label}: start rejected, session stays idle.")
                raise

            self.session = Session(
                anchor=deadline,
                session_start_time=session_start,
                is_active=True,
                completed_activity_ids=set(reconciliation.completed_ids),
            )
            log.info(
                f"{self.profile.group_label}: session started at {session_start.isoformat()} "
                f"({len(reconciliation.completed_ids)} skipped)."
            )
            self._persist()
            plan = self._schedule_reminders(windows, now)
            self._register_tick()
            status = self.tick()
            return StartResult(status=status, warning=reconciliation.warning, reminders=plan)

    def stop(self) -> None:
        """Idempotent. Always clears the group's reminders, even when idle."""
        with self._lock:
            self.reminders.cancel_group()
            self.pending_rollover = None
            self._cancel_tick()
            if not self.session.is_active and self.session == Session.idle():
                log.debug(f"{self.profile.group_label}: stop while idle.")
                return
            self.session = Session.idle()
            self.last_status = None
            log.info(f"{self.profile.group_label}: session stopped.")
            self._persist()

    def edit(self, activities: List[Activity]) -> Optional[ReminderPlan]:
        """
        Replaces the activity list. While running, windows are re-resolved
        against the existing session start and only the reminders are redone;
        skip state is left as it is.
        """
        with self._lock:
            schedule = build_schedule(activities, self.schedule.anchor_mode)
            self.schedule = schedule
            self._persist()
            if not self.session.is_active:
                return None
            plan = self.reschedule()
            self.tick()
            return plan

    def reschedule(self) -> Optional[ReminderPlan]:
        """Redoes the running session's reminders against the current time."""
        with self._lock:
            if not self.session.is_active:
                return None
            now = self.clock.now()
            return self._schedule_reminders(self.windows(now), now)

    def tick(self) -> PlanStatus:
        with self._lock:
            status = self.snapshot()
            self.last_status = status
        for listener in list(self._listeners):
            try:
                listener(status)
            except Exception as e:
                log.error(f"Tick listener failed: {e}", exc_info=True)
        return status

    def accept_rollover(self) -> Optional[ReminderPlan]:
        with self._lock:
            if self.pending_rollover is None:
                log.info(f"{self.profile.group_label}: no rollover offer pending.")
                return None
            plan = self.reminders.accept_rollover(self.pending_rollover)
            self.pending_rollover = None
            return plan

    def decline_rollover(self) -> None:
        with self._lock:
            self.pending_rollover = None

    def close(self) -> None:
        """Component teardown: stops ticking, leaves the session as it is."""
        with self._lock:
            self._cancel_tick()

    # --- Internals ---

    def _schedule_reminders(self, windows: List[ResolvedWindow], now: datetime) -> ReminderPlan:
        boundaries = self.reminders.boundaries_for(windows, self.schedule.anchor_mode, self.session.anchor)
        plan = self.reminders.apply(boundaries, now)
        self.pending_rollover = plan if plan.needs_rollover_decision else None
        return plan

    def _register_tick(self) -> None:
        if self._tick_handle is None:
            self._tick_handle = self.clock.every(self.settings.tick_interval_seconds, self.tick, name=f"{self.spark_id}-tick")

    def _cancel_tick(self) -> None:
        if self._tick_handle is not None:
            self.clock.cancel(self._tick_handle)
            self._tick_handle = None

    def _persist(self) -> None:
        state = SparkState(schedule=self.schedule, session=self.session)
        if not self.store.save_schedule(self.spark_id, state):
            log.warning(f"{self.profile.group_label}: state could not be saved; continuing in memory.")
