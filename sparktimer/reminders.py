"""
Reminder partitioning for a running session.
Splits activity boundaries into "still ahead today" and "already passed",
schedules the former and offers a next-day rollover when nothing is left today.
"""
import logging
from datetime import datetime, timedelta
from typing import List, Optional

from .config import SparkProfile
from .errors import NotificationSchedulingFailure
from .models import AnchorMode, Boundary, ReminderPlan, ResolvedWindow

log = logging.getLogger(__name__)

ROLLOVER_DELTA = timedelta(days=1)
DEADLINE_KEY = "deadline"


class ReminderPartitioner:
    """Decides which boundaries get a reminder and issues them via the scheduler."""

    def __init__(self, scheduler, profile: SparkProfile):
        self.scheduler = scheduler
        self.profile = profile

    def boundaries_for(
        self,
        windows: List[ResolvedWindow],
        anchor_mode: AnchorMode,
        deadline: Optional[datetime] = None,
    ) -> List[Boundary]:
        boundaries = []
        if anchor_mode == AnchorMode.DEADLINE and deadline is not None and self.profile.deadline_title:
            boundaries.append(Boundary(key=DEADLINE_KEY, title=self.profile.deadline_title, time=deadline))
        for window in windows:
            boundaries.append(Boundary(
                key=window.activity_id,
                title=window.name,
                time=window.start_time,
                duration_minutes=window.duration_minutes,
            ))
        return boundaries

    @staticmethod
    def partition(boundaries: List[Boundary], now: datetime) -> ReminderPlan:
        plan = ReminderPlan()
        for boundary in boundaries:
            if boundary.time > now:
                plan.future.append(boundary)
            else:
                plan.past.append(boundary)

        if not plan.future and plan.past:
            # Only offer what would still matter tomorrow.
            for boundary in plan.past:
                tomorrow = boundary.shifted(ROLLOVER_DELTA)
                if now < tomorrow.end_time:
                    plan.rollover.append(tomorrow)
        return plan

    def notification_id(self, boundary: Boundary) -> str:
        return f"{self.profile.group_id}-{boundary.key}"

    def cancel_group(self) -> None:
        try:
            self.scheduler.cancel_all_notifications(self.profile.group_id)
        except Exception as e:
            log.error(f"Error cancelling notifications for group '{self.profile.group_id}': {e}", exc_info=True)

    def _issue(self, boundaries: List[Boundary], plan: ReminderPlan) -> None:
        for boundary in boundaries:
            notification_id = self.notification_id(boundary)
            try:
                self.scheduler.schedule_notification(
                    boundary.title,
                    boundary.time,
                    notification_id,
                    self.profile.group_label,
                    self.profile.group_id,
                    self.profile.icon,
                )
                plan.scheduled.append(notification_id)
            except Exception as e:
                failure = NotificationSchedulingFailure(notification_id, e)
                log.error(str(failure), exc_info=True)
                plan.failures.append(notification_id)

    def apply(self, boundaries: List[Boundary], now: datetime) -> ReminderPlan:
        """
        Cancels the group's previous reminders, then schedules every future
        boundary. A rollover is only offered on the returned plan.
        """
        self.cancel_group()
        plan = self.partition(boundaries, now)
        if plan.needs_rollover_decision:
            log.info(
                f"All {len(plan.past)} reminders for '{self.profile.group_label}' are in the past; "
                f"offering {len(plan.rollover)} for tomorrow."
            )
            return plan
        self._issue(plan.future, plan)
        log.info(
            f"Scheduled {len(plan.scheduled)} reminders for '{self.profile.group_label}' "
            f"({len(plan.past)} already passed, {len(plan.failures)} failed)."
        )
        return plan

    def accept_rollover(self, plan: ReminderPlan) -> ReminderPlan:
        """Schedules the tomorrow-shifted boundaries of an accepted rollover offer."""
        self.cancel_group()
        self._issue(plan.rollover, plan)
        log.info(f"Scheduled {len(plan.scheduled)} reminders for tomorrow ({len(plan.failures)} failed).")
        return plan
