"""
Reminder scheduler for the sequencer.
Reminders are one-shot APScheduler jobs grouped by spark so a whole group can
be cancelled at once. With a SQLAlchemy job store they survive the process
that scheduled them and fire once a scheduler is running again.
"""
import logging
from datetime import datetime
from typing import List, Optional

from apscheduler.jobstores.base import JobLookupError
from apscheduler.jobstores.memory import MemoryJobStore
from apscheduler.jobstores.sqlalchemy import SQLAlchemyJobStore
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.date import DateTrigger

from .config import Settings

log = logging.getLogger(__name__)

REMINDER_JOBSTORE = "reminders"


def deliver_reminder(title: str, notification_id: str, group_label: str, group_id: str, icon: str) -> None:
    """Job target. Delivery beyond the log line is left to whoever consumes the log."""
    log.warning(f"{icon} {group_label}: Time to start: {title} [{notification_id}]")


class ReminderScheduler:
    """Implements schedule_notification / cancel_all_notifications on APScheduler."""

    def __init__(self, settings: Settings, scheduler: Optional[BackgroundScheduler] = None):
        self.settings = settings
        if scheduler is None:
            if settings.reminder_jobstore_url:
                jobstore = SQLAlchemyJobStore(url=settings.reminder_jobstore_url)
            else:
                jobstore = MemoryJobStore()
            scheduler = BackgroundScheduler(jobstores={REMINDER_JOBSTORE: jobstore}, timezone=settings.local_tz)
        self.scheduler = scheduler

    def start(self, paused: bool = False) -> None:
        """
        Starts the underlying scheduler. A paused scheduler still reads and
        writes its job store, which is all a one-shot CLI command needs.
        """
        if not self.scheduler.running:
            self.scheduler.start(paused=paused)
            log.info(f"Reminder scheduler started{' (paused)' if paused else ''}.")

    def shutdown(self) -> None:
        if self.scheduler.running:
            try:
                self.scheduler.shutdown(wait=False)
                log.info("Reminder scheduler shut down.")
            except Exception as e:
                log.error(f"Error shutting down reminder scheduler: {e}", exc_info=True)

    def schedule_notification(
        self,
        title: str,
        fire_at: datetime,
        notification_id: str,
        group_label: str,
        group_id: str,
        icon: str,
    ) -> None:
        self.scheduler.add_job(
            deliver_reminder,
            trigger=DateTrigger(run_date=fire_at),
            id=notification_id,
            name=f"{group_label}: {title}",
            jobstore=REMINDER_JOBSTORE,
            replace_existing=True,
            misfire_grace_time=self.settings.reminder_misfire_grace_s,
            kwargs={
                "title": title,
                "notification_id": notification_id,
                "group_label": group_label,
                "group_id": group_id,
                "icon": icon,
            },
        )
        log.debug(f"Reminder {notification_id} scheduled for {fire_at.isoformat()}")

    def pending(self, group_id: str) -> List:
        return [
            job for job in self.scheduler.get_jobs(jobstore=REMINDER_JOBSTORE)
            if job.kwargs.get("group_id") == group_id
        ]

    def cancel_all_notifications(self, group_id: str) -> int:
        cancelled = 0
        for job in self.pending(group_id):
            try:
                self.scheduler.remove_job(job.id, jobstore=REMINDER_JOBSTORE)
                cancelled += 1
            except JobLookupError:
                log.debug(f"Reminder {job.id} already gone.")
        log.info(f"Cancelled {cancelled} reminders for group '{group_id}'.")
        return cancelled
