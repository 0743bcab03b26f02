"""
Wall clock plus the periodic callback registration the session tick runs on.
"""
import logging
import uuid
from datetime import datetime, tzinfo
from typing import Callable, Optional

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

log = logging.getLogger(__name__)


class SystemClock:
    """Real time in a fixed zone; ticks are APScheduler interval jobs."""

    def __init__(self, tz: tzinfo, scheduler: Optional[BackgroundScheduler] = None):
        self.tz = tz
        self._scheduler = scheduler

    def now(self) -> datetime:
        return datetime.now(self.tz)

    def _ensure_scheduler(self) -> BackgroundScheduler:
        if self._scheduler is None:
            self._scheduler = BackgroundScheduler(timezone=self.tz)
        if not self._scheduler.running:
            self._scheduler.start()
        return self._scheduler

    def every(self, seconds: float, callback: Callable[[], None], name: str = "tick") -> str:
        scheduler = self._ensure_scheduler()
        job = scheduler.add_job(
            callback,
            trigger=IntervalTrigger(seconds=seconds),
            id=f"{name}-{uuid.uuid4().hex[:8]}",
            name=name,
            max_instances=1,
            coalesce=True,  # If multiple runs are due, only run the latest one
            misfire_grace_time=max(1, int(seconds)),
        )
        log.debug(f"Registered periodic job {job.id} every {seconds}s.")
        return job.id

    def cancel(self, handle: str) -> None:
        if self._scheduler is None:
            return
        try:
            self._scheduler.remove_job(handle)
            log.debug(f"Cancelled periodic job {handle}.")
        except JobLookupError:
            log.debug(f"Periodic job {handle} was not registered.")

    def shutdown(self) -> None:
        if self._scheduler is not None and self._scheduler.running:
            self._scheduler.shutdown(wait=False)
