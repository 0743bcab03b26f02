"""
Foreground runner for a spark.
Loads the stored session, fires reminders and reports the current activity on
every tick until interrupted.
"""
import logging
import sys
import time
from typing import Optional, Tuple

from .clock import SystemClock
from .config import Settings, get_profile
from .controller import SessionController
from .models import PlanStatus
from .notifier import ReminderScheduler
from .status import format_countdown
from .store import SparkStore

log = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# LOGGING SETUP
# ---------------------------------------------------------------------------
def setup_logging(settings: Settings, debug: bool = False) -> None:
    """Configures console and optional file logging for the sequencer."""
    log_format = "%(asctime)s - %(levelname)s - [%(threadName)s:%(name)s] - %(message)s"
    log_level = logging.DEBUG if debug else getattr(logging, settings.log_level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(logging.Formatter(log_format))
    root_logger.addHandler(console_handler)

    if settings.log_file:
        try:
            file_handler = logging.FileHandler(settings.log_file, mode='a')
            file_handler.setFormatter(logging.Formatter(log_format))
            root_logger.addHandler(file_handler)
        except OSError as e:
            print(f"Error setting up file logger at {settings.log_file}: {e}", file=sys.stderr)

    # Scheduler internals log every job run
    logging.getLogger("apscheduler.scheduler").setLevel(logging.WARNING)
    logging.getLogger("apscheduler.executors.default").setLevel(logging.WARNING)


# ---------------------------------------------------------------------------
# COMPONENTS
# ---------------------------------------------------------------------------
def build_controller(spark_id: str, settings: Settings, paused_reminders: bool = True) -> Tuple[SessionController, ReminderScheduler, SystemClock]:
    """
    Wires store, reminder scheduler and clock for one spark. Reminders are
    started paused unless this process is meant to deliver them.
    """
    profile = get_profile(spark_id)
    store = SparkStore(settings.store_db_path)
    notifier = ReminderScheduler(settings)
    notifier.start(paused=paused_reminders)
    clock = SystemClock(settings.tz)
    controller = SessionController.load(profile, store, notifier, clock, settings)
    return controller, notifier, clock


def describe(status: PlanStatus) -> str:
    """One status line for the console."""
    if not status.is_active:
        return "Idle."
    if status.is_complete:
        return "All activities complete."
    parts = []
    if status.current is not None:
        parts.append(f"NOW {status.current.name} ({format_countdown(status.current.seconds_remaining)} left)")
    if status.next is not None:
        parts.append(f"NEXT {status.next.name} in {format_countdown(status.next.seconds_until_start)}")
    parts.append(f"{status.progress:.0%} done")
    if status.seconds_until_deadline is not None:
        parts.append(f"deadline in {format_countdown(status.seconds_until_deadline)}")
    return " | ".join(parts)


def run_spark(spark_id: str, settings: Optional[Settings] = None) -> int:
    settings = settings or Settings()
    log.info(f"--- Starting {spark_id} ---")
    try:
        controller, notifier, clock = build_controller(spark_id, settings, paused_reminders=False)
    except Exception as e:
        log.error(f"Fatal error during startup: {e}", exc_info=True)
        return 1

    last_line = {"text": None}

    def report(status: PlanStatus) -> None:
        line = describe(status)
        # Only log when the activity changes, the countdown lives in the status itself
        headline = line.split(" (")[0]
        if headline != last_line["text"]:
            log.info(line)
            last_line["text"] = headline

    controller.add_listener(report)
    controller.tick()
    try:
        while True:
            time.sleep(1)
    except (KeyboardInterrupt, SystemExit):
        log.info("Shutdown signal received.")
    finally:
        controller.close()
        clock.shutdown()
        notifier.shutdown()
        log.info(f"{spark_id} runner stopped.")
    return 0
