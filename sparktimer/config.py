from pathlib import Path
from typing import Dict, Optional
from zoneinfo import ZoneInfo

from pydantic import BaseModel
from pydantic_settings import BaseSettings, SettingsConfigDict

from .models import AnchorMode


class SparkProfile(BaseModel):
    """Per-spark identity used for notification grouping and defaults."""
    spark_id: str
    group_label: str            # shown as the notification group name
    group_id: str               # cancellation key for all reminders of this spark
    icon: str
    anchor_mode: AnchorMode
    deadline_title: Optional[str] = None  # extra reminder at the deadline itself


TEE_TIME_TIMER = SparkProfile(
    spark_id="tee-time-timer",
    group_label="Tee Time Timer",
    group_id="tee-time-timer",
    icon="⛳",
    anchor_mode=AnchorMode.DEADLINE,
    deadline_title="Tee Time!",
)

MINUTE_MINDER = SparkProfile(
    spark_id="minute-minder",
    group_label="Minute Minder",
    group_id="minute-minder",
    icon="⏳",
    anchor_mode=AnchorMode.START_TIME,
)

PROFILES: Dict[str, SparkProfile] = {
    TEE_TIME_TIMER.spark_id: TEE_TIME_TIMER,
    MINUTE_MINDER.spark_id: MINUTE_MINDER,
}


def get_profile(spark_id: str) -> SparkProfile:
    try:
        return PROFILES[spark_id]
    except KeyError:
        raise KeyError(f"Unknown spark '{spark_id}'. Known sparks: {', '.join(sorted(PROFILES))}") from None


class Settings(BaseSettings):
    # --- Time ---
    local_tz: str = "America/Vancouver"  # Example, user should set
    tick_interval_seconds: int = 1

    # --- Persistence ---
    store_db_path: Path = Path("sparktimer_state.sqlite")

    # --- Reminders ---
    # SQLAlchemy URL for the APScheduler job store; None keeps reminders in memory only
    reminder_jobstore_url: Optional[str] = "sqlite:///sparktimer_reminders.sqlite"
    reminder_misfire_grace_s: int = 300
    deadline_buffer_minutes: int = 5  # default deadline = now + total + buffer

    # --- Logging ---
    log_level: str = "INFO"
    log_file: Optional[str] = None  # None logs to console only

    model_config = SettingsConfigDict(
        env_prefix="SPARKTIMER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra='ignore'
    )

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.local_tz)
