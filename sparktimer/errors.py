"""
Error taxonomy for the sequencer.

ScheduleValidationError and TooLateError are returned synchronously to the
caller of the session controller. NotificationSchedulingFailure is only ever
logged at the reminder boundary.
"""
from typing import List, Optional


class SparkTimerError(Exception):
    """Base class for all sparktimer errors."""


class ScheduleValidationError(SparkTimerError, ValueError):
    """Malformed activity (bad duration, bad HH:MM time) or an empty schedule."""

    def __init__(self, message: str, errors: Optional[List[str]] = None):
        super().__init__(message)
        self.errors = errors or [message]


class TooLateError(SparkTimerError):
    """Every activity window has already elapsed at the proposed start."""

    def __init__(self, message: str, deadline=None, last_end=None):
        super().__init__(message)
        self.deadline = deadline
        self.last_end = last_end


class SessionStateError(SparkTimerError):
    """An event arrived that the current session state does not accept."""


class NotificationSchedulingFailure(SparkTimerError):
    """The notification scheduler rejected a request."""

    def __init__(self, notification_id: str, cause: Exception):
        super().__init__(f"Failed to schedule notification {notification_id}: {cause}")
        self.notification_id = notification_id
        self.cause = cause
