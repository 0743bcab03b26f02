"""
sparktimer package.

Timed-activity sequencer behind the "Tee Time Timer" and "Minute Minder"
sparks: resolves activity windows against a deadline or explicit start times,
tracks the running session, reconciles late starts and schedules reminders.
"""
import logging

# Applications using this package should configure their own logging.
# The null handler prevents "No handler found" warnings otherwise.
logging.getLogger(__name__).addHandler(logging.NullHandler())

VERSION = "0.1.0"
