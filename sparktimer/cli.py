# sparktimer/cli.py

import argparse
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv
load_dotenv()

from sparktimer.activities import (
    add_activity,
    format_activities_text,
    move_activity,
    parse_activities_text,
    remove_activity,
    reset_to_defaults,
)
from sparktimer.config import PROFILES, Settings
from sparktimer.daemon import build_controller, describe, run_spark, setup_logging
from sparktimer.errors import SessionStateError, SparkTimerError
from sparktimer.models import ActivityStatus, AnchorMode
from sparktimer.resolver import resolve_deadline, suggest_deadline
from sparktimer.status import format_countdown

log = logging.getLogger("sparktimer.cli")

STATUS_MARKS = {
    ActivityStatus.COMPLETED: "✓",
    ActivityStatus.CURRENT: "▶",
    ActivityStatus.FUTURE: " ",
}


def print_status(controller) -> None:
    status = controller.snapshot()
    print(f"{controller.profile.icon} {controller.profile.group_label} [{controller.state}]")
    for index, (activity, item) in enumerate(zip(controller.schedule.activities, status.activities)):
        if item.status == ActivityStatus.COMPLETED:
            detail = "⏭ Skipped" if item.skipped else "✓ Complete"
        elif item.status == ActivityStatus.CURRENT:
            detail = format_countdown(item.seconds_remaining)
        else:
            detail = f"{item.start_time:%H:%M} ({activity.duration_minutes}m)"
        print(f"  {STATUS_MARKS[item.status]} {index:>2} {activity.name:<28} {detail:<16} id={activity.id}")
    print(describe(status))


def main(argv=None):
    settings = Settings()

    parser = argparse.ArgumentParser(
        prog="sparktimer",
        description="Timed-activity sequencer: Tee Time Timer and Minute Minder"
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging.")
    parser.add_argument("--spark", choices=sorted(PROFILES), default="tee-time-timer", help="Which spark to operate on.")
    subparsers = parser.add_subparsers(dest="command", title="Available Commands", required=True)

    # --- Show ---
    parser_show = subparsers.add_parser("show", help="Show the plan and the live status.")
    def handle_show(args_ns, controller):
        print_status(controller)
    parser_show.set_defaults(func=handle_show)

    # --- Start ---
    parser_start = subparsers.add_parser("start", help="Start a session.")
    parser_start.add_argument("--deadline", help="Deadline HH:MM (deadline sparks; default: now + plan + buffer).")
    parser_start.add_argument("--yes", action="store_true", help="Accept a late start without asking.")
    def handle_start(args_ns, controller):
        deadline = None
        if controller.schedule.anchor_mode == AnchorMode.DEADLINE:
            now = controller.clock.now()
            if args_ns.deadline:
                deadline = resolve_deadline(args_ns.deadline, now)
            else:
                deadline = suggest_deadline(now, controller.schedule.total_duration_minutes, settings.deadline_buffer_minutes)
        result = controller.start(deadline)
        if result.warning:
            print(f"Late start: {result.warning.message}")
            if not args_ns.yes and input("Continue? [y/N] ").strip().lower() != "y":
                controller.stop()
                print("Cancelled.")
                return
        if result.reminders.needs_rollover_decision:
            print("All activities have already started today.")
            if input("Schedule reminders for tomorrow? [y/N] ").strip().lower() == "y":
                controller.accept_rollover()
            else:
                controller.decline_rollover()
        print_status(controller)
    parser_start.set_defaults(func=handle_start)

    # --- Stop ---
    parser_stop = subparsers.add_parser("stop", help="Stop the session and cancel its reminders.")
    def handle_stop(args_ns, controller):
        controller.stop()
        print("Stopped.")
    parser_stop.set_defaults(func=handle_stop)

    parser_rollover = subparsers.add_parser("accept-rollover", help="Schedule tomorrow's reminders once today's have all passed.")
    def handle_accept_rollover(args_ns, controller):
        plan = controller.reschedule()
        if plan is None:
            raise SessionStateError("No session is running.")
        if not plan.needs_rollover_decision:
            print(f"{len(plan.scheduled)} reminders are still ahead today; nothing to roll over.")
            return
        plan = controller.accept_rollover()
        print(f"Scheduled {len(plan.scheduled)} reminders for tomorrow.")
    parser_rollover.set_defaults(func=handle_accept_rollover)

    # --- Edit commands ---
    parser_add = subparsers.add_parser("add", help="Add an activity.")
    parser_add.add_argument("name")
    parser_add.add_argument("duration", type=int, help="Minutes.")
    parser_add.add_argument("--at", dest="start_time", help="Start time HH:MM (start-time sparks).")
    def handle_add(args_ns, controller):
        mode = controller.schedule.anchor_mode
        controller.edit(add_activity(controller.schedule.activities, mode, args_ns.name, args_ns.duration, args_ns.start_time))
        print_status(controller)
    parser_add.set_defaults(func=handle_add)

    parser_remove = subparsers.add_parser("remove", help="Remove an activity by id.")
    parser_remove.add_argument("activity_id")
    def handle_remove(args_ns, controller):
        mode = controller.schedule.anchor_mode
        controller.edit(remove_activity(controller.schedule.activities, mode, args_ns.activity_id))
        print_status(controller)
    parser_remove.set_defaults(func=handle_remove)

    parser_move = subparsers.add_parser("move", help="Move an activity to another position.")
    parser_move.add_argument("from_index", type=int)
    parser_move.add_argument("to_index", type=int)
    def handle_move(args_ns, controller):
        mode = controller.schedule.anchor_mode
        controller.edit(move_activity(controller.schedule.activities, mode, args_ns.from_index, args_ns.to_index))
        print_status(controller)
    parser_move.set_defaults(func=handle_move)

    parser_reset = subparsers.add_parser("reset", help="Restore the default preparation plan (deadline sparks).")
    def handle_reset(args_ns, controller):
        if controller.schedule.anchor_mode != AnchorMode.DEADLINE:
            raise SparkTimerError("Only deadline sparks have a default plan.")
        controller.edit(reset_to_defaults())
        print_status(controller)
    parser_reset.set_defaults(func=handle_reset)

    parser_import = subparsers.add_parser("import", help="Replace the plan from 'HH:MM, minutes, Name' lines.")
    parser_import.add_argument("path", type=Path, help="Text file, or - for stdin.")
    def handle_import(args_ns, controller):
        text = sys.stdin.read() if str(args_ns.path) == "-" else args_ns.path.read_text(encoding="utf-8")
        activities = parse_activities_text(text)
        if not activities:
            raise SparkTimerError("Invalid format. Please use: HH:MM, duration, Activity Name")
        controller.edit(activities)
        print_status(controller)
    parser_import.set_defaults(func=handle_import)

    parser_export = subparsers.add_parser("export", help="Print the plan as 'HH:MM, minutes, Name' lines.")
    def handle_export(args_ns, controller):
        print(format_activities_text(controller.schedule.activities))
    parser_export.set_defaults(func=handle_export)

    # --- Run ---
    parser_run = subparsers.add_parser("run", help="Run in the foreground, delivering reminders and ticking.")
    parser_run.set_defaults(func=None)

    args = parser.parse_args(argv)
    setup_logging(settings, debug=args.debug)

    if args.command == "run":
        return run_spark(args.spark, settings)

    controller, notifier, clock = build_controller(args.spark, settings)
    try:
        args.func(args, controller)
        return 0
    except (SparkTimerError, ValueError) as e:
        log.error(str(e))
        return 2
    finally:
        controller.close()
        clock.shutdown()
        notifier.shutdown()


if __name__ == "__main__":
    sys.exit(main())
