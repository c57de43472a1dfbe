"""CLI script to manually run the timer check and notification cleanup."""
from __future__ import annotations

import argparse

from app.tasks.notifications import check_timer_expirations, cleanup_notifications


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Manually trigger the timer notification cycle and cleanup",
    )
    parser.add_argument(
        "--skip-check",
        action="store_true",
        help="Only run cleanup, without checking timers",
    )
    parser.add_argument(
        "--skip-cleanup",
        action="store_true",
        help="Only check timers, without cleanup",
    )
    parser.add_argument(
        "--retention-days",
        type=int,
        help="Override NOTIFICATION_LOG_RETENTION_DAYS for this cleanup run",
    )
    parser.add_argument(
        "--async",
        action="store_true",
        dest="use_async",
        help="Queue tasks asynchronously instead of running immediately",
    )

    args = parser.parse_args()

    if not args.skip_check:
        print("Checking timer expirations")
        if args.use_async:
            task = check_timer_expirations.apply_async()
            print(f"Task queued: {task.id}")
        else:
            result = check_timer_expirations.run()
            print(f"Result: {result}")

    if not args.skip_cleanup:
        print("Cleaning up failed subscriptions and old notification logs")
        if args.use_async:
            task = cleanup_notifications.apply_async(args=(args.retention_days,))
            print(f"Task queued: {task.id}")
        else:
            result = cleanup_notifications.run(args.retention_days)
            print(f"Result: {result}")


if __name__ == "__main__":
    main()
