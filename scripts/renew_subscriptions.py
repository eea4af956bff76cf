#!/usr/bin/env python3
"""Renew YouTube WebSub subscriptions expiring soon.

Runs one renewal pass directly against the configured store, for cron jobs
that do not go through the HTTP endpoint.
"""
import argparse
import asyncio
import logging
import sys
from datetime import timedelta
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from services.dependencies import create_production_dependencies  # noqa: E402
from services.errors import SubscriptionError  # noqa: E402


async def main() -> int:
    parser = argparse.ArgumentParser(description="Renew due WebSub subscriptions")
    parser.add_argument(
        "--threshold-hours",
        type=float,
        default=None,
        help="Renew subscriptions expiring within this many hours (default: from settings)",
    )
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    deps = create_production_dependencies()
    scheduler = deps.renewal_scheduler()
    if args.threshold_hours is not None:
        scheduler.renewal_threshold = timedelta(hours=args.threshold_hours)

    try:
        summary = await scheduler.run()
    except SubscriptionError as e:
        print(f"Renewal failed: {e.message}", file=sys.stderr)
        return 1
    finally:
        deps.close()

    print(
        f"checked={summary.total_checked} candidates={summary.candidates} "
        f"succeeded={summary.succeeded} failed={summary.failed}"
    )
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
