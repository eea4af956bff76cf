#!/usr/bin/env python3
"""Command-line client for managing subscriptions on a deployed webhook service."""
import argparse
import os
import sys
from pathlib import Path
from typing import List, Optional

# Allow running as `python scripts/webhook_cli.py` from anywhere
sys.path.insert(0, str(Path(__file__).parent.parent))

from services.webhook_client import WebhookClient, WebhookClientError  # noqa: E402

DEFAULT_TIMEOUT = 30.0
RENEW_TIMEOUT = 60.0
URL_ENV = "YOUTUBE_WEBHOOK_URL"


def cmd_subscribe(client: WebhookClient, args: argparse.Namespace) -> None:
    resp = client.subscribe(args.channel)
    print(f"Subscribed to {resp.channel_id}")
    if resp.expires_at:
        print(f"   Expires: {resp.expires_at}")


def cmd_unsubscribe(client: WebhookClient, args: argparse.Namespace) -> None:
    client.unsubscribe(args.channel)
    print(f"Unsubscribed from {args.channel}")


def cmd_list(client: WebhookClient, args: argparse.Namespace) -> None:
    resp = client.list_subscriptions()
    if not resp.subscriptions:
        print("No subscriptions found.")
        return

    print(f"{'CHANNEL ID':<26} {'STATUS':<8} {'EXPIRES AT':<22} DAYS LEFT")
    for sub in resp.subscriptions:
        print(f"{sub.channel_id:<26} {sub.status:<8} {sub.expires_at:<22} {sub.days_until_expiry:.1f}")
    print()
    print(f"Total: {resp.total} | Active: {resp.active} | Expired: {resp.expired}")


def cmd_renew(client: WebhookClient, args: argparse.Namespace) -> None:
    resp = client.renew_subscriptions()
    print("Renewal Summary")
    print(
        f"   Checked: {resp.total_checked} | Candidates: {resp.renewals_candidates} | "
        f"Succeeded: {resp.renewals_succeeded} | Failed: {resp.renewals_failed}"
    )

    if not resp.results:
        print("No subscriptions needed renewal.")
        return

    # Failures are always shown; successes only with --verbose
    if args.verbose or resp.renewals_failed > 0:
        print("Results:")
        for result in resp.results:
            if result.success:
                expiry = f" (expires: {result.new_expiry_time})" if result.new_expiry_time else ""
                print(f"  OK   {result.channel_id} - Renewed{expiry}")
            else:
                print(f"  FAIL {result.channel_id} - Failed: {result.message}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="webhook_cli",
        description="Manage YouTube PubSubHubbub subscriptions",
    )
    parent = argparse.ArgumentParser(add_help=False)
    parent.add_argument(
        "--url",
        default=os.environ.get(URL_ENV),
        help=f"Base URL of the webhook service (env: {URL_ENV})",
    )

    sub = parser.add_subparsers(dest="command", required=True)

    def add_timeout(p, default):
        p.add_argument("--timeout", type=float, default=default, help="Request timeout in seconds")

    p = sub.add_parser("subscribe", parents=[parent], help="Subscribe to a YouTube channel")
    add_timeout(p, DEFAULT_TIMEOUT)
    p.add_argument("--channel", required=True, help="YouTube channel ID")
    p.set_defaults(func=cmd_subscribe)

    p = sub.add_parser("unsubscribe", parents=[parent], help="Unsubscribe from a YouTube channel")
    add_timeout(p, DEFAULT_TIMEOUT)
    p.add_argument("--channel", required=True, help="YouTube channel ID")
    p.set_defaults(func=cmd_unsubscribe)

    p = sub.add_parser("list", parents=[parent], help="List all subscriptions")
    add_timeout(p, DEFAULT_TIMEOUT)
    p.set_defaults(func=cmd_list)

    p = sub.add_parser("renew", parents=[parent], help="Trigger renewal of expiring subscriptions")
    p.add_argument("--verbose", action="store_true", help="Show detailed renewal results")
    add_timeout(p, RENEW_TIMEOUT)
    p.set_defaults(func=cmd_renew)

    return parser


def main(argv: Optional[List[str]] = None, client: Optional[WebhookClient] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if client is None:
        if not args.url:
            print(f"Error: --url flag or {URL_ENV} environment variable is required", file=sys.stderr)
            return 1
        client = WebhookClient(args.url, timeout=args.timeout)

    try:
        with client:
            args.func(client, args)
    except WebhookClientError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
