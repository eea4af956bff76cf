"""Subscription renewal for YouTube WebSub leases."""
import asyncio
import contextlib
import logging
from datetime import datetime, timedelta
from typing import Callable, Optional

from schemas.subscriptions import RenewalResult, RenewalSummary, Subscription, format_timestamp, utcnow
from services.errors import HubRequestError, SubscriptionError
from services.pubsub_client import HubGateway
from services.subscription_service import load_state, save_state
from services.subscription_store import SubscriptionStore

logger = logging.getLogger(__name__)


class RenewalScheduler:
    """Re-registers subscriptions whose lease is about to run out.

    A record is a candidate when its remaining lease is within the renewal
    threshold. Failed hub calls bump ``renewal_attempts``; once it reaches
    ``max_attempts`` the record is reported as failed on every run without
    contacting the hub, until an operator resubscribes it.
    """

    def __init__(
        self,
        store: SubscriptionStore,
        hub: HubGateway,
        renewal_threshold: timedelta = timedelta(hours=12),
        max_attempts: int = 3,
        lease_seconds: int = 86400,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.hub = hub
        self.renewal_threshold = renewal_threshold
        self.max_attempts = max_attempts
        self.lease_seconds = lease_seconds
        self.clock = clock

    def is_due(self, subscription: Subscription, now: datetime) -> bool:
        return subscription.expires_at - now <= self.renewal_threshold

    async def renew_subscription(self, subscription: Subscription, now: datetime) -> RenewalResult:
        """Attempt one renewal, mutating the record in place."""
        channel_id = subscription.channel_id

        if subscription.renewal_attempts >= self.max_attempts:
            return RenewalResult(
                channel_id=channel_id,
                success=False,
                message=f"Max renewal attempts ({self.max_attempts}) exceeded",
                attempt_count=subscription.renewal_attempts,
            )

        try:
            await self.hub.subscribe(channel_id)
        except HubRequestError as e:
            # Only increment point for renewal_attempts
            subscription.renewal_attempts += 1
            logger.warning(
                f"Renewal failed for {channel_id} "
                f"(attempt {subscription.renewal_attempts}/{self.max_attempts}): {e}"
            )
            return RenewalResult(
                channel_id=channel_id,
                success=False,
                message=f"PubSubHubbub renewal failed: {e}",
                attempt_count=subscription.renewal_attempts,
            )

        subscription.last_renewal = now
        subscription.expires_at = now + timedelta(seconds=self.lease_seconds)
        subscription.lease_seconds = self.lease_seconds
        subscription.renewal_attempts = 0
        subscription.hub_response = "202 Accepted"

        return RenewalResult(
            channel_id=channel_id,
            success=True,
            message="Successfully renewed subscription",
            attempt_count=0,
            new_expiry_time=format_timestamp(subscription.expires_at),
        )

    async def run(self) -> RenewalSummary:
        """
        Renew every subscription inside the threshold window.

        The collection is saved once, and only if at least one candidate was
        processed. If that save fails the whole batch is lost.

        Raises:
            StorageFailureError: If the collection cannot be loaded or saved
        """
        state = await load_state(self.store)
        now = self.clock()

        summary = RenewalSummary(total_checked=len(state.subscriptions))
        for subscription in state.subscriptions.values():
            if not self.is_due(subscription, now):
                continue

            result = await self.renew_subscription(subscription, now)
            summary.results.append(result)
            if result.success:
                summary.succeeded += 1
            else:
                summary.failed += 1

        summary.candidates = len(summary.results)
        if summary.candidates:
            await save_state(self.store, state)

        logger.info(
            f"[SUB_RENEWAL] checked={summary.total_checked} candidates={summary.candidates} "
            f"succeeded={summary.succeeded} failed={summary.failed}"
        )
        return summary


async def renewal_scheduler_loop(
    scheduler_factory: Callable[[], RenewalScheduler],
    interval_minutes: int,
) -> None:
    """Background loop that triggers a renewal run every interval."""
    delay = max(60, int(interval_minutes) * 60)
    while True:
        try:
            await scheduler_factory().run()
        except SubscriptionError as e:
            logger.error(f"[SUB_RENEWAL] scheduler cycle failed: {e.message}")
        except Exception:
            logger.exception("[SUB_RENEWAL] scheduler cycle crashed")
        await asyncio.sleep(delay)


async def stop_scheduler_task(task: Optional[asyncio.Task]) -> None:
    """Gracefully stop a running scheduler task."""
    if not task:
        return
    task.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await task
