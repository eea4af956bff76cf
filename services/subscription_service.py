"""Subscribe, unsubscribe and listing use-cases for channel subscriptions."""
import logging
import re
from datetime import datetime, timedelta
from typing import Callable, Optional

from pydantic import BaseModel

from schemas.subscriptions import (
    Subscription,
    SubscriptionInfo,
    SubscriptionsListResponse,
    SubscriptionState,
    format_timestamp,
    utcnow,
)
from services.errors import (
    ConflictError,
    HubRequestError,
    InvalidArgumentError,
    NotFoundError,
    StorageError,
    StorageFailureError,
    UpstreamError,
)
from services.pubsub_client import HubGateway, build_topic_url
from services.subscription_store import SubscriptionStore

logger = logging.getLogger(__name__)

# Two-letter prefix (e.g. "UC") followed by 22 URL-safe characters
CHANNEL_ID_PATTERN = re.compile(r"^[A-Za-z]{2}[A-Za-z0-9_-]{22}$")


def validate_channel_id(channel_id: Optional[str]) -> bool:
    return bool(channel_id) and CHANNEL_ID_PATTERN.fullmatch(channel_id) is not None


def require_channel_id(channel_id: Optional[str]) -> str:
    """Reject missing or malformed channel ids before any I/O."""
    if not channel_id:
        raise InvalidArgumentError("channel_id parameter is required")
    if not validate_channel_id(channel_id):
        raise InvalidArgumentError(
            "Invalid channel ID format. Must be a two-letter prefix followed by 22 "
            "alphanumeric, '-' or '_' characters",
            channel_id=channel_id,
        )
    return channel_id


async def load_state(store: SubscriptionStore, channel_id: Optional[str] = None) -> SubscriptionState:
    try:
        return await store.load()
    except StorageError as e:
        logger.error(f"Failed to load subscription state: {e}")
        raise StorageFailureError(f"Failed to load subscription state: {e}", channel_id=channel_id) from e


async def save_state(store: SubscriptionStore, state: SubscriptionState, channel_id: Optional[str] = None) -> None:
    try:
        await store.save(state)
    except StorageError as e:
        logger.error(f"Failed to save subscription state: {e}")
        raise StorageFailureError(f"Failed to save subscription state: {e}", channel_id=channel_id) from e


class SubscribeResult(BaseModel):
    channel_id: str
    expires_at: datetime


class SubscriptionService:
    """Single-channel lifecycle transitions over the store and hub gateway."""

    def __init__(
        self,
        store: SubscriptionStore,
        hub: HubGateway,
        callback_url: str,
        lease_seconds: int = 86400,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.hub = hub
        self.callback_url = callback_url
        self.lease_seconds = lease_seconds
        self.clock = clock

    async def subscribe(self, channel_id: Optional[str]) -> SubscribeResult:
        """
        Register a channel with the hub and record it.

        Raises:
            InvalidArgumentError: Missing or malformed channel id
            ConflictError: Channel already subscribed (no hub call, no save)
            UpstreamError: Hub rejected the subscription (nothing saved)
            StorageFailureError: Load or save failed
        """
        channel_id = require_channel_id(channel_id)
        state = await load_state(self.store, channel_id)

        existing = state.subscriptions.get(channel_id)
        if existing is not None:
            raise ConflictError(
                "Already subscribed to this channel",
                channel_id=channel_id,
                expires_at=format_timestamp(existing.expires_at),
            )

        try:
            await self.hub.subscribe(channel_id)
        except HubRequestError as e:
            raise UpstreamError(f"PubSubHubbub subscription failed: {e}", channel_id=channel_id) from e

        now = self.clock()
        expires_at = now + timedelta(seconds=self.lease_seconds)
        state.subscriptions[channel_id] = Subscription(
            channel_id=channel_id,
            topic_url=build_topic_url(channel_id),
            callback_url=self.callback_url,
            status="active",
            lease_seconds=self.lease_seconds,
            subscribed_at=now,
            expires_at=expires_at,
            last_renewal=now,
            renewal_attempts=0,
            hub_response="202 Accepted",
        )
        # The hub registration has already happened; a failed save here leaves
        # the channel registered but unrecorded until it is subscribed again.
        await save_state(self.store, state, channel_id)

        logger.info(f"Subscribed to {channel_id} until {format_timestamp(expires_at)}")
        return SubscribeResult(channel_id=channel_id, expires_at=expires_at)

    async def unsubscribe(self, channel_id: Optional[str]) -> None:
        """
        Remove a channel from the hub and from the collection.

        The record is kept if the hub does not confirm the unsubscribe.
        """
        channel_id = require_channel_id(channel_id)
        state = await load_state(self.store, channel_id)

        if channel_id not in state.subscriptions:
            raise NotFoundError("Subscription not found for this channel", channel_id=channel_id)

        try:
            await self.hub.unsubscribe(channel_id)
        except HubRequestError as e:
            raise UpstreamError(f"PubSubHubbub unsubscribe failed: {e}", channel_id=channel_id) from e

        del state.subscriptions[channel_id]
        await save_state(self.store, state, channel_id)
        logger.info(f"Unsubscribed from {channel_id}")

    async def list_subscriptions(self) -> SubscriptionsListResponse:
        try:
            state = await self.store.load()
        except StorageError as e:
            raise StorageFailureError(f"Unable to load subscription state from storage: {e}") from e

        now = self.clock()
        response = SubscriptionsListResponse()
        for sub in state.subscriptions.values():
            expired = sub.is_expired(now)
            if expired:
                response.expired += 1
            else:
                response.active += 1
            response.subscriptions.append(SubscriptionInfo(
                channel_id=sub.channel_id,
                status="expired" if expired else "active",
                expires_at=format_timestamp(sub.expires_at),
                days_until_expiry=(sub.expires_at - now).total_seconds() / 86400,
            ))
        response.total = len(response.subscriptions)
        return response
