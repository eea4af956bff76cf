"""PubSubHubbub hub client for YouTube channel feeds."""
import logging
from typing import Optional, Protocol

import httpx

from services.errors import HubRequestError

logger = logging.getLogger(__name__)

YOUTUBE_FEED_URL = "https://www.youtube.com/feeds/videos.xml?channel_id={channel_id}"


def build_topic_url(channel_id: str) -> str:
    return YOUTUBE_FEED_URL.format(channel_id=channel_id)


class HubGateway(Protocol):
    """Subscribe/unsubscribe capability against the push hub."""

    async def subscribe(self, channel_id: str) -> None: ...

    async def unsubscribe(self, channel_id: str) -> None: ...


class HTTPHubGateway:
    """Posts WebSub subscription requests to the hub over HTTP."""

    def __init__(
        self,
        hub_url: str,
        callback_url: str,
        lease_seconds: int = 86400,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.hub_url = hub_url
        self.callback_url = callback_url
        self.lease_seconds = lease_seconds
        self.timeout = timeout
        self._transport = transport

    async def subscribe(self, channel_id: str) -> None:
        await self._request(channel_id, "subscribe")

    async def unsubscribe(self, channel_id: str) -> None:
        await self._request(channel_id, "unsubscribe")

    async def _request(self, channel_id: str, mode: str) -> None:
        form = {
            "hub.callback": self.callback_url,
            "hub.topic": build_topic_url(channel_id),
            "hub.mode": mode,
            "hub.verify": "async",
            "hub.lease_seconds": str(self.lease_seconds),
        }

        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            try:
                resp = await client.post(self.hub_url, data=form)
            except httpx.TimeoutException as e:
                raise HubRequestError(f"PubSubHubbub request timed out after {self.timeout}s") from e
            except httpx.HTTPError as e:
                raise HubRequestError(f"failed to make PubSubHubbub request: {e}") from e

        if resp.status_code < 200 or resp.status_code >= 300:
            logger.warning(f"Hub rejected {mode} for {channel_id}: HTTP {resp.status_code}")
            raise HubRequestError(f"PubSubHubbub hub returned status: {resp.status_code}")

        logger.info(f"Hub accepted {mode} for {channel_id}")
