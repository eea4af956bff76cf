"""In-process stand-ins for the hub and dispatch clients.

Used by the test suite and for local runs without network access.
"""
from typing import Dict, List, Optional

from schemas.notifications import VideoEntry
from services.errors import DispatchError, HubRequestError


class MockHubGateway:
    """Records hub calls and fails on demand."""

    def __init__(self):
        self.subscribe_calls: List[str] = []
        self.unsubscribe_calls: List[str] = []
        self.subscribe_error: Optional[Exception] = None
        self.unsubscribe_error: Optional[Exception] = None
        # Per-channel failures take precedence over subscribe_error
        self.failing_channels: Dict[str, Exception] = {}

    async def subscribe(self, channel_id: str) -> None:
        self.subscribe_calls.append(channel_id)
        if channel_id in self.failing_channels:
            raise self.failing_channels[channel_id]
        if self.subscribe_error is not None:
            raise self.subscribe_error

    async def unsubscribe(self, channel_id: str) -> None:
        self.unsubscribe_calls.append(channel_id)
        if self.unsubscribe_error is not None:
            raise self.unsubscribe_error

    def fail_subscribe(self, message: str = "hub unavailable") -> None:
        self.subscribe_error = HubRequestError(message)

    def fail_unsubscribe(self, message: str = "hub unavailable") -> None:
        self.unsubscribe_error = HubRequestError(message)

    @property
    def call_count(self) -> int:
        return len(self.subscribe_calls) + len(self.unsubscribe_calls)


class MockDispatchClient:
    """Records workflow dispatches instead of calling GitHub."""

    def __init__(self, configured: bool = True):
        self.configured = configured
        self.trigger_error: Optional[Exception] = None
        self.entries: List[VideoEntry] = []

    def is_configured(self) -> bool:
        return self.configured

    async def trigger_workflow(self, entry: VideoEntry) -> None:
        self.entries.append(entry)
        if self.trigger_error is not None:
            raise self.trigger_error

    def fail(self, message: str = "GitHub API returned status 500") -> None:
        self.trigger_error = DispatchError(message)
