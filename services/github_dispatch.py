"""GitHub repository_dispatch client for new-video events."""
import logging
from typing import Optional, Protocol

import httpx

from schemas.notifications import VideoEntry
from services.errors import DispatchError

logger = logging.getLogger(__name__)

EVENT_TYPE = "youtube-video-published"


class DispatchClient(Protocol):
    def is_configured(self) -> bool: ...

    async def trigger_workflow(self, entry: VideoEntry) -> None: ...


class GitHubDispatchClient:
    """Sends repository dispatch events to the GitHub REST API."""

    def __init__(
        self,
        token: Optional[str],
        repo_owner: Optional[str],
        repo_name: Optional[str],
        base_url: str = "https://api.github.com",
        environment: str = "",
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.token = token
        self.repo_owner = repo_owner
        self.repo_name = repo_name
        self.base_url = base_url.rstrip("/")
        self.environment = environment
        self.timeout = timeout
        self._transport = transport

    def is_configured(self) -> bool:
        return bool(self.token)

    def build_payload(self, entry: VideoEntry) -> dict:
        return {
            "event_type": EVENT_TYPE,
            "client_payload": {
                "video_id": entry.video_id,
                "channel_id": entry.channel_id,
                "title": entry.title,
                "published": entry.published,
                "updated": entry.updated,
                "video_url": entry.video_url,
                "environment": self.environment,
            },
        }

    async def trigger_workflow(self, entry: VideoEntry) -> None:
        """
        Trigger the downstream workflow for a newly published video.

        Raises:
            DispatchError: If the client is misconfigured or GitHub rejects the call
        """
        if not self.token or not self.repo_owner or not self.repo_name:
            raise DispatchError("missing required parameters for GitHub workflow trigger")

        url = f"{self.base_url}/repos/{self.repo_owner}/{self.repo_name}/dispatches"
        headers = {
            "Authorization": f"token {self.token}",
            "Accept": "application/vnd.github.v3+json",
        }

        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            try:
                resp = await client.post(url, json=self.build_payload(entry), headers=headers)
            except httpx.HTTPError as e:
                raise DispatchError(f"failed to send request: {e}") from e

        if resp.status_code < 200 or resp.status_code >= 300:
            raise DispatchError(f"GitHub API returned status {resp.status_code}")

        logger.info(f"Dispatched {EVENT_TYPE} for video {entry.video_id}")
