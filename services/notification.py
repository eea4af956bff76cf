"""Processing of YouTube push notifications (Atom feed payloads)."""
import logging
import xml.etree.ElementTree as ET
from datetime import datetime, timedelta
from typing import Callable, Optional

from schemas.notifications import NotificationResult, VideoEntry
from schemas.subscriptions import utcnow
from services.errors import DispatchError
from services.github_dispatch import DispatchClient

logger = logging.getLogger(__name__)

NS = {"atom": "http://www.w3.org/2005/Atom", "yt": "http://www.youtube.com/xml/schemas/2015"}

# A video counts as new only if it was published recently and has not been
# edited long after publication.
MAX_PUBLISH_AGE = timedelta(hours=1)
MAX_UPDATE_GAP = timedelta(minutes=15)


class InvalidNotificationError(ValueError):
    """The notification body is not a parseable Atom document."""


def _parse_dt(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        return None
    return parsed


def _text(entry: ET.Element, path: str) -> str:
    elem = entry.find(path, NS)
    return (elem.text or "").strip() if elem is not None else ""


def parse_notification(body: bytes) -> Optional[VideoEntry]:
    """
    Extract the first entry from an Atom notification.

    Returns:
        VideoEntry, or None when the feed has no entry (e.g. deletions)

    Raises:
        InvalidNotificationError: If the body is not XML
    """
    try:
        root = ET.fromstring(body)
    except ET.ParseError as e:
        raise InvalidNotificationError("Invalid XML") from e

    entry = root.find("atom:entry", NS)
    if entry is None:
        return None

    return VideoEntry(
        video_id=_text(entry, "yt:videoId"),
        channel_id=_text(entry, "yt:channelId"),
        title=_text(entry, "atom:title"),
        published=_text(entry, "atom:published"),
        updated=_text(entry, "atom:updated"),
    )


def is_new_video(entry: VideoEntry, now: datetime) -> bool:
    """Decide whether an entry is a fresh upload rather than an edit."""
    published = _parse_dt(entry.published)
    updated = _parse_dt(entry.updated)
    # Unparseable timestamps are never treated as new
    if published is None or updated is None:
        return False

    if now - published > MAX_PUBLISH_AGE:
        return False
    if updated - published > MAX_UPDATE_GAP:
        return False
    return True


class NotificationService:
    """Turns push notifications into workflow dispatches for new videos."""

    def __init__(self, dispatcher: DispatchClient, clock: Callable[[], datetime] = utcnow):
        self.dispatcher = dispatcher
        self.clock = clock

    async def process(self, body: bytes) -> NotificationResult:
        entry = parse_notification(body)
        if entry is None:
            return NotificationResult(status="success", message="Empty notification (no entry found)")

        if not is_new_video(entry, self.clock()):
            return NotificationResult(
                status="success",
                message=f"Skipped: Not a new video (VideoID: {entry.video_id})",
                video_id=entry.video_id,
            )

        if not self.dispatcher.is_configured():
            return NotificationResult(
                status="success",
                message=f"New video detected but GitHub token not configured (VideoID: {entry.video_id})",
                video_id=entry.video_id,
            )

        try:
            await self.dispatcher.trigger_workflow(entry)
        except DispatchError as e:
            logger.error(f"Workflow dispatch failed for video {entry.video_id}: {e}")
            return NotificationResult(
                status="error",
                message=f"Failed to trigger GitHub workflow: {e}",
                video_id=entry.video_id,
            )

        return NotificationResult(
            status="success",
            message=f"Successfully triggered workflow for new video: {entry.video_id}",
            video_id=entry.video_id,
        )
