"""Feed notification Pydantic schemas."""
from typing import Optional

from pydantic import BaseModel


class VideoEntry(BaseModel):
    """A single <entry> from a YouTube Atom push notification."""
    video_id: str = ""
    channel_id: str = ""
    title: str = ""
    published: str = ""
    updated: str = ""

    @property
    def video_url(self) -> str:
        return f"https://www.youtube.com/watch?v={self.video_id}"


class NotificationResult(BaseModel):
    """Outcome of processing one push notification."""
    status: str  # "success" or "error"
    message: str
    video_id: Optional[str] = None
