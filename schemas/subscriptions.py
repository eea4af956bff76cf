"""Subscription state and API Pydantic schemas."""
from datetime import datetime, timezone
from typing import Dict, List, Optional

from pydantic import AwareDatetime, BaseModel, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def format_timestamp(value: datetime) -> str:
    """Render a timestamp as RFC 3339 with second precision."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z")


class Subscription(BaseModel):
    """One channel's registration with the hub."""
    channel_id: str
    channel_name: Optional[str] = None
    topic_url: str
    callback_url: str
    status: str = "active"  # Stored value; "expired" is only computed at read time
    lease_seconds: int = 86400
    subscribed_at: AwareDatetime
    expires_at: AwareDatetime
    last_renewal: AwareDatetime
    renewal_attempts: int = 0
    hub_response: str = ""

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at < now


class SubscriptionMetadata(BaseModel):
    """Document-level metadata stamped on every save."""
    last_updated: AwareDatetime = Field(default_factory=utcnow)
    version: str = "1.0"


class SubscriptionState(BaseModel):
    """The whole subscription collection, persisted as a single document."""
    subscriptions: Dict[str, Subscription] = Field(default_factory=dict)
    metadata: SubscriptionMetadata = Field(default_factory=SubscriptionMetadata)

    @classmethod
    def empty(cls, now: Optional[datetime] = None) -> "SubscriptionState":
        return cls(metadata=SubscriptionMetadata(last_updated=now or utcnow(), version="1.0"))

    def to_document(self) -> str:
        return self.model_dump_json(indent=2, exclude_none=True)


class APIResponse(BaseModel):
    """Envelope for subscribe/unsubscribe results and errors."""
    status: str
    channel_id: Optional[str] = None
    message: Optional[str] = None
    expires_at: Optional[str] = None

    class Config:
        json_schema_extra = {
            "example": {
                "status": "success",
                "channel_id": "UCXuqSBlHAE6Xw-yeJA0Tunw",
                "message": "Subscription initiated",
                "expires_at": "2026-10-19T10:00:00Z"
            }
        }


class SubscriptionInfo(BaseModel):
    """Read view of a subscription with computed status."""
    channel_id: str
    status: str  # "active" or "expired"
    expires_at: str
    days_until_expiry: float


class SubscriptionsListResponse(BaseModel):
    """Response model for subscription listing."""
    subscriptions: List[SubscriptionInfo] = []
    total: int = 0
    active: int = 0
    expired: int = 0


class RenewalResult(BaseModel):
    """Outcome of one candidate in a renewal run."""
    channel_id: str
    success: bool
    message: str
    attempt_count: int
    new_expiry_time: Optional[str] = None


class RenewalSummary(BaseModel):
    """Counts and per-candidate results of a renewal run."""
    total_checked: int = 0
    candidates: int = 0
    succeeded: int = 0
    failed: int = 0
    results: List[RenewalResult] = []


class RenewalSummaryResponse(BaseModel):
    """Response model for POST /renew."""
    status: str = "success"
    total_checked: int
    renewals_candidates: int
    renewals_succeeded: int
    renewals_failed: int
    results: List[RenewalResult] = []

    @classmethod
    def from_summary(cls, summary: RenewalSummary) -> "RenewalSummaryResponse":
        return cls(
            total_checked=summary.total_checked,
            renewals_candidates=summary.candidates,
            renewals_succeeded=summary.succeeded,
            renewals_failed=summary.failed,
            results=summary.results,
        )
