from __future__ import annotations

import asyncio
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from config import Settings  # noqa: E402
from schemas.subscriptions import Subscription  # noqa: E402
from services.dependencies import create_test_dependencies, get_dependencies  # noqa: E402

VALID_CHANNEL = "UCXuqSBlHAE6Xw-yeJA0Tunw"


def run_async(coro):
    return asyncio.run(coro)


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime | None = None):
        self.now = now or datetime(2026, 10, 18, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def test_settings():
    return Settings(
        storage_type="memory",
        webhook_base_url="https://hooks.example.com",
        subscription_lease_seconds=86400,
        subscription_renewal_threshold_hours=12,
        subscription_max_renewal_attempts=3,
    )


@pytest.fixture
def deps(clock, test_settings):
    return create_test_dependencies(settings=test_settings, clock=clock)


@pytest.fixture
def client(deps):
    from fastapi.testclient import TestClient

    from main import app

    app.dependency_overrides[get_dependencies] = lambda: deps
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def make_subscription(clock, channel_id=VALID_CHANNEL, **overrides):
    now = clock()
    data = dict(
        channel_id=channel_id,
        topic_url=f"https://www.youtube.com/feeds/videos.xml?channel_id={channel_id}",
        callback_url="https://hooks.example.com",
        lease_seconds=86400,
        subscribed_at=now,
        expires_at=now + timedelta(days=1),
        last_renewal=now,
        renewal_attempts=0,
        hub_response="202 Accepted",
    )
    data.update(overrides)
    return Subscription(**data)
