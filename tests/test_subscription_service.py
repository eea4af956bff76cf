from datetime import timedelta

import pytest

from conftest import VALID_CHANNEL, make_subscription, run_async
from schemas.subscriptions import SubscriptionState, format_timestamp
from services.errors import (
    ConflictError,
    InvalidArgumentError,
    NotFoundError,
    StorageError,
    StorageFailureError,
    UpstreamError,
)
from services.subscription_service import validate_channel_id


@pytest.mark.parametrize("channel_id", [
    "UCXuqSBlHAE6Xw-yeJA0Tunw",
    "UC0000000000000000000001",
    "UC_-abcdefghijABCDEFGHIJ",
])
def test_valid_channel_ids(channel_id):
    assert validate_channel_id(channel_id)


@pytest.mark.parametrize("channel_id", [
    "",
    None,
    "UC123",
    "UCXuqSBlHAE6Xw-yeJA0Tunw1",
    "UCXuqSBlHAE6Xw-yeJA0Tun",
    "UCXuqSBlHAE6Xw yeJA0Tunw",
    "U1Xuqsblhae6xw-yeja0tunw",
    "UCXuqSBlHAE6Xw.yeJA0Tunw",
    "UCXuqSBlHAE6Xw-yeJA0Tunw\n",
])
def test_invalid_channel_ids(channel_id):
    assert not validate_channel_id(channel_id)


def seed(deps, *subscriptions):
    state = SubscriptionState.empty(deps.clock())
    for sub in subscriptions:
        state.subscriptions[sub.channel_id] = sub
    run_async(deps.store.save(state))
    deps.store.save_calls = 0
    deps.store.load_calls = 0


class TestSubscribe:
    def test_creates_record(self, deps, clock):
        result = run_async(deps.subscription_service().subscribe(VALID_CHANNEL))

        assert result.channel_id == VALID_CHANNEL
        assert result.expires_at == clock() + timedelta(seconds=86400)
        assert deps.hub.subscribe_calls == [VALID_CHANNEL]

        sub = run_async(deps.store.load()).subscriptions[VALID_CHANNEL]
        assert sub.status == "active"
        assert sub.renewal_attempts == 0
        assert sub.subscribed_at == clock()
        assert sub.last_renewal == clock()
        assert sub.expires_at == result.expires_at
        assert sub.lease_seconds == 86400
        assert sub.topic_url == f"https://www.youtube.com/feeds/videos.xml?channel_id={VALID_CHANNEL}"
        assert sub.callback_url == "https://hooks.example.com"

    def test_rejects_missing_id_before_io(self, deps):
        with pytest.raises(InvalidArgumentError, match="channel_id parameter is required"):
            run_async(deps.subscription_service().subscribe(""))
        assert deps.store.load_calls == 0
        assert deps.hub.call_count == 0

    def test_rejects_malformed_id_before_io(self, deps):
        with pytest.raises(InvalidArgumentError, match="Invalid channel ID format"):
            run_async(deps.subscription_service().subscribe("UC123"))
        assert deps.store.load_calls == 0
        assert deps.hub.call_count == 0

    def test_second_subscribe_conflicts_without_save(self, deps, clock):
        service = deps.subscription_service()
        first = run_async(service.subscribe(VALID_CHANNEL))
        saves = deps.store.save_calls

        clock.advance(minutes=10)
        with pytest.raises(ConflictError) as exc_info:
            run_async(service.subscribe(VALID_CHANNEL))

        assert exc_info.value.expires_at == format_timestamp(first.expires_at)
        assert deps.store.save_calls == saves
        assert deps.hub.subscribe_calls == [VALID_CHANNEL]

    def test_hub_failure_leaves_state_untouched(self, deps):
        deps.hub.fail_subscribe("hub returned status: 503")
        with pytest.raises(UpstreamError, match="hub returned status: 503"):
            run_async(deps.subscription_service().subscribe(VALID_CHANNEL))

        assert deps.store.save_calls == 0
        assert run_async(deps.store.load()).subscriptions == {}

    def test_load_failure(self, deps):
        deps.store.load_error = StorageError("access denied")
        with pytest.raises(StorageFailureError, match="Failed to load subscription state: access denied"):
            run_async(deps.subscription_service().subscribe(VALID_CHANNEL))
        assert deps.hub.call_count == 0

    def test_save_failure_after_hub_success(self, deps):
        deps.store.save_error = StorageError("write timeout")
        with pytest.raises(StorageFailureError, match="Failed to save subscription state: write timeout"):
            run_async(deps.subscription_service().subscribe(VALID_CHANNEL))
        # The hub registration already happened
        assert deps.hub.subscribe_calls == [VALID_CHANNEL]


class TestUnsubscribe:
    def test_removes_record(self, deps, clock):
        seed(deps, make_subscription(clock))

        run_async(deps.subscription_service().unsubscribe(VALID_CHANNEL))

        assert deps.hub.unsubscribe_calls == [VALID_CHANNEL]
        assert deps.store.save_calls == 1
        assert run_async(deps.store.load()).subscriptions == {}

    def test_not_found_never_calls_hub(self, deps):
        with pytest.raises(NotFoundError, match="Subscription not found for this channel"):
            run_async(deps.subscription_service().unsubscribe(VALID_CHANNEL))
        assert deps.hub.call_count == 0
        assert deps.store.save_calls == 0

    def test_validation(self, deps):
        with pytest.raises(InvalidArgumentError):
            run_async(deps.subscription_service().unsubscribe(None))
        with pytest.raises(InvalidArgumentError):
            run_async(deps.subscription_service().unsubscribe("not-a-channel"))
        assert deps.store.load_calls == 0

    def test_hub_failure_keeps_record(self, deps, clock):
        seed(deps, make_subscription(clock))
        deps.hub.fail_unsubscribe()

        with pytest.raises(UpstreamError):
            run_async(deps.subscription_service().unsubscribe(VALID_CHANNEL))

        assert deps.store.save_calls == 0
        assert VALID_CHANNEL in run_async(deps.store.load()).subscriptions

    def test_save_failure(self, deps, clock):
        seed(deps, make_subscription(clock))
        deps.store.save_error = StorageError("bucket gone")
        with pytest.raises(StorageFailureError, match="Failed to save subscription state"):
            run_async(deps.subscription_service().unsubscribe(VALID_CHANNEL))


class TestListSubscriptions:
    def test_empty(self, deps):
        resp = run_async(deps.subscription_service().list_subscriptions())
        assert resp.total == 0
        assert resp.subscriptions == []

    def test_computes_status_from_expiry(self, deps, clock):
        now = clock()
        seed(
            deps,
            make_subscription(clock, expires_at=now + timedelta(days=2)),
            make_subscription(clock, channel_id="UC0000000000000000000001", expires_at=now - timedelta(hours=12)),
        )

        resp = run_async(deps.subscription_service().list_subscriptions())

        assert (resp.total, resp.active, resp.expired) == (2, 1, 1)
        by_id = {info.channel_id: info for info in resp.subscriptions}
        assert by_id[VALID_CHANNEL].status == "active"
        assert by_id[VALID_CHANNEL].days_until_expiry == pytest.approx(2.0)
        assert by_id["UC0000000000000000000001"].status == "expired"
        assert by_id["UC0000000000000000000001"].days_until_expiry == pytest.approx(-0.5)
        # Status is a read-time view; the stored record is unchanged
        stored = run_async(deps.store.load()).subscriptions["UC0000000000000000000001"]
        assert stored.status == "active"

    def test_load_failure(self, deps):
        deps.store.load_error = StorageError("boom")
        with pytest.raises(StorageFailureError, match="Unable to load subscription state from storage"):
            run_async(deps.subscription_service().list_subscriptions())
