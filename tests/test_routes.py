import json
from datetime import timedelta

import pytest

from conftest import VALID_CHANNEL, make_subscription, run_async
from schemas.subscriptions import SubscriptionState
from services.errors import StorageConfigurationError, StorageError

E2E_CHANNEL = "UC0000000000000000000001"


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}


class TestSubscribeRoute:
    def test_success(self, client, clock):
        response = client.post("/subscribe", params={"channel_id": VALID_CHANNEL})
        assert response.status_code == 200
        assert response.json() == {
            "status": "success",
            "channel_id": VALID_CHANNEL,
            "message": "Subscription initiated",
            "expires_at": "2026-10-19T12:00:00Z",
        }

    def test_missing_channel_id(self, client, deps):
        response = client.post("/subscribe")
        assert response.status_code == 400
        assert response.json() == {"status": "error", "message": "channel_id parameter is required"}
        assert deps.store.load_calls == 0

    def test_invalid_channel_id(self, client):
        response = client.post("/subscribe", params={"channel_id": "UC123"})
        assert response.status_code == 400
        body = response.json()
        assert body["channel_id"] == "UC123"
        assert body["message"].startswith("Invalid channel ID format")

    def test_conflict_returns_existing_expiry(self, client, deps, clock):
        first = client.post("/subscribe", params={"channel_id": VALID_CHANNEL}).json()
        saves = deps.store.save_calls
        clock.advance(hours=1)

        response = client.post("/subscribe", params={"channel_id": VALID_CHANNEL})

        assert response.status_code == 409
        assert response.json() == {
            "status": "conflict",
            "channel_id": VALID_CHANNEL,
            "message": "Already subscribed to this channel",
            "expires_at": first["expires_at"],
        }
        assert deps.store.save_calls == saves

    def test_hub_failure(self, client, deps):
        deps.hub.fail_subscribe()
        response = client.post("/subscribe", params={"channel_id": VALID_CHANNEL})
        assert response.status_code == 502
        assert response.json()["status"] == "error"

    def test_storage_failure(self, client, deps):
        deps.store.load_error = StorageError("denied")
        response = client.post("/subscribe", params={"channel_id": VALID_CHANNEL})
        assert response.status_code == 500
        assert "Failed to load subscription state" in response.json()["message"]


class TestUnsubscribeRoute:
    def test_success_has_empty_body(self, client):
        client.post("/subscribe", params={"channel_id": VALID_CHANNEL})
        response = client.delete("/unsubscribe", params={"channel_id": VALID_CHANNEL})
        assert response.status_code == 204
        assert response.content == b""

    def test_not_found(self, client, deps):
        response = client.delete("/unsubscribe", params={"channel_id": VALID_CHANNEL})
        assert response.status_code == 404
        assert response.json()["message"] == "Subscription not found for this channel"
        assert deps.hub.unsubscribe_calls == []

    def test_invalid(self, client):
        assert client.delete("/unsubscribe").status_code == 400
        assert client.delete("/unsubscribe", params={"channel_id": "bad"}).status_code == 400

    def test_hub_failure(self, client, deps):
        client.post("/subscribe", params={"channel_id": VALID_CHANNEL})
        deps.hub.fail_unsubscribe()
        response = client.delete("/unsubscribe", params={"channel_id": VALID_CHANNEL})
        assert response.status_code == 502
        assert client.get("/subscriptions").json()["total"] == 1


class TestRenewRoute:
    def test_summary_shape(self, client, deps, clock):
        state = SubscriptionState.empty(clock())
        state.subscriptions[VALID_CHANNEL] = make_subscription(clock, expires_at=clock() + timedelta(hours=2))
        state.subscriptions[E2E_CHANNEL] = make_subscription(
            clock, channel_id=E2E_CHANNEL, expires_at=clock() + timedelta(hours=1), renewal_attempts=3
        )
        run_async(deps.store.save(state))

        response = client.post("/renew")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "success"
        assert body["total_checked"] == 2
        assert body["renewals_candidates"] == 2
        assert body["renewals_succeeded"] == 1
        assert body["renewals_failed"] == 1
        results = {r["channel_id"]: r for r in body["results"]}
        assert results[VALID_CHANNEL]["new_expiry_time"] == "2026-10-19T12:00:00Z"
        assert results[E2E_CHANNEL] == {
            "channel_id": E2E_CHANNEL,
            "success": False,
            "message": "Max renewal attempts (3) exceeded",
            "attempt_count": 3,
        }

    def test_nothing_due(self, client, deps):
        body = client.post("/renew").json()
        assert body["renewals_candidates"] == 0
        assert body["results"] == []
        assert deps.store.save_calls == 0

    def test_storage_failure(self, client, deps):
        deps.store.load_error = StorageError("gone")
        response = client.post("/renew")
        assert response.status_code == 500
        assert response.json()["status"] == "error"


def test_list_storage_failure(client, deps):
    deps.store.load_error = StorageError("gone")
    response = client.get("/subscriptions")
    assert response.status_code == 500
    assert "Unable to load subscription state from storage" in response.json()["message"]


def test_cors_preflight(client):
    response = client.options(
        "/subscribe",
        headers={"Origin": "https://example.com", "Access-Control-Request-Method": "POST"},
    )
    assert response.status_code == 200
    assert response.headers["access-control-allow-origin"] == "*"


def test_subscription_lifecycle_end_to_end(client, clock):
    response = client.post("/subscribe", params={"channel_id": E2E_CHANNEL})
    assert response.status_code == 200
    assert response.json()["expires_at"] == "2026-10-19T12:00:00Z"

    listing = client.get("/subscriptions").json()
    assert (listing["total"], listing["active"], listing["expired"]) == (1, 1, 0)
    assert listing["subscriptions"][0]["days_until_expiry"] == 1.0

    clock.advance(hours=25)
    listing = client.get("/subscriptions").json()
    assert (listing["total"], listing["active"], listing["expired"]) == (1, 0, 1)
    assert listing["subscriptions"][0]["status"] == "expired"
    assert listing["subscriptions"][0]["days_until_expiry"] < 0

    assert client.delete("/unsubscribe", params={"channel_id": E2E_CHANNEL}).status_code == 204
    assert client.get("/subscriptions").json()["total"] == 0


def test_timestamp_without_offset_is_a_load_failure(client, deps, clock):
    record = json.loads(make_subscription(clock).model_dump_json())
    record["expires_at"] = "2026-10-18T06:00:00"
    deps.store.document = json.dumps({"subscriptions": {VALID_CHANNEL: record}}).encode()

    for method, path in (("post", "/renew"), ("get", "/subscriptions")):
        response = client.request(method.upper(), path)
        assert response.status_code == 500
        body = response.json()
        assert body["status"] == "error"
        assert "subscription state" in body["message"]


def test_unknown_storage_type_fails_at_startup(monkeypatch):
    from fastapi.testclient import TestClient

    import main

    monkeypatch.setattr(main.settings, "storage_type", "gcs")
    with pytest.raises(StorageConfigurationError, match="Unknown storage type: gcs"):
        with TestClient(main.app):
            pass
