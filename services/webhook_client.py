"""HTTP client for a deployed webhook service, used by the CLI."""
from typing import Optional

import httpx

from schemas.subscriptions import APIResponse, RenewalSummaryResponse, SubscriptionsListResponse


class WebhookClientError(Exception):
    """The webhook service returned an error or could not be reached."""


class WebhookClient:
    """Thin wrapper around the service's subscription endpoints."""

    def __init__(self, base_url: str, timeout: float = 30.0, transport: Optional[httpx.BaseTransport] = None):
        self.base_url = base_url.rstrip("/")
        self._client = httpx.Client(base_url=self.base_url, timeout=timeout, transport=transport)

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "WebhookClient":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def _send(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            return self._client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            raise WebhookClientError(f"making request: {e}") from e

    @staticmethod
    def _error(resp: httpx.Response) -> WebhookClientError:
        try:
            message = resp.json().get("message")
        except ValueError:
            message = None
        if message:
            return WebhookClientError(f"server error ({resp.status_code}): {message}")
        return WebhookClientError(f"server returned status {resp.status_code}")

    def subscribe(self, channel_id: str) -> APIResponse:
        resp = self._send("POST", "/subscribe", params={"channel_id": channel_id})
        if resp.status_code >= 400:
            raise self._error(resp)
        return APIResponse.model_validate(resp.json())

    def unsubscribe(self, channel_id: str) -> None:
        resp = self._send("DELETE", "/unsubscribe", params={"channel_id": channel_id})
        if resp.status_code == 204:
            return
        if resp.status_code == 404:
            raise WebhookClientError(f"not subscribed to channel {channel_id}")
        raise self._error(resp)

    def list_subscriptions(self) -> SubscriptionsListResponse:
        resp = self._send("GET", "/subscriptions")
        if resp.status_code != 200:
            raise self._error(resp)
        return SubscriptionsListResponse.model_validate(resp.json())

    def renew_subscriptions(self) -> RenewalSummaryResponse:
        resp = self._send("POST", "/renew")
        if resp.status_code != 200:
            raise self._error(resp)
        return RenewalSummaryResponse.model_validate(resp.json())
