"""Error types raised by the subscription services."""
from typing import Optional


class StorageError(Exception):
    """Failure talking to the backing store (transport, auth, I/O)."""


class StorageConfigurationError(StorageError):
    """The required storage location is not configured."""


class StateDecodeError(StorageError):
    """The persisted subscription document could not be decoded."""


class HubRequestError(Exception):
    """The PubSubHubbub hub rejected or did not answer a request."""


class DispatchError(Exception):
    """The downstream workflow dispatch failed."""


class SubscriptionError(Exception):
    """Base class for use-case errors; each maps to one HTTP status."""

    status_code = 500
    status = "error"

    def __init__(self, message: str, channel_id: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.channel_id = channel_id


class InvalidArgumentError(SubscriptionError):
    status_code = 400


class ConflictError(SubscriptionError):
    """Channel is already subscribed; carries the existing expiry."""

    status_code = 409
    status = "conflict"

    def __init__(self, message: str, channel_id: Optional[str] = None, expires_at: Optional[str] = None):
        super().__init__(message, channel_id)
        self.expires_at = expires_at


class NotFoundError(SubscriptionError):
    status_code = 404


class UpstreamError(SubscriptionError):
    status_code = 502


class StorageFailureError(SubscriptionError):
    status_code = 500


class InternalError(SubscriptionError):
    status_code = 500
