"""Error taxonomy shared by the subscription, renewal and notification services."""

from __future__ import annotations

from typing import Any


class WebhookServiceError(Exception):
    """Base class for errors surfaced to HTTP callers."""

    status_code: int = 500
    response_status: str = "error"

    def __init__(self, message: str, *, channel_id: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.channel_id = channel_id or None

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"status": self.response_status, "message": self.message}
        if self.channel_id:
            payload["channel_id"] = self.channel_id
        return payload


class InvalidInputError(WebhookServiceError):
    """Raised for malformed client input; never retried."""

    status_code = 400


class MissingParameterError(InvalidInputError):
    """Raised when a required query parameter is absent."""


class InvalidChannelIDError(InvalidInputError):
    """Raised when a channel id does not match the canonical UC format."""


class ReadBodyError(InvalidInputError):
    """Raised when the notification body cannot be read."""


class InvalidXMLError(InvalidInputError):
    """Raised when a WebSub payload is not a parseable Atom feed."""


class InvalidEntryError(InvalidInputError):
    """Raised when a feed entry is present but unusable."""


class AlreadySubscribedError(WebhookServiceError):
    """Raised when an active subscription already exists for a channel."""

    status_code = 409
    response_status = "conflict"

    def __init__(self, message: str, *, channel_id: str, expires_at: str) -> None:
        super().__init__(message, channel_id=channel_id)
        self.expires_at = expires_at

    def to_payload(self) -> dict[str, Any]:
        payload = super().to_payload()
        payload["expires_at"] = self.expires_at
        return payload


class SubscriptionNotFoundError(WebhookServiceError):
    """Raised when removing a channel that has no subscription."""

    status_code = 404


class UpstreamUnavailableError(WebhookServiceError):
    """Raised when an outbound call (hub or downstream trigger) fails."""

    status_code = 502


class HubUnavailableError(UpstreamUnavailableError):
    """Raised when the PubSubHubbub hub rejects or does not answer a request."""


class DownstreamError(UpstreamUnavailableError):
    """Raised when the repository dispatch call fails."""

    status_code = 500


class StorageError(WebhookServiceError):
    """Raised when the subscription state document cannot be loaded or saved."""

    status_code = 500


class PartialFailureError(StorageError):
    """Raised when the hub call succeeded but the state save did not.

    Hub and stored state disagree until the operation is re-run (hub calls are
    idempotent) or the document is edited by hand.
    """
