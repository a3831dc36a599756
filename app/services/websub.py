"""Helpers to interact with YouTube's WebSub (PubSubHubbub) hub."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol
from urllib.parse import urlencode

import httpx

from app.schema.subscription import DEFAULT_LEASE_SECONDS
from app.services.errors import HubUnavailableError

logger = logging.getLogger(__name__)

YOUTUBE_HUB_URL = "https://pubsubhubbub.appspot.com/subscribe"
YOUTUBE_FEED_BASE = "https://www.youtube.com/feeds/videos.xml"


class PubSubPort(Protocol):
    """Subscribe/unsubscribe port; raises ``HubUnavailableError`` on failure."""

    callback_url: str

    def topic_url(self, channel_id: str) -> str: ...

    async def subscribe(self, channel_id: str) -> None: ...

    async def unsubscribe(self, channel_id: str) -> None: ...


@dataclass(slots=True)
class WebSubSubscription:
    """Represents a WebSub subscription request."""

    callback_url: str
    topic_url: str
    mode: str = "subscribe"
    verify: str = "async"
    lease_seconds: int | None = None

    def to_form(self) -> dict[str, str]:
        """Convert the subscription details into form payload."""

        payload: dict[str, str] = {
            "hub.callback": self.callback_url,
            "hub.mode": self.mode,
            "hub.topic": self.topic_url,
            "hub.verify": self.verify,
        }
        if self.lease_seconds is not None:
            payload["hub.lease_seconds"] = str(self.lease_seconds)
        return payload


def channel_feed_url(channel_id: str) -> str:
    """Return the hub topic URL for a channel id."""

    identifier = channel_id.strip()
    if not identifier:
        raise ValueError("channel_feed_url expects a channel id")
    return f"{YOUTUBE_FEED_BASE}?{urlencode({'channel_id': identifier})}"


class HubClient:
    """PubSubHubbub client posting form-encoded requests to the hub."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        callback_url: str,
        hub_url: str = YOUTUBE_HUB_URL,
        lease_seconds: int = DEFAULT_LEASE_SECONDS,
        timeout: float = 30.0,
    ) -> None:
        self._client = client
        self.callback_url = callback_url
        self.hub_url = hub_url
        self.lease_seconds = lease_seconds
        self.timeout = timeout

    def topic_url(self, channel_id: str) -> str:
        return channel_feed_url(channel_id)

    async def subscribe(self, channel_id: str) -> None:
        """Submit a WebSub subscribe request for the channel's feed."""

        await self._send(channel_id, "subscribe")

    async def unsubscribe(self, channel_id: str) -> None:
        """Cancel the channel's WebSub subscription."""

        await self._send(channel_id, "unsubscribe")

    async def _send(self, channel_id: str, mode: str) -> None:
        request = WebSubSubscription(
            callback_url=self.callback_url,
            topic_url=self.topic_url(channel_id),
            mode=mode,
            lease_seconds=self.lease_seconds,
        )
        logger.info("Sending WebSub %s for %s", mode, request.topic_url)
        try:
            response = await self._client.post(self.hub_url, data=request.to_form(), timeout=self.timeout)
        except httpx.HTTPError as exc:
            logger.warning("WebSub %s request failed for %s: %s", mode, channel_id, exc)
            raise HubUnavailableError(
                f"failed to make PubSubHubbub request: {exc}", channel_id=channel_id
            ) from exc

        if not response.is_success:
            logger.warning(
                "WebSub hub rejected request",
                extra={"mode": mode, "channel_id": channel_id, "status_code": response.status_code},
            )
            raise HubUnavailableError(
                f"PubSubHubbub hub returned status: {response.status_code}", channel_id=channel_id
            )
