"""Business logic for creating, removing and listing hub subscriptions."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

from app.schema.subscription import (
    DEFAULT_LEASE_SECONDS,
    STATUS_ACTIVE,
    STATUS_EXPIRED,
    Subscription,
    SubscriptionInfo,
    SubscriptionListResponse,
    format_rfc3339,
)
from app.services.channel_resolver import require_channel_id, validate_channel_id
from app.services.errors import (
    AlreadySubscribedError,
    HubUnavailableError,
    PartialFailureError,
    StorageError,
    SubscriptionNotFoundError,
)
from app.services.storage import StateStore
from app.services.websub import PubSubPort

logger = logging.getLogger(__name__)

HUB_ACCEPTED = "202 Accepted"


class SubscriptionManager:
    """Owns create/remove/list on the state document.

    Each call is a single load-modify-save; concurrent calls for the same
    channel are last-write-wins.
    """

    def __init__(
        self,
        store: StateStore,
        hub: PubSubPort,
        *,
        lease_seconds: int = DEFAULT_LEASE_SECONDS,
    ) -> None:
        self.store = store
        self.hub = hub
        self.lease_seconds = lease_seconds

    async def create(self, raw_channel_id: str | None, *, now: datetime | None = None) -> Subscription:
        """Subscribe a channel at the hub and record it as active."""

        channel_id = validate_channel_id(raw_channel_id)
        state = await self.store.load()

        existing = state.subscriptions.get(channel_id)
        if existing is not None and not existing.is_expired(now or datetime.now(timezone.utc)):
            raise AlreadySubscribedError(
                "Already subscribed to this channel",
                channel_id=channel_id,
                expires_at=format_rfc3339(existing.expires_at),
            )

        try:
            await self.hub.subscribe(channel_id)
        except HubUnavailableError as exc:
            raise HubUnavailableError(
                f"PubSubHubbub subscription failed: {exc.message}", channel_id=channel_id
            ) from exc

        # the lease starts once the hub has accepted the request
        now = now or datetime.now(timezone.utc)
        subscription = Subscription(
            channel_id=channel_id,
            topic_url=self.hub.topic_url(channel_id),
            callback_url=self.hub.callback_url,
            status=STATUS_ACTIVE,
            lease_seconds=self.lease_seconds,
            subscribed_at=now,
            expires_at=now + timedelta(seconds=self.lease_seconds),
            last_renewal=now,
            renewal_attempts=0,
            hub_response=HUB_ACCEPTED,
        )
        state.subscriptions[channel_id] = subscription

        try:
            await self.store.save(state)
        except StorageError as exc:
            logger.error(
                "Hub subscription succeeded but state save failed",
                extra={"channel_id": channel_id, "error": exc.message},
            )
            raise PartialFailureError(
                f"Failed to save subscription state: {exc.message}", channel_id=channel_id
            ) from exc

        logger.info("Subscribed channel", extra={"channel_id": channel_id, "expires_at": subscription.expires_at.isoformat()})
        return subscription

    async def remove(self, raw_channel_id: str | None) -> None:
        """Unsubscribe at the hub, then drop the entry from the state document."""

        # stored ids are not re-validated, so legacy entries stay removable
        channel_id = require_channel_id(raw_channel_id)
        state = await self.store.load()

        if channel_id not in state.subscriptions:
            raise SubscriptionNotFoundError("Subscription not found for this channel", channel_id=channel_id)

        try:
            await self.hub.unsubscribe(channel_id)
        except HubUnavailableError as exc:
            raise HubUnavailableError(
                f"PubSubHubbub unsubscribe failed: {exc.message}", channel_id=channel_id
            ) from exc

        del state.subscriptions[channel_id]
        try:
            await self.store.save(state)
        except StorageError as exc:
            raise PartialFailureError(
                f"Failed to save subscription state: {exc.message}", channel_id=channel_id
            ) from exc

        logger.info("Unsubscribed channel", extra={"channel_id": channel_id})

    async def list_subscriptions(self, *, now: datetime | None = None) -> SubscriptionListResponse:
        """Summarise all subscriptions with status recomputed from expiry."""

        state = await self.store.load()
        now = now or datetime.now(timezone.utc)

        items: list[SubscriptionInfo] = []
        active = expired = 0
        for channel_id in sorted(state.subscriptions):
            subscription = state.subscriptions[channel_id]
            status = subscription.current_status(now)
            if status == STATUS_EXPIRED:
                expired += 1
            else:
                active += 1
            items.append(
                SubscriptionInfo(
                    channel_id=subscription.channel_id or channel_id,
                    status=status,
                    expires_at=format_rfc3339(subscription.expires_at),
                    days_until_expiry=subscription.days_until_expiry(now),
                )
            )

        return SubscriptionListResponse(
            subscriptions=items,
            total=len(items),
            active=active,
            expired=expired,
        )
