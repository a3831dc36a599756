"""Batch renewal of hub subscriptions that are close to lease expiry."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from app.core.config import Settings
from app.schema.subscription import (
    DEFAULT_LEASE_SECONDS,
    STATUS_ACTIVE,
    RenewalResult,
    RenewalSummary,
    Subscription,
    format_rfc3339,
)
from app.services.errors import HubUnavailableError
from app.services.storage import StateStore
from app.services.websub import PubSubPort

logger = logging.getLogger(__name__)

HUB_RENEWED = "202 Accepted (Renewed)"


@dataclass(slots=True)
class RenewalPolicy:
    """Thresholds read once per renewal run."""

    threshold: timedelta = timedelta(hours=12)
    max_attempts: int = 3
    lease_seconds: int = DEFAULT_LEASE_SECONDS

    @classmethod
    def from_settings(cls, settings: Settings) -> "RenewalPolicy":
        return cls(
            threshold=timedelta(hours=settings.renewal_threshold_hours),
            max_attempts=settings.max_renewal_attempts,
            lease_seconds=settings.subscription_lease_seconds,
        )


def needs_renewal(subscription: Subscription, policy: RenewalPolicy, now: datetime) -> bool:
    return subscription.time_until_expiry(now) <= policy.threshold


def _apply_renewal_success(subscription: Subscription, policy: RenewalPolicy, *, now: datetime) -> None:
    subscription.expires_at = now + timedelta(seconds=policy.lease_seconds)
    subscription.last_renewal = now
    subscription.lease_seconds = policy.lease_seconds
    subscription.renewal_attempts = 0
    subscription.status = STATUS_ACTIVE
    subscription.hub_response = HUB_RENEWED


def _apply_renewal_failure(subscription: Subscription, *, now: datetime) -> None:
    subscription.renewal_attempts += 1
    subscription.status = subscription.current_status(now)


class RenewalEngine:
    """Scan the state document and re-subscribe channels nearing expiry.

    Per channel: fresh -> candidate -> renewed | attempt-exhausted. All
    mutations are committed with one save at the end of the scan; if that save
    fails the whole run fails.
    """

    def __init__(self, store: StateStore, hub: PubSubPort, policy: RenewalPolicy | None = None) -> None:
        self.store = store
        self.hub = hub
        self.policy = policy or RenewalPolicy()

    async def run(self, *, now: datetime | None = None) -> RenewalSummary:
        state = await self.store.load()
        now = now or datetime.now(timezone.utc)

        # the map key is the authoritative id; the embedded field is not re-validated
        candidates = [
            (channel_id, subscription)
            for channel_id, subscription in sorted(state.subscriptions.items())
            if needs_renewal(subscription, self.policy, now)
        ]
        results = list(
            await asyncio.gather(*(self._renew(channel_id, sub, now=now) for channel_id, sub in candidates))
        )

        if results:
            await self.store.save(state)

        succeeded = sum(1 for result in results if result.success)
        summary = RenewalSummary(
            status="success",
            total_checked=len(state.subscriptions),
            renewals_candidates=len(results),
            renewals_succeeded=succeeded,
            renewals_failed=len(results) - succeeded,
            results=results,
        )
        logger.info(
            "Renewal run finished",
            extra={
                "total_checked": summary.total_checked,
                "candidates": summary.renewals_candidates,
                "succeeded": summary.renewals_succeeded,
                "failed": summary.renewals_failed,
            },
        )
        return summary

    async def _renew(self, channel_id: str, subscription: Subscription, *, now: datetime) -> RenewalResult:
        max_attempts = self.policy.max_attempts

        if subscription.renewal_attempts >= max_attempts:
            logger.warning("Renewal attempts exhausted", extra={"channel_id": channel_id})
            subscription.status = subscription.current_status(now)
            return RenewalResult(
                channel_id=channel_id,
                success=False,
                message=f"Max renewal attempts ({max_attempts}) exceeded",
                attempt_count=subscription.renewal_attempts,
            )

        try:
            await self.hub.subscribe(channel_id)
        except HubUnavailableError as exc:
            _apply_renewal_failure(subscription, now=now)
            logger.warning(
                "Renewal failed",
                extra={"channel_id": channel_id, "attempts": subscription.renewal_attempts, "error": exc.message},
            )
            return RenewalResult(
                channel_id=channel_id,
                success=False,
                message=f"PubSubHubbub renewal failed: {exc.message}",
                attempt_count=subscription.renewal_attempts,
            )

        _apply_renewal_success(subscription, self.policy, now=now)
        logger.info("Renewed subscription", extra={"channel_id": channel_id})
        return RenewalResult(
            channel_id=channel_id,
            success=True,
            message="Successfully renewed subscription",
            new_expiry_time=format_rfc3339(subscription.expires_at),
            attempt_count=0,
        )

