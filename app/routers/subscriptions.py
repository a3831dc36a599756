"""Subscription management endpoints."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Query, Response, status

from app.core.dependencies import Dependencies, get_dependencies
from app.schema.subscription import (
    APIResponse,
    RenewalSummary,
    SubscriptionListResponse,
    format_rfc3339,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["subscriptions"])


@router.post(
    "/subscribe",
    response_model=APIResponse,
    response_model_exclude_none=True,
    status_code=status.HTTP_200_OK,
)
async def subscribe_channel(
    channel_id: str | None = Query(None),
    deps: Dependencies = Depends(get_dependencies),
) -> APIResponse:
    """Subscribe to a channel's upload feed at the hub."""

    subscription = await deps.subscription_manager().create(channel_id)
    return APIResponse(
        status="success",
        channel_id=subscription.channel_id,
        message="Subscription initiated",
        expires_at=format_rfc3339(subscription.expires_at),
    )


@router.delete("/unsubscribe", status_code=status.HTTP_204_NO_CONTENT)
async def unsubscribe_channel(
    channel_id: str | None = Query(None),
    deps: Dependencies = Depends(get_dependencies),
) -> Response:
    await deps.subscription_manager().remove(channel_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/subscriptions", response_model=SubscriptionListResponse)
async def list_subscriptions(deps: Dependencies = Depends(get_dependencies)) -> SubscriptionListResponse:
    return await deps.subscription_manager().list_subscriptions()


@router.post("/renew", response_model=RenewalSummary)
async def renew_subscriptions(deps: Dependencies = Depends(get_dependencies)) -> RenewalSummary:
    """Renew subscriptions expiring within the configured threshold."""

    summary = await deps.renewal_engine().run()
    if summary.renewals_failed:
        logger.warning("Some renewals failed", extra={"failed": summary.renewals_failed})
    return summary
