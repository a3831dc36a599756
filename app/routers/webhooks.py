"""YouTube WebSub webhook handlers."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Query, Request, Response, status
from fastapi.responses import PlainTextResponse

from app.core.dependencies import Dependencies, get_dependencies
from app.services.errors import WebhookServiceError

logger = logging.getLogger(__name__)

router = APIRouter(tags=["webhooks"])

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, DELETE, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}


@router.get("/", response_class=PlainTextResponse)
async def verify_webhook(
    hub_challenge: str | None = Query(None, alias="hub.challenge"),
    hub_mode: str | None = Query(None, alias="hub.mode"),
    hub_topic: str | None = Query(None, alias="hub.topic"),
    hub_lease_seconds: str | None = Query(None, alias="hub.lease_seconds"),
) -> PlainTextResponse:
    """Respond to WebSub hub verification challenge."""

    if not hub_challenge:
        logger.warning("WebSub verification without challenge")
        return PlainTextResponse(content="", status_code=status.HTTP_400_BAD_REQUEST)

    logger.info(
        "WebSub verification",
        extra={"mode": hub_mode, "topic": hub_topic, "lease_seconds": hub_lease_seconds},
    )
    return PlainTextResponse(content=hub_challenge, status_code=status.HTTP_200_OK)


@router.post("/", response_class=PlainTextResponse)
async def receive_webhook(
    request: Request,
    deps: Dependencies = Depends(get_dependencies),
) -> PlainTextResponse:
    """Receive WebSub notifications and trigger the workflow for new uploads."""

    dispatcher = deps.notification_dispatcher()
    try:
        result = await dispatcher.process(request.body)
    except WebhookServiceError as exc:
        logger.warning("WebSub notification rejected", extra={"error": exc.message, "status_code": exc.status_code})
        return PlainTextResponse(content=exc.message, status_code=exc.status_code)

    logger.info("Processed WebSub notification", extra={"video_id": result.video_id, "triggered": result.triggered})
    return PlainTextResponse(content=result.message, status_code=status.HTTP_200_OK)


@router.options("/{path:path}", include_in_schema=False)
async def preflight(path: str) -> Response:
    return Response(status_code=status.HTTP_200_OK, headers=CORS_HEADERS)
