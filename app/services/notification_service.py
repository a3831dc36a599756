"""Classify incoming WebSub notifications and trigger the downstream workflow."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Awaitable, Callable

from starlette.requests import ClientDisconnect

from app.services.errors import DownstreamError, ReadBodyError
from app.services.github_dispatch import TriggerPort
from app.services.video_classifier import is_new_video
from app.services.youtube_notifications import parse_notification

logger = logging.getLogger(__name__)

STATUS_SUCCESS = "success"


@dataclass(slots=True)
class NotificationResult:
    """Outcome of one notification; errors are raised instead."""

    status: str
    message: str
    video_id: str | None = None
    triggered: bool = False


class NotificationDispatcher:
    """Orchestrates parse, classify and (for new videos) repository dispatch."""

    def __init__(
        self,
        trigger: TriggerPort,
        *,
        repo_owner: str | None,
        repo_name: str | None,
    ) -> None:
        self.trigger = trigger
        self.repo_owner = repo_owner or ""
        self.repo_name = repo_name or ""

    def is_configured(self) -> bool:
        return self.trigger.is_configured() and bool(self.repo_owner) and bool(self.repo_name)

    async def process(
        self,
        read_body: Callable[[], Awaitable[bytes]],
        *,
        now: datetime | None = None,
    ) -> NotificationResult:
        try:
            payload = await read_body()
        except (ClientDisconnect, RuntimeError) as exc:
            raise ReadBodyError("Failed to read request body") from exc

        return await self.process_payload(payload, now=now)

    async def process_payload(self, payload: bytes, *, now: datetime | None = None) -> NotificationResult:
        entry = parse_notification(payload)
        if entry is None:
            logger.info("Empty WebSub notification")
            return NotificationResult(status=STATUS_SUCCESS, message="No video data")

        if not is_new_video(entry, now=now):
            logger.info("Ignoring video update", extra={"video_id": entry.video_id})
            return NotificationResult(
                status=STATUS_SUCCESS,
                message=f"Video update ignored (VideoID: {entry.video_id})",
                video_id=entry.video_id,
            )

        if not self.is_configured():
            logger.info("New video detected but dispatch not configured", extra={"video_id": entry.video_id})
            return NotificationResult(
                status=STATUS_SUCCESS,
                message=f"New video detected but GitHub not configured (VideoID: {entry.video_id})",
                video_id=entry.video_id,
            )

        try:
            await self.trigger.trigger_workflow(self.repo_owner, self.repo_name, entry)
        except DownstreamError as exc:
            logger.warning("Repository dispatch failed", extra={"video_id": entry.video_id, "error": exc.message})
            raise DownstreamError(f"Failed to trigger GitHub workflow: {exc.message}") from exc

        return NotificationResult(
            status=STATUS_SUCCESS,
            message=f"Successfully triggered workflow for new video: {entry.video_id}",
            video_id=entry.video_id,
            triggered=True,
        )
