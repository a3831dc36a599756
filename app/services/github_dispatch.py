"""Repository dispatch client used to start the downstream GitHub workflow."""

from __future__ import annotations

import logging
from typing import Any, Protocol

import httpx

from app.services.errors import DownstreamError
from app.services.youtube_notifications import Entry

logger = logging.getLogger(__name__)

GITHUB_API_BASE = "https://api.github.com"
DISPATCH_EVENT_TYPE = "youtube-video-published"


class TriggerPort(Protocol):
    def is_configured(self) -> bool: ...

    async def trigger_workflow(self, owner: str, repo: str, entry: Entry) -> None: ...


def build_dispatch_payload(entry: Entry, environment: str) -> dict[str, Any]:
    return {
        "event_type": DISPATCH_EVENT_TYPE,
        "client_payload": {
            "video_id": entry.video_id,
            "channel_id": entry.channel_id,
            "title": entry.title,
            "published": entry.published,
            "updated": entry.updated,
            "video_url": entry.video_url,
            "environment": environment,
        },
    }


class GitHubDispatchClient:
    """Send ``repository_dispatch`` events for newly published videos."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        token: str | None,
        base_url: str = GITHUB_API_BASE,
        environment: str = "",
        timeout: float = 30.0,
    ) -> None:
        self._client = client
        self._token = token
        self.base_url = base_url.rstrip("/")
        self.environment = environment
        self.timeout = timeout

    def is_configured(self) -> bool:
        return bool(self._token)

    async def trigger_workflow(self, owner: str, repo: str, entry: Entry) -> None:
        if not self._token or not owner or not repo:
            raise DownstreamError("missing required parameters for GitHub workflow trigger")

        url = f"{self.base_url}/repos/{owner}/{repo}/dispatches"
        headers = {
            "Authorization": f"Bearer {self._token}",
            "Accept": "application/vnd.github.v3+json",
        }
        payload = build_dispatch_payload(entry, self.environment)

        try:
            response = await self._client.post(url, json=payload, headers=headers, timeout=self.timeout)
        except httpx.HTTPError as exc:
            raise DownstreamError(f"failed to send request: {exc}") from exc

        if not response.is_success:
            raise DownstreamError(f"GitHub API returned status {response.status_code}")

        logger.info(
            "Triggered repository dispatch",
            extra={"video_id": entry.video_id, "repository": f"{owner}/{repo}"},
        )
