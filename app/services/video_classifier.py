"""Heuristic that separates new uploads from metadata edits of older videos."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

from app.services.youtube_notifications import Entry, parse_rfc3339

logger = logging.getLogger(__name__)

NEW_VIDEO_WINDOW = timedelta(hours=1)
UPDATE_TOLERANCE = timedelta(minutes=15)


def is_new_video(entry: Entry, *, now: datetime | None = None) -> bool:
    """Return True only when the entry looks like a fresh upload.

    The hub re-delivers an entry every time its title or description changes,
    so only two signals are available: how recently ``published`` happened and
    how far ``updated`` trails it. Entries failing either check are rejected.
    """

    published = parse_rfc3339(entry.published)
    updated = parse_rfc3339(entry.updated)
    if published is None or updated is None:
        logger.debug("Rejecting entry with unparseable timestamps", extra={"video_id": entry.video_id})
        return False

    now = now or datetime.now(timezone.utc)
    age = now - published
    delta = updated - published

    if age > NEW_VIDEO_WINDOW:
        logger.debug("Rejecting old video", extra={"video_id": entry.video_id, "age_seconds": age.total_seconds()})
        return False

    if delta > UPDATE_TOLERANCE:
        logger.debug(
            "Rejecting metadata update",
            extra={"video_id": entry.video_id, "delta_seconds": delta.total_seconds()},
        )
        return False

    return True
