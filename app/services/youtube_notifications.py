"""Helpers for parsing YouTube WebSub notifications."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from xml.etree import ElementTree as ET

from app.services.errors import InvalidEntryError, InvalidXMLError

logger = logging.getLogger(__name__)


ATOM_NS = "http://www.w3.org/2005/Atom"
YT_NS = "http://www.youtube.com/xml/schemas/2015"
TOMBSTONE_NS = "http://purl.org/atompub/tombstones/1.0"


@dataclass(slots=True)
class Entry:
    """A single video entry from a WebSub notification; never persisted."""

    video_id: str
    channel_id: str
    title: str
    published: str
    updated: str

    @property
    def video_url(self) -> str:
        return f"https://www.youtube.com/watch?v={self.video_id}"


def parse_rfc3339(value: str | None) -> datetime | None:
    """Parse an RFC3339 timestamp; returns ``None`` for empty or invalid input."""

    if not value:
        return None
    value = value.strip()
    if not value:
        return None
    if value.endswith(("Z", "z")):
        value = value[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        logger.debug("Failed to parse datetime", extra={"value": value})
        return None
    # RFC3339 requires an explicit offset
    if parsed.tzinfo is None:
        return None
    return parsed


def _local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def _child_text(element: ET.Element, name: str, namespace: str | None = None) -> str:
    for child in element:
        if namespace is not None:
            if child.tag != f"{{{namespace}}}{name}":
                continue
        elif _local_name(child.tag) != name:
            continue
        return (child.text or "").strip()
    return ""


def parse_notification(payload: bytes) -> Entry | None:
    """Parse a raw Atom XML payload into its first video entry.

    Returns ``None`` when the feed carries no entry (deletions and hub pings).
    """

    try:
        root = ET.fromstring(payload)
    except ET.ParseError as exc:
        raise InvalidXMLError("Invalid XML") from exc

    if _local_name(root.tag) != "feed":
        raise InvalidXMLError("Invalid XML")

    for deleted in root.findall(f"{{{TOMBSTONE_NS}}}deleted-entry"):
        logger.info(
            "Ignoring deleted-entry notification",
            extra={"ref": deleted.get("ref")},
        )

    entry_element = next((child for child in root if _local_name(child.tag) == "entry"), None)
    if entry_element is None:
        return None

    entry = Entry(
        video_id=_child_text(entry_element, "videoId", YT_NS),
        channel_id=_child_text(entry_element, "channelId", YT_NS),
        title=_child_text(entry_element, "title"),
        published=_child_text(entry_element, "published"),
        updated=_child_text(entry_element, "updated"),
    )
    if not entry.video_id:
        raise InvalidEntryError("Invalid entry: missing video ID")
    return entry
