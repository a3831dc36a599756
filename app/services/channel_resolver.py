"""Validation of canonical YouTube channel identifiers."""

from __future__ import annotations

import re

from app.services.errors import InvalidChannelIDError, MissingParameterError

CHANNEL_ID_REGEX = re.compile(r"^UC[0-9A-Za-z_-]{22}$")


def is_valid_channel_id(value: str | None) -> bool:
    return bool(value) and CHANNEL_ID_REGEX.match(value) is not None


def require_channel_id(raw: str | None) -> str:
    """Return the trimmed identifier or raise when the parameter is missing."""

    channel_id = (raw or "").strip()
    if not channel_id:
        raise MissingParameterError("channel_id parameter is required")
    return channel_id


def validate_channel_id(raw: str | None) -> str:
    """Return a canonical ``UC`` + 22 character channel id or raise.

    Raises:
      * ``MissingParameterError`` when the value is empty
      * ``InvalidChannelIDError`` when it does not match the canonical format

    """

    channel_id = require_channel_id(raw)
    if not CHANNEL_ID_REGEX.match(channel_id):
        raise InvalidChannelIDError(
            "Invalid channel ID format. Must be UC followed by 22 alphanumeric characters",
            channel_id=channel_id,
        )
    return channel_id
