"""Pydantic models for the persisted subscription state and subscription API."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from pydantic import BaseModel, ConfigDict, Field, field_validator

STATUS_ACTIVE = "active"
STATUS_EXPIRED = "expired"
STATE_FORMAT_VERSION = "1.0"
DEFAULT_LEASE_SECONDS = 86400


def format_rfc3339(value: datetime) -> str:
    """Render an aware datetime as RFC3339 with second precision."""

    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z")


def _ensure_aware(value: datetime | None) -> datetime | None:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class Subscription(BaseModel):
    """A single channel's hub subscription as stored in the state document."""

    channel_id: str
    topic_url: str = ""
    callback_url: str = ""
    status: str = STATUS_ACTIVE
    lease_seconds: int = DEFAULT_LEASE_SECONDS
    subscribed_at: datetime
    expires_at: datetime
    last_renewal: datetime | None = None
    renewal_attempts: int = 0
    hub_response: str = ""

    @field_validator("subscribed_at", "expires_at", "last_renewal", mode="after")
    @classmethod
    def _assume_utc(cls, value: datetime | None) -> datetime | None:
        return _ensure_aware(value)

    def time_until_expiry(self, now: datetime) -> timedelta:
        return self.expires_at - now

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at < now

    def current_status(self, now: datetime) -> str:
        return STATUS_EXPIRED if self.is_expired(now) else STATUS_ACTIVE

    def days_until_expiry(self, now: datetime) -> float:
        return self.time_until_expiry(now).total_seconds() / timedelta(days=1).total_seconds()


class StateMetadata(BaseModel):
    last_updated: datetime | None = None
    version: str = STATE_FORMAT_VERSION

    @field_validator("last_updated", mode="after")
    @classmethod
    def _assume_utc(cls, value: datetime | None) -> datetime | None:
        return _ensure_aware(value)


class SubscriptionState(BaseModel):
    """The single persisted document keyed by channel id."""

    subscriptions: dict[str, Subscription] = Field(default_factory=dict)
    metadata: StateMetadata = Field(default_factory=StateMetadata)

    @field_validator("subscriptions", mode="before")
    @classmethod
    def _null_as_empty(cls, value):
        return {} if value is None else value

    @field_validator("metadata", mode="before")
    @classmethod
    def _null_metadata(cls, value):
        return {} if value is None else value


class APIResponse(BaseModel):
    """Response body for subscribe calls and JSON error payloads."""

    status: str
    channel_id: str | None = None
    message: str | None = None
    expires_at: str | None = None


class SubscriptionInfo(BaseModel):
    channel_id: str
    status: str
    expires_at: str
    days_until_expiry: float


class SubscriptionListResponse(BaseModel):
    """Listing of all subscriptions with status computed at read time."""

    subscriptions: list[SubscriptionInfo]
    total: int
    active: int
    expired: int


class RenewalResult(BaseModel):
    """Outcome of one renewal candidate."""

    model_config = ConfigDict(populate_by_name=True)

    channel_id: str = Field(alias="channelID")
    success: bool
    message: str
    new_expiry_time: str | None = Field(default=None, alias="newExpiryTime")
    attempt_count: int = Field(alias="attemptCount")


class RenewalSummary(BaseModel):
    """Aggregate outcome of one renewal run."""

    model_config = ConfigDict(populate_by_name=True)

    status: str = "success"
    total_checked: int = Field(default=0, alias="totalChecked")
    renewals_candidates: int = Field(default=0, alias="renewalsCandidates")
    renewals_succeeded: int = Field(default=0, alias="renewalsSucceeded")
    renewals_failed: int = Field(default=0, alias="renewalsFailed")
    results: list[RenewalResult] = Field(default_factory=list)
