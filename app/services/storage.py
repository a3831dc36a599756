"""Persistence of the subscription state document in an object storage bucket."""

from __future__ import annotations

import asyncio
import io
import logging
import threading
import time
from datetime import datetime, timezone
from typing import Callable, Protocol

from minio import Minio
from minio.error import MinioException, S3Error
from pydantic import ValidationError
from urllib3.exceptions import HTTPError as TransportError

from app.schema.subscription import STATE_FORMAT_VERSION, StateMetadata, SubscriptionState
from app.services.errors import StorageError

logger = logging.getLogger(__name__)

DEFAULT_STATE_PATH = "subscriptions/state.json"
DEFAULT_CACHE_TTL_SECONDS = 300
_MISSING_OBJECT_CODES = {"NoSuchKey", "NoSuchObject"}


class StateStore(Protocol):
    """Load/save port for the subscription state document.

    Every ``load`` returns an independent copy; mutating it never affects other
    callers until it is passed back to ``save``.
    """

    async def load(self) -> SubscriptionState: ...

    async def save(self, state: SubscriptionState) -> None: ...

    async def close(self) -> None: ...


def empty_state(now: datetime | None = None) -> SubscriptionState:
    """Return the state used when no document has been written yet."""

    return SubscriptionState(
        metadata=StateMetadata(
            last_updated=now or datetime.now(timezone.utc),
            version=STATE_FORMAT_VERSION,
        )
    )


def stamp_metadata(state: SubscriptionState, now: datetime | None = None) -> None:
    """Set ``last_updated`` and normalise an empty format version before a write."""

    state.metadata.last_updated = now or datetime.now(timezone.utc)
    if not state.metadata.version:
        state.metadata.version = STATE_FORMAT_VERSION


class SnapshotCache:
    """Single-entry TTL cache that only ever hands out deep copies."""

    def __init__(self, ttl_seconds: float, *, clock: Callable[[], float] = time.monotonic) -> None:
        self._ttl = ttl_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._state: SubscriptionState | None = None
        self._stored_at = 0.0
        self._generation = 0

    @property
    def generation(self) -> int:
        """Counter bumped by every write; reads compare it before populating."""

        with self._lock:
            return self._generation

    def get(self) -> SubscriptionState | None:
        with self._lock:
            if self._state is None or self._ttl <= 0:
                return None
            if self._clock() - self._stored_at >= self._ttl:
                self._state = None
                return None
            return self._state.model_copy(deep=True)

    def put(self, state: SubscriptionState) -> None:
        """Store the state just written."""

        snapshot = state.model_copy(deep=True)
        with self._lock:
            self._state = snapshot
            self._stored_at = self._clock()
            self._generation += 1

    def populate(self, state: SubscriptionState, generation: int) -> bool:
        """Store a read result unless a write landed after ``generation`` was taken."""

        snapshot = state.model_copy(deep=True)
        with self._lock:
            if generation != self._generation:
                return False
            self._state = snapshot
            self._stored_at = self._clock()
            return True

    def clear(self) -> None:
        with self._lock:
            self._generation += 1
            self._state = None
            self._stored_at = 0.0


class ObjectStorageStateStore:
    """State store backed by one JSON object in an S3-compatible bucket."""

    def __init__(
        self,
        *,
        bucket: str | None,
        object_path: str = DEFAULT_STATE_PATH,
        client: Minio | None = None,
        endpoint: str = "storage.googleapis.com",
        access_key: str | None = None,
        secret_key: str | None = None,
        secure: bool = True,
        cache_ttl_seconds: float = DEFAULT_CACHE_TTL_SECONDS,
    ) -> None:
        self.bucket = bucket
        self.object_path = object_path
        self._client = client
        self._endpoint = endpoint
        self._access_key = access_key
        self._secret_key = secret_key
        self._secure = secure
        self._client_lock = threading.Lock()
        self.cache = SnapshotCache(cache_ttl_seconds)

    def _get_client(self) -> Minio:
        if not self.bucket:
            raise StorageError("SUBSCRIPTION_BUCKET environment variable not set")
        with self._client_lock:
            if self._client is None:
                self._client = Minio(
                    self._endpoint,
                    access_key=self._access_key,
                    secret_key=self._secret_key,
                    secure=self._secure,
                )
                logger.info(
                    "Object storage client initialised",
                    extra={"endpoint": self._endpoint, "bucket": self.bucket},
                )
            return self._client

    async def load(self) -> SubscriptionState:
        cached = self.cache.get()
        if cached is not None:
            return cached

        generation = self.cache.generation
        state = await asyncio.to_thread(self._read_state)
        if not self.cache.populate(state, generation):
            logger.debug("Discarding state read that raced a write", extra={"object": self.object_path})
        return state.model_copy(deep=True)

    async def save(self, state: SubscriptionState) -> None:
        stamp_metadata(state)
        payload = state.model_dump_json(indent=2).encode("utf-8")
        await asyncio.to_thread(self._write_state, payload)
        self.cache.put(state)

    async def close(self) -> None:
        self.cache.clear()
        with self._client_lock:
            self._client = None

    def _read_state(self) -> SubscriptionState:
        client = self._get_client()
        try:
            response = client.get_object(self.bucket, self.object_path)
            try:
                data = response.read()
            finally:
                response.close()
                response.release_conn()
        except S3Error as exc:
            if exc.code in _MISSING_OBJECT_CODES:
                logger.info(
                    "State document missing; starting empty",
                    extra={"bucket": self.bucket, "object": self.object_path},
                )
                return empty_state()
            logger.exception("Failed to read state document")
            raise StorageError(f"Failed to load subscription state: {exc}") from exc
        except (MinioException, TransportError) as exc:
            logger.exception("Failed to read state document")
            raise StorageError(f"Failed to load subscription state: {exc}") from exc

        try:
            return SubscriptionState.model_validate_json(data)
        except ValidationError as exc:
            raise StorageError(f"Failed to load subscription state: invalid document ({exc.error_count()} errors)") from exc

    def _write_state(self, payload: bytes) -> None:
        client = self._get_client()
        try:
            client.put_object(
                self.bucket,
                self.object_path,
                io.BytesIO(payload),
                length=len(payload),
                content_type="application/json",
            )
        except (MinioException, TransportError) as exc:
            logger.exception("Failed to write state document")
            raise StorageError(f"Failed to save subscription state: {exc}") from exc


class InMemoryStateStore:
    """Process-local state store used by tests and local runs."""

    def __init__(self, state: SubscriptionState | None = None) -> None:
        self._state = (state or empty_state()).model_copy(deep=True)
        self.load_calls = 0
        self.save_calls = 0
        self.fail_load: Exception | None = None
        self.fail_save: Exception | None = None

    @property
    def snapshot(self) -> SubscriptionState:
        return self._state.model_copy(deep=True)

    async def load(self) -> SubscriptionState:
        self.load_calls += 1
        if self.fail_load is not None:
            raise self.fail_load
        return self._state.model_copy(deep=True)

    async def save(self, state: SubscriptionState) -> None:
        self.save_calls += 1
        if self.fail_save is not None:
            raise self.fail_save
        stamp_metadata(state)
        self._state = state.model_copy(deep=True)

    async def close(self) -> None:
        return None
