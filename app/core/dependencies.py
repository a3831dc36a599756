"""Per-process container of the storage, hub and dispatch ports."""

from __future__ import annotations

from dataclasses import dataclass

import httpx
from fastapi import Request

from app.core.config import Settings
from app.services.github_dispatch import GitHubDispatchClient, TriggerPort
from app.services.notification_service import NotificationDispatcher
from app.services.renewal import RenewalEngine, RenewalPolicy
from app.services.storage import ObjectStorageStateStore, StateStore
from app.services.subscription_service import SubscriptionManager
from app.services.websub import HubClient, PubSubPort


@dataclass(slots=True)
class Dependencies:
    """Handles passed to every request handler instead of module globals."""

    settings: Settings
    store: StateStore
    hub: PubSubPort
    trigger: TriggerPort
    http_client: httpx.AsyncClient | None = None

    def subscription_manager(self) -> SubscriptionManager:
        return SubscriptionManager(
            self.store,
            self.hub,
            lease_seconds=self.settings.subscription_lease_seconds,
        )

    def renewal_engine(self) -> RenewalEngine:
        return RenewalEngine(self.store, self.hub, RenewalPolicy.from_settings(self.settings))

    def notification_dispatcher(self) -> NotificationDispatcher:
        return NotificationDispatcher(
            self.trigger,
            repo_owner=self.settings.repo_owner,
            repo_name=self.settings.repo_name,
        )

    async def aclose(self) -> None:
        await self.store.close()
        if self.http_client is not None:
            await self.http_client.aclose()


def build_dependencies(settings: Settings) -> Dependencies:
    """Create the production adapters for the given settings."""

    http_client = httpx.AsyncClient(timeout=settings.http_timeout_seconds)
    store = ObjectStorageStateStore(
        bucket=settings.subscription_bucket,
        object_path=settings.subscription_state_path,
        endpoint=settings.storage_endpoint,
        access_key=settings.storage_access_key,
        secret_key=settings.storage_secret_key,
        secure=settings.storage_secure,
        cache_ttl_seconds=settings.storage_cache_ttl_seconds,
    )
    hub = HubClient(
        http_client,
        callback_url=settings.function_url,
        hub_url=settings.pubsub_hub_url,
        lease_seconds=settings.subscription_lease_seconds,
        timeout=settings.http_timeout_seconds,
    )
    trigger = GitHubDispatchClient(
        http_client,
        token=settings.github_token,
        base_url=settings.github_api_base_url,
        environment=settings.environment,
        timeout=settings.http_timeout_seconds,
    )
    return Dependencies(settings=settings, store=store, hub=hub, trigger=trigger, http_client=http_client)


def get_dependencies(request: Request) -> Dependencies:
    """FastAPI dependency returning the container built at startup."""

    return request.app.state.dependencies
