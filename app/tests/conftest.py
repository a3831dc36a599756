"""Shared fixtures for service and route tests."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from app.core.config import Settings
from app.core.dependencies import Dependencies
from app.services.storage import InMemoryStateStore
from app.tests.fakes import FakeHub, FakeTrigger


@pytest.fixture
def now() -> datetime:
    return datetime(2024, 7, 16, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def store() -> InMemoryStateStore:
    return InMemoryStateStore()


@pytest.fixture
def hub() -> FakeHub:
    return FakeHub()


@pytest.fixture
def trigger() -> FakeTrigger:
    return FakeTrigger()


@pytest.fixture
def settings() -> Settings:
    return Settings(
        subscription_bucket="test-bucket",
        function_url="https://hooks.example.com/",
        github_token="gh-token",
        repo_owner="octo",
        repo_name="pipeline",
        environment="test",
    )


@pytest.fixture
def deps(settings: Settings, store: InMemoryStateStore, hub: FakeHub, trigger: FakeTrigger) -> Dependencies:
    return Dependencies(settings=settings, store=store, hub=hub, trigger=trigger)
