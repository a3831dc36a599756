"""Tests for the renewal engine."""

from __future__ import annotations

from datetime import datetime, timedelta

import pytest

from app.core.config import Settings
from app.services.errors import StorageError
from app.services.renewal import RenewalEngine, RenewalPolicy, needs_renewal
from app.services.storage import InMemoryStateStore
from app.tests.fakes import CHANNEL_A, CHANNEL_B, CHANNEL_C, CHANNEL_D, FakeHub, make_state, make_subscription

POLICY = RenewalPolicy(threshold=timedelta(hours=12), max_attempts=3, lease_seconds=86400)


def _engine(store: InMemoryStateStore, hub: FakeHub) -> RenewalEngine:
    return RenewalEngine(store, hub, POLICY)


def test_policy_from_settings():
    policy = RenewalPolicy.from_settings(
        Settings(renewal_threshold_hours=6, max_renewal_attempts=5, subscription_lease_seconds=3600)
    )

    assert policy == RenewalPolicy(threshold=timedelta(hours=6), max_attempts=5, lease_seconds=3600)


def test_needs_renewal_at_threshold_boundary(now: datetime):
    assert needs_renewal(make_subscription(CHANNEL_A, now=now, expires_in=timedelta(hours=12)), POLICY, now)
    assert not needs_renewal(
        make_subscription(CHANNEL_A, now=now, expires_in=timedelta(hours=12, seconds=1)), POLICY, now
    )
    assert needs_renewal(make_subscription(CHANNEL_A, now=now, expires_in=-timedelta(days=2)), POLICY, now)


@pytest.mark.asyncio
async def test_mixed_state_summary(hub: FakeHub, now: datetime):
    store = InMemoryStateStore(
        make_state(
            make_subscription(CHANNEL_A, now=now, expires_in=timedelta(hours=2)),
            make_subscription(CHANNEL_B, now=now, expires_in=timedelta(hours=20)),
            make_subscription(CHANNEL_C, now=now, expires_in=timedelta(hours=1), attempts=3),
            make_subscription(CHANNEL_D, now=now, expires_in=timedelta(hours=3), attempts=1),
        )
    )

    summary = await _engine(store, hub).run(now=now)

    assert summary.status == "success"
    assert summary.total_checked == 4
    assert summary.renewals_candidates == 3
    assert summary.renewals_succeeded == 2
    assert summary.renewals_failed == 1
    assert sorted(hub.channels("subscribe")) == sorted([CHANNEL_A, CHANNEL_D])

    results = {result.channel_id: result for result in summary.results}
    assert CHANNEL_B not in results
    assert "Max renewal attempts" in results[CHANNEL_C].message
    assert results[CHANNEL_C].attempt_count == 3
    assert results[CHANNEL_A].new_expiry_time == "2024-07-17T12:00:00Z"

    saved = store.snapshot.subscriptions
    assert saved[CHANNEL_A].expires_at == now + timedelta(days=1)
    assert saved[CHANNEL_A].last_renewal == now
    assert saved[CHANNEL_A].hub_response == "202 Accepted (Renewed)"
    assert saved[CHANNEL_D].renewal_attempts == 0
    assert saved[CHANNEL_B].expires_at == now + timedelta(hours=20)
    assert store.save_calls == 1


@pytest.mark.asyncio
async def test_summary_serialises_with_camel_case_keys(hub: FakeHub, now: datetime):
    store = InMemoryStateStore(make_state(make_subscription(CHANNEL_A, now=now, expires_in=timedelta(hours=1))))

    summary = await _engine(store, hub).run(now=now)
    payload = summary.model_dump(by_alias=True)

    assert set(payload) == {
        "status",
        "totalChecked",
        "renewalsCandidates",
        "renewalsSucceeded",
        "renewalsFailed",
        "results",
    }
    assert set(payload["results"][0]) == {"channelID", "success", "message", "newExpiryTime", "attemptCount"}


@pytest.mark.asyncio
async def test_exhausted_subscription_never_reaches_hub(hub: FakeHub, now: datetime):
    store = InMemoryStateStore(
        make_state(make_subscription(CHANNEL_A, now=now, expires_in=timedelta(hours=1), attempts=3))
    )

    summary = await _engine(store, hub).run(now=now)

    assert hub.calls == []
    assert summary.renewals_failed == 1
    assert summary.results[0].message == "Max renewal attempts (3) exceeded"
    assert store.snapshot.subscriptions[CHANNEL_A].renewal_attempts == 3


@pytest.mark.asyncio
async def test_hub_failure_increments_attempts(hub: FakeHub, now: datetime):
    store = InMemoryStateStore(
        make_state(make_subscription(CHANNEL_A, now=now, expires_in=timedelta(hours=1), attempts=1))
    )
    hub.failing.add(CHANNEL_A)

    summary = await _engine(store, hub).run(now=now)

    result = summary.results[0]
    assert not result.success
    assert result.message.startswith("PubSubHubbub renewal failed:")
    assert result.attempt_count == 2
    saved = store.snapshot.subscriptions[CHANNEL_A]
    assert saved.renewal_attempts == 2
    assert saved.expires_at == now + timedelta(hours=1)


@pytest.mark.asyncio
async def test_failure_on_expired_subscription_marks_it_expired(hub: FakeHub, now: datetime):
    store = InMemoryStateStore(
        make_state(make_subscription(CHANNEL_A, now=now, expires_in=-timedelta(hours=1)))
    )
    hub.fail_all = True

    await _engine(store, hub).run(now=now)

    assert store.snapshot.subscriptions[CHANNEL_A].status == "expired"


@pytest.mark.asyncio
async def test_attempts_stop_after_repeated_failures(hub: FakeHub, now: datetime):
    store = InMemoryStateStore(make_state(make_subscription(CHANNEL_A, now=now, expires_in=timedelta(hours=1))))
    hub.fail_all = True
    engine = _engine(store, hub)

    for _ in range(5):
        await engine.run(now=now)

    assert len(hub.calls) == 3
    assert store.snapshot.subscriptions[CHANNEL_A].renewal_attempts == 3


@pytest.mark.asyncio
async def test_second_run_has_no_candidates(hub: FakeHub, now: datetime):
    store = InMemoryStateStore(make_state(make_subscription(CHANNEL_A, now=now, expires_in=timedelta(hours=1))))
    engine = _engine(store, hub)

    await engine.run(now=now)
    summary = await engine.run(now=now)

    assert summary.total_checked == 1
    assert summary.renewals_candidates == 0
    assert summary.results == []
    assert store.save_calls == 1


@pytest.mark.asyncio
async def test_empty_state_does_not_save(store: InMemoryStateStore, hub: FakeHub):
    summary = await _engine(store, hub).run()

    assert summary.total_checked == 0
    assert store.save_calls == 0


@pytest.mark.asyncio
async def test_load_failure_propagates(store: InMemoryStateStore, hub: FakeHub):
    store.fail_load = StorageError("Failed to load subscription state: denied")

    with pytest.raises(StorageError):
        await _engine(store, hub).run()
    assert hub.calls == []


@pytest.mark.asyncio
async def test_save_failure_fails_the_run(hub: FakeHub, now: datetime):
    store = InMemoryStateStore(make_state(make_subscription(CHANNEL_A, now=now, expires_in=timedelta(hours=1))))
    store.fail_save = StorageError("Failed to save subscription state: denied")

    with pytest.raises(StorageError):
        await _engine(store, hub).run(now=now)


@pytest.mark.asyncio
async def test_renewal_uses_state_key_over_embedded_id(hub: FakeHub, now: datetime):
    subscription = make_subscription(CHANNEL_A, now=now, expires_in=timedelta(hours=1))
    subscription.channel_id = ""
    store = InMemoryStateStore(make_state())
    state = store.snapshot
    state.subscriptions[CHANNEL_A] = subscription
    await store.save(state)

    summary = await _engine(store, hub).run(now=now)

    assert hub.channels("subscribe") == [CHANNEL_A]
    assert summary.results[0].channel_id == CHANNEL_A
    assert summary.results[0].success
