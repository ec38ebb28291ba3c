"""Incident reconciler tests."""

import asyncio
import random

import pytest

from safecampus.core.errors import TransientStoreError
from safecampus.services.change_feed import ChangeEvent, ChangeType
from safecampus.services.reconciler import IncidentReconciler


@pytest.fixture
def reconciler(store, feed, notifications):
    return IncidentReconciler(store, feed, notifications, recent_limit=20)


def _ids(incidents):
    return {i.id for i in incidents}


@pytest.mark.asyncio
async def test_snapshot_replaces_view_wholesale(reconciler, store):
    a = store.seed()
    b = store.seed()
    await reconciler.load_snapshot()
    assert _ids(reconciler.active_incidents) == {a.id, b.id}

    store.remove(a.id)
    c = store.seed()
    store.seed(status="resolved")
    await reconciler.load_snapshot()
    assert _ids(reconciler.active_incidents) == {b.id, c.id}


@pytest.mark.asyncio
async def test_view_converges_after_any_event_sequence(reconciler, store, feed):
    """Dropped, duplicated and reordered events still converge on the next snapshot."""
    rng = random.Random(42)
    await reconciler.subscribe()

    for step in range(60):
        action = rng.choice(["insert", "resolve", "delete", "noise"])
        active = sorted(store.active_ids())
        if action == "insert" or not active:
            store.seed(publish=rng.random() < 0.5)
        elif action == "resolve":
            store.set_status(rng.choice(active), "resolved", publish=rng.random() < 0.5)
        elif action == "delete":
            store.remove(rng.choice(active), publish=rng.random() < 0.5)
        else:
            # duplicate / stale event for an arbitrary id
            feed.publish(ChangeEvent(table="incidents", change_type=ChangeType.UPDATE, record_id=rng.randint(1, 99)))
        if step % 7 == 0:
            await asyncio.sleep(0)

    await reconciler.load_snapshot()
    assert _ids(reconciler.active_incidents) == store.active_ids()

    await reconciler.wait_idle()
    assert _ids(reconciler.active_incidents) == store.active_ids()
    await reconciler.close()


@pytest.mark.asyncio
async def test_change_event_triggers_refetch(reconciler, store):
    await reconciler.subscribe()
    fetches = store.fetch_count

    incident = store.seed(publish=True)
    await reconciler.wait_idle()

    assert store.fetch_count == fetches + 1
    assert incident.id in _ids(reconciler.active_incidents)
    await reconciler.close()


@pytest.mark.asyncio
async def test_resolved_incident_leaves_view(reconciler, store):
    incident = store.seed()
    await reconciler.subscribe()
    assert incident.id in _ids(reconciler.active_incidents)

    store.set_status(incident.id, "resolved", publish=True)
    await reconciler.wait_idle()
    assert reconciler.active_incidents == ()
    await reconciler.close()


@pytest.mark.asyncio
async def test_failed_snapshot_keeps_previous_view(reconciler, store, notifications):
    store.seed()
    store.seed()
    before = await reconciler.load_snapshot()

    store.seed()
    store.fail_fetch = TransientStoreError("timeout")
    after = await reconciler.load_snapshot()

    assert after == before
    assert reconciler.active_incidents == before
    messages = [e.message for e in notifications.pending()]
    assert messages == ["Could not refresh incidents: timeout"]

    store.fail_fetch = None
    await reconciler.load_snapshot()
    assert len(reconciler.active_incidents) == 3


@pytest.mark.asyncio
async def test_older_snapshot_finishing_late_is_discarded(reconciler, store):
    store.seed()
    store.hold_fetches = True

    first = asyncio.create_task(reconciler.load_snapshot())
    await asyncio.sleep(0)
    newer = store.seed()
    second = asyncio.create_task(reconciler.load_snapshot())
    await asyncio.sleep(0)
    assert len(store.parked_fetches) == 2

    store.parked_fetches[1].set()
    await second
    assert newer.id in _ids(reconciler.active_incidents)

    store.parked_fetches[0].set()
    await first
    assert newer.id in _ids(reconciler.active_incidents)
    assert len(reconciler.active_incidents) == 2


@pytest.mark.asyncio
async def test_recent_alerts_newest_first_and_truncated(store, feed, notifications):
    reconciler = IncidentReconciler(store, feed, notifications, recent_limit=3)
    seeded = [store.seed() for _ in range(5)]
    store.set_status(seeded[4].id, "resolved")
    await reconciler.load_snapshot()

    assert [i.id for i in reconciler.recent_alerts()] == [seeded[3].id, seeded[2].id, seeded[1].id]
    assert [i.id for i in reconciler.recent_alerts(limit=1)] == [seeded[3].id]
    assert len(reconciler.recent_alerts(limit=10)) == 4


@pytest.mark.asyncio
async def test_resubscribe_releases_previous_subscription(reconciler, feed, store):
    await reconciler.subscribe()
    await reconciler.subscribe()
    assert feed.subscriber_count == 1

    fetches = store.fetch_count
    store.seed(publish=True)
    await reconciler.wait_idle()
    assert store.fetch_count == fetches + 1  # one handler, one refetch

    await reconciler.close()
    assert feed.subscriber_count == 0
    assert not reconciler.subscribed


@pytest.mark.asyncio
async def test_reconnect_closes_the_gap(reconciler, feed, store):
    await reconciler.subscribe()
    feed.disconnect()

    missed = store.seed(publish=True)  # dropped by the disconnected feed
    await reconciler.wait_idle()
    assert missed.id not in _ids(reconciler.active_incidents)

    feed.reconnect()
    await reconciler.wait_idle()
    assert missed.id in _ids(reconciler.active_incidents)
    await reconciler.close()


@pytest.mark.asyncio
async def test_listeners_fire_only_when_view_changes(reconciler, store):
    seen = []
    reconciler.add_listener(seen.append)
    store.seed()

    await reconciler.load_snapshot()
    await reconciler.load_snapshot()
    assert len(seen) == 1

    store.seed()
    await reconciler.load_snapshot()
    assert len(seen) == 2
    assert len(seen[-1]) == 2
