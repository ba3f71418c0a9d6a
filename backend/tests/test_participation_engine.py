# tests/test_participation_engine.py
# Join / leave : préconditions, re-join, invariant du compteur et courses concurrentes.
import asyncio
import datetime as dt

import pytest

from ecotrack.core.utils import utcnow
from ecotrack.services.participation.engine import ParticipationEngine
from ecotrack.services.participation.kinds import CHALLENGES, EVENTS
from ecotrack.services.participation.lifecycle import ResourceLifecycle
from ecotrack.services.participation.outcomes import FailureKind
from ecotrack.services.participation.store import ResourceStore

CREATOR = "creator-1"


class InterleavingStore(ResourceStore):
    """Rend la main à la boucle après chaque lecture : toutes les requêtes concurrentes
    lisent le même état avant d’écrire (pire cas read-then-write)."""

    async def load(self, resource_id):
        doc = await super().load(resource_id)
        await asyncio.sleep(0)
        return doc


class ClosingStore(ResourceStore):
    """La date de clôture passe juste après la première lecture (avant l’écriture)."""

    closed = False

    async def load(self, resource_id):
        doc = await super().load(resource_id)
        if not self.closed:
            self.closed = True
            past = (utcnow() - dt.timedelta(minutes=1)).replace(tzinfo=None)
            await self.collection.update_one({"_id": resource_id}, {"$set": {self.kind.closes_field: past}})
        return doc


def assert_count_consistent(doc_or_resource):
    if isinstance(doc_or_resource, dict):
        participants = doc_or_resource.get("participants", [])
        count = doc_or_resource["active_participant_count"]
        active = [p for p in participants if p["status"] == "active"]
        user_ids = [p["user_id"] for p in participants]
    else:
        participants = doc_or_resource.participants
        count = doc_or_resource.active_participant_count
        active = [p for p in participants if p.status == "active"]
        user_ids = [p.user_id for p in participants]
    assert count == len(active)
    assert len(user_ids) == len(set(user_ids)), "one participation entry per user"
    return count


async def _create(service, data):
    outcome = await service.lifecycle.create(data, CREATOR)
    assert outcome.ok, outcome.message
    return outcome.value


# --- Préconditions ---
async def test_join_success_returns_participation(events, event_data):
    ev = await _create(events, event_data())

    outcome = await events.engine.join(ev.id, "alice")

    assert outcome.ok
    assert outcome.value.participation.user_id == "alice"
    assert outcome.value.participation.status == "active"
    assert outcome.value.resource.active_participant_count == 1
    assert outcome.value.resource.spots_remaining == 2
    assert_count_consistent(outcome.value.resource)


async def test_join_unknown_or_malformed_id(events):
    assert (await events.engine.join("not-an-object-id", "alice")).failure is FailureKind.NOT_FOUND
    assert (await events.engine.join("507f1f77bcf86cd799439011", "alice")).failure is FailureKind.NOT_FOUND


async def test_creator_cannot_join_own_resource(events, event_data):
    ev = await _create(events, event_data())

    outcome = await events.engine.join(ev.id, CREATOR)

    assert outcome.failure is FailureKind.CREATOR_CANNOT_JOIN
    doc = await events.store.load(ev.id)
    assert doc["active_participant_count"] == 0
    assert doc["participants"] == []


async def test_join_twice_is_rejected(challenges, challenge_data):
    ch = await _create(challenges, challenge_data())
    assert (await challenges.engine.join(ch.id, "alice")).ok

    outcome = await challenges.engine.join(ch.id, "alice")

    assert outcome.failure is FailureKind.ALREADY_JOINED
    assert assert_count_consistent(await challenges.store.load(ch.id)) == 1


async def test_join_full_resource(events, event_data):
    ev = await _create(events, event_data(max_participants=2))
    assert (await events.engine.join(ev.id, "alice")).ok
    assert (await events.engine.join(ev.id, "bob")).ok

    outcome = await events.engine.join(ev.id, "carol")

    assert outcome.failure is FailureKind.FULL
    assert assert_count_consistent(await events.store.load(ev.id)) == 2


async def test_join_cancelled_resource(challenges, challenge_data):
    ch = await _create(challenges, challenge_data())
    assert (await challenges.lifecycle.update(ch.id, {"status": "cancelled"}, CREATOR)).ok

    outcome = await challenges.engine.join(ch.id, "alice")

    assert outcome.failure is FailureKind.NOT_ACTIVE


async def test_join_after_closing_date_is_not_active(db, events, event_data):
    ev = await _create(events, event_data())
    await db["events"].update_one(
        {"_id": ev.id}, {"$set": {"date": (utcnow() - dt.timedelta(days=1)).replace(tzinfo=None)}}
    )

    outcome = await events.engine.join(ev.id, "alice")

    assert outcome.failure is FailureKind.NOT_ACTIVE


async def test_join_racing_the_closing_date_is_not_active(db, events, event_data):
    ev = await _create(events, event_data())
    engine = ParticipationEngine(ClosingStore(db, EVENTS))

    outcome = await engine.join(ev.id, "alice")

    assert outcome.failure is FailureKind.NOT_ACTIVE
    doc = await events.store.load(ev.id)
    assert doc["participants"] == []
    assert doc["active_participant_count"] == 0


async def test_unbounded_challenge_accepts_many(challenges, challenge_data):
    ch = await _create(challenges, challenge_data(capacity=None))

    for i in range(25):
        assert (await challenges.engine.join(ch.id, f"user-{i}")).ok

    doc = await challenges.store.load(ch.id)
    assert assert_count_consistent(doc) == 25
    resource = CHALLENGES.parse(doc)
    assert resource.spots_remaining is None
    assert resource.progress_percentage is None


# --- Leave / re-join ---
async def test_leave_then_rejoin_reuses_entry(events, event_data):
    ev = await _create(events, event_data())
    first = (await events.engine.join(ev.id, "alice")).value.participation

    left = await events.engine.leave(ev.id, "alice")
    assert left.ok
    assert left.value.active_participant_count == 0
    entry = left.value.participation_of("alice")
    assert entry.status == "left" and entry.left_at is not None

    rejoined = await events.engine.join(ev.id, "alice")
    assert rejoined.ok
    assert rejoined.value.participation.status == "active"
    assert rejoined.value.participation.left_at is None
    assert rejoined.value.participation.joined_at >= first.joined_at

    doc = await events.store.load(ev.id)
    assert len(doc["participants"]) == 1
    assert assert_count_consistent(doc) == 1


async def test_leave_without_joining(events, event_data):
    ev = await _create(events, event_data())
    assert (await events.engine.leave(ev.id, "alice")).failure is FailureKind.NOT_JOINED

    assert (await events.engine.join(ev.id, "alice")).ok
    assert (await events.engine.leave(ev.id, "alice")).ok
    assert (await events.engine.leave(ev.id, "alice")).failure is FailureKind.NOT_JOINED


async def test_leave_unknown_resource(events):
    assert (await events.engine.leave("507f1f77bcf86cd799439011", "alice")).failure is FailureKind.NOT_FOUND


async def test_leave_is_allowed_on_cancelled_resource(events, event_data):
    ev = await _create(events, event_data())
    assert (await events.engine.join(ev.id, "alice")).ok
    deleted = await events.lifecycle.delete_or_cancel(ev.id, CREATOR)
    assert deleted.value.cancelled is True

    outcome = await events.engine.leave(ev.id, "alice")

    assert outcome.ok
    assert outcome.value.status == "cancelled"
    assert assert_count_consistent(outcome.value) == 0


async def test_rejoin_blocked_when_full(events, event_data):
    ev = await _create(events, event_data(max_participants=1))
    assert (await events.engine.join(ev.id, "alice")).ok
    assert (await events.engine.leave(ev.id, "alice")).ok
    assert (await events.engine.join(ev.id, "bob")).ok

    assert (await events.engine.join(ev.id, "alice")).failure is FailureKind.FULL


async def test_count_invariant_over_a_sequence(challenges, challenge_data):
    ch = await _create(challenges, challenge_data(capacity=2))
    steps = [
        ("join", "a"), ("join", "b"), ("join", "c"), ("leave", "a"), ("join", "c"),
        ("leave", "b"), ("join", "a"), ("leave", "z"), ("join", "b"), ("leave", "c"),
    ]
    for op, user in steps:
        if op == "join":
            await challenges.engine.join(ch.id, user)
        else:
            await challenges.engine.leave(ch.id, user)
        count = assert_count_consistent(await challenges.store.load(ch.id))
        assert 0 <= count <= 2



async def test_leave_and_rejoin_touch_only_the_callers_entry(challenges, challenge_data):
    ch = await _create(challenges, challenge_data(capacity=3))
    for user in ("a", "b", "c"):
        assert (await challenges.engine.join(ch.id, user)).ok

    def statuses(doc):
        return [(p["user_id"], p["status"]) for p in doc["participants"]]

    assert (await challenges.engine.leave(ch.id, "a")).ok
    assert (await challenges.engine.leave(ch.id, "b")).ok
    doc = await challenges.store.load(ch.id)
    assert statuses(doc) == [("a", "left"), ("b", "left"), ("c", "active")]
    assert assert_count_consistent(doc) == 1

    assert (await challenges.engine.join(ch.id, "b")).ok
    doc = await challenges.store.load(ch.id)
    assert statuses(doc) == [("a", "left"), ("b", "active"), ("c", "active")]
    assert doc["participants"][0]["left_at"] is not None
    assert doc["participants"][1]["left_at"] is None

    assert (await challenges.engine.leave(ch.id, "c")).ok
    assert (await challenges.engine.leave(ch.id, "b")).ok
    doc = await challenges.store.load(ch.id)
    assert statuses(doc) == [("a", "left"), ("b", "left"), ("c", "left")]
    assert assert_count_consistent(doc) == 0


# --- Concurrence ---
@pytest.fixture
def interleaved_events(db):
    store = InterleavingStore(db, EVENTS)
    return ParticipationEngine(store, max_attempts=5), ResourceLifecycle(store)


@pytest.mark.parametrize("capacity, joiners", [(1, 2), (5, 20), (3, 50)])
async def test_concurrent_joins_never_exceed_capacity(interleaved_events, event_data, capacity, joiners):
    engine, lifecycle = interleaved_events
    ev = (await lifecycle.create(event_data(max_participants=capacity), CREATOR)).value

    outcomes = await asyncio.gather(*(engine.join(ev.id, f"user-{i}") for i in range(joiners)))

    successes = [o for o in outcomes if o.ok]
    assert len(successes) == capacity
    assert {o.failure for o in outcomes if not o.ok} == {FailureKind.FULL}
    doc = await engine.store.load(ev.id)
    assert assert_count_consistent(doc) == capacity


async def test_concurrent_duplicate_join_creates_one_entry(interleaved_events, event_data):
    engine, lifecycle = interleaved_events
    ev = (await lifecycle.create(event_data(max_participants=10), CREATOR)).value

    outcomes = await asyncio.gather(*(engine.join(ev.id, "alice") for _ in range(4)))

    assert sum(o.ok for o in outcomes) == 1
    assert all(o.failure is FailureKind.ALREADY_JOINED for o in outcomes if not o.ok)
    doc = await engine.store.load(ev.id)
    assert len(doc["participants"]) == 1
    assert assert_count_consistent(doc) == 1


async def test_concurrent_join_and_leave_keep_count_exact(interleaved_events, event_data):
    engine, lifecycle = interleaved_events
    ev = (await lifecycle.create(event_data(max_participants=50), CREATOR)).value
    for i in range(10):
        assert (await engine.join(ev.id, f"early-{i}")).ok

    ops = [engine.leave(ev.id, f"early-{i}") for i in range(10)]
    ops += [engine.join(ev.id, f"late-{i}") for i in range(10)]
    outcomes = await asyncio.gather(*ops)

    assert all(o.ok for o in outcomes)
    assert assert_count_consistent(await engine.store.load(ev.id)) == 10


async def test_capacity_reduction_races_with_joins(interleaved_events, event_data):
    engine, lifecycle = interleaved_events
    ev = (await lifecycle.create(event_data(max_participants=10), CREATOR)).value
    assert (await engine.join(ev.id, "first")).ok

    results = await asyncio.gather(
        lifecycle.update(ev.id, {"max_participants": 2}, CREATOR),
        *(engine.join(ev.id, f"user-{i}") for i in range(6)),
    )

    doc = await engine.store.load(ev.id)
    count = assert_count_consistent(doc)
    assert count <= doc["capacity"]
    if results[0].ok:
        assert doc["capacity"] == 2
    else:
        assert results[0].failure is FailureKind.INVALID_CAPACITY
