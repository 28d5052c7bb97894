"""Rotation engine behaviour, run against the in-memory and SQLite stores."""

import pytest

from rotation_backend.db.base import SelectionPolicy, new_item_document
from rotation_backend.services.lifecycle import create_items
from rotation_backend.services.rotation import acquire_item


async def _items(store, name="events"):
    return await store.get_collection(name).list_items()


@pytest.mark.asyncio
async def test_empty_collection_is_seeded_before_selection(store, sample_events) -> None:
    result = await acquire_item(store, "events", "alice", sample_events)

    assert result.success is True
    assert result.data in sample_events
    items = await _items(store)
    assert len(items) == len(sample_events)
    used = [i for i in items if i.used]
    unused = [i for i in items if not i.used]
    assert len(used) == 1 and used[0].assigned_to == "alice"
    assert len(unused) == 2
    assert all(i.assigned_to is None for i in unused)
    assert used[0].data == result.data


@pytest.mark.asyncio
async def test_fresh_item_transitions_to_used_and_assigned(store) -> None:
    coll = store.get_collection("questions")
    await coll.insert_many([new_item_document({"message": "only"})])
    before = (await coll.list_items())[0]
    assert before.used is False and before.assigned_to is None

    result = await acquire_item(store, "questions", "U")

    after = (await coll.list_items())[0]
    assert result.data == {"message": "only"}
    assert after.id == before.id
    assert after.used is True
    assert after.assigned_to == "U"


@pytest.mark.asyncio
async def test_all_items_held_by_same_user_triggers_reset(store, sample_events) -> None:
    coll = store.get_collection("events")
    await coll.insert_many(
        [dict(new_item_document(p), used=True, assignedTo="alice") for p in sample_events]
    )

    result = await acquire_item(store, "events", "alice", sample_events)

    assert result.success is True
    assert result.data in sample_events
    items = await _items(store)
    assert len(items) == 3
    used = [i for i in items if i.used]
    assert len(used) == 1 and used[0].assigned_to == "alice"
    assert all(not i.used and i.assigned_to is None for i in items if i is not used[0])


@pytest.mark.asyncio
async def test_exhausted_pool_resets_for_another_user(store, sample_events) -> None:
    coll = store.get_collection("events")
    await coll.insert_many([dict(new_item_document(p), used=True, assignedTo="bob") for p in sample_events])

    result = await acquire_item(store, "events", "carol", sample_events)

    assert result.success is True
    items = await _items(store)
    assert sum(1 for i in items if i.used) == 1
    assert [i.assigned_to for i in items if i.used] == ["carol"]
    assert all(i.assigned_to is None for i in items if not i.used)


@pytest.mark.asyncio
async def test_unused_item_marked_for_requesting_user_is_skipped(store) -> None:
    coll = store.get_collection("questions")
    await coll.insert_many([dict(new_item_document({"message": "mine"}), assignedTo="alice")])

    # another user may take it straight away
    other = await acquire_item(store, "questions", "bob")
    assert other.data == {"message": "mine"}
    assert (await coll.list_items())[0].assigned_to == "bob"


@pytest.mark.asyncio
async def test_only_candidate_held_by_caller_goes_through_reset(store) -> None:
    coll = store.get_collection("questions")
    await coll.insert_many([dict(new_item_document({"message": "mine"}), assignedTo="alice")])

    result = await acquire_item(store, "questions", "alice")

    assert result.success is True
    item = (await coll.list_items())[0]
    assert item.used is True and item.assigned_to == "alice"


@pytest.mark.asyncio
async def test_single_user_cycles_through_every_item_before_reset(store, sample_events) -> None:
    seen = []
    for _ in range(len(sample_events)):
        result = await acquire_item(store, "events", "solo", sample_events)
        seen.append(result.data["message"])
    assert sorted(seen) == sorted(p["message"] for p in sample_events)

    items = await _items(store)
    assert all(i.used and i.assigned_to == "solo" for i in items)

    again = await acquire_item(store, "events", "solo", sample_events)
    assert again.success is True
    items = await _items(store)
    assert sum(1 for i in items if i.used) == 1


@pytest.mark.asyncio
async def test_empty_collection_without_sample_data_reports_failure(store) -> None:
    result = await acquire_item(store, "events", "alice", [])

    assert result.success is False
    assert result.data == {"error": "No events available"}
    assert await store.get_collection("events").count() == 0


@pytest.mark.asyncio
async def test_first_policy_returns_items_in_store_order(store, sample_events) -> None:
    first = await acquire_item(store, "events", "alice", sample_events, policy=SelectionPolicy.FIRST)
    second = await acquire_item(store, "events", "alice", sample_events, policy=SelectionPolicy.FIRST)

    assert first.data == sample_events[0]
    assert second.data == sample_events[1]


@pytest.mark.asyncio
async def test_payload_round_trips_unchanged(store) -> None:
    payload = {
        "message": "Grundsteuer fällig",
        "type": "property",
        "amount": 1234.5,
        "baseAmount": 1000,
        "property": "Schlossallee",
        "tags": ["a", "b"],
        "nested": {"flag": True, "none": None},
    }
    await store.get_collection("events").insert_many([new_item_document(payload)])

    result = await acquire_item(store, "events", "alice")

    assert result.data == payload


@pytest.mark.asyncio
async def test_collections_rotate_independently(store) -> None:
    await store.get_collection("events").insert_many([new_item_document({"message": "e"})])
    await store.get_collection("questions").insert_many([new_item_document({"message": "q"})])

    await acquire_item(store, "events", "alice")

    questions = await store.get_collection("questions").list_items()
    assert questions[0].used is False
    assert questions[0].assigned_to is None


@pytest.mark.asyncio
async def test_stored_payload_is_isolated_from_callers(store) -> None:
    payload = {"message": "x", "tags": ["a"]}
    await create_items(store, "events", "bob", [payload])

    payload["tags"].append("MUTATED")
    result = await acquire_item(store, "events", "alice")
    result.data["tags"].append("AGAIN")

    items = await _items(store)
    assert [i.data for i in items] == [{"message": "x", "tags": ["a"]}]
