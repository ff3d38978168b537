import asyncio
from datetime import datetime

import pytest
from pymongo.errors import ServerSelectionTimeoutError

from studymatch.core.exceptions import StoreUnavailable
from studymatch.database.connection import ensure_indexes


async def test_upsert_inserts_then_updates_in_place(members, records_of):
    first = await members.upsert_waiting("client-x", "Ann", "math", 2, "conn-1")
    second = await members.upsert_waiting("client-x", "Anna", "math", 2, "conn-2")

    assert second.id == first.id
    records = await records_of("client-x")
    assert len(records) == 1
    assert records[0].name == "Anna"
    assert records[0].connection_id == "conn-2"
    assert records[0].room_id is None


async def test_find_waiting_filters_by_queue_and_orders_by_arrival(members, database):
    collection = database["members"]
    await collection.insert_one({"client_id": "c", "name": "C", "subject": "math", "desired_size": 2,
                                 "connection_id": "cc", "room_id": None, "joined_at": datetime(2024, 1, 1, 0, 0, 3)})
    await collection.insert_one({"client_id": "a", "name": "A", "subject": "math", "desired_size": 2,
                                 "connection_id": "ca", "room_id": None, "joined_at": datetime(2024, 1, 1, 0, 0, 1)})
    await collection.insert_one({"client_id": "b", "name": "B", "subject": "math", "desired_size": 3,
                                 "connection_id": "cb", "room_id": None, "joined_at": datetime(2024, 1, 1, 0, 0, 2)})
    await collection.insert_one({"client_id": "d", "name": "D", "subject": "physics", "desired_size": 2,
                                 "connection_id": "cd", "room_id": None, "joined_at": datetime(2024, 1, 1, 0, 0, 2)})
    await collection.insert_one({"client_id": "e", "name": "E", "subject": "math", "desired_size": 2,
                                 "connection_id": "ce", "room_id": "some-room", "joined_at": datetime(2024, 1, 1)})

    queue = await members.find_waiting("math", 2)

    assert [m.client_id for m in queue] == ["a", "c"]


async def test_claim_only_binds_members_still_waiting(members):
    a = await members.upsert_waiting("a", "A", "math", 2, "ca")
    b = await members.upsert_waiting("b", "B", "math", 2, "cb")
    assert await members.claim([a.id], "room-1", "math", 2) == 1

    claimed = await members.claim([a.id, b.id], "room-2", "math", 2)

    assert claimed == 1
    assert (await members.find_by_id(a.id)).room_id == "room-1"
    assert (await members.find_by_id(b.id)).room_id == "room-2"


async def test_release_returns_members_to_queue(members):
    a = await members.upsert_waiting("a", "A", "math", 2, "ca")
    await members.claim([a.id], "room-1", "math", 2)

    assert await members.release("room-1") == 1

    assert [m.id for m in await members.find_waiting("math", 2)] == [a.id]


async def test_rebind_and_delete_ignore_matched_members(members):
    a = await members.upsert_waiting("a", "A", "math", 2, "ca")
    await members.claim([a.id], "room-1", "math", 2)

    assert await members.rebind_waiting("a", "ca-new") == 0
    assert await members.delete_waiting_by_connection("ca") == 0

    matched = await members.find_by_id(a.id)
    assert matched.connection_id == "ca"
    assert matched.room_id == "room-1"


async def test_find_by_id_with_malformed_id_returns_none(members):
    assert await members.find_by_id("not-an-object-id") is None


async def test_driver_errors_become_store_unavailable(members, mocker):
    broken = mocker.MagicMock()
    broken.find_one_and_update = mocker.AsyncMock(side_effect=ServerSelectionTimeoutError("no servers"))
    members._collection = broken

    with pytest.raises(StoreUnavailable):
        await members.upsert_waiting("a", "A", "math", 2, "ca")


async def test_unique_index_keeps_one_waiting_record_per_client(members, database, mocker, records_of):
    await ensure_indexes(database)
    collection = members.collection
    lookup = collection.find_one_and_update

    async def slow_lookup(*args, **kwargs):
        doc = await lookup(*args, **kwargs)
        await asyncio.sleep(0.01)
        return doc

    mocker.patch.object(collection, "find_one_and_update", new=slow_lookup)

    first, second = await asyncio.gather(
        members.upsert_waiting("x", "X", "math", 2, "conn-1"),
        members.upsert_waiting("x", "X", "art", 2, "conn-2"),
    )

    assert first.id == second.id
    assert len(await records_of("x")) == 1


async def test_claim_frees_the_client_to_wait_again(members, database, records_of):
    await ensure_indexes(database)
    a = await members.upsert_waiting("a", "A", "math", 2, "ca")
    await members.claim([a.id], "room-1", "math", 2)

    again = await members.upsert_waiting("a", "A", "math", 2, "ca-2")

    assert again.id != a.id
    assert (await members.find_by_id(a.id)).waiting_client is None
    assert [r.room_id for r in await records_of("a")] == ["room-1", None]


async def test_release_drops_member_whose_client_waits_again(members, database, records_of):
    await ensure_indexes(database)
    a = await members.upsert_waiting("a", "A", "math", 2, "ca")
    b = await members.upsert_waiting("b", "B", "math", 2, "cb")
    await members.claim([a.id, b.id], "room-1", "math", 2)
    newer = await members.upsert_waiting("a", "A", "art", 3, "ca-2")

    assert await members.release("room-1") == 1

    assert [r.id for r in await records_of("a")] == [newer.id]
    restored = await members.find_by_id(b.id)
    assert restored.room_id is None
    assert restored.waiting_client == "b"
