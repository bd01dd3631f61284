"""Tests for LogStore against an in-memory Mongo database."""

from datetime import datetime
from unittest.mock import AsyncMock, MagicMock

import pytest
from bson import ObjectId
from pymongo.errors import DuplicateKeyError, PyMongoError
from pytz import UTC

from timekeeper.exceptions import AlreadyCheckedIn, LogNotFound, PartialDeleteError, StoreUnavailable
from timekeeper.models.breaks import Break
from timekeeper.models.time_logs import TimeLog
from timekeeper.utils.store_utils import to_storage

RANGE_START = datetime(2024, 3, 4, tzinfo=UTC)
RANGE_END = datetime(2024, 3, 11, tzinfo=UTC)


class FailingDeletes:
    """Passes through to the wrapped collection; delete_one fails after `allowed` calls."""

    def __init__(self, wrapped, allowed):
        self.wrapped = wrapped
        self.allowed = allowed
        self.calls = 0

    def __getattr__(self, name):
        return getattr(self.wrapped, name)

    async def delete_one(self, *args, **kwargs):
        self.calls += 1
        if self.calls > self.allowed:
            raise PyMongoError("connection reset")
        return await self.wrapped.delete_one(*args, **kwargs)


async def add_log(store, user_id, check_in, check_out=None):
    return await store.create_log(TimeLog(user_id=user_id, check_in=check_in, check_out=check_out))


async def add_break(store, log, start, end=None, is_paid=False):
    return await store.create_break(Break(
        user_id=log.user_id, time_log_id=log.id, start_time=start, end_time=end, is_paid=is_paid
    ))


def test_to_storage_writes_naive_utc():
    stored = to_storage({"checkIn": datetime(2024, 3, 4, 9, 0, tzinfo=UTC), "items": [1]})
    assert stored == {"checkIn": datetime(2024, 3, 4, 9, 0), "items": [1]}


@pytest.mark.asyncio
async def test_query_logs_is_newest_first_and_half_open(store):
    await add_log(store, "user-1", datetime(2024, 3, 4, 0, 0, tzinfo=UTC), datetime(2024, 3, 4, 1, 0, tzinfo=UTC))
    await add_log(store, "user-1", datetime(2024, 3, 6, 9, 0, tzinfo=UTC), datetime(2024, 3, 6, 17, 0, tzinfo=UTC))
    await add_log(store, "user-1", datetime(2024, 3, 11, 0, 0, tzinfo=UTC), datetime(2024, 3, 11, 2, 0, tzinfo=UTC))

    logs = await store.query_logs("user-1", RANGE_START, RANGE_END)

    assert [log.check_in.day for log in logs] == [6, 4]
    assert logs[0].check_in.tzinfo is not None


@pytest.mark.asyncio
async def test_queries_are_scoped_to_user(store):
    mine = await add_log(store, "user-1", datetime(2024, 3, 5, 9, 0, tzinfo=UTC))
    await add_log(store, "user-2", datetime(2024, 3, 5, 9, 0, tzinfo=UTC))

    logs = await store.query_logs("user-1", RANGE_START, RANGE_END)
    assert [log.id for log in logs] == [mine.id]

    with pytest.raises(LogNotFound):
        await store.get_log("user-2", mine.id)
    with pytest.raises(LogNotFound):
        await store.update_log("user-2", mine.id, {"checkOut": datetime(2024, 3, 5, 10, 0, tzinfo=UTC)})


@pytest.mark.asyncio
async def test_find_open_log_and_break(store):
    await add_log(store, "user-1", datetime(2024, 3, 4, 9, 0, tzinfo=UTC), datetime(2024, 3, 4, 17, 0, tzinfo=UTC))
    open_log = await add_log(store, "user-1", datetime(2024, 3, 5, 9, 0, tzinfo=UTC))
    await add_break(store, open_log, datetime(2024, 3, 5, 10, 0, tzinfo=UTC), datetime(2024, 3, 5, 10, 15, tzinfo=UTC))
    open_break = await add_break(store, open_log, datetime(2024, 3, 5, 12, 0, tzinfo=UTC))

    assert (await store.find_open_log("user-1")).id == open_log.id
    assert (await store.find_open_break("user-1", open_log.id)).id == open_break.id
    assert await store.find_open_log("user-2") is None


@pytest.mark.asyncio
async def test_breaks_are_ordered_by_start(store):
    log = await add_log(store, "user-1", datetime(2024, 3, 5, 9, 0, tzinfo=UTC))
    await add_break(store, log, datetime(2024, 3, 5, 14, 0, tzinfo=UTC), datetime(2024, 3, 5, 14, 10, tzinfo=UTC))
    await add_break(store, log, datetime(2024, 3, 5, 11, 0, tzinfo=UTC), datetime(2024, 3, 5, 11, 10, tzinfo=UTC))

    breaks = await store.query_breaks("user-1", log.id)
    assert [brk.start_time.hour for brk in breaks] == [11, 14]


@pytest.mark.asyncio
async def test_invalid_id_is_not_found(store):
    with pytest.raises(LogNotFound):
        await store.get_log("user-1", "not-an-object-id")


@pytest.mark.asyncio
async def test_delete_log_cascades(store, database):
    log = await add_log(store, "user-1", datetime(2024, 3, 5, 9, 0, tzinfo=UTC), datetime(2024, 3, 5, 17, 0, tzinfo=UTC))
    first = await add_break(store, log, datetime(2024, 3, 5, 10, 0, tzinfo=UTC), datetime(2024, 3, 5, 10, 15, tzinfo=UTC))
    second = await add_break(store, log, datetime(2024, 3, 5, 12, 0, tzinfo=UTC), datetime(2024, 3, 5, 12, 30, tzinfo=UTC))

    deleted = await store.delete_log("user-1", log.id)

    assert deleted == [first.id, second.id]
    assert await database.timeLogs.count_documents({}) == 0
    assert await database.breaks.count_documents({}) == 0


@pytest.mark.asyncio
async def test_delete_unknown_log_raises(store):
    with pytest.raises(LogNotFound):
        await store.delete_log("user-1", str(ObjectId()))


@pytest.mark.asyncio
async def test_partial_delete_is_reported(store, database):
    log = await add_log(store, "user-1", datetime(2024, 3, 5, 9, 0, tzinfo=UTC), datetime(2024, 3, 5, 17, 0, tzinfo=UTC))
    first = await add_break(store, log, datetime(2024, 3, 5, 10, 0, tzinfo=UTC), datetime(2024, 3, 5, 10, 15, tzinfo=UTC))
    await add_break(store, log, datetime(2024, 3, 5, 12, 0, tzinfo=UTC), datetime(2024, 3, 5, 12, 30, tzinfo=UTC))
    store.breaks = FailingDeletes(store.breaks, allowed=1)

    with pytest.raises(PartialDeleteError) as exc_info:
        await store.delete_log("user-1", log.id)

    assert exc_info.value.log_id == log.id
    assert exc_info.value.deleted_break_ids == [first.id]
    assert await database.timeLogs.count_documents({}) == 1
    assert await database.breaks.count_documents({}) == 1


@pytest.mark.asyncio
async def test_failure_before_any_delete_is_store_unavailable(store, database):
    log = await add_log(store, "user-1", datetime(2024, 3, 5, 9, 0, tzinfo=UTC), datetime(2024, 3, 5, 17, 0, tzinfo=UTC))
    await add_break(store, log, datetime(2024, 3, 5, 10, 0, tzinfo=UTC), datetime(2024, 3, 5, 10, 15, tzinfo=UTC))
    store.breaks = FailingDeletes(store.breaks, allowed=0)

    with pytest.raises(StoreUnavailable):
        await store.delete_log("user-1", log.id)

    assert await database.timeLogs.count_documents({}) == 1
    assert await database.breaks.count_documents({}) == 1


@pytest.mark.asyncio
async def test_duplicate_open_session_maps_to_already_checked_in(store):
    collection = MagicMock()
    collection.insert_one = AsyncMock(side_effect=DuplicateKeyError("one_open_session_per_user"))
    store.time_logs = collection

    with pytest.raises(AlreadyCheckedIn):
        await add_log(store, "user-1", datetime(2024, 3, 5, 9, 0, tzinfo=UTC))


@pytest.mark.asyncio
async def test_store_errors_become_store_unavailable(store):
    collection = MagicMock()
    collection.find_one = AsyncMock(side_effect=PyMongoError("timed out"))
    store.time_logs = collection

    with pytest.raises(StoreUnavailable) as exc_info:
        await store.find_open_log("user-1")
    assert exc_info.value.message == "Could not look up the active session. Please try again."


@pytest.mark.asyncio
async def test_open_session_user_ids(store):
    await add_log(store, "user-1", datetime(2024, 3, 5, 9, 0, tzinfo=UTC))
    await add_log(store, "user-2", datetime(2024, 3, 4, 9, 0, tzinfo=UTC), datetime(2024, 3, 4, 17, 0, tzinfo=UTC))
    await add_log(store, "user-3", datetime(2024, 3, 5, 8, 0, tzinfo=UTC))

    assert await store.open_session_user_ids() == ["user-1", "user-3"]
