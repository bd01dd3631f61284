import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Dict, List, Optional

from bson import ObjectId
from bson.errors import InvalidId
from pymongo import ASCENDING, DESCENDING
from pymongo.errors import DuplicateKeyError, PyMongoError

from timekeeper.exceptions import AlreadyCheckedIn, LogNotFound, PartialDeleteError, StoreUnavailable
from timekeeper.models.audit import AuditRecord
from timekeeper.models.breaks import Break
from timekeeper.models.time_logs import TimeLog
from timekeeper.schemas.report import LogWithBreaks
from timekeeper.utils.time_utils import ensure_utc

logger = logging.getLogger(__name__)


@contextmanager
def store_errors(action: str):
    try:
        yield
    except PyMongoError as e:
        logger.error("Store failure while trying to %s: %s", action, e)
        raise StoreUnavailable(f"Could not {action}. Please try again.") from e


def _object_id(log_id: str) -> ObjectId:
    try:
        return ObjectId(log_id)
    except (InvalidId, TypeError):
        raise LogNotFound()


def to_storage(value: Any) -> Any:
    """Datetimes are written and compared as naive UTC, the form the store hands back."""
    if isinstance(value, datetime):
        return ensure_utc(value).replace(tzinfo=None)
    if isinstance(value, dict):
        return {key: to_storage(item) for key, item in value.items()}
    if isinstance(value, list):
        return [to_storage(item) for item in value]
    return value


class LogStore:
    """
    Query/write contract for time logs, breaks and audit records.

    Every read and write is filtered by user id, so a caller can never
    reach another user's documents even with a valid object id.
    """

    def __init__(self, database):
        self.time_logs = database.timeLogs
        self.breaks = database.breaks
        self.audit = database.timeLogsAudit

    async def ensure_indexes(self) -> None:
        with store_errors("prepare the time log indexes"):
            await self.time_logs.create_index([("userId", ASCENDING), ("checkIn", DESCENDING)])
            # second open session for the same user is rejected by the store itself
            await self.time_logs.create_index(
                [("userId", ASCENDING)],
                name="one_open_session_per_user",
                unique=True,
                partialFilterExpression={"checkOut": {"$type": "null"}},
            )
            await self.breaks.create_index(
                [("userId", ASCENDING), ("timeLogId", ASCENDING), ("startTime", ASCENDING)]
            )
            await self.audit.create_index([("userId", ASCENDING), ("deletedAt", DESCENDING)])

    async def query_logs(self, user_id: str, range_start: datetime, range_end: datetime) -> List[TimeLog]:
        """Logs with range_start <= checkIn < range_end, newest first."""
        with store_errors("fetch time logs"):
            documents = await self.time_logs.find({
                "userId": user_id,
                "checkIn": {"$gte": to_storage(range_start), "$lt": to_storage(range_end)}
            }, sort=[("checkIn", DESCENDING)]).to_list(length=None)
        return [TimeLog.from_document(doc) for doc in documents]

    async def query_breaks(self, user_id: str, time_log_id: str) -> List[Break]:
        with store_errors("fetch breaks"):
            documents = await self.breaks.find({
                "userId": user_id,
                "timeLogId": time_log_id
            }, sort=[("startTime", ASCENDING)]).to_list(length=None)
        return [Break.from_document(doc) for doc in documents]

    async def query_logs_with_breaks(self, user_id: str, range_start: datetime, range_end: datetime) -> List[LogWithBreaks]:
        logs = await self.query_logs(user_id, range_start, range_end)
        result = []
        for log in logs:
            breaks = await self.query_breaks(user_id, log.id)
            result.append(LogWithBreaks(log=log, breaks=breaks))
        return result

    async def find_open_log(self, user_id: str) -> Optional[TimeLog]:
        with store_errors("look up the active session"):
            document = await self.time_logs.find_one(
                {"userId": user_id, "checkOut": None},
                sort=[("checkIn", DESCENDING)]
            )
        return TimeLog.from_document(document) if document else None

    async def open_session_user_ids(self) -> List[str]:
        with store_errors("look up open sessions"):
            documents = await self.time_logs.find({"checkOut": None}, {"userId": 1}).to_list(length=None)
        return sorted({doc["userId"] for doc in documents})

    async def find_open_break(self, user_id: str, time_log_id: str) -> Optional[Break]:
        with store_errors("look up the active break"):
            document = await self.breaks.find_one(
                {"userId": user_id, "timeLogId": time_log_id, "endTime": None},
                sort=[("startTime", DESCENDING)]
            )
        return Break.from_document(document) if document else None

    async def get_log(self, user_id: str, log_id: str) -> TimeLog:
        with store_errors("fetch the time log"):
            document = await self.time_logs.find_one({"_id": _object_id(log_id), "userId": user_id})
        if not document:
            raise LogNotFound()
        return TimeLog.from_document(document)

    async def create_log(self, log: TimeLog) -> TimeLog:
        try:
            with store_errors("save the time log"):
                result = await self.time_logs.insert_one(to_storage(log.to_document()))
        except StoreUnavailable as e:
            if isinstance(e.__cause__, DuplicateKeyError):
                raise AlreadyCheckedIn() from e.__cause__
            raise
        return log.model_copy(update={"id": str(result.inserted_id)})

    async def update_log(self, user_id: str, log_id: str, changes: Dict[str, Any]) -> None:
        with store_errors("update the time log"):
            result = await self.time_logs.update_one(
                {"_id": _object_id(log_id), "userId": user_id},
                {"$set": to_storage(changes)}
            )
        if result.matched_count == 0:
            raise LogNotFound()

    async def create_break(self, brk: Break) -> Break:
        with store_errors("save the break"):
            result = await self.breaks.insert_one(to_storage(brk.to_document()))
        return brk.model_copy(update={"id": str(result.inserted_id)})

    async def update_break(self, user_id: str, break_id: str, changes: Dict[str, Any]) -> None:
        with store_errors("update the break"):
            result = await self.breaks.update_one(
                {"_id": _object_id(break_id), "userId": user_id},
                {"$set": to_storage(changes)}
            )
        if result.matched_count == 0:
            raise LogNotFound("Break not found")

    async def write_audit(self, record: AuditRecord) -> None:
        with store_errors("write the audit record"):
            await self.audit.insert_one(to_storage(record.to_document()))

    async def delete_log(self, user_id: str, log_id: str) -> List[str]:
        """
        Delete every break under the log, then the log itself.
        Returns the ids of the removed breaks. A failure part way through
        raises PartialDeleteError; already removed breaks stay removed.
        """
        breaks = await self.query_breaks(user_id, log_id)
        deleted_break_ids = []
        try:
            for brk in breaks:
                with store_errors("delete a break"):
                    await self.breaks.delete_one({"_id": ObjectId(brk.id), "userId": user_id})
                deleted_break_ids.append(brk.id)

            with store_errors("delete the time log"):
                result = await self.time_logs.delete_one({"_id": _object_id(log_id), "userId": user_id})
        except StoreUnavailable as e:
            if not deleted_break_ids:
                raise
            logger.error("Cascade delete of log %s stopped after %d break(s)", log_id, len(deleted_break_ids))
            raise PartialDeleteError(log_id, deleted_break_ids) from e

        if result.deleted_count == 0:
            raise LogNotFound()
        return deleted_break_ids
