from typing import List

from fastapi import HTTPException, status


class TimeTrackingError(Exception):
    """Base class for every failure the time-tracking core reports."""

    status_code = status.HTTP_400_BAD_REQUEST
    message = "Time tracking operation failed"

    def __init__(self, message: str = None):
        self.message = message or self.message
        super().__init__(self.message)


class AlreadyCheckedIn(TimeTrackingError):
    status_code = status.HTTP_409_CONFLICT
    message = "You are already checked in"


class NoActiveSession(TimeTrackingError):
    status_code = status.HTTP_404_NOT_FOUND
    message = "No active work session"


class BreakAlreadyActive(TimeTrackingError):
    status_code = status.HTTP_409_CONFLICT
    message = "A break is already in progress"


class NoActiveBreak(TimeTrackingError):
    status_code = status.HTTP_404_NOT_FOUND
    message = "No active break"


class InvalidTimeRange(TimeTrackingError):
    status_code = status.HTTP_400_BAD_REQUEST
    message = "Check-out time must be after check-in time"


class LogNotFound(TimeTrackingError):
    status_code = status.HTTP_404_NOT_FOUND
    message = "Time log not found"


class StoreUnavailable(TimeTrackingError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    message = "Time log storage is unavailable"


class InsightUnavailable(TimeTrackingError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    message = "Insights are not available right now"


class PartialDeleteError(TimeTrackingError):
    """
    Raised when a cascading delete stopped part way through.
    Breaks listed in `deleted_break_ids` are gone; nothing is rolled back.
    """

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, log_id: str, deleted_break_ids: List[str]):
        self.log_id = log_id
        self.deleted_break_ids = list(deleted_break_ids)
        super().__init__(
            f"Time log {log_id} was only partially deleted "
            f"({len(self.deleted_break_ids)} break(s) removed)"
        )


def to_http_exception(error: TimeTrackingError) -> HTTPException:
    return HTTPException(status_code=error.status_code, detail=error.message)

