from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from timekeeper.cron_jobs import BreakSuggestionWatcher
from timekeeper.exceptions import TimeTrackingError, to_http_exception
from timekeeper.models.audit import AuditRecord
from timekeeper.models.time_logs import TimeLog
from timekeeper.schemas.attendance import SessionState
from timekeeper.schemas.report import EditLog, ManualEntryCreate, Report
from timekeeper.utils.app_utils import get_break_watcher, get_session_machine
from timekeeper.utils.report_utils import generate_report
from timekeeper.utils.session_utils import SessionStateMachine
from timekeeper.utils.time_utils import date_range, month_range, preset_range, week_range

router = APIRouter()


def resolve_range(
    machine: SessionStateMachine,
    start: Optional[date],
    end: Optional[date],
    preset: Optional[int],
    period: Optional[str] = None,
):
    """
    An explicit start/end date pair (both days included), the current week or
    month, or a preset number of days back from today. Defaults to the last 7 days.
    """
    if start is not None or end is not None:
        if start is None or end is None:
            raise HTTPException(status_code=400, detail="Both start and end dates are required")
        return date_range(start, end, machine.tz)
    if period == "week":
        return week_range(machine.now(), machine.tz)
    if period == "month":
        return month_range(machine.now(), machine.tz)
    if period is not None:
        raise HTTPException(status_code=400, detail="Period must be \"week\" or \"month\"")
    return preset_range(7 if preset is None else preset, machine.now(), machine.tz)


async def sync_watcher(machine: SessionStateMachine, watcher: BreakSuggestionWatcher) -> None:
    """Stop break suggestions once an edit or delete has left the user without a working session."""
    state, _, _ = await machine.reconstruct()
    if state != SessionState.WORKING:
        watcher.unwatch(machine.user_id)


@router.get("", response_model=Report)
async def get_report(
    start: Optional[date] = Query(None, description="First day of the report (YYYY-MM-DD)"),
    end: Optional[date] = Query(None, description="Last day of the report (YYYY-MM-DD)"),
    preset: Optional[int] = Query(None, ge=0, description="Days back from today: 0, 7, 15, 30 or 90"),
    period: Optional[str] = Query(None, description="\"week\" or \"month\" for the current calendar period"),
    machine: SessionStateMachine = Depends(get_session_machine),
):
    """
    Returns the logs in range with their breaks and a summary:
      - total net hours and total unpaid break hours,
      - average hours per worked day,
      - days worked and the longest day.
    Open sessions are listed but not counted.
    """
    try:
        range_start, range_end = resolve_range(machine, start, end, preset, period)
        return await generate_report(machine.store, machine.user_id, range_start, range_end, machine.tz)
    except TimeTrackingError as e:
        raise to_http_exception(e)


@router.post("/logs", response_model=TimeLog, status_code=201)
async def add_manual_log(body: ManualEntryCreate, machine: SessionStateMachine = Depends(get_session_machine)):
    """
    Adds a back-dated log with both check-in and check-out supplied.
    Raises:
        HTTPException: 400 if check-out is not after check-in
    """
    try:
        return await machine.add_manual_entry(body.check_in, body.check_out)
    except TimeTrackingError as e:
        raise to_http_exception(e)


@router.put("/logs/{log_id}", response_model=TimeLog)
async def edit_log(
    log_id: str,
    body: EditLog,
    machine: SessionStateMachine = Depends(get_session_machine),
    watcher: BreakSuggestionWatcher = Depends(get_break_watcher),
):
    """
    Replaces the check-in and check-out times of a log.
    Raises:
        HTTPException:
            - 400 if check-out is not after check-in or a break falls outside the new times
            - 404 if the log does not exist
    """
    try:
        log = await machine.edit_log(log_id, body.check_in, body.check_out)
        await sync_watcher(machine, watcher)
        return log
    except TimeTrackingError as e:
        raise to_http_exception(e)


@router.delete("/logs/{log_id}", response_model=AuditRecord)
async def delete_log(
    log_id: str,
    machine: SessionStateMachine = Depends(get_session_machine),
    watcher: BreakSuggestionWatcher = Depends(get_break_watcher),
):
    """
    Writes an audit record of the log and its breaks, then deletes them.
    Raises:
        HTTPException:
            - 404 if the log does not exist
            - 503 if the audit record could not be written (nothing is deleted)
            - 500 if the delete stopped part way through
    """
    try:
        record = await machine.delete_log(log_id)
        await sync_watcher(machine, watcher)
        return record
    except TimeTrackingError as e:
        raise to_http_exception(e)
