from fastapi import APIRouter, Depends

from timekeeper.cron_jobs import BreakSuggestionWatcher
from timekeeper.exceptions import TimeTrackingError, to_http_exception
from timekeeper.models.breaks import Break
from timekeeper.models.time_logs import TimeLog
from timekeeper.schemas.attendance import BreakSuggestion, SessionSnapshot, StartBreak
from timekeeper.utils.app_utils import get_break_watcher, get_session_machine
from timekeeper.utils.session_utils import SessionStateMachine

router = APIRouter()


@router.get("/status", response_model=SessionSnapshot)
async def get_status(machine: SessionStateMachine = Depends(get_session_machine)):
    """
    Rebuilds the current session state from stored logs.
    Returns:
        SessionSnapshot: state (NoSession/Working/OnBreak), the open log and break
        if any, today's logs with their breaks and elapsed-time labels.
    Raises:
        HTTPException: 503 if the store cannot be reached
    """
    try:
        return await machine.load()
    except TimeTrackingError as e:
        raise to_http_exception(e)


@router.post("/check-in", response_model=TimeLog)
async def check_in(
    machine: SessionStateMachine = Depends(get_session_machine),
    watcher: BreakSuggestionWatcher = Depends(get_break_watcher),
):
    """
    Starts a work session for the current user.
    Raises:
        HTTPException:
            - 409 if a session is already open
            - 503 if the store cannot be reached
    """
    try:
        log = await machine.check_in()
    except TimeTrackingError as e:
        raise to_http_exception(e)

    watcher.watch(machine.user_id)
    return log


@router.post("/check-out", response_model=TimeLog)
async def check_out(
    machine: SessionStateMachine = Depends(get_session_machine),
    watcher: BreakSuggestionWatcher = Depends(get_break_watcher),
):
    """
    Closes the open work session.
    Raises:
        HTTPException:
            - 404 if no session is open
            - 409 if a break is still open and the checkout policy is "reject"
    """
    try:
        log = await machine.check_out()
    except TimeTrackingError as e:
        raise to_http_exception(e)

    watcher.unwatch(machine.user_id)
    return log


@router.post("/breaks/start", response_model=Break)
async def start_break(
    body: StartBreak,
    machine: SessionStateMachine = Depends(get_session_machine),
    watcher: BreakSuggestionWatcher = Depends(get_break_watcher),
):
    """
    Starts a paid or unpaid break inside the open session.
    Raises:
        HTTPException:
            - 404 if no session is open
            - 409 if a break is already in progress
    """
    try:
        brk = await machine.start_break(body.is_paid)
    except TimeTrackingError as e:
        raise to_http_exception(e)

    watcher.unwatch(machine.user_id)
    return brk


@router.post("/breaks/end", response_model=Break)
async def end_break(
    machine: SessionStateMachine = Depends(get_session_machine),
    watcher: BreakSuggestionWatcher = Depends(get_break_watcher),
):
    """
    Ends the break in progress and records its duration in minutes.
    Raises:
        HTTPException: 404 if no break is in progress
    """
    try:
        brk = await machine.end_break()
    except TimeTrackingError as e:
        raise to_http_exception(e)

    watcher.watch(machine.user_id)
    return brk


@router.get("/break-suggestion", response_model=BreakSuggestion)
async def get_break_suggestion(
    machine: SessionStateMachine = Depends(get_session_machine),
    watcher: BreakSuggestionWatcher = Depends(get_break_watcher),
):
    """
    Suggests a break after 45 and 90 minutes of uninterrupted work.
    Served from the periodic check while one is scheduled for the user.
    """
    suggestion = await watcher.suggestion_for(machine.user_id)
    return BreakSuggestion(suggestion=suggestion)
