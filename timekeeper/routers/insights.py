from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query

from timekeeper.exceptions import TimeTrackingError, to_http_exception
from timekeeper.routers.reports import resolve_range
from timekeeper.schemas.insight import InsightResult
from timekeeper.utils.app_utils import get_insight_service, get_session_machine
from timekeeper.utils.insight_utils import InsightService
from timekeeper.utils.session_utils import SessionStateMachine
from timekeeper.utils.time_utils import hours_between, preset_range

router = APIRouter()


@router.get("", response_model=InsightResult)
async def get_insights(
    start: Optional[date] = Query(None, description="First day to analyze (YYYY-MM-DD)"),
    end: Optional[date] = Query(None, description="Last day to analyze (YYYY-MM-DD)"),
    preset: Optional[int] = Query(None, ge=0, description="Days back from today"),
    machine: SessionStateMachine = Depends(get_session_machine),
    insights: InsightService = Depends(get_insight_service),
):
    """
    Asks the completion service for three insights about the logs in range.
    When the service fails the response carries available=false instead of an error.
    """
    try:
        range_start, range_end = resolve_range(machine, start, end, preset)
        items = await machine.store.query_logs_with_breaks(machine.user_id, range_start, range_end)
    except TimeTrackingError as e:
        raise to_http_exception(e)
    return await insights.analyze(items)


@router.get("/break-advice", response_model=InsightResult)
async def get_break_advice(
    machine: SessionStateMachine = Depends(get_session_machine),
    insights: InsightService = Depends(get_insight_service),
):
    """AI advice on when to take the next break, based on the last week and the open session."""
    try:
        now = machine.now()
        _, active_log, _ = await machine.reconstruct()
        range_start, range_end = preset_range(7, now, machine.tz)
        items = await machine.store.query_logs_with_breaks(machine.user_id, range_start, range_end)
    except TimeTrackingError as e:
        raise to_http_exception(e)

    current_hours = hours_between(active_log.check_in, now) if active_log else 0.0
    return await insights.advise_break(items, current_hours)
