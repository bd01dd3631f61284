from collections import defaultdict
from datetime import date, datetime, tzinfo
from typing import Dict, List, Optional, Sequence, Tuple

from timekeeper.models.breaks import Break
from timekeeper.models.time_logs import TimeLog
from timekeeper.schemas.report import LogWithBreaks, Report, ReportEntry, ReportSummary
from timekeeper.utils.store_utils import LogStore
from timekeeper.utils.time_utils import format_hours, get_report_timezone, hours_between, local_date


def unpaid_break_hours(breaks: Sequence[Break]) -> float:
    """Completed unpaid breaks only; paid and still-open breaks never count."""
    return sum(
        hours_between(brk.start_time, brk.end_time)
        for brk in breaks
        if brk.end_time is not None and not brk.is_paid
    )


def log_hours(log: TimeLog, breaks: Sequence[Break]) -> Tuple[Optional[float], Optional[float]]:
    """Return (net hours, unpaid break hours), or (None, None) for an open session."""
    if log.check_out is None:
        return None, None
    gross = hours_between(log.check_in, log.check_out)
    break_hours = unpaid_break_hours(breaks)
    return gross - break_hours, break_hours


def summarize(items: Sequence[LogWithBreaks], tz: tzinfo) -> Tuple[ReportSummary, Dict[date, float], List[ReportEntry]]:
    total_hours = 0.0
    total_break_hours = 0.0
    day_totals: Dict[date, float] = defaultdict(float)
    entries = []

    for item in items:
        net_hours, break_hours = log_hours(item.log, item.breaks)
        entries.append(ReportEntry(
            log=item.log,
            breaks=item.breaks,
            net_hours=net_hours,
            break_hours=break_hours,
            net_label=format_hours(net_hours),
        ))
        if net_hours is None:
            continue

        total_hours += net_hours
        total_break_hours += break_hours
        day_totals[local_date(item.log.check_in, tz)] += net_hours

    days_worked = len(day_totals)
    longest_day = max(day_totals.values()) if day_totals else 0.0

    summary = ReportSummary(
        total_hours=round(total_hours, 2),
        total_break_hours=round(total_break_hours, 2),
        average_hours_per_day=round(total_hours / max(1, days_worked), 2),
        days_worked=days_worked,
        longest_day=round(longest_day, 2),
    )
    daily_totals = {day: round(hours, 2) for day, hours in sorted(day_totals.items())}
    return summary, daily_totals, entries


def build_report(
    items: Sequence[LogWithBreaks],
    range_start: datetime,
    range_end: datetime,
    tz: Optional[tzinfo] = None,
) -> Report:
    """
    Fold logs and their breaks into a report.

    Closed logs contribute gross time minus completed unpaid breaks; open logs
    are listed but left out of every figure. Days are grouped on the calendar
    day of check-in in `tz` (REPORT_TIMEZONE by default). Figures are rounded
    to two decimals only after accumulation.
    """
    tz = tz or get_report_timezone()
    summary, daily_totals, entries = summarize(items, tz)
    return Report(
        range_start=range_start,
        range_end=range_end,
        entries=entries,
        summary=summary,
        daily_totals=daily_totals,
    )


async def generate_report(
    store: LogStore,
    user_id: str,
    range_start: datetime,
    range_end: datetime,
    tz: Optional[tzinfo] = None,
) -> Report:
    items = await store.query_logs_with_breaks(user_id, range_start, range_end)
    return build_report(items, range_start, range_end, tz)
