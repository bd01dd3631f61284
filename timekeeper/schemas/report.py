from datetime import date, datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from timekeeper.models.breaks import Break
from timekeeper.models.time_logs import TimeLog


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class LogWithBreaks(CamelModel):
    log: TimeLog
    breaks: List[Break] = Field(default_factory=list)


class ReportEntry(CamelModel):
    log: TimeLog
    breaks: List[Break] = Field(default_factory=list)
    net_hours: Optional[float] = None  # None for open sessions
    break_hours: Optional[float] = None
    net_label: str = ""  # "x.xx hrs", empty while open


class ReportSummary(CamelModel):
    total_hours: float = 0.0
    total_break_hours: float = 0.0
    average_hours_per_day: float = 0.0
    days_worked: int = 0
    longest_day: float = 0.0


class Report(CamelModel):
    range_start: datetime
    range_end: datetime
    entries: List[ReportEntry] = Field(default_factory=list)
    summary: ReportSummary
    daily_totals: Dict[date, float] = Field(default_factory=dict)


class ManualEntryCreate(CamelModel):
    check_in: datetime
    check_out: datetime


class EditLog(CamelModel):
    check_in: datetime
    check_out: datetime
