from enum import Enum
from typing import List, Optional

from pydantic import Field

from timekeeper.models.breaks import Break
from timekeeper.models.time_logs import TimeLog
from timekeeper.schemas.report import CamelModel, LogWithBreaks


class SessionState(str, Enum):
    NO_SESSION = "NoSession"
    WORKING = "Working"
    ON_BREAK = "OnBreak"


class StartBreak(CamelModel):
    is_paid: bool = False


class SessionSnapshot(CamelModel):
    state: SessionState
    active_log: Optional[TimeLog] = None
    active_break: Optional[Break] = None
    today_logs: List[LogWithBreaks] = Field(default_factory=list)
    session_elapsed: Optional[str] = None
    break_elapsed: Optional[str] = None


class BreakSuggestion(CamelModel):
    suggestion: Optional[str] = None
