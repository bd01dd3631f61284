import logging
from datetime import datetime, tzinfo
from enum import Enum
from typing import Callable, Optional, Sequence, Tuple

from pytz import UTC

from timekeeper.config import settings
from timekeeper.exceptions import (AlreadyCheckedIn, BreakAlreadyActive, InvalidTimeRange,
                                   NoActiveBreak, NoActiveSession)
from timekeeper.models.audit import AuditRecord
from timekeeper.models.breaks import Break, BreakStatus
from timekeeper.models.time_logs import TimeLog
from timekeeper.schemas.attendance import SessionSnapshot, SessionState
from timekeeper.utils.store_utils import LogStore
from timekeeper.utils.time_utils import (ensure_utc, format_elapsed, get_report_timezone,
                                         minutes_between, today_range)

logger = logging.getLogger(__name__)

SHORT_BREAK_AFTER_MINUTES = 45
PROPER_BREAK_AFTER_MINUTES = 90


class CheckoutPolicy(str, Enum):
    """What checking out does when a break is still open."""
    REJECT = "reject"
    AUTO_CLOSE = "auto_close"


def break_suggestion(state: SessionState, session_start: Optional[datetime], now: datetime) -> Optional[str]:
    if state != SessionState.WORKING or session_start is None:
        return None

    minutes = minutes_between(session_start, now)
    if minutes >= PROPER_BREAK_AFTER_MINUTES:
        return "You've been working for over 90 minutes. Time for a proper break!"
    if minutes >= SHORT_BREAK_AFTER_MINUTES:
        return "You've been working for 45 minutes. Consider taking a short break!"
    return None


def validate_time_range(check_in: datetime, check_out: datetime) -> None:
    if ensure_utc(check_out) <= ensure_utc(check_in):
        raise InvalidTimeRange()


def validate_breaks_within(breaks: Sequence[Break], check_in: datetime, check_out: datetime) -> None:
    """Every break must start after check-in; completed breaks must also end by check-out."""
    check_in, check_out = ensure_utc(check_in), ensure_utc(check_out)
    for brk in breaks:
        if brk.start_time < check_in or (brk.end_time is not None and brk.end_time > check_out):
            raise InvalidTimeRange("Breaks must fall between check-in and check-out")


class SessionStateMachine:
    """
    Check-in / break / check-out transitions for one user.

    Nothing is cached between calls: each operation rebuilds the current state
    from the store (open log = the log without checkOut, open break = the
    break under it without endTime) and then issues its write.
    """

    def __init__(
        self,
        store: LogStore,
        user_id: str,
        clock: Optional[Callable[[], datetime]] = None,
        checkout_policy: Optional[CheckoutPolicy] = None,
        tz: Optional[tzinfo] = None,
    ):
        self.store = store
        self.user_id = user_id
        self.clock = clock or (lambda: datetime.now(UTC))
        self.checkout_policy = CheckoutPolicy(checkout_policy or settings.CHECKOUT_OPEN_BREAK_POLICY)
        self.tz = tz or get_report_timezone()

    def now(self) -> datetime:
        return ensure_utc(self.clock())

    async def reconstruct(self) -> Tuple[SessionState, Optional[TimeLog], Optional[Break]]:
        active_log = await self.store.find_open_log(self.user_id)
        if active_log is None:
            return SessionState.NO_SESSION, None, None

        active_break = await self.store.find_open_break(self.user_id, active_log.id)
        if active_break is None:
            return SessionState.WORKING, active_log, None
        return SessionState.ON_BREAK, active_log, active_break

    async def load(self) -> SessionSnapshot:
        now = self.now()
        state, active_log, active_break = await self.reconstruct()
        start, end = today_range(now, self.tz)
        today_logs = await self.store.query_logs_with_breaks(self.user_id, start, end)
        return SessionSnapshot(
            state=state,
            active_log=active_log,
            active_break=active_break,
            today_logs=today_logs,
            session_elapsed=format_elapsed(active_log.check_in, now) if active_log else None,
            break_elapsed=format_elapsed(active_break.start_time, now) if active_break else None,
        )

    async def check_in(self) -> TimeLog:
        state, _, _ = await self.reconstruct()
        if state != SessionState.NO_SESSION:
            raise AlreadyCheckedIn()

        now = self.now()
        log = await self.store.create_log(TimeLog(user_id=self.user_id, check_in=now, created_at=now))
        logger.info("User %s checked in (log %s)", self.user_id, log.id)
        return log

    async def check_out(self) -> TimeLog:
        state, active_log, active_break = await self.reconstruct()
        if state == SessionState.NO_SESSION:
            raise NoActiveSession()

        now = self.now()
        if active_break is not None:
            await self._resolve_open_break(active_break, now)

        await self.store.update_log(self.user_id, active_log.id, {"checkOut": now, "updatedAt": now})
        logger.info("User %s checked out (log %s)", self.user_id, active_log.id)
        return active_log.model_copy(update={"check_out": now, "updated_at": now})

    async def start_break(self, is_paid: bool) -> Break:
        state, active_log, _ = await self.reconstruct()
        if state == SessionState.NO_SESSION:
            raise NoActiveSession()
        if state == SessionState.ON_BREAK:
            raise BreakAlreadyActive()

        now = self.now()
        brk = await self.store.create_break(Break(
            user_id=self.user_id,
            time_log_id=active_log.id,
            start_time=now,
            is_paid=is_paid,
            status=BreakStatus.ACTIVE,
            created_at=now,
        ))
        logger.info("User %s started a %s break", self.user_id, "paid" if is_paid else "unpaid")
        return brk

    async def end_break(self) -> Break:
        state, _, active_break = await self.reconstruct()
        if state != SessionState.ON_BREAK:
            raise NoActiveBreak()

        closed = await self._close_break(active_break, self.now())
        logger.info("User %s ended break %s after %.1f minutes", self.user_id, closed.id, closed.duration_minutes)
        return closed

    async def add_manual_entry(self, check_in: datetime, check_out: datetime) -> TimeLog:
        validate_time_range(check_in, check_out)
        now = self.now()
        log = await self.store.create_log(TimeLog(
            user_id=self.user_id,
            check_in=check_in,
            check_out=check_out,
            created_at=now,
            updated_at=now,
            is_manual_entry=True,
        ))
        logger.info("User %s added manual entry %s", self.user_id, log.id)
        return log

    async def edit_log(self, log_id: str, check_in: datetime, check_out: datetime) -> TimeLog:
        validate_time_range(check_in, check_out)
        log = await self.store.get_log(self.user_id, log_id)
        breaks = await self.store.query_breaks(self.user_id, log.id)
        validate_breaks_within(breaks, check_in, check_out)

        if log.is_open:
            open_break = next((brk for brk in breaks if brk.is_open), None)
            if open_break is not None:
                await self._resolve_open_break(open_break, max(ensure_utc(check_out), open_break.start_time))

        now = self.now()
        await self.store.update_log(self.user_id, log_id, {"checkIn": check_in, "checkOut": check_out, "updatedAt": now})
        return log.model_copy(update={"check_in": ensure_utc(check_in), "check_out": ensure_utc(check_out), "updated_at": now})

    async def delete_log(self, log_id: str) -> AuditRecord:
        """
        Audit first, then cascade. If the audit write fails nothing is deleted.
        """
        log = await self.store.get_log(self.user_id, log_id)
        breaks = await self.store.query_breaks(self.user_id, log.id)

        snapshot = log.to_document()
        snapshot["id"] = log.id
        snapshot["breaks"] = [dict(brk.to_document(), id=brk.id) for brk in breaks]
        record = AuditRecord(
            log_id=log.id,
            user_id=self.user_id,
            deleted_at=self.now(),
            deleted_by=self.user_id,
            log_data=snapshot,
        )
        await self.store.write_audit(record)
        await self.store.delete_log(self.user_id, log.id)
        logger.info("User %s deleted log %s with %d break(s)", self.user_id, log.id, len(breaks))
        return record

    async def current_suggestion(self) -> Optional[str]:
        state, active_log, _ = await self.reconstruct()
        return break_suggestion(state, active_log.check_in if active_log else None, self.now())

    async def _resolve_open_break(self, active_break: Break, at: datetime) -> None:
        if self.checkout_policy == CheckoutPolicy.REJECT:
            raise BreakAlreadyActive("End your break before checking out")
        await self._close_break(active_break, at)
        logger.info("Closed break %s automatically at checkout", active_break.id)

    async def _close_break(self, active_break: Break, at: datetime) -> Break:
        duration = minutes_between(active_break.start_time, at)
        await self.store.update_break(self.user_id, active_break.id, {
            "endTime": at,
            "updatedAt": at,
            "duration": duration,
            "status": BreakStatus.COMPLETED.value,
        })
        return active_break.model_copy(update={
            "end_time": at,
            "updated_at": at,
            "duration_minutes": duration,
            "status": BreakStatus.COMPLETED,
        })
