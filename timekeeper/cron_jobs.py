import logging
from datetime import datetime
from typing import Callable, Dict, List, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from timekeeper.config import settings
from timekeeper.exceptions import StoreUnavailable
from timekeeper.schemas.attendance import SessionState
from timekeeper.utils.session_utils import SessionStateMachine
from timekeeper.utils.store_utils import LogStore

logger = logging.getLogger(__name__)

# Create a shared scheduler instance
scheduler = AsyncIOScheduler()


def _job_id(user_id: str) -> str:
    return f"break-suggestion:{user_id}"


class BreakSuggestionWatcher:
    """
    Re-evaluates the break suggestion for users who are working and not on a
    break. Advisory only: results are kept in memory and the store is never
    written, so a skipped or repeated run is harmless.
    """

    def __init__(
        self,
        store_factory: Callable[[], LogStore],
        job_scheduler: AsyncIOScheduler = scheduler,
        interval_minutes: Optional[int] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.store_factory = store_factory
        self.scheduler = job_scheduler
        self.interval_minutes = interval_minutes or settings.BREAK_SUGGESTION_INTERVAL_MINUTES
        self.clock = clock
        self.suggestions: Dict[str, Optional[str]] = {}

    def watch(self, user_id: str) -> None:
        if self.is_watching(user_id):
            return
        # anything cached while unwatched is stale
        self.suggestions.pop(user_id, None)
        self.scheduler.add_job(
            self.evaluate,
            "interval",
            minutes=self.interval_minutes,
            args=[user_id],
            id=_job_id(user_id),
            replace_existing=True,
        )

    def unwatch(self, user_id: str) -> None:
        if self.is_watching(user_id):
            self.scheduler.remove_job(_job_id(user_id))
        self.suggestions.pop(user_id, None)

    def is_watching(self, user_id: str) -> bool:
        return self.scheduler.get_job(_job_id(user_id)) is not None

    async def resume(self) -> List[str]:
        """Watch again every user left working when the process last stopped."""
        store = self.store_factory()
        resumed = []
        for user_id in await store.open_session_user_ids():
            state, _, _ = await SessionStateMachine(store, user_id, clock=self.clock).reconstruct()
            if state == SessionState.WORKING:
                self.watch(user_id)
                resumed.append(user_id)
        logger.info("Resumed break suggestions for %d open session(s)", len(resumed))
        return resumed

    async def suggestion_for(self, user_id: str) -> Optional[str]:
        """Latest scheduled result, or a fresh evaluation before the first run."""
        if self.is_watching(user_id) and user_id in self.suggestions:
            return self.suggestions[user_id]
        return await self.evaluate(user_id)

    async def evaluate(self, user_id: str) -> Optional[str]:
        machine = SessionStateMachine(self.store_factory(), user_id, clock=self.clock)
        try:
            suggestion = await machine.current_suggestion()
        except StoreUnavailable as e:
            logger.warning("Skipping break suggestion for %s: %s", user_id, e.message)
            return self.suggestions.get(user_id)

        self.suggestions[user_id] = suggestion
        if suggestion:
            logger.info("Break suggestion for %s: %s", user_id, suggestion)
        return suggestion
