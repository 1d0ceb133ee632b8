import asyncio
import enum
import logging
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from typing import Any

from .config import DEFAULT_REVISION
from .schedule import CronSchedule

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(UTC)


class SchedulerState(enum.Enum):
    IDLE = "idle"
    WAITING = "waiting"
    RUNNING = "running"


class Scheduler:
    """Fire ``trigger(revision)`` at each time produced by ``schedule``.

    Fire times that are already past when reached (the host slept, or the
    previous run overran) are skipped rather than caught up. A run is awaited
    to completion before the next fire time is considered, so at most one is
    in flight. Trigger failures are logged and never stop the loop.
    """

    def __init__(
        self,
        schedule: CronSchedule,
        trigger: Callable[[str], Awaitable[Any]],
        *,
        revision: str = DEFAULT_REVISION,
        clock: Callable[[], datetime] = utc_now,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.schedule = schedule
        self.trigger = trigger
        self.revision = revision
        self._clock = clock
        self._sleep = sleep
        self.state = SchedulerState.IDLE
        self.fires = 0
        self.skipped = 0
        self.failures = 0

    async def run(self, max_fires: int | None = None) -> None:
        """Walk the schedule; stop after ``max_fires`` runs if given."""
        for fire_at in self.schedule.upcoming(self._clock()):
            if max_fires is not None and self.fires >= max_fires:
                return

            delay = (fire_at - self._clock()).total_seconds()
            if delay < 0:
                self.skipped += 1
                logger.debug("Skipping past fire time %s", fire_at.isoformat())
                continue

            self.state = SchedulerState.WAITING
            logger.info("Next benchmark of %s at %s", self.revision, fire_at.isoformat())
            await self._sleep(delay)

            self.state = SchedulerState.RUNNING
            self.fires += 1
            try:
                await self.trigger(self.revision)
            except Exception:
                self.failures += 1
                logger.exception("Error running benchmark for %s", self.revision)
            finally:
                self.state = SchedulerState.IDLE

        logger.warning("Schedule %r has no further fire times", self.schedule.expression)

    async def daemon(self) -> None:
        await self.run()


__all__ = ["Scheduler", "SchedulerState", "utc_now"]
