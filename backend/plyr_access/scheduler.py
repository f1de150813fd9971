import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Awaitable, Callable, Optional

from .clock import Clock, system_clock
from .config import Settings

logger = logging.getLogger("plyr-access-scheduler")


@dataclass(frozen=True)
class RefreshPolicy:
    tick_interval: timedelta = timedelta(seconds=1)
    publish_interval: timedelta = timedelta(seconds=5)

    @classmethod
    def from_settings(cls, config: Settings) -> "RefreshPolicy":
        return cls(
            tick_interval=timedelta(seconds=config.REFRESH_TICK_SEC),
            publish_interval=timedelta(seconds=config.REFRESH_PUBLISH_SEC),
        )


@dataclass(frozen=True)
class RefreshThrottle:
    publish_interval: timedelta

    def should_publish(self, now: datetime, last_published_at: Optional[datetime]) -> bool:
        if last_published_at is None:
            return True
        elapsed = now - last_published_at
        if elapsed < timedelta(0):
            # clock went backwards (sleep/wake, manual change); recompute from the fresh instant
            return True
        return elapsed >= self.publish_interval


class RefreshScheduler:
    """
    Checks the clock every tick and republishes at most once per publish interval.

    `on_publish` receives the instant read from the clock; callers recompute
    everything from it, never from the previous tick.
    """

    def __init__(
        self,
        on_publish: Callable[[datetime], None],
        *,
        clock: Clock = system_clock,
        policy: RefreshPolicy = RefreshPolicy(),
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self._on_publish = on_publish
        self._clock = clock
        self._policy = policy
        self._throttle = RefreshThrottle(policy.publish_interval)
        self._sleep = sleep
        self._task: Optional[asyncio.Task] = None
        self._last_published_at: Optional[datetime] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def last_published_at(self) -> Optional[datetime]:
        return self._last_published_at

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run())

    def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            self._task = None
        self._last_published_at = None

    def mark_published(self, now: datetime) -> None:
        self._last_published_at = now

    def tick(self) -> bool:
        now = self._clock.now()
        if not self._throttle.should_publish(now, self._last_published_at):
            return False
        self._last_published_at = now
        self._on_publish(now)
        return True

    async def _run(self) -> None:
        interval = self._policy.tick_interval.total_seconds()
        while True:
            await self._sleep(interval)
            try:
                self.tick()
            except Exception:
                logger.error("Refresh tick failed", exc_info=True)
