from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol


logger = logging.getLogger(__name__)

Fetch = Callable[[], Awaitable[Any]]


class MonitorState(str, Enum):
    IDLE = "idle"
    SCHEDULED = "scheduled"
    FETCHING = "fetching"


class PollingPolicy(Protocol):
    def next_delay(self, result: Any, error: BaseException | None) -> float | None:
        """Seconds until the next tick, or ``None`` to stop polling."""


@dataclass(frozen=True)
class FixedIntervalPolicy:
    """Tick forever at a fixed period, whatever the previous tick returned."""

    interval_seconds: float = 2.0

    def next_delay(self, result: Any, error: BaseException | None) -> float | None:
        return self.interval_seconds


@dataclass(frozen=True)
class ConditionalReschedulePolicy:
    """Tick again only while ``should_continue(result)`` holds; stop on any error."""

    delay_seconds: float = 1.2
    should_continue: Callable[[Any], bool] = field(default=bool)

    def next_delay(self, result: Any, error: BaseException | None) -> float | None:
        if error is not None:
            return None
        return self.delay_seconds if self.should_continue(result) else None


@dataclass
class LoadLatch:
    loaded: bool = False

    def claim(self) -> bool:
        """Return True exactly once, on the first call."""
        if self.loaded:
            return False
        self.loaded = True
        return True


class PollingMonitor:
    """Owns at most one pending timer for a status fetch and applies a policy after each fetch.

    Stopping or restarting bumps a generation counter. A fetch that was already in
    flight still finishes (its effects land, last write wins) but can no longer
    schedule a tick.
    """

    def __init__(self, fetch: Fetch, policy: PollingPolicy, *, name: str = "monitor") -> None:
        self._fetch = fetch
        self.policy = policy
        self.name = name
        self._handle: asyncio.TimerHandle | None = None
        self._generation = 0
        self._inflight = 0
        self._tasks: set[asyncio.Task[Any]] = set()
        self.last_error: BaseException | None = None
        self.fetch_count = 0

    @property
    def state(self) -> MonitorState:
        if self._handle is not None:
            return MonitorState.SCHEDULED
        if self._inflight:
            return MonitorState.FETCHING
        return MonitorState.IDLE

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def start(self, delay: float = 0.0) -> None:
        """(Re)start the cycle; the first tick runs after ``delay`` seconds."""
        self._restart()
        self._schedule(delay)

    def stop(self) -> None:
        self._restart()

    async def run_now(self, fetch: Fetch | None = None) -> Any:
        """Cancel any pending tick, fetch immediately, then let the policy decide."""
        self._restart()
        return await self._run(fetch or self._fetch, self._generation)

    async def aclose(self) -> None:
        self.stop()
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    def _restart(self) -> None:
        self._generation += 1
        self._cancel_timer()

    def _cancel_timer(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _schedule(self, delay: float) -> None:
        self._cancel_timer()
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(max(0.0, delay), self._fire, self._generation)

    def _fire(self, generation: int) -> None:
        self._handle = None
        if generation != self._generation:
            return
        task = asyncio.get_running_loop().create_task(self._run(self._fetch, generation))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run(self, fetch: Fetch, generation: int) -> Any:
        result: Any = None
        error: BaseException | None = None
        self._inflight += 1
        try:
            result = await fetch()
        except Exception as exc:  # noqa: BLE001
            error = exc
            logger.warning("%s fetch failed: %s", self.name, exc)
        finally:
            self._inflight -= 1
            self.fetch_count += 1
        self.last_error = error
        if generation != self._generation:
            logger.debug("%s: ignoring schedule from a stale fetch", self.name)
            return result
        delay = self.policy.next_delay(result, error)
        if delay is not None:
            self._schedule(delay)
        return result
