"""
Bounded reconnection loop.

Responsibilities:
- After an unexpected drop, retry the connection a fixed number of times
  with a fixed delay before each attempt
- Reset the attempt counter after a successful reconnect
- Report success or exhaustion exactly once per run

Non-responsibilities:
- NO connection logic (injected connect callable)
- NO status emission (callbacks decide)
- NO context replay (on_reconnected decides)

Cancellation:
- cancel() bumps an epoch; a run whose epoch is stale never calls back.
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable

from constants import RECONNECT_DELAY_MS, RECONNECT_MAX_ATTEMPTS
from observability.logger import EventLogger


# ---------------------------------------------------------------------
# Types
# ---------------------------------------------------------------------

# connect() returns an object exposing .ok and .error (SessionResult)
ConnectFn = Callable[[], Awaitable[Any]]
NotifyFn = Callable[[], Awaitable[None]]
SleepFn = Callable[[float], Awaitable[None]]


# ---------------------------------------------------------------------
# Reconnection Manager
# ---------------------------------------------------------------------

class ReconnectionManager:
    """
    Drives attempts 1..max_attempts.

    Attempt numbering:
    - attempts == 0 means no retry performed since the last success
    - attempts == N means the Nth retry is in flight or has failed
    """

    def __init__(
        self,
        *,
        connect: ConnectFn,
        on_reconnected: NotifyFn,
        on_exhausted: NotifyFn,
        max_attempts: int = RECONNECT_MAX_ATTEMPTS,
        delay_ms: int = RECONNECT_DELAY_MS,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        self._connect = connect
        self._on_reconnected = on_reconnected
        self._on_exhausted = on_exhausted
        self._max_attempts = max_attempts
        self._delay_ms = delay_ms
        self._sleep = sleep

        self._attempts = 0
        self._epoch = 0
        self._task: asyncio.Task[None] | None = None
        self._log = EventLogger("reconnection")

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    @property
    def attempts(self) -> int:
        return self._attempts

    @property
    def max_attempts(self) -> int:
        return self._max_attempts

    @property
    def active(self) -> bool:
        return self._task is not None and not self._task.done()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Begin a reconnection run. No-op if one is already active."""
        if self.active:
            return
        self._epoch += 1
        self._task = asyncio.create_task(self._run(self._epoch))

    def cancel(self) -> None:
        """Stop any pending or in-flight run. Idempotent."""
        self._epoch += 1
        task = self._task
        self._task = None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

    def reset(self) -> None:
        self._attempts = 0

    async def join(self) -> None:
        """Wait for the current run (if any) to finish."""
        task = self._task
        if task is None:
            return
        try:
            await task
        except asyncio.CancelledError:
            pass

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    async def _run(self, epoch: int) -> None:
        while self._attempts < self._max_attempts:
            self._attempts += 1
            attempt = self._attempts
            self._log.log(
                "reconnect_scheduled",
                attempt=attempt,
                max_attempts=self._max_attempts,
                delay_ms=self._delay_ms,
            )

            await self._sleep(self._delay_ms / 1000.0)
            if epoch != self._epoch:
                return

            result = await self._connect()
            if epoch != self._epoch:
                return

            if result.ok:
                self._log.log("reconnect_succeeded", attempt=attempt)
                self._attempts = 0
                await self._on_reconnected()
                return

            error = result.error
            self._log.log(
                "reconnect_attempt_failed",
                attempt=attempt,
                error=str(error) if error is not None else None,
            )
            if error is not None and getattr(error, "fatal", False):
                return

        self._log.log("reconnect_exhausted", attempts=self._attempts)
        await self._on_exhausted()
