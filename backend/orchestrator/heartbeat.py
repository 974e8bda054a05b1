"""
Connection liveness monitor.

Responsibilities:
- Every interval, probe the connection if it has been idle longer than the
  interval
- Report a failed probe once and stop

Non-responsibilities:
- NO reconnection (the failure callback hands off)
- NO state machine decisions (the controller starts/stops the monitor)

This module is infrastructure only.
"""

from __future__ import annotations

import asyncio
import time
from typing import Awaitable, Callable

from constants import HEARTBEAT_INTERVAL_MS
from observability.logger import EventLogger


# ---------------------------------------------------------------------
# Types
# ---------------------------------------------------------------------

SendKeepAliveFn = Callable[[], Awaitable[None]]
FailureFn = Callable[[str], None]
ClockFn = Callable[[], int]


def _now_ms() -> int:
    return time.monotonic_ns() // 1_000_000


# ---------------------------------------------------------------------
# Heartbeat Monitor
# ---------------------------------------------------------------------

class HeartbeatMonitor:
    """
    Idle-liveness timer.

    Lifecycle:
    1. Controller calls start() on entering CONNECTED
    2. Every inbound transport event calls touch()
    3. Timer fires every interval -> tick()
    4a. Idle > interval: send keepalive, mark activity
    4b. Keepalive raised: stop, call on_failure(reason)
    5. Controller calls stop() on leaving CONNECTED
    """

    def __init__(
        self,
        *,
        send_keepalive: SendKeepAliveFn,
        on_failure: FailureFn,
        interval_ms: int = HEARTBEAT_INTERVAL_MS,
        clock_ms: ClockFn = _now_ms,
    ) -> None:
        self._send_keepalive = send_keepalive
        self._on_failure = on_failure
        self._interval_ms = interval_ms
        self._clock_ms = clock_ms

        self._last_activity_ms = clock_ms()
        self._task: asyncio.Task[None] | None = None
        self._log = EventLogger("heartbeat")

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def last_activity_ms(self) -> int:
        return self._last_activity_ms

    def touch(self) -> None:
        """Record inbound activity."""
        self._last_activity_ms = self._clock_ms()

    def start(self) -> None:
        """Start (or restart) the timer. Counts as activity."""
        self.stop()
        self.touch()
        self._task = asyncio.create_task(self._run())

    def stop(self) -> None:
        """
        Cancel the timer.

        Idempotent. Takes effect before the next await point of the timer
        task, so no keepalive or failure report happens after it returns.
        """
        task = self._task
        self._task = None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

    async def tick(self) -> bool:
        """
        Run one liveness check.

        Returns False if the keepalive failed (monitor stopped).
        """
        now = self._clock_ms()
        if now - self._last_activity_ms <= self._interval_ms:
            return True

        try:
            await self._send_keepalive()
        except Exception as e:  # pylint: disable=broad-exception-caught
            self._log.log("heartbeat_failed", error=repr(e))
            self.stop()
            self._on_failure(f"heartbeat failed: {e!r}")
            return False

        self._last_activity_ms = now
        self._log.log("heartbeat_sent")
        return True

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    async def _run(self) -> None:
        try:
            while True:
                await asyncio.sleep(self._interval_ms / 1000.0)
                if not await self.tick():
                    return
        except asyncio.CancelledError:
            return
