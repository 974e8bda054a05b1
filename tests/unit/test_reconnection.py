# pylint: disable=missing-module-docstring,missing-function-docstring

import asyncio

from orchestrator.reconnection import ReconnectionManager
from session.controller import SessionResult
from session.errors import AuthError, TransportError
from session.session_state import SessionState

from fakes import BlockingSleep, FakeSleep

OK = SessionResult(ok=True, state=SessionState.CONNECTED)
DROPPED = SessionResult(
    ok=False,
    state=SessionState.RECONNECTING,
    error=TransportError("network drop"),
)
REJECTED = SessionResult(
    ok=False,
    state=SessionState.RECONNECTING,
    error=AuthError("invalid api key"),
)


class Script:
    """connect() returning scripted results, plus outcome callbacks."""

    def __init__(self, *results: SessionResult) -> None:
        self._results = list(results)
        self.calls = 0
        self.reconnected = 0
        self.exhausted = 0

    async def connect(self) -> SessionResult:
        self.calls += 1
        return self._results.pop(0)

    async def on_reconnected(self) -> None:
        self.reconnected += 1

    async def on_exhausted(self) -> None:
        self.exhausted += 1


def make_manager(script: Script, sleep) -> ReconnectionManager:
    return ReconnectionManager(
        connect=script.connect,
        on_reconnected=script.on_reconnected,
        on_exhausted=script.on_exhausted,
        sleep=sleep,
    )


def test_success_on_second_attempt_resets_counter():
    script = Script(DROPPED, OK)
    sleep = FakeSleep()
    mgr = make_manager(script, sleep)

    async def scenario() -> None:
        mgr.start()
        await mgr.join()

    asyncio.run(scenario())

    assert script.calls == 2
    assert sleep.delays == [2.0, 2.0]
    assert script.reconnected == 1
    assert script.exhausted == 0
    assert mgr.attempts == 0


def test_three_failures_exhaust_once():
    script = Script(DROPPED, DROPPED, DROPPED)
    sleep = FakeSleep()
    mgr = make_manager(script, sleep)

    async def scenario() -> None:
        mgr.start()
        await mgr.join()

    asyncio.run(scenario())

    assert script.calls == 3
    assert sleep.delays == [2.0, 2.0, 2.0]
    assert script.exhausted == 1
    assert script.reconnected == 0
    assert mgr.attempts == 3


def test_fatal_failure_stops_without_exhaustion():
    script = Script(DROPPED, REJECTED)
    mgr = make_manager(script, FakeSleep())

    async def scenario() -> None:
        mgr.start()
        await mgr.join()

    asyncio.run(scenario())

    assert script.calls == 2
    assert script.exhausted == 0
    assert script.reconnected == 0


def test_cancel_during_delay_prevents_any_attempt():
    script = Script(OK)
    sleep = BlockingSleep()
    mgr = make_manager(script, sleep)

    async def scenario() -> None:
        mgr.start()
        await asyncio.sleep(0)
        assert mgr.active
        mgr.cancel()
        await mgr.join()
        await asyncio.sleep(0)

    asyncio.run(scenario())

    assert sleep.delays == [2.0]
    assert script.calls == 0
    assert not mgr.active


def test_start_while_active_is_a_noop():
    script = Script(OK)
    sleep = BlockingSleep()
    mgr = make_manager(script, sleep)

    async def scenario() -> None:
        mgr.start()
        await asyncio.sleep(0)
        mgr.start()
        await asyncio.sleep(0)
        mgr.cancel()

    asyncio.run(scenario())

    assert sleep.delays == [2.0]
