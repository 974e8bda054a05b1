# pylint: disable=missing-module-docstring,missing-function-docstring

import asyncio

from orchestrator.heartbeat import HeartbeatMonitor

from fakes import FakeClock


def make_monitor(
    clock: FakeClock,
    sent: list[int],
    failures: list[str],
    fail: bool = False,
) -> HeartbeatMonitor:
    async def send_keepalive() -> None:
        if fail:
            raise ConnectionError("socket gone")
        sent.append(clock.now)

    return HeartbeatMonitor(
        send_keepalive=send_keepalive,
        on_failure=failures.append,
        interval_ms=15_000,
        clock_ms=clock,
    )


def test_keepalive_only_after_idle_longer_than_interval():
    clock = FakeClock()
    sent: list[int] = []
    failures: list[str] = []
    hb = make_monitor(clock, sent, failures)

    async def scenario() -> None:
        clock.now = 15_000
        assert await hb.tick() is True
        clock.now = 15_001
        assert await hb.tick() is True

    asyncio.run(scenario())

    assert sent == [15_001]
    assert hb.last_activity_ms == 15_001
    assert failures == []


def test_inbound_activity_postpones_keepalive():
    clock = FakeClock()
    sent: list[int] = []
    hb = make_monitor(clock, sent, [])

    async def scenario() -> None:
        clock.now = 10_000
        hb.touch()
        clock.now = 20_000
        await hb.tick()
        clock.now = 25_001
        await hb.tick()

    asyncio.run(scenario())

    assert sent == [25_001]


def test_failed_keepalive_reports_once_and_stops():
    clock = FakeClock()
    failures: list[str] = []
    hb = make_monitor(clock, [], failures, fail=True)

    async def scenario() -> bool:
        hb.start()
        assert hb.running
        clock.now = 30_000
        return await hb.tick()

    assert asyncio.run(scenario()) is False
    assert len(failures) == 1
    assert "socket gone" in failures[0]
    assert not hb.running


def test_stop_is_idempotent_and_cancels_timer():
    hb = make_monitor(FakeClock(), [], [])

    async def scenario() -> None:
        hb.start()
        assert hb.running
        hb.stop()
        hb.stop()
        assert not hb.running
        await asyncio.sleep(0)

    asyncio.run(scenario())
