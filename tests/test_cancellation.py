"""Cancellation bridge: pre-checks, in-flight aborts, stream teardown."""

from __future__ import annotations

import asyncio
import logging

import pytest

from switchboard.cancellation import (
    CancellationBridge,
    CancellationSignal,
    CancellationSource,
)
from switchboard.errors import CancellationError
from tests.helpers import ManualSignal

pytestmark = pytest.mark.unit


async def _numbers(count: int, *, error: Exception | None = None):
    for i in range(count):
        await asyncio.sleep(0)
        yield i
    if error is not None:
        raise error


# =============================================================================
# CancellationSource
# =============================================================================


def test_source_satisfies_signal_protocol() -> None:
    assert isinstance(CancellationSource(), CancellationSignal)
    assert isinstance(ManualSignal(), CancellationSignal)


def test_source_runs_callbacks_once() -> None:
    source = CancellationSource()
    fired: list[str] = []
    source.on_requested(lambda: fired.append("a"))

    source.cancel()
    source.cancel()

    assert source.is_requested
    assert fired == ["a"]


def test_source_disposed_callback_is_not_run() -> None:
    source = CancellationSource()
    fired: list[str] = []
    dispose = source.on_requested(lambda: fired.append("a"))

    dispose()
    source.cancel()

    assert fired == []


def test_source_late_subscriber_runs_immediately() -> None:
    source = CancellationSource()
    source.cancel()
    fired: list[str] = []

    source.on_requested(lambda: fired.append("late"))

    assert fired == ["late"]


def test_source_failing_callback_does_not_starve_others(
    caplog: pytest.LogCaptureFixture,
) -> None:
    source = CancellationSource()
    fired: list[str] = []

    def broken() -> None:
        raise RuntimeError("subscriber bug")

    source.on_requested(broken)
    source.on_requested(lambda: fired.append("ok"))

    with caplog.at_level(logging.WARNING, logger="switchboard.cancellation"):
        source.cancel()

    assert fired == ["ok"]
    assert "subscriber bug" in caplog.text


# =============================================================================
# CancellationBridge.run
# =============================================================================


@pytest.mark.asyncio
async def test_run_without_signal_just_awaits() -> None:
    async def work() -> int:
        return 7

    assert await CancellationBridge().run(work) == 7
    CancellationBridge().check()


@pytest.mark.asyncio
async def test_pre_requested_signal_skips_the_work() -> None:
    calls = 0

    async def work() -> None:
        nonlocal calls
        calls += 1

    bridge = CancellationBridge(ManualSignal(requested=True))

    with pytest.raises(CancellationError, match="Request cancelled"):
        await bridge.run(work)
    assert calls == 0


@pytest.mark.asyncio
async def test_in_flight_work_is_aborted() -> None:
    signal = ManualSignal()
    started = asyncio.Event()
    aborted = asyncio.Event()

    async def hang() -> None:
        started.set()
        try:
            await asyncio.sleep(30)
        except asyncio.CancelledError:
            aborted.set()
            raise

    call = asyncio.create_task(CancellationBridge(signal).run(hang))
    await started.wait()
    signal.cancel()

    with pytest.raises(CancellationError):
        await asyncio.wait_for(call, timeout=5.0)
    assert aborted.is_set()
    assert signal.active == 0


@pytest.mark.asyncio
async def test_signal_after_completion_is_a_no_op() -> None:
    signal = ManualSignal()

    async def work() -> str:
        return "done"

    result = await CancellationBridge(signal).run(work)
    signal.cancel()

    assert result == "done"
    assert signal.registrations == 1
    assert signal.active == 0


@pytest.mark.asyncio
async def test_callers_own_cancellation_propagates_unchanged() -> None:
    signal = ManualSignal()
    started = asyncio.Event()

    async def hang() -> None:
        started.set()
        await asyncio.sleep(30)

    call = asyncio.create_task(CancellationBridge(signal).run(hang))
    await started.wait()
    call.cancel()

    with pytest.raises(asyncio.CancelledError):
        await call
    assert signal.active == 0


@pytest.mark.asyncio
async def test_errors_from_work_propagate_when_not_cancelled() -> None:
    async def boom() -> None:
        raise ValueError("boom")

    with pytest.raises(ValueError, match="boom"):
        await CancellationBridge(ManualSignal()).run(boom)


@pytest.mark.asyncio
async def test_cancel_from_another_thread() -> None:
    source = CancellationSource()
    started = asyncio.Event()

    async def hang() -> None:
        started.set()
        await asyncio.sleep(30)

    call = asyncio.create_task(CancellationBridge(source).run(hang))
    await started.wait()
    await asyncio.get_running_loop().run_in_executor(None, source.cancel)

    with pytest.raises(CancellationError):
        await asyncio.wait_for(call, timeout=5.0)


@pytest.mark.asyncio
async def test_sleep_is_interruptible() -> None:
    signal = ManualSignal()
    asyncio.get_running_loop().call_later(0.02, signal.cancel)

    with pytest.raises(CancellationError):
        await asyncio.wait_for(CancellationBridge(signal).sleep(30), timeout=5.0)


@pytest.mark.asyncio
async def test_zero_sleep_returns_immediately() -> None:
    signal = ManualSignal()

    await CancellationBridge(signal).sleep(0)

    assert signal.registrations == 0


# =============================================================================
# CancellationBridge.stream
# =============================================================================


@pytest.mark.asyncio
async def test_stream_without_signal_yields_everything() -> None:
    items = [i async for i in CancellationBridge().stream(lambda: _numbers(3))]

    assert items == [0, 1, 2]


@pytest.mark.asyncio
async def test_stream_with_idle_signal_yields_everything() -> None:
    signal = ManualSignal()

    items = [i async for i in CancellationBridge(signal).stream(lambda: _numbers(4))]

    assert items == [0, 1, 2, 3]
    assert signal.active == 0


@pytest.mark.asyncio
async def test_stream_stops_after_cancellation() -> None:
    signal = ManualSignal()
    received: list[int] = []

    async for item in CancellationBridge(signal).stream(lambda: _numbers(100)):
        received.append(item)
        if item == 0:
            signal.cancel()

    assert received == [0]
    assert signal.active == 0


@pytest.mark.asyncio
async def test_pre_cancelled_stream_yields_nothing() -> None:
    signal = ManualSignal(requested=True)

    items = [i async for i in CancellationBridge(signal).stream(lambda: _numbers(3))]

    assert items == []
    assert signal.registrations == 0


@pytest.mark.asyncio
async def test_stream_source_error_propagates() -> None:
    signal = ManualSignal()
    received: list[int] = []

    with pytest.raises(RuntimeError, match="dropped"):
        async for item in CancellationBridge(signal).stream(
            lambda: _numbers(2, error=RuntimeError("dropped"))
        ):
            received.append(item)

    assert received == [0, 1]
    assert signal.active == 0
