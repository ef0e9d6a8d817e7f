"""Bind caller-owned cancellation signals to in-flight transport work.

The signal is owned by the caller and is read-only here: the bridge only
checks ``is_requested`` and subscribes with ``on_requested``. Every
subscription is disposed when the guarded call ends, so a cancellation that
arrives after completion is a no-op.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import threading
from typing import TYPE_CHECKING, Any, Protocol, TypeVar, runtime_checkable

from switchboard.errors import CancellationError

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Awaitable, Callable

T = TypeVar("T")

logger = logging.getLogger(__name__)

_ITEM = "item"
_END = "end"
_ERROR = "error"
_STOP = "stop"


@runtime_checkable
class CancellationSignal(Protocol):
    """Externally owned cancellation signal."""

    @property
    def is_requested(self) -> bool:
        """Whether cancellation has been requested."""
        ...

    def on_requested(
        self, callback: Callable[[], None]
    ) -> Callable[[], None] | None:
        """Register *callback*; return a disposer (or None) to unregister it."""
        ...


class CancellationSource:
    """Thread-safe signal for callers that do not bring their own.

    Registering on an already-cancelled source runs the callback at once.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._requested = False
        self._callbacks: dict[int, Callable[[], None]] = {}
        self._next_id = 0

    @property
    def is_requested(self) -> bool:
        """Whether ``cancel()`` has been called."""
        return self._requested

    def on_requested(self, callback: Callable[[], None]) -> Callable[[], None]:
        """Register *callback* and return its disposer."""
        with self._lock:
            if not self._requested:
                token = self._next_id
                self._next_id += 1
                self._callbacks[token] = callback

                def dispose() -> None:
                    with self._lock:
                        self._callbacks.pop(token, None)

                return dispose
        callback()
        return lambda: None

    def cancel(self) -> None:
        """Request cancellation; idempotent."""
        with self._lock:
            if self._requested:
                return
            self._requested = True
            callbacks = list(self._callbacks.values())
            self._callbacks.clear()
        for callback in callbacks:
            try:
                callback()
            except Exception as exc:
                # One failing subscriber must not starve the others.
                logger.warning("Cancellation callback failed: %s", exc)


class CancellationBridge:
    """Converts a ``CancellationSignal`` into task-level aborts for one call."""

    def __init__(self, signal: CancellationSignal | None = None) -> None:
        self._signal = signal

    @property
    def requested(self) -> bool:
        """Whether the bound signal has fired."""
        return self._signal is not None and bool(self._signal.is_requested)

    def check(self) -> None:
        """Raise ``CancellationError`` if cancellation was requested."""
        if self.requested:
            raise CancellationError("Request cancelled")

    async def run(self, factory: Callable[[], Awaitable[T]]) -> T:
        """Await *factory()* in a task that the signal can abort.

        Raises ``CancellationError`` when the signal aborted the work; a
        cancellation of the caller's own task propagates unchanged.
        """
        self.check()
        signal = self._signal
        if signal is None:
            return await factory()

        loop = asyncio.get_running_loop()
        task: asyncio.Task[T] = loop.create_task(_awaitable(factory))
        aborted = False

        def abort() -> None:
            nonlocal aborted
            if not task.done():
                aborted = True
                task.cancel()

        dispose = signal.on_requested(lambda: _call_in_loop(loop, abort))
        try:
            return await task
        except asyncio.CancelledError:
            if aborted and not _caller_cancelling():
                logger.debug("In-flight request aborted by cancellation signal")
                raise CancellationError("Request cancelled") from None
            raise
        except Exception as exc:
            if aborted:
                raise CancellationError("Request cancelled") from exc
            raise
        finally:
            if dispose is not None:
                dispose()

    async def sleep(self, delay: float) -> None:
        """Sleep for *delay* seconds unless cancellation interrupts it."""
        self.check()
        if delay <= 0:
            return
        await self.run(lambda: asyncio.sleep(delay))

    async def stream(
        self, source: Callable[[], AsyncIterator[T]]
    ) -> AsyncIterator[T]:
        """Yield from *source()* until it ends or cancellation is observed.

        The source runs in a producer task that hands over one item at a
        time. On cancellation the producer is cancelled (releasing the
        transport) and nothing further is yielded, including items that were
        already received.
        """
        if self.requested:
            return
        signal = self._signal
        if signal is None:
            async for item in source():
                yield item
            return

        loop = asyncio.get_running_loop()
        queue: asyncio.Queue[tuple[str, Any]] = asyncio.Queue(maxsize=1)

        async def produce() -> None:
            try:
                async for item in source():
                    await queue.put((_ITEM, item))
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                await queue.put((_ERROR, exc))
                return
            await queue.put((_END, None))

        producer = loop.create_task(produce())

        def stop() -> None:
            producer.cancel()
            while not queue.empty():
                queue.get_nowait()
            queue.put_nowait((_STOP, None))

        dispose = signal.on_requested(lambda: _call_in_loop(loop, stop))
        try:
            while not self.requested:
                kind, payload = await queue.get()
                if kind in (_STOP, _END) or self.requested:
                    break
                if kind == _ERROR:
                    raise payload
                yield payload
            logger.debug("Stream finished (cancelled=%s)", self.requested)
        finally:
            if dispose is not None:
                dispose()
            if not producer.done():
                producer.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await producer


async def _awaitable(factory: Callable[[], Awaitable[T]]) -> T:
    return await factory()


def _call_in_loop(loop: asyncio.AbstractEventLoop, callback: Callable[[], None]) -> None:
    """Run *callback* on *loop*, whichever thread the signal fires from."""
    try:
        running = asyncio.get_running_loop()
    except RuntimeError:
        running = None
    if running is loop:
        callback()
        return
    with contextlib.suppress(RuntimeError):
        # Loop already closed: the call it guarded is long finished.
        loop.call_soon_threadsafe(callback)


def _caller_cancelling() -> bool:
    """Whether the current task itself has a pending cancellation request."""
    current = asyncio.current_task()
    cancelling = getattr(current, "cancelling", None)
    return bool(callable(cancelling) and cancelling())
