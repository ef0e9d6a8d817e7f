"""Test helpers (small, reusable doubles).

Keep this file tiny and purpose-built: it exists to prevent test suites from
growing lots of one-off transports and signals as coverage expands.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
import json
from typing import TYPE_CHECKING, Any

import httpx

from switchboard.adapter import ProviderAdapter
from switchboard.catalog import profiles_by_id
from switchboard.config import ProviderConfig
from switchboard.retry import RetryPolicy
from switchboard.transport import HttpTransport

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable

    from switchboard.transport import HttpCall

FAST_RETRY = RetryPolicy(max_retries=2, initial_delay_s=0.0)


@dataclass
class ManualSignal:
    """CancellationSignal the test fires by hand; tracks live subscriptions."""

    requested: bool = False
    callbacks: dict[int, Callable[[], None]] = field(default_factory=dict)
    registrations: int = 0
    _next: int = 0

    @property
    def is_requested(self) -> bool:
        return self.requested

    def on_requested(self, callback: Callable[[], None]) -> Callable[[], None] | None:
        self.registrations += 1
        if self.requested:
            callback()
            return None
        token = self._next
        self._next += 1
        self.callbacks[token] = callback

        def dispose() -> None:
            self.callbacks.pop(token, None)

        return dispose

    def cancel(self) -> None:
        self.requested = True
        for callback in list(self.callbacks.values()):
            callback()

    @property
    def active(self) -> int:
        """Subscriptions not yet disposed."""
        return len(self.callbacks)


@dataclass
class FakeStream:
    """StreamHandle over scripted lines.

    With ``pause_after`` set, the stream blocks after that many lines until
    ``release`` is set.
    """

    items: list[str] = field(default_factory=list)
    error: BaseException | None = None
    pause_after: int | None = None
    release: asyncio.Event = field(default_factory=asyncio.Event)
    closed: bool = False
    yielded: int = 0

    async def lines(self) -> AsyncIterator[str]:
        try:
            for index, line in enumerate(self.items):
                if self.pause_after is not None and index == self.pause_after:
                    await self.release.wait()
                await asyncio.sleep(0)
                self.yielded += 1
                yield line
            if self.error is not None:
                raise self.error
        finally:
            self.closed = True

    async def aclose(self) -> None:
        self.closed = True


@dataclass
class ScriptedTransport:
    """Transport that returns (or raises) scripted items in order.

    ``hang`` makes every send block until the event is set, simulating an
    in-flight request; ``started`` is set as soon as a send begins.
    """

    script: list[Any] = field(default_factory=list)
    streams: list[FakeStream | BaseException] = field(default_factory=list)
    calls: list[HttpCall] = field(default_factory=list)
    phases: list[str] = field(default_factory=list)
    stream_calls: list[HttpCall] = field(default_factory=list)
    hang: asyncio.Event | None = None
    started: asyncio.Event = field(default_factory=asyncio.Event)
    aborted: bool = False
    closed: bool = False

    async def send(self, call: HttpCall, *, provider: str = "", phase: str = "") -> Any:
        self.calls.append(call)
        self.phases.append(phase)
        self.started.set()
        if self.hang is not None:
            try:
                await self.hang.wait()
            except asyncio.CancelledError:
                self.aborted = True
                raise
        if not self.script:
            return {}
        item = self.script.pop(0)
        if isinstance(item, BaseException):
            raise item
        return item

    async def open_stream(
        self, call: HttpCall, *, provider: str = "", phase: str = ""
    ) -> FakeStream:
        self.stream_calls.append(call)
        if not self.streams:
            return FakeStream()
        item = self.streams.pop(0)
        if isinstance(item, BaseException):
            raise item
        return item

    async def aclose(self) -> None:
        self.closed = True


def make_adapter(
    provider_id: str,
    transport: Any,
    *,
    api_key: str | None = "test-key",
    retry_policy: RetryPolicy = FAST_RETRY,
    **config: Any,
) -> ProviderAdapter:
    """Adapter for a built-in profile with an explicit config snapshot."""
    profile = profiles_by_id()[provider_id]
    return ProviderAdapter(
        profile,
        ProviderConfig(api_key=api_key, **config),
        transport=transport,
        retry_policy=retry_policy,
    )


def mock_http(handler: Callable[[httpx.Request], httpx.Response]) -> HttpTransport:
    """HttpTransport whose client is backed by ``httpx.MockTransport``."""
    return HttpTransport(mock=httpx.MockTransport(handler))


def sse(*events: Any, done: bool = True) -> list[str]:
    """Render events as SSE body lines."""
    lines: list[str] = []
    for event in events:
        lines.extend([f"data: {json.dumps(event)}", ""])
    if done:
        lines.extend(["data: [DONE]", ""])
    return lines


def ndjson(*events: Any) -> list[str]:
    """Render events as NDJSON body lines."""
    return [json.dumps(event) for event in events]
