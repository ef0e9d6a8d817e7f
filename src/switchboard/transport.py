"""HTTP transport shared by every backend codec.

Codecs describe *what* to send as an ``HttpCall``; the transport performs it
and maps failures onto the error taxonomy. Tests inject an
``httpx.MockTransport`` (or a wholly different ``Transport``) instead of
patching a network stack.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

import httpx

from switchboard.errors import ParseError
from switchboard.providers._errors import http_status_error, wrap_provider_error

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Mapping

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HttpCall:
    """One HTTP request, fully described."""

    method: str
    url: str
    json: Any = None
    headers: Mapping[str, str] = field(default_factory=dict)
    params: Mapping[str, str] | None = None
    timeout_s: float | None = None


@runtime_checkable
class StreamHandle(Protocol):
    """An open streaming response."""

    def lines(self) -> AsyncIterator[str]:
        """Iterate body lines; closes the response when exhausted."""
        ...

    async def aclose(self) -> None:
        """Release the underlying connection."""
        ...


@runtime_checkable
class Transport(Protocol):
    """Performs ``HttpCall``s and raises taxonomy errors on failure."""

    async def send(
        self, call: HttpCall, *, provider: str, phase: str
    ) -> Any:
        """Send *call* and return the decoded JSON body."""
        ...

    async def open_stream(
        self, call: HttpCall, *, provider: str, phase: str
    ) -> StreamHandle:
        """Send *call* and return a handle over the streamed body."""
        ...

    async def aclose(self) -> None:
        """Release pooled connections."""
        ...


def _request_kwargs(call: HttpCall) -> dict[str, Any]:
    kwargs: dict[str, Any] = {"headers": dict(call.headers)}
    if call.json is not None:
        kwargs["json"] = call.json
    if call.params:
        kwargs["params"] = dict(call.params)
    if call.timeout_s is not None:
        kwargs["timeout"] = call.timeout_s
    return kwargs


class HttpStream:
    """``StreamHandle`` over a streamed ``httpx.Response``."""

    def __init__(self, response: httpx.Response, *, provider: str, phase: str) -> None:
        self._response = response
        self._provider = provider
        self._phase = phase

    async def lines(self) -> AsyncIterator[str]:
        """Yield decoded body lines."""
        try:
            async for line in self._response.aiter_lines():
                yield line
        except httpx.HTTPError as exc:
            raise wrap_provider_error(
                exc, provider=self._provider, phase=self._phase
            ) from exc
        finally:
            await self.aclose()

    async def aclose(self) -> None:
        """Close the response."""
        await self._response.aclose()


class HttpTransport:
    """``Transport`` backed by a lazily created ``httpx.AsyncClient``."""

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        *,
        mock: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Use *client* as given, or build one (over *mock* when provided)."""
        self._client = client
        self._owns_client = client is None
        self._mock = mock

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(transport=self._mock, follow_redirects=True)
        return self._client

    async def send(
        self, call: HttpCall, *, provider: str = "backend", phase: str = "generate"
    ) -> Any:
        """Send *call* and decode its JSON body (``{}`` for an empty body)."""
        client = self._get_client()
        logger.debug("%s %s (%s %s)", call.method, call.url, provider, phase)
        try:
            response = await client.request(call.method, call.url, **_request_kwargs(call))
        except Exception as exc:
            raise wrap_provider_error(exc, provider=provider, phase=phase) from exc

        if response.is_error:
            raise http_status_error(response, provider=provider, phase=phase)
        if not response.content:
            return {}
        try:
            return response.json()
        except (ValueError, RecursionError) as exc:
            raise ParseError(
                f"{provider} {phase} returned a body that is not JSON "
                f"(status={response.status_code})",
                hint="Check that the endpoint points at the backend API root.",
            ) from exc

    async def open_stream(
        self, call: HttpCall, *, provider: str = "backend", phase: str = "stream"
    ) -> HttpStream:
        """Open a streamed response; status errors raise before any line is read."""
        client = self._get_client()
        logger.debug("%s %s (%s %s, streaming)", call.method, call.url, provider, phase)
        request = client.build_request(call.method, call.url, **_request_kwargs(call))
        try:
            response = await client.send(request, stream=True)
        except Exception as exc:
            raise wrap_provider_error(exc, provider=provider, phase=phase) from exc

        if response.is_error:
            try:
                await response.aread()
            finally:
                await response.aclose()
            raise http_status_error(response, provider=provider, phase=phase)
        return HttpStream(response, provider=provider, phase=phase)

    async def aclose(self) -> None:
        """Close the client if this transport created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> HttpTransport:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()
