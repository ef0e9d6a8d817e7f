"""Exception hierarchy for Switchboard.

Internals raise these; the public adapter operations turn them into data
(``GenerationResult.error`` / ``finish_reason``) so callers never need to
catch anything to use the contract correctly.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterator


class SwitchboardError(Exception):
    """Base exception for all Switchboard errors."""

    def __init__(self, message: str, *, hint: str | None = None) -> None:
        super().__init__(message)
        self.hint = hint


class ConfigurationError(SwitchboardError):
    """Configuration is missing or invalid (e.g. required API key absent)."""


class NetworkError(SwitchboardError):
    """Transport-level failure: connection refused, connect or socket timeout.

    Only retryable network errors are retried by the retry executor.
    """

    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        retryable: bool = True,
        provider: str | None = None,
        phase: str | None = None,
    ) -> None:
        super().__init__(message, hint=hint)
        self.retryable = retryable
        self.provider = provider
        self.phase = phase


class RemoteAPIError(SwitchboardError):
    """Backend answered with a non-2xx application error. Never retried."""

    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        status_code: int | None = None,
        provider: str | None = None,
        phase: str | None = None,
    ) -> None:
        super().__init__(message, hint=hint)
        self.status_code = status_code
        self.provider = provider
        self.phase = phase


class CancellationError(SwitchboardError):
    """The caller's cancellation signal was observed."""


class ParseError(SwitchboardError):
    """A backend payload (e.g. tool-call arguments) could not be decoded."""


class InternalError(SwitchboardError):
    """A Switchboard internal error (bug) or invariant violation."""


def _walk_exception_chain(exc: BaseException) -> Iterator[BaseException]:
    """Yield *exc* and its ``__cause__``/``__context__`` chain, with cycle protection."""
    seen: set[int] = set()
    stack: list[BaseException] = [exc]
    while stack:
        cur = stack.pop()
        if id(cur) in seen:
            continue
        seen.add(id(cur))
        yield cur

        cause = cur.__cause__
        if isinstance(cause, BaseException):
            stack.append(cause)
        context = cur.__context__
        if isinstance(context, BaseException):
            stack.append(context)
