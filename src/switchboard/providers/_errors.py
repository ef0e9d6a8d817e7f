"""Shared provider-side error helpers.

Transport failures are mapped onto the closed error taxonomy here, so the
retry executor can classify them by type instead of by message text.
"""

from __future__ import annotations

import asyncio
from typing import Any

import httpx

from switchboard.config import api_key_env_vars
from switchboard.errors import (
    NetworkError,
    RemoteAPIError,
    SwitchboardError,
    _walk_exception_chain,
)


def extract_status_code(exc: BaseException) -> int | None:
    """Walk the exception chain to find an HTTP status code."""
    for e in _walk_exception_chain(exc):
        for attr in ("status_code", "status"):
            value = getattr(e, attr, None)
            if isinstance(value, int) and 100 <= value <= 599:
                return value
        response = getattr(e, "response", None)
        value = getattr(response, "status_code", None)
        if isinstance(value, int) and 100 <= value <= 599:
            return value
    return None


def extract_error_message(body: Any) -> str | None:
    """Pull the human-readable message out of a backend error body.

    Handles ``{"error": {"message": ...}}``, ``{"error": "..."}``,
    ``{"message": ...}`` and ``{"detail": ...}`` shapes.
    """
    if isinstance(body, str):
        return body.strip() or None
    if not isinstance(body, dict):
        return None
    error = body.get("error")
    if isinstance(error, dict):
        message = error.get("message")
        if isinstance(message, str) and message:
            return message
    if isinstance(error, str) and error:
        return error
    for key in ("message", "detail"):
        value = body.get(key)
        if isinstance(value, str) and value:
            return value
    return None


def _auth_hint(
    provider: str, status_code: int | None, cause_message: str
) -> str | None:
    """Generate a hint for auth errors where naming the env var is useful."""
    cause_lower = cause_message.lower()
    if status_code in {401, 403} or (
        status_code == 400 and ("api key" in cause_lower or "api_key" in cause_lower)
    ):
        env_var = api_key_env_vars(provider)[0]
        return (
            f"Check credentials/permissions (try setting {env_var} or "
            "ProviderConfig.api_key)."
        )
    return None


def http_status_error(
    response: httpx.Response, *, provider: str, phase: str
) -> RemoteAPIError:
    """Build a ``RemoteAPIError`` from a non-2xx response."""
    try:
        body: Any = response.json()
    except ValueError:
        body = response.text
    detail = extract_error_message(body) or response.reason_phrase or ""
    status = response.status_code
    msg = f"{provider} {phase} failed (status={status})"
    return RemoteAPIError(
        f"{msg}: {detail}" if detail else msg,
        hint=_auth_hint(provider, status, detail),
        status_code=status,
        provider=provider,
        phase=phase,
    )


def wrap_provider_error(
    exc: BaseException,
    *,
    provider: str,
    phase: str,
    message: str | None = None,
) -> SwitchboardError:
    """Map transport exceptions into the taxonomy with stable retry metadata.

    Only connect failures and timeouts become retryable ``NetworkError``;
    application errors are never retried.
    """
    if isinstance(exc, asyncio.CancelledError):
        raise exc

    # Already wrapped: fill in missing context only.
    if isinstance(exc, (NetworkError, RemoteAPIError)):
        if exc.provider is None:
            exc.provider = provider
        if exc.phase is None:
            exc.phase = phase
        return exc
    if isinstance(exc, SwitchboardError):
        return exc

    msg = message or f"{provider} {phase} failed"
    cause = str(exc) or type(exc).__name__

    if isinstance(exc, httpx.HTTPStatusError):
        return http_status_error(exc.response, provider=provider, phase=phase)

    retryable = False
    for e in _walk_exception_chain(exc):
        if isinstance(
            e,
            (
                httpx.ConnectError,
                httpx.TimeoutException,
                ConnectionRefusedError,
                TimeoutError,
            ),
        ):
            retryable = True
            break

    if retryable or isinstance(exc, (httpx.RequestError, OSError)):
        hint = None
        if retryable:
            hint = "Is the server running and reachable at the configured endpoint?"
        return NetworkError(
            f"{msg}: {cause}",
            hint=hint,
            retryable=retryable,
            provider=provider,
            phase=phase,
        )

    status_code = extract_status_code(exc)
    return RemoteAPIError(
        f"{msg}: {cause}",
        hint=_auth_hint(provider, status_code, cause),
        status_code=status_code,
        provider=provider,
        phase=phase,
    )
