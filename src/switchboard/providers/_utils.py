"""Shared utilities for backend codecs."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Mapping

    from switchboard.providers.base import CallContext
    from switchboard.types import FinishReason, GenerationRequest

_LENGTH_REASONS = frozenset(
    {
        "length",
        "max_tokens",
        "max_length",
        "max_output_tokens",
        "maximum_tokens",
        "model_length",
        "token_limit",
    }
)


def normalize_finish_reason(raw: Any) -> FinishReason:
    """Map a backend stop reason onto ``stop`` / ``length`` / ``tool_call``."""
    if not isinstance(raw, str) or not raw:
        return "stop"
    reason = raw.lower()
    if reason in _LENGTH_REASONS:
        return "length"
    if "tool" in reason or "function" in reason:
        return "tool_call"
    return "stop"


def dig(data: Any, *path: str | int, default: Any = None) -> Any:
    """Follow *path* through nested dicts/lists, returning *default* on a miss."""
    current = data
    for key in path:
        if isinstance(key, int):
            if not isinstance(current, list) or not -len(current) <= key < len(current):
                return default
            current = current[key]
        else:
            if not isinstance(current, dict) or key not in current:
                return default
            current = current[key]
    return current


def bearer_headers(api_key: str | None) -> dict[str, str]:
    """JSON headers with an optional bearer token."""
    headers = {"Content-Type": "application/json"}
    if api_key:
        headers["Authorization"] = f"Bearer {api_key}"
    return headers


def sampling(
    request: GenerationRequest,
    *,
    temperature: str = "temperature",
    max_tokens: str | None = "max_tokens",
    stop: str | None = "stop",
    stop_value: tuple[str, ...] | None = None,
) -> dict[str, Any]:
    """Sampling fields under backend-specific names; unset values are omitted."""
    fields: dict[str, Any] = {}
    if request.temperature is not None:
        fields[temperature] = request.temperature
    if max_tokens is not None and request.max_tokens is not None:
        fields[max_tokens] = request.max_tokens
    if stop is not None and stop_value:
        fields[stop] = list(stop_value)
    return fields


def with_options(payload: dict[str, Any], ctx: CallContext) -> dict[str, Any]:
    """Merge the call's extra options into *payload* (options win)."""
    merged = dict(payload)
    merged.update(_plain(ctx.options))
    return merged


def _plain(options: Mapping[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in options.items() if v is not None}
