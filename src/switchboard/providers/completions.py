"""Codecs for legacy single-prompt completion APIs (AI21 Studio, Aleph Alpha).

Neither streams; both receive a prompt rendered by a ``DelimitedFormatter``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from switchboard.extraction import RawReply
from switchboard.providers._utils import (
    bearer_headers,
    dig,
    normalize_finish_reason,
    with_options,
)
from switchboard.transport import HttpCall
from switchboard.types import ModelInfo, Usage

if TYPE_CHECKING:
    from switchboard.formatting import FormattedPrompt
    from switchboard.providers.base import CallContext
    from switchboard.types import GenerationRequest

DEFAULT_MAX_TOKENS = 256


class AI21Codec:
    """``POST /{model}/complete``."""

    stream_framing = None
    lists_models = False

    def _call(self, ctx: CallContext, payload: dict[str, Any]) -> HttpCall:
        return HttpCall(
            "POST",
            f"{ctx.endpoint}/{ctx.model}/complete",
            json=payload,
            headers=bearer_headers(ctx.api_key),
            timeout_s=ctx.timeout_s,
        )

    def build_call(
        self,
        prompt: FormattedPrompt,
        request: GenerationRequest,
        ctx: CallContext,
        *,
        stream: bool = False,
    ) -> HttpCall:
        """Build a completion request."""
        payload: dict[str, Any] = {
            "prompt": prompt.text,
            "numResults": 1,
            "maxTokens": request.max_tokens or DEFAULT_MAX_TOKENS,
        }
        if request.temperature is not None:
            payload["temperature"] = request.temperature
        if prompt.stop:
            payload["stopSequences"] = list(prompt.stop)
        return self._call(ctx, with_options(payload, ctx))

    def parse_response(self, data: Any) -> RawReply:
        """Project the first completion."""
        completion = dig(data, "completions", 0, default={})
        prompt_tokens = dig(data, "prompt", "tokens")
        completion_tokens = dig(completion, "data", "tokens")
        return RawReply(
            text=dig(completion, "data", "text", default=None) or "",
            finish_reason=normalize_finish_reason(dig(completion, "finishReason", "reason")),
            usage=Usage.of(
                len(prompt_tokens) if isinstance(prompt_tokens, list) else None,
                len(completion_tokens) if isinstance(completion_tokens, list) else None,
            ),
        )

    def parse_stream_event(self, event: Any) -> str | None:
        """Streaming is not offered."""
        return None

    def models_call(self, ctx: CallContext) -> None:
        """No listing endpoint."""
        return None

    def parse_models(self, data: Any) -> list[ModelInfo]:
        """Unused; the profile carries a static list."""
        return []

    def probe_call(self, ctx: CallContext) -> HttpCall:
        """One-token completion."""
        return self._call(ctx, {"prompt": "ping", "numResults": 1, "maxTokens": 1})


class AlephAlphaCodec:
    """``POST /complete`` with ``/models_available`` listing."""

    stream_framing = None
    lists_models = True

    def build_call(
        self,
        prompt: FormattedPrompt,
        request: GenerationRequest,
        ctx: CallContext,
        *,
        stream: bool = False,
    ) -> HttpCall:
        """Build a completion request."""
        payload: dict[str, Any] = {
            "model": ctx.model,
            "prompt": prompt.text,
            "maximum_tokens": request.max_tokens or DEFAULT_MAX_TOKENS,
        }
        if request.temperature is not None:
            payload["temperature"] = request.temperature
        if prompt.stop:
            payload["stop_sequences"] = list(prompt.stop)
        return HttpCall(
            "POST",
            f"{ctx.endpoint}/complete",
            json=with_options(payload, ctx),
            headers=bearer_headers(ctx.api_key),
            timeout_s=ctx.timeout_s,
        )

    def parse_response(self, data: Any) -> RawReply:
        """Project the first completion."""
        completion = dig(data, "completions", 0, default={})
        return RawReply(
            text=dig(completion, "completion", default=None) or "",
            finish_reason=normalize_finish_reason(dig(completion, "finish_reason")),
            usage=Usage.of(dig(data, "num_tokens_prompt_total"), dig(data, "num_tokens_generated")),
        )

    def parse_stream_event(self, event: Any) -> str | None:
        """Streaming is not offered."""
        return None

    def models_call(self, ctx: CallContext) -> HttpCall:
        """``GET /models_available``."""
        return HttpCall(
            "GET",
            f"{ctx.endpoint}/models_available",
            headers=bearer_headers(ctx.api_key),
            timeout_s=ctx.timeout_s,
        )

    def parse_models(self, data: Any) -> list[ModelInfo]:
        """Project the listing array."""
        items = data if isinstance(data, list) else []
        return [
            ModelInfo(
                id=item["name"],
                description=dig(item, "description"),
                context_window=dig(item, "max_context_size"),
            )
            for item in items
            if isinstance(dig(item, "name"), str)
        ]

    def probe_call(self, ctx: CallContext) -> HttpCall:
        """Listing is authenticated and free."""
        return self.models_call(ctx)
