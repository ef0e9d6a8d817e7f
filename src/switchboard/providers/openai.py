"""OpenAI Chat Completions codec.

Shared by every backend that speaks the ``/chat/completions`` dialect:
OpenAI itself, DeepSeek, Mistral, OpenRouter, Perplexity, Together and a
local LM Studio server.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from switchboard.extraction import RawReply
from switchboard.providers._utils import (
    bearer_headers,
    dig,
    normalize_finish_reason,
    sampling,
    with_options,
)
from switchboard.tools import to_openai_tools
from switchboard.transport import HttpCall
from switchboard.types import ModelInfo, Usage

if TYPE_CHECKING:
    from collections.abc import Mapping

    from switchboard.formatting import FormattedPrompt
    from switchboard.providers.base import CallContext
    from switchboard.types import GenerationRequest


class OpenAICompatibleCodec:
    """``/chat/completions`` with SSE streaming and ``/models`` listing."""

    stream_framing = "sse"

    def __init__(
        self,
        *,
        lists_models: bool = True,
        extra_headers: Mapping[str, str] | None = None,
    ) -> None:
        """Configure dialect quirks.

        Args:
            lists_models: Whether the backend exposes ``GET /models``.
            extra_headers: Static headers sent with every request.
        """
        self.lists_models = lists_models
        self._extra_headers = dict(extra_headers or {})

    def _headers(self, ctx: CallContext) -> dict[str, str]:
        return {**bearer_headers(ctx.api_key), **self._extra_headers}

    def build_call(
        self,
        prompt: FormattedPrompt,
        request: GenerationRequest,
        ctx: CallContext,
        *,
        stream: bool = False,
    ) -> HttpCall:
        """Build a chat completion request."""
        payload: dict[str, Any] = {
            "model": ctx.model,
            "messages": list(prompt.messages),
            **sampling(request, stop_value=prompt.stop),
        }
        tools = request.tools()
        if tools:
            payload["tools"] = to_openai_tools(tools)
        if stream:
            payload["stream"] = True
        return HttpCall(
            "POST",
            f"{ctx.endpoint}/chat/completions",
            json=with_options(payload, ctx),
            headers=self._headers(ctx),
            timeout_s=ctx.timeout_s,
        )

    def parse_response(self, data: Any) -> RawReply:
        """Project the first choice."""
        choice = dig(data, "choices", 0, default={})
        message = dig(choice, "message", default={})
        calls = []
        for call in dig(message, "tool_calls", default=None) or []:
            calls.append(
                {
                    "name": dig(call, "function", "name"),
                    "arguments": dig(call, "function", "arguments"),
                    "id": dig(call, "id"),
                }
            )
        legacy = dig(message, "function_call")
        if not calls and isinstance(legacy, dict):
            calls.append({"name": legacy.get("name"), "arguments": legacy.get("arguments")})

        return RawReply(
            text=dig(message, "content", default=None) or "",
            native_calls=tuple(calls),
            finish_reason=normalize_finish_reason(dig(choice, "finish_reason")),
            usage=Usage.of(
                dig(data, "usage", "prompt_tokens"),
                dig(data, "usage", "completion_tokens"),
                dig(data, "usage", "total_tokens"),
            ),
        )

    def parse_stream_event(self, event: Any) -> str | None:
        """Return ``choices[0].delta.content``."""
        content = dig(event, "choices", 0, "delta", "content")
        return content if isinstance(content, str) and content else None

    def models_call(self, ctx: CallContext) -> HttpCall | None:
        """``GET /models`` when supported."""
        if not self.lists_models:
            return None
        return HttpCall(
            "GET", f"{ctx.endpoint}/models", headers=self._headers(ctx), timeout_s=ctx.timeout_s
        )

    def parse_models(self, data: Any) -> list[ModelInfo]:
        """Project ``data[]`` entries."""
        models = []
        for item in dig(data, "data", default=None) or []:
            model_id = dig(item, "id")
            if not isinstance(model_id, str):
                continue
            models.append(
                ModelInfo(
                    id=model_id,
                    name=dig(item, "name", default=None) or model_id,
                    description=dig(item, "description"),
                    context_window=dig(item, "context_length"),
                )
            )
        return models

    def probe_call(self, ctx: CallContext) -> HttpCall:
        """List models, or send a one-token completion when listing is absent."""
        listing = self.models_call(ctx)
        if listing is not None:
            return listing
        return HttpCall(
            "POST",
            f"{ctx.endpoint}/chat/completions",
            json={
                "model": ctx.model,
                "messages": [{"role": "user", "content": "ping"}],
                "max_tokens": 1,
            },
            headers=self._headers(ctx),
            timeout_s=ctx.timeout_s,
        )
