"""Anthropic Messages API codec."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from switchboard.extraction import RawReply
from switchboard.providers._utils import dig, normalize_finish_reason, sampling, with_options
from switchboard.tools import to_anthropic_tools
from switchboard.transport import HttpCall
from switchboard.types import ModelInfo, Usage

if TYPE_CHECKING:
    from switchboard.formatting import FormattedPrompt
    from switchboard.providers.base import CallContext
    from switchboard.types import GenerationRequest

ANTHROPIC_VERSION = "2023-06-01"
# The Messages API requires max_tokens on every request.
DEFAULT_MAX_TOKENS = 1024


class AnthropicCodec:
    """``/v1/messages`` with typed SSE events and ``/v1/models`` listing."""

    stream_framing = "sse"
    lists_models = True

    def _headers(self, ctx: CallContext) -> dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "anthropic-version": ANTHROPIC_VERSION,
        }
        if ctx.api_key:
            headers["x-api-key"] = ctx.api_key
        return headers

    def build_call(
        self,
        prompt: FormattedPrompt,
        request: GenerationRequest,
        ctx: CallContext,
        *,
        stream: bool = False,
    ) -> HttpCall:
        """Build a messages request; the system prompt travels in ``system``."""
        payload: dict[str, Any] = {
            "model": ctx.model,
            "messages": list(prompt.messages),
            "max_tokens": request.max_tokens or DEFAULT_MAX_TOKENS,
            **sampling(
                request, max_tokens=None, stop="stop_sequences", stop_value=prompt.stop
            ),
        }
        if prompt.system:
            payload["system"] = prompt.system
        tools = request.tools()
        if tools:
            payload["tools"] = to_anthropic_tools(tools)
        if stream:
            payload["stream"] = True
        return HttpCall(
            "POST",
            f"{ctx.endpoint}/v1/messages",
            json=with_options(payload, ctx),
            headers=self._headers(ctx),
            timeout_s=ctx.timeout_s,
        )

    def parse_response(self, data: Any) -> RawReply:
        """Join text blocks; ``tool_use`` blocks become native calls."""
        texts: list[str] = []
        calls: list[dict[str, Any]] = []
        for block in dig(data, "content", default=None) or []:
            kind = dig(block, "type")
            if kind == "text":
                texts.append(dig(block, "text", default=""))
            elif kind == "tool_use":
                calls.append(
                    {
                        "name": dig(block, "name"),
                        "arguments": dig(block, "input", default={}),
                        "id": dig(block, "id"),
                    }
                )
        return RawReply(
            text="".join(texts),
            native_calls=tuple(calls),
            finish_reason=normalize_finish_reason(dig(data, "stop_reason")),
            usage=Usage.of(
                dig(data, "usage", "input_tokens"),
                dig(data, "usage", "output_tokens"),
            ),
        )

    def parse_stream_event(self, event: Any) -> str | None:
        """Return text from ``content_block_delta`` events."""
        if dig(event, "type") != "content_block_delta":
            return None
        if dig(event, "delta", "type") != "text_delta":
            return None
        text = dig(event, "delta", "text")
        return text if isinstance(text, str) and text else None

    def models_call(self, ctx: CallContext) -> HttpCall:
        """``GET /v1/models``."""
        return HttpCall(
            "GET", f"{ctx.endpoint}/v1/models", headers=self._headers(ctx), timeout_s=ctx.timeout_s
        )

    def parse_models(self, data: Any) -> list[ModelInfo]:
        """Project ``data[]`` entries."""
        return [
            ModelInfo(id=item["id"], name=dig(item, "display_name", default=None) or item["id"])
            for item in dig(data, "data", default=None) or []
            if isinstance(dig(item, "id"), str)
        ]

    def probe_call(self, ctx: CallContext) -> HttpCall:
        """Model listing is authenticated and free."""
        return self.models_call(ctx)
