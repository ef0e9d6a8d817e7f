"""llama.cpp server codec for locally served GGUF models."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from switchboard.extraction import RawReply
from switchboard.providers._utils import bearer_headers, dig, sampling, with_options
from switchboard.transport import HttpCall
from switchboard.types import ModelInfo, Usage

if TYPE_CHECKING:
    from switchboard.formatting import FormattedPrompt
    from switchboard.providers.base import CallContext
    from switchboard.types import FinishReason, GenerationRequest


def _finish_reason(data: Any) -> FinishReason:
    if dig(data, "stopped_limit") or dig(data, "stop_type") == "limit":
        return "length"
    return "stop"


class LlamaCppCodec:
    """``/completion`` with SSE streaming, ``/health`` probing."""

    stream_framing = "sse"
    lists_models = True

    def build_call(
        self,
        prompt: FormattedPrompt,
        request: GenerationRequest,
        ctx: CallContext,
        *,
        stream: bool = False,
    ) -> HttpCall:
        """Build a completion request; the model is whatever the server loaded."""
        payload: dict[str, Any] = {
            "prompt": prompt.text,
            **sampling(request, max_tokens="n_predict", stop_value=prompt.stop),
        }
        if stream:
            payload["stream"] = True
        return HttpCall(
            "POST",
            f"{ctx.endpoint}/completion",
            json=with_options(payload, ctx),
            headers=bearer_headers(ctx.api_key),
            timeout_s=ctx.timeout_s,
        )

    def parse_response(self, data: Any) -> RawReply:
        """Project ``content`` and token counters."""
        return RawReply(
            text=dig(data, "content", default=None) or "",
            finish_reason=_finish_reason(data),
            usage=Usage.of(dig(data, "tokens_evaluated"), dig(data, "tokens_predicted")),
        )

    def parse_stream_event(self, event: Any) -> str | None:
        """Return ``content``."""
        content = dig(event, "content")
        return content if isinstance(content, str) and content else None

    def models_call(self, ctx: CallContext) -> HttpCall:
        """The server's OpenAI-compatible ``/v1/models``."""
        return HttpCall(
            "GET",
            f"{ctx.endpoint}/v1/models",
            headers=bearer_headers(ctx.api_key),
            timeout_s=ctx.timeout_s,
        )

    def parse_models(self, data: Any) -> list[ModelInfo]:
        """Project ``data[]`` entries (usually the single loaded model)."""
        return [
            ModelInfo(id=item["id"], context_window=dig(item, "meta", "n_ctx_train"))
            for item in dig(data, "data", default=None) or []
            if isinstance(dig(item, "id"), str)
        ]

    def probe_call(self, ctx: CallContext) -> HttpCall:
        """``GET /health``."""
        return HttpCall(
            "GET",
            f"{ctx.endpoint}/health",
            headers=bearer_headers(ctx.api_key),
            timeout_s=ctx.timeout_s,
        )
