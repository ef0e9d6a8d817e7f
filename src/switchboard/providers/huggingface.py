"""Hugging Face text-generation codec.

Serves the hosted Inference API (``POST {endpoint}/{model}``) and
text-generation-inference style servers; the prompt arrives pre-templated
by a ``DelimitedFormatter``.
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
from switchboard.transport import HttpCall
from switchboard.types import Usage

if TYPE_CHECKING:
    from switchboard.formatting import FormattedPrompt
    from switchboard.providers.base import CallContext
    from switchboard.types import GenerationRequest, ModelInfo


class TextGenerationCodec:
    """``inputs`` + ``parameters`` with SSE token streaming."""

    stream_framing = "sse"
    lists_models = False

    def _payload(
        self,
        inputs: str,
        request: GenerationRequest | None,
        stop: tuple[str, ...] | None,
        *,
        max_new_tokens: int | None = None,
    ) -> dict[str, Any]:
        parameters: dict[str, Any] = {"return_full_text": False}
        if request is not None:
            parameters.update(
                sampling(request, max_tokens="max_new_tokens", stop_value=stop)
            )
        if max_new_tokens is not None:
            parameters["max_new_tokens"] = max_new_tokens
        return {
            "inputs": inputs,
            "parameters": parameters,
            "options": {"wait_for_model": True},
        }

    def build_call(
        self,
        prompt: FormattedPrompt,
        request: GenerationRequest,
        ctx: CallContext,
        *,
        stream: bool = False,
    ) -> HttpCall:
        """Build a text-generation request."""
        payload = self._payload(prompt.text, request, prompt.stop)
        if stream:
            payload["stream"] = True
        return HttpCall(
            "POST",
            f"{ctx.endpoint}/{ctx.model}",
            json=with_options(payload, ctx),
            headers=bearer_headers(ctx.api_key),
            timeout_s=ctx.timeout_s,
        )

    def parse_response(self, data: Any) -> RawReply:
        """Accept both the list and the single-object response shapes."""
        item = data[0] if isinstance(data, list) and data else data
        return RawReply(
            text=dig(item, "generated_text", default=None) or "",
            finish_reason=normalize_finish_reason(dig(item, "details", "finish_reason")),
            usage=Usage.of(None, dig(item, "details", "generated_tokens")),
        )

    def parse_stream_event(self, event: Any) -> str | None:
        """Return the token text; special tokens are skipped."""
        if dig(event, "token", "special"):
            return None
        text = dig(event, "token", "text")
        return text if isinstance(text, str) and text else None

    def models_call(self, ctx: CallContext) -> None:
        """The Inference API has no per-account model listing."""
        return None

    def parse_models(self, data: Any) -> list[ModelInfo]:
        """Unused; profiles carry static model lists."""
        return []

    def probe_call(self, ctx: CallContext) -> HttpCall:
        """One-token generation against the configured model."""
        return HttpCall(
            "POST",
            f"{ctx.endpoint}/{ctx.model}",
            json=self._payload("ping", None, None, max_new_tokens=1),
            headers=bearer_headers(ctx.api_key),
            timeout_s=ctx.timeout_s,
        )
