"""Ollama codecs: ``/api/chat`` messages and raw ``/api/generate`` prompts.

Ollama has no function-calling protocol on the models this layer targets,
so tool use is emulated through the prompt (see ``switchboard.tools``).
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
from switchboard.types import ModelInfo, Usage

if TYPE_CHECKING:
    from switchboard.formatting import FormattedPrompt
    from switchboard.providers.base import CallContext
    from switchboard.types import GenerationRequest


def _options(request: GenerationRequest, prompt: FormattedPrompt) -> dict[str, Any]:
    return sampling(request, max_tokens="num_predict", stop_value=prompt.stop)


def _usage(data: Any) -> Usage | None:
    return Usage.of(dig(data, "prompt_eval_count"), dig(data, "eval_count"))


class _OllamaServer:
    """Listing and probing shared by both Ollama codecs."""

    stream_framing = "ndjson"
    lists_models = True

    def models_call(self, ctx: CallContext) -> HttpCall:
        """``GET /api/tags`` lists locally pulled models."""
        return HttpCall(
            "GET",
            f"{ctx.endpoint}/api/tags",
            headers=bearer_headers(ctx.api_key),
            timeout_s=ctx.timeout_s,
        )

    def parse_models(self, data: Any) -> list[ModelInfo]:
        """Project ``models[]`` entries."""
        models = []
        for item in dig(data, "models", default=None) or []:
            name = dig(item, "name")
            if not isinstance(name, str):
                continue
            details = dig(item, "details", default={})
            size = dig(details, "parameter_size")
            family = dig(details, "family")
            description = " ".join(str(v) for v in (family, size) if v) or None
            models.append(ModelInfo(id=name, description=description))
        return models

    def probe_call(self, ctx: CallContext) -> HttpCall:
        """``GET /api/version`` answers as soon as the server is up."""
        return HttpCall(
            "GET",
            f"{ctx.endpoint}/api/version",
            headers=bearer_headers(ctx.api_key),
            timeout_s=ctx.timeout_s,
        )


class OllamaCodec(_OllamaServer):
    """``/api/chat`` with NDJSON streaming."""

    def build_call(
        self,
        prompt: FormattedPrompt,
        request: GenerationRequest,
        ctx: CallContext,
        *,
        stream: bool = False,
    ) -> HttpCall:
        """Build a chat request."""
        payload: dict[str, Any] = {
            "model": ctx.model,
            "messages": list(prompt.messages),
            "stream": stream,
        }
        options = _options(request, prompt)
        if options:
            payload["options"] = options
        return HttpCall(
            "POST",
            f"{ctx.endpoint}/api/chat",
            json=with_options(payload, ctx),
            headers=bearer_headers(ctx.api_key),
            timeout_s=ctx.timeout_s,
        )

    def parse_response(self, data: Any) -> RawReply:
        """Project ``message.content``."""
        return RawReply(
            text=dig(data, "message", "content", default=None) or "",
            finish_reason=normalize_finish_reason(dig(data, "done_reason")),
            usage=_usage(data),
        )

    def parse_stream_event(self, event: Any) -> str | None:
        """Return ``message.content``."""
        content = dig(event, "message", "content")
        return content if isinstance(content, str) and content else None


class OllamaGenerateCodec(_OllamaServer):
    """``/api/generate`` in raw mode: the prompt is sent pre-templated."""

    def build_call(
        self,
        prompt: FormattedPrompt,
        request: GenerationRequest,
        ctx: CallContext,
        *,
        stream: bool = False,
    ) -> HttpCall:
        """Build a raw generate request."""
        payload: dict[str, Any] = {
            "model": ctx.model,
            "prompt": prompt.text,
            "raw": True,
            "stream": stream,
        }
        options = _options(request, prompt)
        if options:
            payload["options"] = options
        return HttpCall(
            "POST",
            f"{ctx.endpoint}/api/generate",
            json=with_options(payload, ctx),
            headers=bearer_headers(ctx.api_key),
            timeout_s=ctx.timeout_s,
        )

    def parse_response(self, data: Any) -> RawReply:
        """Project ``response``."""
        return RawReply(
            text=dig(data, "response", default=None) or "",
            finish_reason=normalize_finish_reason(dig(data, "done_reason")),
            usage=_usage(data),
        )

    def parse_stream_event(self, event: Any) -> str | None:
        """Return ``response``."""
        content = dig(event, "response")
        return content if isinstance(content, str) and content else None
