"""Google Gemini ``generateContent`` codec."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from switchboard.extraction import RawReply
from switchboard.providers._utils import dig, normalize_finish_reason, sampling, with_options
from switchboard.tools import to_gemini_tools
from switchboard.transport import HttpCall
from switchboard.types import ModelInfo, Usage

if TYPE_CHECKING:
    from switchboard.formatting import FormattedPrompt
    from switchboard.providers.base import CallContext
    from switchboard.types import GenerationRequest


def _model_path(model: str) -> str:
    return model if model.startswith("models/") else f"models/{model}"


def _parts_text(candidate: Any) -> str:
    return "".join(
        part["text"]
        for part in dig(candidate, "content", "parts", default=None) or []
        if isinstance(dig(part, "text"), str)
    )


class GeminiCodec:
    """``:generateContent`` / ``:streamGenerateContent?alt=sse``."""

    stream_framing = "sse"
    lists_models = True

    def _headers(self, ctx: CallContext) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if ctx.api_key:
            headers["x-goog-api-key"] = ctx.api_key
        return headers

    def build_call(
        self,
        prompt: FormattedPrompt,
        request: GenerationRequest,
        ctx: CallContext,
        *,
        stream: bool = False,
    ) -> HttpCall:
        """Build a ``contents`` request with ``systemInstruction``."""
        contents = [
            {"role": message["role"], "parts": [{"text": message["content"]}]}
            for message in prompt.messages
        ]
        payload: dict[str, Any] = {"contents": contents}
        if prompt.system:
            payload["systemInstruction"] = {"parts": [{"text": prompt.system}]}
        generation_config = sampling(
            request,
            max_tokens="maxOutputTokens",
            stop="stopSequences",
            stop_value=prompt.stop,
        )
        if generation_config:
            payload["generationConfig"] = generation_config
        tools = request.tools()
        if tools:
            payload["tools"] = to_gemini_tools(tools)

        method = "streamGenerateContent" if stream else "generateContent"
        return HttpCall(
            "POST",
            f"{ctx.endpoint}/{_model_path(ctx.model)}:{method}",
            json=with_options(payload, ctx),
            headers=self._headers(ctx),
            params={"alt": "sse"} if stream else None,
            timeout_s=ctx.timeout_s,
        )

    def parse_response(self, data: Any) -> RawReply:
        """Project the first candidate; ``functionCall`` parts become native calls."""
        candidate = dig(data, "candidates", 0, default={})
        calls = [
            {
                "name": dig(part, "functionCall", "name"),
                "arguments": dig(part, "functionCall", "args", default={}),
                "id": dig(part, "functionCall", "id"),
            }
            for part in dig(candidate, "content", "parts", default=None) or []
            if isinstance(dig(part, "functionCall"), dict)
        ]
        return RawReply(
            text=_parts_text(candidate),
            native_calls=tuple(calls),
            finish_reason=normalize_finish_reason(dig(candidate, "finishReason")),
            usage=Usage.of(
                dig(data, "usageMetadata", "promptTokenCount"),
                dig(data, "usageMetadata", "candidatesTokenCount"),
                dig(data, "usageMetadata", "totalTokenCount"),
            ),
        )

    def parse_stream_event(self, event: Any) -> str | None:
        """Return the text parts of the event's first candidate."""
        text = _parts_text(dig(event, "candidates", 0, default={}))
        return text or None

    def models_call(self, ctx: CallContext) -> HttpCall:
        """``GET /models``."""
        return HttpCall(
            "GET", f"{ctx.endpoint}/models", headers=self._headers(ctx), timeout_s=ctx.timeout_s
        )

    def parse_models(self, data: Any) -> list[ModelInfo]:
        """Models that support ``generateContent``."""
        models = []
        for item in dig(data, "models", default=None) or []:
            name = dig(item, "name")
            if not isinstance(name, str):
                continue
            methods = dig(item, "supportedGenerationMethods")
            if isinstance(methods, list) and "generateContent" not in methods:
                continue
            model_id = name.removeprefix("models/")
            models.append(
                ModelInfo(
                    id=model_id,
                    name=dig(item, "displayName", default=None) or model_id,
                    description=dig(item, "description"),
                    context_window=dig(item, "inputTokenLimit"),
                )
            )
        return models

    def probe_call(self, ctx: CallContext) -> HttpCall:
        """Model listing validates the key without spending tokens."""
        return self.models_call(ctx)
