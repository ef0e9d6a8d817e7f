"""Cohere v1 ``/chat`` codec.

The current user turn travels as ``message``; earlier turns go to
``chat_history`` with Cohere's upper-case role names and the system prompt
becomes the ``preamble``.
"""

from __future__ import annotations

import logging
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

logger = logging.getLogger(__name__)

_ROLE_NAMES = {"user": "USER", "assistant": "CHATBOT", "system": "SYSTEM"}


def split_history(
    messages: tuple[dict[str, Any], ...],
) -> tuple[str, list[dict[str, str]]]:
    """Split messages into the current ``message`` and ``chat_history``.

    Cohere rejects an empty ``message``. When the conversation does not end
    on a user turn, the most recent user turn (or failing that the last turn)
    is sent as ``message`` and the rest stays in order in ``chat_history``.
    """
    history = list(messages)
    if not history:
        return "", []
    index = len(history) - 1
    if history[index].get("role") != "user":
        users = [i for i, m in enumerate(history) if m.get("role") == "user"]
        if users:
            index = users[-1]
        logger.warning(
            "Conversation ends with a %r turn; sending turn %d as the Cohere message",
            history[-1].get("role"),
            index,
        )
    current = history.pop(index)["content"]
    chat_history = [
        {"role": _ROLE_NAMES.get(m["role"], "CHATBOT"), "message": m["content"]}
        for m in history
    ]
    return current, chat_history


class CohereCodec:
    """``/chat`` with NDJSON streaming and ``/models`` listing."""

    stream_framing = "ndjson"
    lists_models = True

    def build_call(
        self,
        prompt: FormattedPrompt,
        request: GenerationRequest,
        ctx: CallContext,
        *,
        stream: bool = False,
    ) -> HttpCall:
        """Build a chat request."""
        message, chat_history = split_history(prompt.messages)
        payload: dict[str, Any] = {
            "model": ctx.model,
            "message": message,
            **sampling(request, stop="stop_sequences", stop_value=prompt.stop),
        }
        if chat_history:
            payload["chat_history"] = chat_history
        if prompt.system:
            payload["preamble"] = prompt.system
        if stream:
            payload["stream"] = True
        return HttpCall(
            "POST",
            f"{ctx.endpoint}/chat",
            json=with_options(payload, ctx),
            headers=bearer_headers(ctx.api_key),
            timeout_s=ctx.timeout_s,
        )

    def parse_response(self, data: Any) -> RawReply:
        """Project ``text`` and billed units."""
        return RawReply(
            text=dig(data, "text", default=None) or "",
            finish_reason=normalize_finish_reason(dig(data, "finish_reason")),
            usage=Usage.of(
                dig(data, "meta", "billed_units", "input_tokens"),
                dig(data, "meta", "billed_units", "output_tokens"),
            ),
        )

    def parse_stream_event(self, event: Any) -> str | None:
        """Return text from ``text-generation`` events."""
        if dig(event, "event_type") != "text-generation":
            return None
        text = dig(event, "text")
        return text if isinstance(text, str) and text else None

    def models_call(self, ctx: CallContext) -> HttpCall:
        """``GET /models`` filtered to chat models."""
        return HttpCall(
            "GET",
            f"{ctx.endpoint}/models",
            headers=bearer_headers(ctx.api_key),
            params={"endpoint": "chat"},
            timeout_s=ctx.timeout_s,
        )

    def parse_models(self, data: Any) -> list[ModelInfo]:
        """Project ``models[]`` entries."""
        return [
            ModelInfo(id=item["name"], context_window=dig(item, "context_length"))
            for item in dig(data, "models", default=None) or []
            if isinstance(dig(item, "name"), str)
        ]

    def probe_call(self, ctx: CallContext) -> HttpCall:
        """Model listing is authenticated and free."""
        return self.models_call(ctx)
