"""Turn a decoded backend reply into a ``GenerationResult``.

Codecs project each backend's response body into a ``RawReply``; the
extractor then decides between plain content and a single tool call.
"""

from __future__ import annotations

from dataclasses import dataclass
import json
import logging
from typing import TYPE_CHECKING, Any, Literal

from pydantic import BaseModel, ValidationError

from switchboard.types import GenerationResult, ToolCallRequest

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from switchboard.types import FinishReason, ToolDefinition, Usage

logger = logging.getLogger(__name__)

ToolStrategy = Literal["native", "emulated"]


@dataclass(frozen=True)
class RawReply:
    """Backend-neutral view of one complete response.

    ``native_calls`` holds structured calls as ``{"name", "arguments", "id"}``
    dicts, where ``arguments`` may still be JSON-encoded text.
    """

    text: str = ""
    native_calls: tuple[Mapping[str, Any], ...] = ()
    finish_reason: FinishReason = "stop"
    usage: Usage | None = None


class _ToolCallBody(BaseModel):
    name: str
    arguments: Any = None


class _ToolCallEnvelope(BaseModel):
    tool_call: _ToolCallBody


class _FinalAnswerEnvelope(BaseModel):
    final_answer: Any = None


def decode_arguments(raw: Any, *, tool_name: str = "") -> dict[str, Any]:
    """Decode tool arguments into a dict; undecodable input yields ``{}``."""
    if raw is None or raw == "":
        return {}
    if isinstance(raw, dict):
        return dict(raw)
    if isinstance(raw, str):
        try:
            decoded = json.loads(raw)
        except (ValueError, RecursionError) as exc:
            logger.warning(
                "Could not decode arguments for tool %r: %s", tool_name, exc
            )
            return {}
        if isinstance(decoded, dict):
            return decoded
    logger.warning(
        "Ignoring non-object arguments for tool %r: %r", tool_name, type(raw).__name__
    )
    return {}


class ToolCallExtractor:
    """Extracts at most one tool call from a reply.

    A native structured call always wins. The ``emulated`` strategy parses
    the JSON envelope on every reply, including turns that offer no tools.
    """

    def __init__(self, strategy: ToolStrategy = "native") -> None:
        if strategy not in ("native", "emulated"):
            raise ValueError(f"Unknown tool strategy: {strategy!r}")
        self.strategy = strategy

    def extract(
        self, reply: RawReply, tools: Sequence[ToolDefinition] = ()
    ) -> GenerationResult:
        """Build the result for *reply*; never raises for malformed content."""
        if reply.native_calls:
            if len(reply.native_calls) > 1:
                logger.debug(
                    "Discarding %d additional tool calls", len(reply.native_calls) - 1
                )
            return self._tool_result(
                _project_native(reply.native_calls[0]), reply, tools
            )

        if self.strategy == "emulated":
            call, answer = _parse_envelope(reply.text)
            if call is not None:
                return self._tool_result(call, reply, tools)
            if answer is not None:
                return GenerationResult(
                    content=answer, finish_reason=reply.finish_reason, usage=reply.usage
                )

        finish = reply.finish_reason if reply.finish_reason != "tool_call" else "stop"
        return GenerationResult(
            content=reply.text, finish_reason=finish, usage=reply.usage
        )

    @staticmethod
    def _tool_result(
        call: ToolCallRequest, reply: RawReply, tools: Sequence[ToolDefinition]
    ) -> GenerationResult:
        if tools and call.name not in {tool.name for tool in tools}:
            logger.warning("Reply calls tool %r, which was not offered", call.name)
        return GenerationResult(
            content="",
            finish_reason="tool_call",
            usage=reply.usage,
            tool_call_request=call,
        )


def _project_native(raw: Mapping[str, Any]) -> ToolCallRequest:
    name = str(raw.get("name") or "")
    call_id = raw.get("id")
    return ToolCallRequest(
        name=name,
        arguments=decode_arguments(raw.get("arguments"), tool_name=name),
        id=str(call_id) if call_id else None,
    )


def _parse_envelope(text: str) -> tuple[ToolCallRequest | None, str | None]:
    """Parse the whole reply as an emulated-call envelope.

    Returns ``(call, None)``, ``(None, answer)`` or ``(None, None)`` when the
    reply is not a recognised envelope.
    """
    stripped = text.strip()
    if not stripped.startswith("{"):
        return None, None
    try:
        data = json.loads(stripped)
    except (ValueError, RecursionError):
        return None, None
    if not isinstance(data, dict):
        return None, None

    if "tool_call" in data:
        try:
            envelope = _ToolCallEnvelope.model_validate(data)
        except ValidationError as exc:
            logger.debug("Reply looked like a tool call but did not validate: %s", exc)
            return None, None
        body = envelope.tool_call
        return (
            ToolCallRequest(
                name=body.name,
                arguments=decode_arguments(body.arguments, tool_name=body.name),
            ),
            None,
        )

    if "final_answer" in data:
        answer = _FinalAnswerEnvelope.model_validate(data).final_answer
        if answer is None:
            return None, ""
        if isinstance(answer, str):
            return None, answer
        return None, json.dumps(answer)

    return None, None
