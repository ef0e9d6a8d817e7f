"""Domain models shared by every adapter."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Literal

from pydantic import BaseModel

from switchboard.errors import CancellationError, InternalError

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

Role = Literal["system", "user", "assistant", "tool"]
FinishReason = Literal["stop", "length", "cancelled", "error", "tool_call"]

ROLES: frozenset[str] = frozenset({"system", "user", "assistant", "tool"})
FINISH_REASONS: frozenset[str] = frozenset(
    {"stop", "length", "cancelled", "error", "tool_call"}
)


@dataclass(frozen=True)
class ConversationMessage:
    """One chronological conversation turn."""

    role: str
    content: str = ""
    tool_call_id: str | None = None

    @classmethod
    def from_dict(cls, item: Mapping[str, Any]) -> ConversationMessage:
        """Build from a ``{"role", "content", "tool_call_id"}`` dict."""
        call_id = item.get("tool_call_id", item.get("toolCallId"))
        return cls(
            role=str(item.get("role", "user")),
            content=str(item.get("content") or ""),
            tool_call_id=call_id if isinstance(call_id, str) else None,
        )


@dataclass(frozen=True)
class ToolDefinition:
    """A tool the model may ask the caller to invoke."""

    name: str
    description: str = ""
    parameter_schema: dict[str, Any] = field(
        default_factory=lambda: {"type": "object", "properties": {}}
    )

    @classmethod
    def from_model(
        cls, name: str, model: type[BaseModel], description: str | None = None
    ) -> ToolDefinition:
        """Describe a tool whose arguments are a Pydantic model."""
        return cls(
            name=name,
            description=description or (model.__doc__ or "").strip(),
            parameter_schema=model.model_json_schema(),
        )


@dataclass(frozen=True)
class GenerationRequest:
    """A backend-agnostic generation request.

    A non-empty ``history`` supersedes ``prompt`` as the conversational input;
    ``prompt`` alone is used only when ``history`` is empty.
    """

    model_id: str
    prompt: str = ""
    system_prompt: str | None = None
    history: Sequence[ConversationMessage] = ()
    temperature: float | None = None
    max_tokens: int | None = None
    #: Explicit stop sequences; always win over a prompt family's defaults.
    stop_sequences: Sequence[str] | None = None
    tool_definitions: Mapping[str, ToolDefinition] | None = None
    #: Extra backend fields merged into the payload last.
    options: Mapping[str, Any] | None = None

    def turns(self) -> tuple[ConversationMessage, ...]:
        """Return the effective conversation input in chronological order."""
        if self.history:
            return tuple(self.history)
        return (ConversationMessage(role="user", content=self.prompt),)

    def tools(self) -> tuple[ToolDefinition, ...]:
        """Return offered tool definitions in insertion order."""
        if not self.tool_definitions:
            return ()
        return tuple(self.tool_definitions.values())


@dataclass(frozen=True)
class ToolCallRequest:
    """A single tool invocation requested by the model."""

    name: str
    arguments: dict[str, Any] = field(default_factory=dict)
    id: str | None = None


@dataclass(frozen=True)
class Usage:
    """Token accounting reported by the backend."""

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0

    @classmethod
    def of(
        cls,
        prompt_tokens: Any = None,
        completion_tokens: Any = None,
        total_tokens: Any = None,
    ) -> Usage | None:
        """Build from loosely-typed backend counters; ``None`` when all absent."""
        values = [prompt_tokens, completion_tokens, total_tokens]
        if all(v is None for v in values):
            return None
        prompt = _as_int(prompt_tokens)
        completion = _as_int(completion_tokens)
        total = _as_int(total_tokens) if total_tokens is not None else None
        return cls(
            prompt_tokens=prompt,
            completion_tokens=completion,
            total_tokens=total if total is not None else prompt + completion,
        )


@dataclass(frozen=True)
class GenerationResult:
    """Normalized outcome of one ``generate`` call.

    ``error`` set implies empty ``content``; a ``tool_call_request`` implies
    ``finish_reason == "tool_call"``.
    """

    content: str = ""
    finish_reason: FinishReason = "stop"
    usage: Usage | None = None
    tool_call_request: ToolCallRequest | None = None
    error: str | None = None

    def __post_init__(self) -> None:
        """Enforce result invariants."""
        if self.finish_reason not in FINISH_REASONS:
            raise InternalError(f"Unknown finish_reason: {self.finish_reason!r}")
        if self.error is not None and self.content:
            raise InternalError("GenerationResult with an error must have no content")
        if self.tool_call_request is not None and self.finish_reason != "tool_call":
            raise InternalError(
                "GenerationResult with a tool call must finish with 'tool_call'"
            )

    @property
    def ok(self) -> bool:
        """Whether the call completed without error or cancellation."""
        return self.error is None and self.finish_reason != "cancelled"

    @classmethod
    def cancelled(cls, message: str = "Request cancelled") -> GenerationResult:
        """Terminal cancellation outcome."""
        return cls(content="", finish_reason="cancelled", error=message)

    @classmethod
    def failure(cls, exc: BaseException) -> GenerationResult:
        """Represent *exc* as data, choosing ``cancelled`` for cancellations."""
        message = str(exc) or type(exc).__name__
        if isinstance(exc, CancellationError):
            return cls.cancelled(message)
        return cls(content="", finish_reason="error", error=message)


@dataclass(frozen=True)
class ModelInfo:
    """A model offered by a backend, for UI population."""

    id: str
    name: str = ""
    description: str | None = None
    context_window: int | None = None

    def __post_init__(self) -> None:
        """Default the display name to the id."""
        if not self.name:
            object.__setattr__(self, "name", self.id)


@dataclass(frozen=True)
class ConnectionStatus:
    """Outcome of ``test_connection``; always carries a readable message."""

    success: bool
    message: str


@dataclass(frozen=True)
class ConfigField:
    """Describes one configuration input a settings UI should offer."""

    id: str
    name: str
    description: str
    required: bool
    type: Literal["string", "boolean", "number", "select"] = "string"
    options: tuple[str, ...] = ()


def _as_int(value: Any) -> int:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float)):
        return int(value)
    return 0
