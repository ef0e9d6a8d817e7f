"""Prompt formatting: turn a request into a backend's conversational input.

Two strategies cover every backend:

- ``MessagesFormatter`` produces an ordered list of ``{role, content}``
  entries for chat-style APIs.
- ``DelimitedFormatter`` renders one prompt string with a prompt family's
  literal delimiters for raw-completion backends.

Formatting is pure and total: every request produces a ``FormattedPrompt``.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
import logging
from typing import TYPE_CHECKING, Any, Literal, Protocol, runtime_checkable

from switchboard.errors import ConfigurationError
from switchboard.tools import render_tool_instructions
from switchboard.types import ConversationMessage

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from switchboard.types import GenerationRequest

logger = logging.getLogger(__name__)

SystemPlacement = Literal["message", "field"]


@dataclass(frozen=True)
class FormattedPrompt:
    """Formatter output consumed by a backend codec.

    Chat backends read ``messages`` (and ``system`` for field placement);
    completion backends read ``text``. ``stop`` is ``None`` when no stop
    sequences apply.
    """

    messages: tuple[dict[str, Any], ...] = ()
    system: str | None = None
    text: str = ""
    stop: tuple[str, ...] | None = None


@runtime_checkable
class PromptFormatter(Protocol):
    """Pure request → backend input conversion."""

    def format(self, request: GenerationRequest) -> FormattedPrompt:
        """Format *request*; never raises."""
        ...


def _stop_for(
    request: GenerationRequest, default: Sequence[str] = ()
) -> tuple[str, ...] | None:
    # Caller stops always win, even an explicit empty list.
    if request.stop_sequences is not None:
        return tuple(request.stop_sequences)
    return tuple(default) or None


def _with_tool_instructions(
    turns: Sequence[ConversationMessage], instructions: str
) -> list[ConversationMessage]:
    """Append *instructions* to the last user turn (or add a user turn)."""
    result = list(turns)
    for index in range(len(result) - 1, -1, -1):
        turn = result[index]
        if turn.role == "user":
            content = f"{turn.content}\n\n{instructions}" if turn.content else instructions
            result[index] = replace(turn, content=content)
            return result
    result.append(ConversationMessage(role="user", content=instructions))
    return result


def _effective_turns(
    request: GenerationRequest, *, emulate_tools: bool
) -> list[ConversationMessage]:
    turns = list(request.turns())
    tools = request.tools()
    if emulate_tools and tools:
        turns = _with_tool_instructions(turns, render_tool_instructions(tools))
    return turns


class MessagesFormatter:
    """Role-tagged message list for chat-style APIs.

    Roles outside ``supported_roles`` (including unknown ones) are sent as
    ``assistant``. ``role_names`` renames canonical roles on the wire, e.g.
    ``{"assistant": "model"}``.
    """

    def __init__(
        self,
        *,
        system_placement: SystemPlacement = "message",
        supported_roles: Sequence[str] = ("system", "user", "assistant"),
        role_names: Mapping[str, str] | None = None,
        emulate_tools: bool = False,
    ) -> None:
        if system_placement not in ("message", "field"):
            raise ConfigurationError(
                f"Unknown system placement: {system_placement!r}",
                hint="Use 'message' or 'field'.",
            )
        self.system_placement = system_placement
        self.supported_roles = frozenset(supported_roles)
        self.role_names = dict(role_names or {})
        self.emulate_tools = emulate_tools

    def _wire_role(self, role: str) -> str:
        canonical = role if role in self.supported_roles else "assistant"
        return self.role_names.get(canonical, canonical)

    def format(self, request: GenerationRequest) -> FormattedPrompt:
        """Build the ordered message list."""
        turns = _effective_turns(request, emulate_tools=self.emulate_tools)
        system_parts = [request.system_prompt] if request.system_prompt else []
        messages: list[dict[str, Any]] = []

        if request.system_prompt and self.system_placement == "message":
            messages.append(
                {"role": self._wire_role("system"), "content": request.system_prompt}
            )

        for turn in turns:
            if turn.role == "system" and self.system_placement == "field":
                if turn.content:
                    system_parts.append(turn.content)
                continue
            entry: dict[str, Any] = {
                "role": self._wire_role(turn.role),
                "content": turn.content,
            }
            if (
                turn.role == "tool"
                and "tool" in self.supported_roles
                and turn.tool_call_id
            ):
                entry["tool_call_id"] = turn.tool_call_id
            messages.append(entry)

        system = None
        if self.system_placement == "field" and system_parts:
            system = "\n\n".join(system_parts)
        return FormattedPrompt(
            messages=tuple(messages),
            system=system,
            stop=_stop_for(request),
        )


@dataclass(frozen=True)
class DelimitedTemplate:
    """Literal delimiters of one prompt family.

    Each role pattern contains a single ``{}`` placeholder. With
    ``system_in_user`` the system block is emitted inside the next user
    turn instead of on its own.
    """

    name: str
    system: str
    user: str
    assistant: str
    open_assistant: str
    stop: tuple[str, ...] = ()
    system_in_user: bool = False


_PHI3_LIKE = {
    "system": "<|system|>\n{}\n\n",
    "user": "<|user|>\n{}\n\n",
    "assistant": "<|assistant|>\n{}\n\n",
    "open_assistant": "<|assistant|>\n",
}

FAMILIES: dict[str, DelimitedTemplate] = {
    t.name: t
    for t in (
        DelimitedTemplate(
            name="chatml",
            system="<|im_start|>system\n{}<|im_end|>\n\n",
            user="<|im_start|>user\n{}<|im_end|>\n\n",
            assistant="<|im_start|>assistant\n{}<|im_end|>\n\n",
            open_assistant="<|im_start|>assistant\n",
            stop=("<|im_start|>", "<|im_end|>"),
        ),
        DelimitedTemplate(
            name="zephyr",
            system="<|system|>\n{}\n",
            user="<|user|>\n{}\n",
            assistant="<|assistant|>\n{}\n",
            open_assistant="<|assistant|>\n",
            stop=("<|user|>",),
        ),
        DelimitedTemplate(name="phi3", stop=("Human:", "<|user|>"), **_PHI3_LIKE),
        DelimitedTemplate(
            name="starcoder",
            stop=("<|user|>", "<|system|>", "<|end|>"),
            **_PHI3_LIKE,
        ),
        DelimitedTemplate(
            name="llama2",
            system="<<SYS>>\n{}\n<</SYS>>\n\n",
            user="<s>[INST] {}",
            assistant=" [/INST] {} </s>",
            open_assistant=" [/INST]",
            stop=("[INST]",),
            system_in_user=True,
        ),
        DelimitedTemplate(
            name="vicuna",
            system="{}\n\n",
            user="USER: {}\n\n",
            assistant="ASSISTANT: {}\n\n",
            open_assistant="ASSISTANT: ",
            stop=("USER:",),
        ),
        DelimitedTemplate(
            name="human_assistant",
            system="{}\n\n",
            user="Human: {}\n\n",
            assistant="Assistant: {}\n\n",
            open_assistant="Assistant: ",
            stop=("Human:",),
        ),
        DelimitedTemplate(
            name="human_ai",
            system="{}\n\n",
            user="Human: {}\n\n",
            assistant="AI: {}\n\n",
            open_assistant="AI: ",
            stop=("Human:",),
        ),
        DelimitedTemplate(
            name="plain",
            system="{}\n\n",
            user="{}\n\n",
            assistant="{}\n\n",
            open_assistant="",
        ),
    )
}


def get_template(name: str) -> DelimitedTemplate:
    """Look up a prompt family by name."""
    try:
        return FAMILIES[name]
    except KeyError:
        raise ConfigurationError(
            f"Unknown prompt family: {name!r}",
            hint=f"Known families: {', '.join(sorted(FAMILIES))}.",
        ) from None


class DelimitedFormatter:
    """Single prompt string built from a family's delimiters.

    The output always ends with the open assistant marker so the model
    continues as the assistant.
    """

    def __init__(
        self, template: DelimitedTemplate | str, *, emulate_tools: bool = False
    ) -> None:
        self.template = get_template(template) if isinstance(template, str) else template
        self.emulate_tools = emulate_tools

    def format(self, request: GenerationRequest) -> FormattedPrompt:
        """Render the prompt text."""
        t = self.template
        turns = _effective_turns(request, emulate_tools=self.emulate_tools)
        if request.system_prompt:
            turns.insert(0, ConversationMessage(role="system", content=request.system_prompt))

        parts: list[str] = []
        pending_system: list[str] = []
        for turn in turns:
            role = turn.role if turn.role in ("system", "user", "assistant") else "assistant"
            if role == "system":
                if t.system_in_user:
                    pending_system.append(t.system.format(turn.content))
                else:
                    parts.append(t.system.format(turn.content))
            elif role == "user":
                content = "".join(pending_system) + turn.content
                pending_system.clear()
                parts.append(t.user.format(content))
            else:
                parts.append(t.assistant.format(turn.content))
        if pending_system:
            parts.append(t.user.format("".join(pending_system)))

        text = "".join(parts) + t.open_assistant
        logger.debug("Rendered %s prompt (%d chars)", t.name, len(text))
        return FormattedPrompt(text=text, stop=_stop_for(request, t.stop))
