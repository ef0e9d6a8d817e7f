"""Tool definitions on the wire.

Native backends get their own tool-declaration shape; backends without
function calling get a plain-text instruction block that asks the model to
answer with a JSON envelope (parsed back by ``switchboard.extraction``).
"""

from __future__ import annotations

from copy import deepcopy
import json
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Sequence

    from switchboard.types import ToolDefinition


def normalize_schema(schema: dict[str, Any] | None) -> dict[str, Any]:
    """Return a copy of *schema* that is always an object schema.

    Pydantic emits a top-level ``title`` and may omit ``properties`` for
    empty models; backends are stricter than JSON Schema about both.
    """
    normalized = deepcopy(schema) if schema else {}
    normalized.pop("title", None)
    normalized.setdefault("type", "object")
    if normalized["type"] == "object":
        normalized.setdefault("properties", {})
    return normalized


def render_tool_instructions(tools: Sequence[ToolDefinition]) -> str:
    """Render the instruction block for emulated function calling."""
    lines = ["Available tools:"]
    for tool in tools:
        lines.append(f"- {tool.name}: {tool.description}".rstrip())
        lines.append(
            f"  Arguments: {json.dumps(normalize_schema(tool.parameter_schema))}"
        )
    descriptions = "\n".join(lines)
    return f"""{descriptions}

To use a tool, output a JSON object EXACTLY in this format (no other text before or after):
{{
  "tool_call": {{
    "name": "tool_name",
    "arguments": {{ "argument_name": "value" }}
  }}
}}

After the tool executes, I will provide you with the result, and you can continue your task or call another tool.

When you have the final answer and don't need to use any more tools, output a JSON object EXACTLY in this format:
{{
  "final_answer": "Your final answer here"
}}

Think step-by-step. Analyze the request, decide if a tool is needed, call the tool if necessary, analyze the result, and repeat until you can provide the final answer."""


def to_openai_tools(tools: Sequence[ToolDefinition]) -> list[dict[str, Any]]:
    """Chat Completions ``tools`` array."""
    return [
        {
            "type": "function",
            "function": {
                "name": tool.name,
                "description": tool.description,
                "parameters": normalize_schema(tool.parameter_schema),
            },
        }
        for tool in tools
    ]


def to_anthropic_tools(tools: Sequence[ToolDefinition]) -> list[dict[str, Any]]:
    """Messages API ``tools`` array."""
    return [
        {
            "name": tool.name,
            "description": tool.description,
            "input_schema": normalize_schema(tool.parameter_schema),
        }
        for tool in tools
    ]


def to_gemini_tools(tools: Sequence[ToolDefinition]) -> list[dict[str, Any]]:
    """``generateContent`` ``tools`` array (one function-declarations group)."""
    declarations = []
    for tool in tools:
        declaration: dict[str, Any] = {
            "name": tool.name,
            "description": tool.description,
        }
        schema = normalize_schema(tool.parameter_schema)
        if schema.get("properties"):
            declaration["parameters"] = schema
        declarations.append(declaration)
    return [{"functionDeclarations": declarations}]
