from __future__ import annotations

import json

from pydantic import BaseModel
import pytest

from switchboard.tools import (
    normalize_schema,
    render_tool_instructions,
    to_anthropic_tools,
    to_gemini_tools,
    to_openai_tools,
)
from switchboard.types import ToolDefinition

pytestmark = pytest.mark.unit


class SearchArgs(BaseModel):
    query: str


SEARCH = ToolDefinition.from_model("search", SearchArgs, "Search the web")
PING = ToolDefinition(name="ping", description="Health check", parameter_schema={})


def test_normalize_schema_drops_title_and_fills_object_shape() -> None:
    original = {"title": "Args", "type": "object"}

    normalized = normalize_schema(original)

    assert normalized == {"type": "object", "properties": {}}
    assert original == {"title": "Args", "type": "object"}
    assert normalize_schema(None) == {"type": "object", "properties": {}}


def test_openai_tool_shape() -> None:
    (tool,) = to_openai_tools([SEARCH])

    assert tool["type"] == "function"
    assert tool["function"]["name"] == "search"
    assert tool["function"]["description"] == "Search the web"
    assert tool["function"]["parameters"]["properties"]["query"]["type"] == "string"
    assert "title" not in tool["function"]["parameters"]


def test_anthropic_tool_uses_input_schema() -> None:
    (tool,) = to_anthropic_tools([SEARCH])

    assert set(tool) == {"name", "description", "input_schema"}
    assert tool["input_schema"]["required"] == ["query"]


def test_gemini_groups_declarations_and_omits_empty_parameters() -> None:
    (group,) = to_gemini_tools([SEARCH, PING])
    search, ping = group["functionDeclarations"]

    assert search["parameters"]["properties"]["query"]["type"] == "string"
    assert "parameters" not in ping


def test_instruction_block_lists_every_tool() -> None:
    text = render_tool_instructions([SEARCH, PING])

    assert text.startswith("Available tools:\n- search: Search the web\n  Arguments: ")
    assert "- ping: Health check" in text
    schema_line = text.splitlines()[2]
    assert json.loads(schema_line.removeprefix("  Arguments: "))["type"] == "object"
    assert '"tool_call": {' in text
    assert '"final_answer": "Your final answer here"' in text
