"""Tool-call extraction from native and emulated replies."""

from __future__ import annotations

import logging

import pytest

from switchboard.extraction import RawReply, ToolCallExtractor, decode_arguments
from switchboard.types import ToolCallRequest, ToolDefinition, Usage

pytestmark = pytest.mark.unit

TOOLS = (ToolDefinition(name="get_weather", description="Weather lookup"),)


def test_native_call_with_json_arguments() -> None:
    reply = RawReply(
        native_calls=(
            {"name": "get_weather", "arguments": '{"city":"Oslo"}', "id": "call_1"},
        ),
        finish_reason="tool_call",
        usage=Usage(5, 3, 8),
    )

    result = ToolCallExtractor().extract(reply, TOOLS)

    assert result.finish_reason == "tool_call"
    assert result.content == ""
    assert result.tool_call_request == ToolCallRequest(
        name="get_weather", arguments={"city": "Oslo"}, id="call_1"
    )
    assert result.usage == Usage(5, 3, 8)


def test_native_call_wins_even_with_text_and_stop_finish() -> None:
    reply = RawReply(
        text="Let me check.",
        native_calls=({"name": "get_weather", "arguments": {"city": "Rome"}},),
        finish_reason="stop",
    )

    result = ToolCallExtractor().extract(reply, TOOLS)

    assert result.content == ""
    assert result.tool_call_request is not None
    assert result.tool_call_request.arguments == {"city": "Rome"}
    assert result.tool_call_request.id is None


def test_only_first_of_several_native_calls_is_kept() -> None:
    reply = RawReply(
        native_calls=(
            {"name": "first", "arguments": "{}"},
            {"name": "second", "arguments": "{}"},
        )
    )

    result = ToolCallExtractor().extract(reply, TOOLS)

    assert result.tool_call_request is not None
    assert result.tool_call_request.name == "first"


def test_undecodable_arguments_become_empty_with_warning(
    caplog: pytest.LogCaptureFixture,
) -> None:
    reply = RawReply(native_calls=({"name": "get_weather", "arguments": "{city: Oslo"},))

    with caplog.at_level(logging.WARNING, logger="switchboard.extraction"):
        result = ToolCallExtractor().extract(reply, TOOLS)

    assert result.tool_call_request == ToolCallRequest(name="get_weather", arguments={})
    assert "get_weather" in caplog.text


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        (None, {}),
        ("", {}),
        ('{"a": 1}', {"a": 1}),
        ({"a": 1}, {"a": 1}),
        ("[1, 2]", {}),
        (42, {}),
    ],
)
def test_decode_arguments(raw: object, expected: dict[str, object]) -> None:
    assert decode_arguments(raw, tool_name="t") == expected


def test_emulated_tool_call_envelope() -> None:
    reply = RawReply(
        text='{"tool_call": {"name": "get_weather", "arguments": {"city": "Oslo"}}}'
    )

    result = ToolCallExtractor("emulated").extract(reply, TOOLS)

    assert result.finish_reason == "tool_call"
    assert result.tool_call_request == ToolCallRequest(
        name="get_weather", arguments={"city": "Oslo"}
    )


def test_emulated_envelope_tolerates_surrounding_whitespace() -> None:
    reply = RawReply(text='\n  {"tool_call": {"name": "get_weather"}}\n')

    result = ToolCallExtractor("emulated").extract(reply, TOOLS)

    assert result.tool_call_request == ToolCallRequest(name="get_weather")


def test_emulated_final_answer_unwraps_text() -> None:
    reply = RawReply(text='{"final_answer": "It is sunny."}', usage=Usage(1, 2, 3))

    result = ToolCallExtractor("emulated").extract(reply, TOOLS)

    assert result.finish_reason == "stop"
    assert result.content == "It is sunny."
    assert result.tool_call_request is None
    assert result.usage == Usage(1, 2, 3)


@pytest.mark.parametrize(
    ("text", "content"),
    [
        ('{"final_answer": null}', ""),
        ('{"final_answer": {"temp": 21}}', '{"temp": 21}'),
        ('{"final_answer": 3}', "3"),
    ],
)
def test_emulated_final_answer_non_string(text: str, content: str) -> None:
    result = ToolCallExtractor("emulated").extract(RawReply(text=text), TOOLS)

    assert result.content == content


def test_plain_text_with_emulated_strategy() -> None:
    reply = RawReply(text="Just text.", finish_reason="length")

    result = ToolCallExtractor("emulated").extract(reply, TOOLS)

    assert result.content == "Just text."
    assert result.finish_reason == "length"
    assert result.tool_call_request is None


@pytest.mark.parametrize(
    "text",
    [
        '{"tool_call": "not an object"}',
        '{"tool_call": {"arguments": {}}}',
        '{"tool_call": {"name": "x"',
        '["tool_call"]',
        '{"other": 1}',
    ],
)
def test_malformed_envelopes_fall_back_to_text(text: str) -> None:
    result = ToolCallExtractor("emulated").extract(RawReply(text=text), TOOLS)

    assert result.content == text
    assert result.tool_call_request is None


def test_envelope_parsed_on_turn_without_tools() -> None:
    text = '{"tool_call": {"name": "get_weather", "arguments": {"city": "Oslo"}}}'

    result = ToolCallExtractor("emulated").extract(RawReply(text=text))

    assert result.finish_reason == "tool_call"
    assert result.tool_call_request == ToolCallRequest(
        name="get_weather", arguments={"city": "Oslo"}
    )


def test_call_to_tool_not_offered_is_kept_with_warning(
    caplog: pytest.LogCaptureFixture,
) -> None:
    text = '{"tool_call": {"name": "launch_rocket", "arguments": {}}}'

    with caplog.at_level(logging.WARNING, logger="switchboard.extraction"):
        result = ToolCallExtractor("emulated").extract(RawReply(text=text), TOOLS)

    assert result.tool_call_request is not None
    assert result.tool_call_request.name == "launch_rocket"
    assert "launch_rocket" in caplog.text


# =============================================================================
# Pathological JSON
# =============================================================================

DEEPLY_NESTED = '{"a":' * 100_000 + "1" + "}" * 100_000
HUGE_INT = "1" + "0" * 5000


@pytest.mark.parametrize(
    "text",
    [DEEPLY_NESTED, '{"final_answer": ' + HUGE_INT + "}"],
    ids=["deep-nesting", "huge-int"],
)
def test_emulated_extraction_survives_pathological_json(text: str) -> None:
    result = ToolCallExtractor("emulated").extract(RawReply(text=text), TOOLS)

    assert result.finish_reason == "stop"
    assert result.tool_call_request is None
    assert HUGE_INT in result.content or result.content == text


def test_native_arguments_too_deep_to_decode_become_empty() -> None:
    reply = RawReply(native_calls=({"name": "get_weather", "arguments": DEEPLY_NESTED},))

    result = ToolCallExtractor().extract(reply, TOOLS)

    assert result.tool_call_request == ToolCallRequest(name="get_weather", arguments={})


def test_decode_arguments_rejects_oversized_integer_without_raising() -> None:
    decoded = decode_arguments('{"q": ' + HUGE_INT + "}", tool_name="t")

    assert decoded == {} or isinstance(decoded["q"], int)


def test_envelope_ignored_for_native_strategy() -> None:
    text = '{"final_answer": "hi"}'

    result = ToolCallExtractor("native").extract(RawReply(text=text), TOOLS)

    assert result.content == text


def test_tool_call_finish_without_call_degrades_to_stop() -> None:
    result = ToolCallExtractor().extract(
        RawReply(text="hm", finish_reason="tool_call"), TOOLS
    )

    assert result.finish_reason == "stop"
    assert result.content == "hm"


def test_unknown_strategy_is_rejected() -> None:
    with pytest.raises(ValueError):
        ToolCallExtractor("magic")  # type: ignore[arg-type]
