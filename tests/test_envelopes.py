from __future__ import annotations

import json

import allure

from brain_cli.envelopes import (
    AssistantEnvelope,
    CompactBoundaryEnvelope,
    MessageDelta,
    MessageStart,
    ResultEnvelope,
    StreamEventEnvelope,
    SystemEnvelope,
    TextDelta,
    parse_envelope,
)

pytestmark = [
    allure.epic("Brain CLI"),
    allure.feature("Stream Decoder"),
]


def test_parse_envelope_ignores_noise() -> None:
    assert parse_envelope("") is None
    assert parse_envelope("   ") is None
    assert parse_envelope("warning: something went sideways") is None
    assert parse_envelope("[1, 2, 3]") is None
    assert parse_envelope('{"type": "tool_use"}') is None
    assert parse_envelope('{"no_type": true}') is None
    assert parse_envelope('{"type": 7}') is None


def test_parse_system_envelope_detects_compaction() -> None:
    envelope = parse_envelope(
        json.dumps({"type": "system", "subtype": "compact_boundary", "session_id": "s-1"}),
    )
    assert envelope == SystemEnvelope(session_id="s-1", compact_boundary=True)

    init = parse_envelope(json.dumps({"type": "system", "subtype": "init"}))
    assert init == SystemEnvelope(session_id=None, compact_boundary=False)


def test_parse_assistant_envelope_keeps_text_blocks_only() -> None:
    envelope = parse_envelope(
        json.dumps(
            {
                "type": "assistant",
                "session_id": "s-1",
                "message": {
                    "content": [
                        {"type": "text", "text": "hello "},
                        {"type": "tool_use", "name": "Read"},
                        {"type": "text", "text": "world"},
                    ],
                    "usage": {"input_tokens": 12, "output_tokens": 3},
                },
            },
        ),
    )
    assert isinstance(envelope, AssistantEnvelope)
    assert envelope.texts == ("hello ", "world")
    assert envelope.usage is not None
    assert envelope.usage.input_tokens == 12
    assert envelope.usage.cache_read_input_tokens is None


def test_parse_result_envelope_cost_fallbacks() -> None:
    envelope = parse_envelope(
        json.dumps(
            {
                "type": "result",
                "result": "done",
                "session_id": "s-9",
                "total_cost_usd": 0.25,
                "duration_ms": 1500,
            },
        ),
    )
    assert isinstance(envelope, ResultEnvelope)
    assert envelope.cost_usd == 0.25
    assert envelope.duration_ms == 1500
    assert envelope.result == "done"


def test_parse_result_envelope_treats_wrong_types_as_absent() -> None:
    envelope = parse_envelope(
        json.dumps({"type": "result", "result": 42, "cost_usd": "cheap", "session_id": None}),
    )
    assert envelope == ResultEnvelope(
        session_id=None,
        result=None,
        cost_usd=None,
        duration_ms=None,
        usage=None,
    )


def test_parse_stream_events() -> None:
    start = parse_envelope(
        json.dumps(
            {
                "type": "stream_event",
                "event": {"type": "message_start", "message": {"usage": {"input_tokens": 500}}},
            },
        ),
    )
    delta = parse_envelope(
        json.dumps(
            {
                "type": "stream_event",
                "event": {
                    "type": "content_block_delta",
                    "delta": {"type": "text_delta", "text": "hi"},
                },
            },
        ),
    )
    usage = parse_envelope(
        json.dumps(
            {
                "type": "stream_event",
                "event": {"type": "message_delta", "usage": {"output_tokens": 20}},
            },
        ),
    )
    unknown = parse_envelope(
        json.dumps({"type": "stream_event", "event": {"type": "message_stop"}}),
    )

    assert start == StreamEventEnvelope(event=MessageStart(input_tokens=500))
    assert delta == StreamEventEnvelope(event=TextDelta(text="hi"))
    assert isinstance(usage, StreamEventEnvelope)
    assert isinstance(usage.event, MessageDelta)
    assert usage.event.usage is not None
    assert usage.event.usage.output_tokens == 20
    assert unknown == StreamEventEnvelope(event=None)


def test_parse_top_level_compact_boundary() -> None:
    assert parse_envelope('{"type": "compact_boundary"}') == CompactBoundaryEnvelope()
