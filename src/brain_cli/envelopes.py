"""Typed envelopes for the line-delimited JSON stream of a dispatch process.

The stream emits these top-level kinds:

- ``system``: init metadata, may carry ``session_id`` or a ``compact_boundary`` subtype
- ``assistant``: assistant turn content blocks and usage
- ``result``: terminal event with session id, cost, duration and final text
- ``stream_event``: wraps an API event (``message_start``, ``content_block_delta``,
  ``message_delta``)
- ``compact_boundary``: alternate top-level shape of the compaction marker

Anything else decodes to ``None`` and is ignored by the decoder.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any


class EnvelopeKind(str, Enum):
    SYSTEM = "system"
    ASSISTANT = "assistant"
    RESULT = "result"
    STREAM_EVENT = "stream_event"
    COMPACT_BOUNDARY = "compact_boundary"


@dataclass(slots=True, frozen=True)
class Usage:
    """Optional token counters as reported by the vendor."""

    input_tokens: int | None = None
    output_tokens: int | None = None
    cache_creation_input_tokens: int | None = None
    cache_read_input_tokens: int | None = None


@dataclass(slots=True, frozen=True)
class SystemEnvelope:
    session_id: str | None
    compact_boundary: bool


@dataclass(slots=True, frozen=True)
class AssistantEnvelope:
    session_id: str | None
    texts: tuple[str, ...]
    usage: Usage | None


@dataclass(slots=True, frozen=True)
class ResultEnvelope:
    session_id: str | None
    result: str | None
    cost_usd: float | None
    duration_ms: int | None
    usage: Usage | None


@dataclass(slots=True, frozen=True)
class MessageStart:
    input_tokens: int | None


@dataclass(slots=True, frozen=True)
class TextDelta:
    text: str


@dataclass(slots=True, frozen=True)
class MessageDelta:
    usage: Usage | None


StreamEvent = MessageStart | TextDelta | MessageDelta


@dataclass(slots=True, frozen=True)
class StreamEventEnvelope:
    event: StreamEvent | None


@dataclass(slots=True, frozen=True)
class CompactBoundaryEnvelope:
    pass


Envelope = (
    SystemEnvelope
    | AssistantEnvelope
    | ResultEnvelope
    | StreamEventEnvelope
    | CompactBoundaryEnvelope
)


def parse_envelope(line: str) -> Envelope | None:  # noqa: PLR0911
    """Decode one protocol line; non-JSON and unrecognized kinds yield ``None``."""

    stripped = line.strip()
    if not stripped:
        return None
    try:
        payload = json.loads(stripped)
    except json.JSONDecodeError:
        return None
    if not isinstance(payload, dict):
        return None

    raw_kind = payload.get("type")
    if not isinstance(raw_kind, str):
        return None
    try:
        kind = EnvelopeKind(raw_kind)
    except ValueError:
        return None

    if kind is EnvelopeKind.SYSTEM:
        return SystemEnvelope(
            session_id=_opt_str(payload, "session_id"),
            compact_boundary=payload.get("subtype") == "compact_boundary",
        )
    if kind is EnvelopeKind.ASSISTANT:
        message = _opt_dict(payload, "message") or {}
        return AssistantEnvelope(
            session_id=_opt_str(payload, "session_id"),
            texts=_text_blocks(message.get("content")),
            usage=_parse_usage(_opt_dict(message, "usage")),
        )
    if kind is EnvelopeKind.RESULT:
        cost = _opt_number(payload, "cost_usd")
        if cost is None:
            cost = _opt_number(payload, "total_cost_usd")
        if cost is None:
            cost = _opt_number(payload, "total_cost")
        duration = _opt_number(payload, "duration_ms")
        return ResultEnvelope(
            session_id=_opt_str(payload, "session_id"),
            result=_opt_str(payload, "result"),
            cost_usd=float(cost) if cost is not None else None,
            duration_ms=int(duration) if duration is not None else None,
            usage=_parse_usage(_opt_dict(payload, "usage")),
        )
    if kind is EnvelopeKind.STREAM_EVENT:
        inner = _opt_dict(payload, "event")
        return StreamEventEnvelope(event=_parse_stream_event(inner) if inner else None)
    return CompactBoundaryEnvelope()


def _parse_stream_event(event: dict[str, Any]) -> StreamEvent | None:
    inner_type = event.get("type")
    if inner_type == "message_start":
        usage = _parse_usage(_opt_dict(_opt_dict(event, "message") or {}, "usage"))
        return MessageStart(input_tokens=usage.input_tokens if usage else None)
    if inner_type == "content_block_delta":
        delta = _opt_dict(event, "delta") or {}
        text = _opt_str(delta, "text")
        if delta.get("type") == "text_delta" and text:
            return TextDelta(text=text)
        return None
    if inner_type == "message_delta":
        return MessageDelta(usage=_parse_usage(_opt_dict(event, "usage")))
    return None


def _parse_usage(raw: dict[str, Any] | None) -> Usage | None:
    if raw is None:
        return None
    return Usage(
        input_tokens=_opt_int(raw, "input_tokens"),
        output_tokens=_opt_int(raw, "output_tokens"),
        cache_creation_input_tokens=_opt_int(raw, "cache_creation_input_tokens"),
        cache_read_input_tokens=_opt_int(raw, "cache_read_input_tokens"),
    )


def _text_blocks(content: object) -> tuple[str, ...]:
    if not isinstance(content, list):
        return ()
    texts: list[str] = []
    for block in content:
        if not isinstance(block, dict) or block.get("type") != "text":
            continue
        text = _opt_str(block, "text")
        if text:
            texts.append(text)
    return tuple(texts)


def _opt_str(raw: dict[str, Any], key: str) -> str | None:
    value = raw.get(key)
    return value if isinstance(value, str) else None


def _opt_dict(raw: dict[str, Any], key: str) -> dict[str, Any] | None:
    value = raw.get(key)
    return value if isinstance(value, dict) else None


def _opt_number(raw: dict[str, Any], key: str) -> float | int | None:
    value = raw.get(key)
    if isinstance(value, bool) or not isinstance(value, int | float):
        return None
    return value


def _opt_int(raw: dict[str, Any], key: str) -> int | None:
    value = _opt_number(raw, key)
    return int(value) if value is not None else None
