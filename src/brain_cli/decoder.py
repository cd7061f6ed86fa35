"""Decode a dispatch process output stream into one brain output.

The decoder finalizes on the ``result`` event and does not wait for process
exit: the CLI stays alive after answering, ready for the next message.
"""

from __future__ import annotations

import asyncio
import codecs
import logging
from collections.abc import Awaitable, Callable

from brain_cli.accounting import DecodedStream, finalize_output
from brain_cli.config import BrainSpec
from brain_cli.envelopes import (
    AssistantEnvelope,
    CompactBoundaryEnvelope,
    Envelope,
    MessageDelta,
    MessageStart,
    ResultEnvelope,
    StreamEventEnvelope,
    SystemEnvelope,
    TextDelta,
    Usage,
    parse_envelope,
)
from brain_cli.errors import StreamFaultError
from brain_cli.models import BrainOutput, Series
from brain_cli.transport import OutputChannel

logger = logging.getLogger(__name__)


class StreamJsonDecoder:
    """One-shot listener that settles exactly once per bound call."""

    def __init__(self, channel: OutputChannel) -> None:
        self._channel = channel
        self._state = DecodedStream()
        self._buffer = ""
        self._text_decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._settled = False
        self._future: asyncio.Future[DecodedStream] = asyncio.get_running_loop().create_future()

    @property
    def settled(self) -> bool:
        return self._settled

    def bind(self) -> asyncio.Future[DecodedStream]:
        """Subscribe to the channel and return the pending decoded state."""

        self._channel.subscribe(self)
        return self._future

    def abandon(self) -> None:
        """Detach without a result, for calls that failed before any output."""

        if self._settled:
            return
        self._settled = True
        self._channel.unsubscribe(self)
        self._future.cancel()

    def on_data(self, chunk: bytes) -> None:
        if self._settled:
            return
        self._buffer += self._text_decoder.decode(chunk)
        *lines, self._buffer = self._buffer.split("\n")
        for line in lines:
            self._process_line(line)
            if self._settled:
                return

    def on_end(self) -> None:
        if self._settled:
            return
        self._buffer += self._text_decoder.decode(b"", final=True)
        if self._buffer.strip():
            self._process_line(self._buffer)
        self._buffer = ""
        self._finalize()

    def on_error(self, error: BaseException) -> None:
        if self._settled:
            return
        self._settled = True
        self._channel.unsubscribe(self)
        if self._future.done():
            return
        self._future.set_exception(
            StreamFaultError(
                "stream error while reading brain output",
                details={"error": str(error)},
            ),
        )

    def _process_line(self, line: str) -> None:
        envelope = parse_envelope(line)
        if envelope is None:
            if line.strip():
                logger.debug("Skipping unrecognized stream line: %.120s", line)
            return
        self._apply(envelope)

    def _apply(self, envelope: Envelope) -> None:
        state = self._state
        if isinstance(envelope, ResultEnvelope):
            state.session_id = envelope.session_id or state.session_id
            if envelope.cost_usd is not None:
                state.cost_usd = envelope.cost_usd
            if envelope.duration_ms is not None:
                state.duration_ms = envelope.duration_ms
            if envelope.result is not None:
                state.result_text = envelope.result
            self._apply_usage(envelope.usage)
            self._finalize()
        elif isinstance(envelope, AssistantEnvelope):
            state.text += "".join(envelope.texts)
            self._apply_usage(envelope.usage)
            state.session_id = envelope.session_id or state.session_id
        elif isinstance(envelope, StreamEventEnvelope):
            self._apply_stream_event(envelope)
        elif isinstance(envelope, SystemEnvelope):
            state.session_id = envelope.session_id or state.session_id
            if envelope.compact_boundary:
                state.compaction = True
        elif isinstance(envelope, CompactBoundaryEnvelope):
            state.compaction = True

    def _apply_stream_event(self, envelope: StreamEventEnvelope) -> None:
        event = envelope.event
        if isinstance(event, MessageStart):
            if event.input_tokens:
                self._state.tokens_input = event.input_tokens
        elif isinstance(event, TextDelta):
            self._state.text += event.text
        elif isinstance(event, MessageDelta):
            self._apply_usage(event.usage)

    def _apply_usage(self, usage: Usage | None) -> None:
        # later reports overwrite earlier ones; zero or absent counters do not
        if usage is None:
            return
        state = self._state
        if usage.input_tokens:
            state.tokens_input = usage.input_tokens
        if usage.output_tokens:
            state.tokens_output = usage.output_tokens
        if usage.cache_creation_input_tokens:
            state.tokens_cache_set = usage.cache_creation_input_tokens
        if usage.cache_read_input_tokens:
            state.tokens_cache_get = usage.cache_read_input_tokens

    def _finalize(self) -> None:
        if self._settled:
            return
        self._settled = True
        self._channel.unsubscribe(self)
        # the caller may have cancelled the pending call already
        if not self._future.done():
            self._future.set_result(self._state)


async def decode_brain_output(
    *,
    prompt: str,
    channel: OutputChannel,
    spec: BrainSpec,
    series_prior: Series | None,
    send: Callable[[], Awaitable[None]] | None = None,
) -> BrainOutput:
    """Await one terminal event on ``channel`` and build the brain output.

    The decoder is bound before ``send`` runs so no output of the request can be
    missed. A failed or cancelled call detaches the decoder from the channel.
    """

    decoder = StreamJsonDecoder(channel)
    pending = decoder.bind()
    try:
        if send is not None:
            await send()
        decoded = await pending
    except BaseException:
        decoder.abandon()
        raise
    return finalize_output(prompt=prompt, decoded=decoded, spec=spec, series_prior=series_prior)
