"""Token, char and cost accounting for one decoded stream."""

from __future__ import annotations

import re
from dataclasses import dataclass

from brain_cli.config import BrainSpec
from brain_cli.models import (
    BrainOutput,
    CashCost,
    CharCounts,
    Exchange,
    OutputMetrics,
    Series,
    TimeCost,
    TokenCounts,
    hash_exchange,
)
from brain_cli.reconcile import reconcile_series

_NON_NUMERIC = re.compile(r"[^0-9.\-]")


@dataclass(slots=True)
class DecodedStream:
    """State accumulated by the stream decoder up to its terminal event."""

    text: str = ""
    session_id: str | None = None
    tokens_input: int = 0
    tokens_output: int = 0
    tokens_cache_get: int = 0
    tokens_cache_set: int = 0
    cost_usd: float | None = None
    duration_ms: int | None = None
    result_text: str | None = None
    compaction: bool = False

    @property
    def output_text(self) -> str:
        """Final result text when reported, else the accumulated incremental text."""

        return self.result_text if self.result_text is not None else self.text


def parse_iso_price(price: str) -> float:
    """Numeric value of a currency-prefixed decimal string such as ``$0.000003``."""

    cleaned = _NON_NUMERIC.sub("", price)
    try:
        return float(cleaned)
    except ValueError:
        return 0.0


def compute_metrics(
    *,
    prompt: str,
    output_text: str,
    decoded: DecodedStream,
    spec: BrainSpec,
) -> OutputMetrics:
    """Derive per-category costs from ``spec``; a vendor-reported total always wins."""

    rates = spec.rates
    cost_input = parse_iso_price(rates.input) * decoded.tokens_input
    cost_output = parse_iso_price(rates.output) * decoded.tokens_output
    cost_cache_get = parse_iso_price(rates.cache_get) * decoded.tokens_cache_get
    cost_cache_set = parse_iso_price(rates.cache_set) * decoded.tokens_cache_set

    total = (
        decoded.cost_usd
        if decoded.cost_usd is not None
        else cost_input + cost_output + cost_cache_get + cost_cache_set
    )
    return OutputMetrics(
        tokens=TokenCounts(
            input=decoded.tokens_input,
            output=decoded.tokens_output,
            cache_get=decoded.tokens_cache_get,
            cache_set=decoded.tokens_cache_set,
        ),
        chars=CharCounts(input=len(prompt), output=len(output_text)),
        time=TimeCost(milliseconds=decoded.duration_ms or 0),
        cash=CashCost(
            total=total,
            input=cost_input,
            output=cost_output,
            cache_get=cost_cache_get,
            cache_set=cost_cache_set,
        ),
    )


def build_exchange(*, prompt: str, output_text: str) -> Exchange:
    return Exchange(
        hash=hash_exchange(prompt, output_text),
        input=prompt,
        output=output_text,
        exid=None,
    )


def finalize_output(
    *,
    prompt: str,
    decoded: DecodedStream,
    spec: BrainSpec,
    series_prior: Series | None,
) -> BrainOutput:
    """Turn decoded stream state into the call result and the next series."""

    output_text = decoded.output_text
    metrics = compute_metrics(
        prompt=prompt,
        output_text=output_text,
        decoded=decoded,
        spec=spec,
    )
    episode, series = reconcile_series(
        series_prior=series_prior,
        exchange=build_exchange(prompt=prompt, output_text=output_text),
        session_id=decoded.session_id,
        compaction=decoded.compaction,
    )
    return BrainOutput(output=output_text, metrics=metrics, episode=episode, series=series)
