"""Static CLI config table and runtime settings for brain CLI handles."""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace

from brain_cli.models import TaskCategory, format_iso_price

ANTHROPIC_BINARY = "claude"

TOOLS_ASK = ("Read", "Grep", "Glob", "WebSearch", "WebFetch")
TOOLS_ACT = ("Read", "Grep", "Glob", "Edit", "Write", "Bash", "WebSearch", "WebFetch")


@dataclass(slots=True, frozen=True)
class CostRates:
    """Per-token USD rates as currency-prefixed decimal strings."""

    input: str
    output: str
    cache_get: str
    cache_set: str


@dataclass(slots=True, frozen=True)
class BrainSpec:
    """Model spec used to derive cost when the vendor does not report one."""

    rates: CostRates


@dataclass(slots=True, frozen=True)
class BrainCliConfig:
    """Spawn config for one brain CLI slug."""

    slug: str
    binary: str
    model: str
    spec: BrainSpec
    tools_ask: tuple[str, ...] = TOOLS_ASK
    tools_act: tuple[str, ...] = TOOLS_ACT

    def tools_for(self, category: TaskCategory) -> tuple[str, ...]:
        if category is TaskCategory.ACT:
            return self.tools_act
        return self.tools_ask


def _rates_per_1m(
    *,
    input_per_1m: float,
    output_per_1m: float,
    cache_set_per_1m: float,
    cache_get_per_1m: float,
) -> CostRates:
    return CostRates(
        input=format_iso_price(input_per_1m / 1_000_000),
        output=format_iso_price(output_per_1m / 1_000_000),
        cache_get=format_iso_price(cache_get_per_1m / 1_000_000),
        cache_set=format_iso_price(cache_set_per_1m / 1_000_000),
    )


_HAIKU_SPEC = BrainSpec(
    rates=_rates_per_1m(
        input_per_1m=1.0, output_per_1m=5.0, cache_set_per_1m=1.25, cache_get_per_1m=0.10
    ),
)
_SONNET_SPEC = BrainSpec(
    rates=_rates_per_1m(
        input_per_1m=3.0, output_per_1m=15.0, cache_set_per_1m=3.75, cache_get_per_1m=0.30
    ),
)
_OPUS_SPEC = BrainSpec(
    rates=_rates_per_1m(
        input_per_1m=5.0, output_per_1m=25.0, cache_set_per_1m=6.25, cache_get_per_1m=0.50
    ),
)

# slug format: '<binary>@<supplier>/<atom-slug>'
_ATOMS: dict[str, tuple[str, BrainSpec]] = {
    "claude/haiku": ("claude-haiku-4-5", _HAIKU_SPEC),
    "claude/haiku/v4.5": ("claude-haiku-4-5", _HAIKU_SPEC),
    "claude/sonnet": ("claude-sonnet-4-5", _SONNET_SPEC),
    "claude/sonnet/v4": ("claude-sonnet-4-0", _SONNET_SPEC),
    "claude/sonnet/v4.5": ("claude-sonnet-4-5", _SONNET_SPEC),
    "claude/opus": ("claude-opus-4-5", _OPUS_SPEC),
    "claude/opus/v4.5": ("claude-opus-4-5", _OPUS_SPEC),
}

CONFIG_BY_CLI_SLUG: dict[str, BrainCliConfig] = {
    f"{ANTHROPIC_BINARY}@anthropic/{atom}": BrainCliConfig(
        slug=f"{ANTHROPIC_BINARY}@anthropic/{atom}",
        binary=ANTHROPIC_BINARY,
        model=model,
        spec=spec,
    )
    for atom, (model, spec) in _ATOMS.items()
}


@dataclass(slots=True)
class BrainCliSettings:
    """Runtime knobs applied on top of the static config table."""

    binary_override: str | None = None
    term_cols: int = 120
    term_rows: int = 40
    kill_grace_seconds: float = 2.0
    pricing: dict[str, CostRates] = field(default_factory=dict)

    @classmethod
    def from_env(cls) -> BrainCliSettings:
        """Load settings from environment with defaults for local use."""

        binary = os.getenv("BRAIN_CLI_BINARY", "").strip()
        settings = cls(
            binary_override=binary or None,
            term_cols=_env_int("BRAIN_CLI_TERM_COLS", 120),
            term_rows=_env_int("BRAIN_CLI_TERM_ROWS", 40),
            kill_grace_seconds=_env_float("BRAIN_CLI_KILL_GRACE_SECONDS", 2.0),
            pricing=parse_pricing_overrides(os.getenv("BRAIN_CLI_PRICING", "")),
        )
        if settings.term_cols <= 0 or settings.term_rows <= 0:
            raise ValueError("BRAIN_CLI_TERM_COLS and BRAIN_CLI_TERM_ROWS must be > 0.")
        if settings.kill_grace_seconds < 0:
            raise ValueError("BRAIN_CLI_KILL_GRACE_SECONDS must be >= 0.")
        return settings

    def apply(self, config: BrainCliConfig) -> BrainCliConfig:
        """Return ``config`` with binary and pricing overrides applied."""

        rates = self.pricing.get(config.model) or self.pricing.get("*")
        if rates is not None:
            config = replace(config, spec=BrainSpec(rates=rates))
        if self.binary_override:
            config = replace(config, binary=self.binary_override)
        return config


def parse_pricing_overrides(raw: str) -> dict[str, CostRates]:
    """Parse `BRAIN_CLI_PRICING` mapping.

    Format:
    - `model:input_per_1m:output_per_1m:cache_set_per_1m:cache_get_per_1m`
    - multiple entries separated by `,`
    - `*` as model applies to every model without a direct entry
    """

    parsed: dict[str, CostRates] = {}
    if not raw.strip():
        return parsed

    for entry in raw.split(","):
        value = entry.strip()
        if not value:
            continue
        parts = [part.strip() for part in value.split(":")]
        if len(parts) != 5 or not parts[0]:
            continue
        model, *prices = parts
        try:
            numbers = [float(price) for price in prices]
        except ValueError:
            continue
        if any(number < 0 for number in numbers):
            continue
        input_price, output_price, cache_set_price, cache_get_price = numbers
        parsed[model] = _rates_per_1m(
            input_per_1m=input_price,
            output_per_1m=output_price,
            cache_set_per_1m=cache_set_price,
            cache_get_per_1m=cache_get_price,
        )
    return parsed


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except ValueError as error:
        raise ValueError(f"Invalid integer value for {name}: {value!r}") from error


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return float(value)
    except ValueError as error:
        raise ValueError(f"Invalid float value for {name}: {value!r}") from error
