"""Domain models for brain CLI conversations, metrics and process state."""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from enum import Enum

EPHEMERAL_SESSION = "ephemeral"


class BrainCliMode(str, Enum):
    """Transport a brain CLI process is booted with."""

    DISPATCH = "dispatch"
    INTERACT = "interact"


class TaskCategory(str, Enum):
    """Permission tier fixed at process spawn time."""

    ASK = "ask"
    ACT = "act"


@dataclass(slots=True, frozen=True)
class Exchange:
    """One prompt/response turn."""

    hash: str
    input: str
    output: str
    exid: str | None = None


@dataclass(slots=True, frozen=True)
class Episode:
    """One contiguous context window of an external session."""

    hash: str
    exid: str | None
    exchanges: tuple[Exchange, ...]


@dataclass(slots=True, frozen=True)
class Series:
    """Durable record of one logical conversation across process reboots."""

    hash: str
    exid: str | None
    episodes: tuple[Episode, ...]


@dataclass(slots=True, frozen=True)
class TokenCounts:
    input: int = 0
    output: int = 0
    cache_get: int = 0
    cache_set: int = 0


@dataclass(slots=True, frozen=True)
class CharCounts:
    input: int = 0
    output: int = 0


@dataclass(slots=True, frozen=True)
class CashCost:
    """USD cost: reported or derived total plus the derived per-category split."""

    total: float
    input: float
    output: float
    cache_get: float
    cache_set: float


@dataclass(slots=True, frozen=True)
class TimeCost:
    milliseconds: int = 0


@dataclass(slots=True, frozen=True)
class OutputMetrics:
    """Token, char and cost accounting for one exchange."""

    tokens: TokenCounts
    chars: CharCounts
    time: TimeCost
    cash: CashCost


@dataclass(slots=True, frozen=True)
class BrainOutput:
    """Result of one ask/act call."""

    output: str
    metrics: OutputMetrics
    episode: Episode
    series: Series


@dataclass(slots=True, frozen=True)
class ExitInfo:
    code: int
    signal: str | None = None


@dataclass(slots=True, frozen=True)
class ExecutorInstance:
    """Caller-visible view of the live process."""

    pid: int
    mode: BrainCliMode


def sha256_hex(value: str) -> str:
    return hashlib.sha256(value.encode("utf-8")).hexdigest()


def hash_exchange(prompt: str, output: str) -> str:
    return sha256_hex(f"{prompt}:{output}")


def hash_episode(session_id: str | None, exchanges: tuple[Exchange, ...]) -> str:
    """Digest over the exchange hashes in order, keyed by the session id."""

    joined = ":".join(exchange.hash for exchange in exchanges)
    return sha256_hex(f"{session_id or EPHEMERAL_SESSION}:{joined}")


def hash_series(session_id: str | None) -> str:
    return sha256_hex(session_id or EPHEMERAL_SESSION)


def format_iso_price(value: float) -> str:
    """Render a USD amount as a currency-prefixed decimal string."""

    return f"${value:.10f}"
