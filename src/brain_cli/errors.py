"""Error taxonomy for brain CLI handles."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any


class BrainCliError(RuntimeError):
    """Base error with an optional diagnostic payload."""

    def __init__(self, message: str, *, details: Mapping[str, Any] | None = None) -> None:
        self.details: dict[str, Any] = dict(details or {})
        if self.details:
            rendered = ", ".join(f"{key}={value!r}" for key, value in self.details.items())
            message = f"{message} ({rendered})"
        super().__init__(message)


class ConfigurationError(BrainCliError):
    """Unrecognized or malformed brain slug at routing time."""


class ExecutionStateError(BrainCliError):
    """Operation invoked in an invalid lifecycle state."""


class StreamFaultError(BrainCliError):
    """Process output stream failed before a terminal event."""


class TransportUnavailableError(BrainCliError):
    """No writable transport is attached to the live process."""
