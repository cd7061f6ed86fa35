"""Supervised brain CLI processes with durable conversation series."""

from brain_cli.errors import (
    BrainCliError,
    ConfigurationError,
    ExecutionStateError,
    StreamFaultError,
    TransportUnavailableError,
)
from brain_cli.models import (
    BrainCliMode,
    BrainOutput,
    Episode,
    Exchange,
    ExitInfo,
    Series,
    TaskCategory,
)
from brain_cli.routing import get_brain_cli
from brain_cli.supervisor import BrainCliHandle

__version__ = "0.1.0"

__all__ = [
    "BrainCliError",
    "BrainCliHandle",
    "BrainCliMode",
    "BrainOutput",
    "ConfigurationError",
    "Episode",
    "Exchange",
    "ExecutionStateError",
    "ExitInfo",
    "Series",
    "StreamFaultError",
    "TaskCategory",
    "TransportUnavailableError",
    "__version__",
    "get_brain_cli",
]
