"""Argument vectors for brain CLI process boots."""

from __future__ import annotations

from brain_cli.config import BrainCliConfig
from brain_cli.models import TaskCategory


def build_dispatch_args(
    *,
    config: BrainCliConfig,
    category: TaskCategory,
    prior_session_id: str | None,
) -> list[str]:
    """Headless structured i/o with the tool allow-list for ``category``."""

    args = [
        "-p",
        "--model",
        config.model,
        "--output-format",
        "stream-json",
        "--input-format",
        "stream-json",
        "--verbose",
        "--allowedTools",
        ",".join(config.tools_for(category)),
    ]
    if prior_session_id:
        args.extend(["--resume", prior_session_id])
    return args


def build_interact_args(*, config: BrainCliConfig, prior_session_id: str | None) -> list[str]:
    """Model selection and resume only; interactive sessions are unrestricted."""

    args = ["--model", config.model]
    if prior_session_id:
        args.extend(["--resume", prior_session_id])
    return args
