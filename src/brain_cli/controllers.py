"""Controllers for brain-cli commands."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from pathlib import Path

from brain_cli.config import CONFIG_BY_CLI_SLUG, BrainCliSettings
from brain_cli.models import BrainCliMode, BrainOutput, TaskCategory, format_iso_price
from brain_cli.routing import get_brain_cli


@dataclass(slots=True)
class BrainTaskCommand:
    """CLI input for a one-shot ask/act call."""

    slug: str
    prompt: str
    category: TaskCategory
    cwd: Path


class BrainCliController:
    """Runs one-shot brain tasks and renders their output."""

    def run_task(self, command: BrainTaskCommand) -> list[str]:
        output = asyncio.run(_run_task(command))
        return [output.output, render_metrics_line(output)]

    def list_slugs(self) -> list[str]:
        return [
            f"{slug}  model={config.model}" for slug, config in sorted(CONFIG_BY_CLI_SLUG.items())
        ]


async def _run_task(command: BrainTaskCommand) -> BrainOutput:
    handle = get_brain_cli(command.slug, cwd=command.cwd, settings=BrainCliSettings.from_env())
    await handle.executor.boot(BrainCliMode.DISPATCH)
    try:
        if command.category is TaskCategory.ACT:
            return await handle.act(command.prompt)
        return await handle.ask(command.prompt)
    finally:
        await handle.executor.shutdown()


def render_metrics_line(output: BrainOutput) -> str:
    metrics = output.metrics
    tokens = metrics.tokens
    return (
        f"tokens in={tokens.input} out={tokens.output} "
        f"cache_get={tokens.cache_get} cache_set={tokens.cache_set} "
        f"cost={format_iso_price(metrics.cash.total)} "
        f"time={metrics.time.milliseconds}ms "
        f"session_id={output.series.exid or '-'}"
    )
