"""CLI entrypoint for brain-cli."""

import logging
from pathlib import Path

import rich_click as click

from brain_cli import __version__
from brain_cli.controllers import BrainCliController, BrainTaskCommand
from brain_cli.errors import BrainCliError, ConfigurationError
from brain_cli.models import TaskCategory

click.rich_click.USE_MARKDOWN = True
CONTROLLER = BrainCliController()

_SLUG_OPTION = click.option(
    "--slug",
    default="claude@anthropic/claude/sonnet",
    show_default=True,
    help="Brain slug, `<binary>@<supplier>/<model path>`.",
)
_CWD_OPTION = click.option(
    "--cwd",
    type=click.Path(path_type=Path, file_okay=False, exists=True),
    default=Path(),
    show_default=True,
    help="Working directory for the spawned CLI.",
)


@click.group()
@click.version_option(version=__version__, prog_name="brain-cli")
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default="WARNING",
    show_default=True,
    help="Logging level for brain_cli loggers.",
)
def brain_cli(log_level: str) -> None:
    """Supervised brain CLI tasks."""

    logging.basicConfig(
        level=log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@brain_cli.command("ask")
@click.argument("prompt")
@_SLUG_OPTION
@_CWD_OPTION
def ask(prompt: str, slug: str, cwd: Path) -> None:
    """Run one read-only task."""

    _run(prompt=prompt, slug=slug, cwd=cwd, category=TaskCategory.ASK)


@brain_cli.command("act")
@click.argument("prompt")
@_SLUG_OPTION
@_CWD_OPTION
def act(prompt: str, slug: str, cwd: Path) -> None:
    """Run one task with edit, write and shell tools enabled."""

    _run(prompt=prompt, slug=slug, cwd=cwd, category=TaskCategory.ACT)


@brain_cli.command("slugs")
def slugs() -> None:
    """List configured brain slugs."""

    _emit_lines(CONTROLLER.list_slugs())


def _run(*, prompt: str, slug: str, cwd: Path, category: TaskCategory) -> None:
    try:
        lines = CONTROLLER.run_task(
            BrainTaskCommand(slug=slug, prompt=prompt, category=category, cwd=cwd),
        )
    except (ConfigurationError, ValueError) as error:
        raise click.UsageError(str(error)) from error
    except BrainCliError as error:
        raise click.ClickException(str(error)) from error
    _emit_lines(lines)


def _emit_lines(lines: list[str]) -> None:
    for line in lines:
        click.echo(line)


if __name__ == "__main__":  # pragma: no cover
    brain_cli()
