"""Route a brain slug to its supplier config and build a supervised handle."""

from __future__ import annotations

from pathlib import Path

from brain_cli.config import CONFIG_BY_CLI_SLUG, BrainCliConfig, BrainCliSettings
from brain_cli.errors import ConfigurationError
from brain_cli.models import Series
from brain_cli.supervisor import BrainCliHandle

SUPPORTED_SUPPLIERS = ("anthropic",)


def get_supplier_slug(slug: str) -> str:
    """Extract the supplier from ``<name>@<supplier>/<path...>``.

    ``claude@anthropic/claude/opus/v4.5`` -> ``anthropic``
    """

    at_index = slug.find("@")
    if at_index == -1:
        raise ConfigurationError("invalid brain slug: no @ separator", details={"slug": slug})
    after_at = slug[at_index + 1 :]
    slash_index = after_at.find("/")
    if slash_index == -1:
        raise ConfigurationError(
            "invalid brain slug: no / after supplier",
            details={"slug": slug},
        )
    return after_at[:slash_index]


def resolve_cli_config(slug: str, *, settings: BrainCliSettings | None = None) -> BrainCliConfig:
    """Return the spawn config for ``slug`` with runtime overrides applied."""

    supplier = get_supplier_slug(slug)
    if supplier not in SUPPORTED_SUPPLIERS:
        raise ConfigurationError(
            f"unsupported brain supplier: {supplier!r}",
            details={"slug": slug, "supplier": supplier},
        )
    config = CONFIG_BY_CLI_SLUG.get(slug)
    if config is None:
        raise ConfigurationError(
            "unrecognized brain CLI slug",
            details={"slug": slug, "valid": sorted(CONFIG_BY_CLI_SLUG)},
        )
    return (settings or BrainCliSettings()).apply(config)


def get_brain_cli(
    slug: str,
    *,
    cwd: Path,
    settings: BrainCliSettings | None = None,
    series: Series | None = None,
) -> BrainCliHandle:
    """Build an unbooted handle for ``slug``; ``series`` seeds the durable record."""

    resolved_settings = settings or BrainCliSettings.from_env()
    config = resolve_cli_config(slug, settings=resolved_settings)
    return BrainCliHandle(config, cwd=cwd, settings=resolved_settings, series=series)
