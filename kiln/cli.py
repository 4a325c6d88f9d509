"""Command-line interface for Kiln.

Commands:
- build: Build the site into the destination directory.
"""

from __future__ import annotations

from pathlib import Path

import click

from . import __version__
from .config import CONFIG_FILENAME, load_config
from .errors import ConfigError, ContentReadError, KilnError
from .logger import setup_logger


@click.group()
@click.version_option(version=__version__, prog_name="kiln")
def cli():
    """Kiln static site builder."""


@cli.command()
@click.option(
    "--source",
    "-s",
    type=click.Path(file_okay=False, path_type=Path),
    default=Path("."),
    show_default=True,
    help="Site source directory",
)
@click.option(
    "--destination",
    "-d",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Output directory (overrides the destination in _config.yml)",
)
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Configuration file (defaults to _config.yml in the source directory)",
)
@click.option("--drafts", is_flag=True, help="Render posts in _drafts")
@click.option("--jobs", "-j", type=click.IntRange(min=1), default=1, show_default=True)
@click.option("--url", default=None, help="Override the site url")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def build(
    source: Path,
    destination: Path | None,
    config_path: Path | None,
    drafts: bool,
    jobs: int,
    url: str | None,
    verbose: bool,
):
    """Build the site into the destination directory."""
    setup_logger(level="DEBUG" if verbose else None)
    from .build import build_site

    source = source.resolve()
    try:
        config = load_config(config_path or source / CONFIG_FILENAME)
        config = config.with_overrides(url=url.rstrip("/") if url else None)
        output_dir = destination.resolve() if destination else None
        report = build_site(
            source,
            config=config,
            output_dir=output_dir,
            include_drafts=drafts,
            jobs=jobs,
        )
    except (ConfigError, ContentReadError) as exc:
        click.echo(click.style("Build failed:", fg="red", bold=True), err=True)
        _echo_error(exc, source)
        raise SystemExit(1) from None

    if report.errors:
        click.echo(
            click.style(
                f"Build finished with {len(report.errors)} error(s):",
                fg="red",
                bold=True,
            ),
            err=True,
        )
        for error in report.errors:
            _echo_error(error, source)
    click.echo(
        f"Built {len(report.outputs)} pages, {len(report.archives)} archives "
        f"and {len(report.bundles)} asset bundles into {report.output_dir}"
    )
    if not report.ok:
        raise SystemExit(1)


def _echo_error(error: KilnError, source: Path) -> None:
    kind = type(error).__name__
    if error.source_path is not None:
        try:
            shown = error.source_path.relative_to(source)
        except ValueError:
            shown = error.source_path
        click.echo(click.style(f"  {kind} in {shown}", fg="yellow"), err=True)
    else:
        click.echo(click.style(f"  {kind}", fg="yellow"), err=True)
    click.echo(f"    {error.message}", err=True)


def main():
    """Entry point for the CLI application."""
    cli()
