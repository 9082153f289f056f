"""CLI interface for Notestage.

Command-line tool for building a notes site and inspecting its routes.
"""

import json
import logging
import sys
from pathlib import Path
from typing import Any

import click

from notestage.config import Config
from notestage.core.build import SiteBuilder


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


def _load_config(config_path: Path | None, **overrides: Any) -> Config:
    """Load configuration or exit with an error message."""
    try:
        config = Config.load(config_path)
    except (FileNotFoundError, ValueError) as e:
        click.echo(click.style(f"Error: {e}", fg="red"), err=True)
        sys.exit(1)
    return config.with_overrides(**overrides)


config_option = click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=True, path_type=Path),
    default=None,
    help="Path to configuration file (default: auto-discover notestage.toml)",
)

source_dir_option = click.option(
    "--source-dir",
    "-s",
    type=click.Path(exists=True, path_type=Path, file_okay=False),
    default=None,
    help="Content source directory (overrides config)",
)

verbose_option = click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose output",
)


@click.group()
def cli() -> None:
    """Notestage - content routing and markdown rendering for notes sites."""


@cli.command()
@config_option
@source_dir_option
@click.option(
    "--out-dir",
    "-o",
    type=click.Path(path_type=Path, file_okay=False),
    default=None,
    help="Output directory (overrides config)",
)
@click.option(
    "--cache/--no-cache",
    default=None,
    help="Enable/disable render cache (overrides config, default: enabled)",
)
@click.option(
    "--kroki-url",
    default=None,
    help="Kroki server URL for diagram rendering (overrides config)",
)
@verbose_option
def build(
    config_path: Path | None,
    source_dir: Path | None,
    out_dir: Path | None,
    cache: bool | None,
    kroki_url: str | None,
    verbose: bool,
) -> None:
    """Render every document and write the site and its rewrite table."""
    _configure_logging(verbose)
    config = _load_config(
        config_path,
        source_dir=source_dir,
        out_dir=out_dir,
        cache_enabled=cache,
        kroki_url=kroki_url,
    )

    click.echo(f"Source directory: {config.docs.source_dir}")
    click.echo(f"Output directory: {config.docs.out_dir}")

    try:
        report = SiteBuilder(config).build()
    except (FileNotFoundError, ValueError) as e:
        click.echo(click.style(f"Error: {e}", fg="red"), err=True)
        sys.exit(1)

    cached = sum(1 for d in report.succeeded if d.from_cache)
    click.echo(f"Built {len(report.succeeded)} documents ({cached} from cache)")

    for document in report.documents:
        for warning in document.warnings:
            click.echo(click.style(f"Warning: {document.source_path}: {warning}", fg="yellow"))

    if not report.ok:
        click.echo(
            click.style(f"\n{len(report.failed)} document(s) failed:", fg="red", bold=True),
            err=True,
        )
        for document in report.failed:
            click.echo(f"  - {document.source_path}: {document.error}", err=True)
        sys.exit(1)

    click.echo(click.style("Build complete!", fg="green", bold=True))


@cli.command()
@config_option
@source_dir_option
@click.option("--json", "as_json", is_flag=True, help="Print the rewrite table as JSON")
@verbose_option
def routes(
    config_path: Path | None,
    source_dir: Path | None,
    as_json: bool,
    verbose: bool,
) -> None:
    """Print the rewrite table (source path -> served path)."""
    _configure_logging(verbose)
    config = _load_config(config_path, source_dir=source_dir)

    try:
        rewrites = SiteBuilder(config).resolve()
    except (FileNotFoundError, ValueError) as e:
        click.echo(click.style(f"Error: {e}", fg="red"), err=True)
        sys.exit(1)

    if as_json:
        click.echo(json.dumps(rewrites.to_dict(), indent=2, ensure_ascii=False))
        return

    for source, served in rewrites.to_dict().items():
        if source == served:
            click.echo(source)
        else:
            click.echo(f"{source} -> {click.style(served, fg='cyan')}")


@cli.command()
@config_option
@source_dir_option
@click.option("--host", default=None, help="Host to bind to (overrides config)")
@click.option("--port", "-p", type=int, default=None, help="Port to bind to (overrides config)")
@click.option(
    "--kroki-url",
    default=None,
    help="Kroki server URL for diagram rendering (overrides config)",
)
@verbose_option
def serve(
    config_path: Path | None,
    source_dir: Path | None,
    host: str | None,
    port: int | None,
    kroki_url: str | None,
    verbose: bool,
) -> None:
    """Start the preview server."""
    from notestage.server import run_server

    _configure_logging(verbose)
    config = _load_config(
        config_path,
        source_dir=source_dir,
        host=host,
        port=port,
        kroki_url=kroki_url,
    )

    click.echo(f"Starting server on {config.server.host}:{config.server.port}")
    click.echo(f"Source directory: {config.docs.source_dir}")
    if config.diagrams.kroki_url:
        click.echo(f"Kroki URL: {config.diagrams.kroki_url}")
    else:
        click.echo("Diagram rendering: client-side (no kroki_url in config)")

    try:
        run_server(config, verbose=verbose)
    except (FileNotFoundError, ValueError) as e:
        click.echo(click.style(f"Error: {e}", fg="red"), err=True)
        sys.exit(1)


if __name__ == "__main__":
    cli()
