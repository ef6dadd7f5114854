"""Command line front end."""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import NoReturn

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from . import __version__, config
from .context import DEFAULT_TIMEOUT
from .errors import ConfigError, ReleaseError
from .options import RunOptions
from .run import release

app = typer.Typer(
    add_completion=False,
    no_args_is_help=True,
    rich_markup_mode="rich",
)

_console = Console()
_err_console = Console(stderr=True)

_DURATION = re.compile(r"^(\d+(?:\.\d+)?)(ms|s|m|h)?$")
_UNITS = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0, None: 1.0}


def parse_duration(value: str) -> float:
    """Parse '90', '90s', '1.5m' or '2h' into seconds."""
    match = _DURATION.match(value.strip())
    if match is None:
        raise typer.BadParameter(f"invalid duration: {value}")
    seconds = float(match.group(1)) * _UNITS[match.group(2)]
    if seconds <= 0:
        raise typer.BadParameter("duration must be positive")
    return seconds


def _fail(exc: ReleaseError) -> NoReturn:
    _err_console.print(f"[red bold]error:[/red bold] {escape(str(exc))}")
    raise typer.Exit(code=int(exc.exit_code))


def _show_version(value: bool) -> None:
    if value:
        typer.echo(__version__)
        raise typer.Exit(code=0)


@app.callback()
def _main(
    version: bool = typer.Option(
        False, "--version", callback=_show_version, is_eager=True, help="Show version and exit."
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        handlers=[RichHandler(console=_err_console, show_path=False)],
    )


@app.command("release")
def release_cmd(
    config_file: Path | None = typer.Option(None, "--config", "-f", help="Configuration file."),
    snapshot: bool = typer.Option(False, "--snapshot", help="Build a disposable snapshot."),
    auto_snapshot: bool = typer.Option(
        False, "--auto-snapshot", help="Snapshot automatically on a dirty tree or untagged HEAD."
    ),
    skip_publish: bool = typer.Option(False, "--skip-publish", help="Do not publish."),
    skip_sign: bool = typer.Option(False, "--skip-sign", help="Do not sign artifacts."),
    skip_validate: bool = typer.Option(False, "--skip-validate", help="Skip pre-flight checks."),
    parallelism: int = typer.Option(
        0, "--parallelism", "-p", min=0, help="Concurrent builds (0: host CPU count)."
    ),
    timeout: str = typer.Option(
        f"{int(DEFAULT_TIMEOUT // 60)}m", "--timeout", help="Deadline for the whole run."
    ),
    release_notes: Path | None = typer.Option(None, "--release-notes"),
    release_header: Path | None = typer.Option(None, "--release-header"),
    release_footer: Path | None = typer.Option(None, "--release-footer"),
    release_notes_tmpl: Path | None = typer.Option(None, "--release-notes-tmpl"),
    release_header_tmpl: Path | None = typer.Option(None, "--release-header-tmpl"),
    release_footer_tmpl: Path | None = typer.Option(None, "--release-footer-tmpl"),
    rm_dist: bool = typer.Option(False, "--rm-dist", help="Remove dist before building."),
    deprecated: bool = typer.Option(
        False, "--deprecated", help="Allow deprecated configuration fields."
    ),
) -> None:
    """Build, archive, checksum, sign and publish a release."""
    options = RunOptions(
        config=config_file,
        snapshot=snapshot,
        auto_snapshot=auto_snapshot,
        skip_publish=skip_publish,
        skip_sign=skip_sign,
        skip_validate=skip_validate,
        parallelism=parallelism,
        timeout=parse_duration(timeout),
        release_notes_file=release_notes,
        release_header_file=release_header,
        release_footer_file=release_footer,
        release_notes_tmpl=release_notes_tmpl,
        release_header_tmpl=release_header_tmpl,
        release_footer_tmpl=release_footer_tmpl,
        rm_dist=rm_dist,
        deprecated=deprecated,
    )
    try:
        ctx = release(options)
    except ReleaseError as exc:
        _fail(exc)

    _console.print(
        f"[green]OK[/green] {escape(ctx.config.project_name)} {escape(ctx.version)}: "
        f"{len(ctx.artifacts)} artifact(s) in {escape(str(ctx.dist))}"
    )


@app.command("check")
def check_cmd(
    config_file: Path | None = typer.Option(None, "--config", "-f", help="Configuration file."),
) -> None:
    """Load and validate the configuration only."""
    try:
        project = config.load(config_file)
    except ConfigError as exc:
        _fail(exc)
    for note in project.deprecations():
        _console.print(f"[yellow]warning:[/yellow] deprecated {escape(note)}")
    _console.print(f"[green]OK[/green] configuration for {escape(project.project_name)} is valid")
