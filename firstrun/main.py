"""
firstrun — CLI entrypoint.

Usage:
    firstrun --help
    firstrun serve --port 8000
    firstrun install run payload.json
    firstrun install status
    firstrun config check
"""

from __future__ import annotations

import json
import os
import sys
from pathlib import Path

import click

from firstrun import __version__
from firstrun.core.observability.logging_config import resolve_level, setup_logging


@click.group()
@click.version_option(version=__version__, prog_name="firstrun")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=False),
    default=None,
    help="Path to firstrun.yml (default: auto-detect).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    debug: bool,
    config_path: str | None,
) -> None:
    """firstrun — first-run installer for your web application."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    ctx.obj["debug"] = debug
    ctx.obj["config_path"] = Path(config_path) if config_path else None

    # ── Logging setup (once, at process start) ──────────────────
    setup_logging(
        level=resolve_level(debug=debug, verbose=verbose, quiet=quiet),
        log_file=os.environ.get("FIRSTRUN_LOG_FILE"),
        log_file_level=os.environ.get("FIRSTRUN_LOG_FILE_LEVEL"),
        quiet_third_party=not debug,
    )


@cli.group()
def config() -> None:
    """Installer settings commands."""


@config.command("check")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def config_check(ctx: click.Context, as_json: bool) -> None:
    """Validate firstrun.yml and the target application directory."""
    from firstrun.core.use_cases.config_check import check_config

    result = check_config(config_path=ctx.obj.get("config_path"))

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(0 if result.valid else 1)

    if result.valid:
        assert result.settings is not None  # guaranteed when valid
        click.secho("✅ Settings are valid", fg="green", bold=True)
        click.echo(f"   App root:  {result.settings.app_root}")
        click.echo(f"   DB driver: {result.settings.db_driver}")
    else:
        click.secho("❌ Settings errors:", fg="red", bold=True)
        for err in result.errors:
            click.echo(f"   • {err}")

    if result.warnings:
        click.echo()
        click.secho("⚠️  Warnings:", fg="yellow")
        for warn in result.warnings:
            click.echo(f"   • {warn}")

    if not result.valid:
        click.echo()
        sys.exit(1)

    click.echo()


@cli.command()
@click.option("--host", default="127.0.0.1", help="Bind address.")
@click.option("--port", "-p", default=8000, type=int, help="Port number.")
@click.pass_context
def serve(ctx: click.Context, host: str, port: int) -> None:
    """Start the installer web endpoint."""
    from firstrun.ui.cli.install import _resolve_settings
    from firstrun.ui.web.server import create_app, run_server

    settings = _resolve_settings(ctx)
    app = create_app(settings)

    debug = ctx.obj.get("debug", False)

    click.echo()
    click.secho("⚡ firstrun — Installer", bold=True)
    click.echo(f"   Endpoint: http://{host}:{port}/install")
    click.echo(f"   App root: {settings.app_root}")
    if debug:
        click.secho("   Logging: DEBUG (all output)", fg="yellow")
    click.echo()

    run_server(app, host=host, port=port, debug=debug)


# ── Register sub-command groups from firstrun/ui/cli/ ──────────────

from firstrun.ui.cli.install import install  # noqa: E402

cli.add_command(install)


if __name__ == "__main__":
    cli()
