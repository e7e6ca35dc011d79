"""
CLI commands for running and inspecting the installation.

Thin wrappers over ``firstrun.core.use_cases.install`` and ``.status``.
"""

from __future__ import annotations

import json
import sys
from pathlib import Path

import click

from firstrun.core.config.loader import ConfigError, load_settings
from firstrun.core.models.settings import InstallerSettings


def _resolve_settings(ctx: click.Context) -> InstallerSettings:
    """Load settings from the --config path or by searching upward."""
    config_path: Path | None = ctx.obj.get("config_path")
    try:
        return load_settings(config_path)
    except ConfigError as e:
        click.secho(f"❌ {e}", fg="red", err=True)
        sys.exit(2)


@click.group()
def install() -> None:
    """Install — run the first-run pipeline and check install state."""


@install.command("run")
@click.argument("payload", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--host", "host", default=None, help="Domain to register the install for.")
@click.option("--base-url", default=None, help="Public URL the installer is served from.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def install_run(
    ctx: click.Context,
    payload: Path,
    host: str | None,
    base_url: str | None,
    as_json: bool,
) -> None:
    """Run the installation from a JSON form PAYLOAD file."""
    from firstrun.core.use_cases.install import install_from_json

    settings = _resolve_settings(ctx)
    result = install_from_json(payload.read_bytes(), settings, host=host, base_url=base_url)

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(0 if result.success else 1)

    if result.success:
        click.secho(f"✅ {result.message}", fg="green", bold=True)
        for outcome in result.stages:
            color = {"ok": "green", "skipped": "white", "failed": "yellow"}[outcome.status]
            click.secho(f"   • {outcome.stage:<9} {outcome.status}", fg=color, nl=False)
            detail = outcome.error or outcome.message
            click.echo(f"  {detail}" if detail else "")
        return

    click.secho(f"❌ {result.message}", fg="red", bold=True)
    for field_name, message in (result.errors or {}).items():
        click.echo(f"   • {field_name}: {message}")
    sys.exit(1)


@install.command("status")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def install_status(ctx: click.Context, as_json: bool) -> None:
    """Show whether the application is installed."""
    from firstrun.core.use_cases.status import get_install_status

    status = get_install_status(_resolve_settings(ctx))

    if as_json:
        click.echo(json.dumps(status.to_dict(), indent=2))
        return

    if status.installed:
        click.secho("✅ Installed", fg="green", bold=True)
        click.echo(f"   Site: {status.site_title}")
        click.echo(f"   URL:  {status.app_url}")
    else:
        click.secho("○ Not installed", fg="yellow", bold=True)
    click.echo(f"   Config:   {status.env_path}")
    if status.attempts:
        last = "ok" if status.last_attempt_ok else "failed"
        click.echo(f"   Attempts: {status.attempts} (last {last})")
