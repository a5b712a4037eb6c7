"""
rokukit — CLI entrypoint.

Usage:
    python -m rokukit.main --help
    python -m rokukit.main status
    python -m rokukit.main build all
    python -m rokukit.main device install
"""

from __future__ import annotations

import json
import sys
from pathlib import Path

import click

from rokukit import __version__
from rokukit.core.observability.logging_config import level_from_flags, setup_logging


@click.group()
@click.version_option(version=__version__, prog_name="rokukit")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=False),
    default=None,
    help="Path to roku.yml (default: auto-detect).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    debug: bool,
    config_path: str | None,
) -> None:
    """rokukit — build, sideload and test Roku channels."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    ctx.obj["debug"] = debug
    ctx.obj["config_path"] = Path(config_path) if config_path else None

    # ── Logging setup (once, at process start) ──────────────────
    setup_logging(level=level_from_flags(debug=debug, verbose=verbose, quiet=quiet))


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def status(ctx: click.Context, as_json: bool) -> None:
    """Show channel summary and recent operations."""
    from rokukit.core.use_cases.status import get_status

    result = get_status(config_path=ctx.obj.get("config_path"))

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        return

    if result.error:
        click.secho(f"❌ {result.error}", fg="red")
        sys.exit(1)

    project = result.project
    assert project is not None  # guaranteed after error check above

    if not ctx.obj.get("quiet", False):
        click.secho(f"\n📺 {project.name} v{project.app_version}", fg="cyan", bold=True)
        click.echo(f"   Root: {project.root}")
        click.echo()

    marker = "✓" if result.package_exists else "✗ (not built)"
    click.echo(f"   Package: {project.package_path} {marker}")

    if result.recent:
        click.echo()
        click.secho("   Recent operations:", fg="white", bold=True)
        for entry in result.recent:
            color = "green" if entry.status == "ok" else "red"
            label = f"{entry.operation} {entry.stage}".strip()
            click.echo(f"     {entry.timestamp[:19]}  {label} — ", nl=False)
            click.secho(entry.status, fg=color)

    click.echo()


@cli.group()
def config() -> None:
    """Project configuration commands."""


@config.command("check")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def config_check(ctx: click.Context, as_json: bool) -> None:
    """Validate roku.yml configuration."""
    from rokukit.core.use_cases.config_check import check_config

    result = check_config(config_path=ctx.obj.get("config_path"))

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(0 if result.valid else 1)

    if result.valid:
        assert result.project is not None  # guaranteed when valid
        click.secho("✅ Configuration is valid", fg="green", bold=True)
        click.echo(f"   Channel: {result.project.name}")
        click.echo(f"   Version: {result.project.app_version}")
    else:
        click.secho("❌ Configuration errors:", fg="red", bold=True)
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


# ── Register sub-command groups from rokukit/ui/cli/ ──────────────

from rokukit.ui.cli.build import build  # noqa: E402
from rokukit.ui.cli.device import device  # noqa: E402

cli.add_command(build)
cli.add_command(device)


if __name__ == "__main__":
    cli()
