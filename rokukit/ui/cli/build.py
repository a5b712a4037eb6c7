"""
CLI commands for building the channel package.

Thin wrappers over ``rokukit.core.use_cases.build``.
"""

from __future__ import annotations

import json
import sys

import click

from rokukit.core.config.loader import ConfigError, load_project
from rokukit.core.models.project import RokuProject


def _load_project(ctx: click.Context) -> RokuProject:
    """Load roku.yml from the global --config option or by searching upward."""
    try:
        return load_project(ctx.obj.get("config_path"))
    except ConfigError as e:
        click.secho(f"❌ {e}", fg="red")
        sys.exit(1)


def _print_stage(stage: str, data: dict) -> None:
    if stage == "compile":
        comp = data.get("compile", {})
        if "hybrid" in data:
            click.echo(f"   🔀 Staged {data['hybrid']['total']} Kotlin modules for bsc")
        click.secho(f"   ✓ compile: {comp.get('staged_files', 0)} files staged", fg="green")
    elif stage == "link":
        click.secho(
            f"   ✓ link: {data['linked']}/{data['manifests']} manifests linked", fg="green"
        )
        for warn in data.get("warnings", []):
            click.secho(f"     ⚠️  {warn}", fg="yellow")
        for err in data.get("errors", []):
            click.secho(f"     ✗ {err}", fg="red")
    elif stage == "merge":
        click.secho(f"   ✓ merge: {data['total_files']} files", fg="green", nl=False)
        click.echo(
            f" ({data['added']} added, {data['replaced']} replaced, "
            f"{data['skipped_empty']} empty, {data['skipped_collision']} collisions)"
        )
        if data.get("source"):
            click.echo(f"     test app sources: {data['source']}")
        if data.get("hybrid_guard"):
            click.echo("     source/kotlin already compiled; source overlay skipped")
        for warn in data.get("warnings", []):
            click.secho(f"     ⚠️  {warn}", fg="yellow")
    elif stage == "package":
        click.secho(f"   ✓ package: {data['path']}", fg="green", nl=False)
        click.echo(f" ({data['entries']} entries, {data['size_bytes']} bytes)")


def _run(ctx: click.Context, stages: tuple[str, ...], as_json: bool, **kwargs) -> None:
    from rokukit.core.use_cases.build import run_build

    project = _load_project(ctx)
    result = run_build(project, stages, **kwargs)

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        if not result.ok:
            sys.exit(1)
        return

    click.secho(f"\n🔨 Build — {project.name}", fg="cyan", bold=True)
    for stage, data in result.stages.items():
        _print_stage(stage, data)

    if not result.ok:
        click.secho(f"   ✗ {result.failed_stage}: {result.error}", fg="red", bold=True)
        click.echo()
        sys.exit(1)

    click.secho(f"\n   Done in {result.duration_ms}ms", fg="green", bold=True)
    click.echo()


@click.group("build")
def build() -> None:
    """Build — link manifests, merge trees and package the channel."""


@build.command("link")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def link(ctx: click.Context, as_json: bool) -> None:
    """Inject script imports into component manifests."""
    _run(ctx, ("link",), as_json)


@build.command("merge")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.option("--tests", is_flag=True, help="Build the test app (<name>Tests.zip).")
@click.pass_context
def merge(ctx: click.Context, as_json: bool, tests: bool) -> None:
    """Merge Kotlin output onto the BrighterScript staging tree."""
    _run(ctx, ("merge",), as_json, tests=tests)


@build.command("package")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.option("--tests", is_flag=True, help="Build the test app (<name>Tests.zip).")
@click.pass_context
def package(ctx: click.Context, as_json: bool, tests: bool) -> None:
    """Zip the merged tree into the channel package."""
    _run(ctx, ("package",), as_json, tests=tests)


@build.command("all")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.option("--compile", "compile_first", is_flag=True, help="Run bsc before linking.")
@click.option("--hybrid", is_flag=True, help="Stage Kotlin output into source/kotlin for bsc.")
@click.option("--tests", is_flag=True, help="Build the test app (<name>Tests.zip).")
@click.pass_context
def build_all(
    ctx: click.Context, as_json: bool, compile_first: bool, hybrid: bool, tests: bool
) -> None:
    """Link, merge and package in one go."""
    _run(
        ctx,
        ("link", "merge", "package"),
        as_json,
        compile_first=compile_first or hybrid,
        hybrid=hybrid,
        tests=tests,
    )


@build.command("compile")
@click.option("--hybrid", is_flag=True, help="Stage Kotlin output into source/kotlin first.")
@click.pass_context
def compile_cmd(ctx: click.Context, hybrid: bool) -> None:
    """Run the BrighterScript compiler (bsc), streaming its output."""
    from rokukit.core.use_cases.build import StageError, run_compile

    project = _load_project(ctx)
    click.secho(f"🛠️  {project.build.bsc_command}", fg="cyan", bold=True)

    def _echo(line: str) -> None:
        if not ctx.obj.get("quiet"):
            click.echo(f"   │ {line}")

    try:
        data = run_compile(project, hybrid=hybrid, on_line=_echo)
    except StageError as e:
        click.secho(f"❌ {e.message}", fg="red")
        sys.exit(1)

    _print_stage("compile", data)
