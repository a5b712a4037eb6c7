"""
CLI commands for a developer-mode device.

Thin wrappers over ``rokukit.core.use_cases.device`` and the console tail.
"""

from __future__ import annotations

import json
import sys
from pathlib import Path

import click

from rokukit.core.config.loader import ConfigError, load_project, require_device_ip, resolve_device
from rokukit.core.models.project import RokuProject
from rokukit.core.models.testing import TestEvent
from rokukit.core.services.device_common import (
    DeviceAuthError,
    DeviceConnectionError,
    DeviceError,
    TestFailuresError,
    TestRunTimeoutError,
)


def _load_project(ctx: click.Context) -> RokuProject:
    try:
        return load_project(ctx.obj.get("config_path"))
    except ConfigError as e:
        click.secho(f"❌ {e}", fg="red")
        sys.exit(1)


def _fail(e: Exception) -> None:
    icon = {
        DeviceAuthError: "🔒",
        DeviceConnectionError: "📡",
        TestRunTimeoutError: "⏱️ ",
    }.get(type(e), "❌")
    click.secho(f"{icon} {e}", fg="red")
    sys.exit(1)


@click.group("device")
def device() -> None:
    """Device — sideload, console log and on-device tests."""


@device.command("install")
@click.option("--ip", default=None, help="Device IP (overrides local.properties/env).")
@click.option("--password", default=None, help="Developer password.")
@click.option(
    "--package", "package_path",
    type=click.Path(exists=False, dir_okay=False, path_type=Path),
    default=None,
    help="Zip to install (default: the built package).",
)
@click.option("--tests", is_flag=True, help="Install the test app (<name>Tests.zip).")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def install(
    ctx: click.Context,
    ip: str | None,
    password: str | None,
    package_path: Path | None,
    tests: bool,
    as_json: bool,
) -> None:
    """Sideload the channel package onto the device."""
    from rokukit.core.use_cases.device import install as do_install

    project = _load_project(ctx)
    try:
        result = do_install(
            project, package=package_path, ip=ip, password=password, tests=tests
        )
    except (ConfigError, DeviceError) as e:
        if as_json:
            click.echo(json.dumps({"ok": False, "error": str(e)}, indent=2))
            sys.exit(1)
        _fail(e)
        return

    if as_json:
        click.echo(json.dumps({"ok": True, **result.to_dict()}, indent=2))
        return

    click.secho(f"✅ Installed {Path(result.package).name} on {result.host}", fg="green", bold=True)
    for msg in result.messages:
        click.echo(f"   • {msg.text}")


@device.command("log")
@click.option("--ip", default=None, help="Device IP (overrides local.properties/env).")
@click.pass_context
def log(ctx: click.Context, ip: str | None) -> None:
    """Stream the debug console (port 8085) until Ctrl+C."""
    from rokukit.core.services.device_log import tail_console

    project = _load_project(ctx)
    try:
        settings = resolve_device(project, ip=ip)
        host = require_device_ip(settings)
    except ConfigError as e:
        _fail(e)
        return

    click.secho(f"📜 Console of {host} — press Ctrl+C to stop", fg="cyan", bold=True)
    try:
        tail_console(host, click.echo, port=settings.debug_port)
    except DeviceError as e:
        _fail(e)
    except KeyboardInterrupt:
        click.echo()


def _echo_event(event: TestEvent) -> None:
    if event.type == "suite_start":
        click.echo()
        click.secho(f"   Suite: {event.suite}", bold=True)
    elif event.type == "test_pass":
        click.secho(f"     ✓ {event.test}", fg="green", nl=False)
        click.echo(f" ({event.duration_ms}ms)")
    elif event.type == "test_fail":
        click.secho(f"     ✗ {event.test}: {event.message}", fg="red")
    elif event.type == "test_error":
        click.secho(f"     ✗ {event.test}: {event.error} - {event.message}", fg="red")
    elif event.type == "test_ignored":
        click.secho(f"     ○ {event.test} (ignored)", fg="yellow")
    elif event.type == "suite_end":
        click.echo(f"     Suite completed: {event.passed} passed, {event.failed} failed")


@device.command("test")
@click.option("--ip", default=None, help="Device IP (overrides local.properties/env).")
@click.option("--timeout", "timeout_ms", type=int, default=None, help="Run budget in milliseconds.")
@click.option(
    "--reports-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Where results.json and results.xml go.",
)
@click.option("--ignore-failures", is_flag=True, help="Exit 0 even when tests fail.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def test(
    ctx: click.Context,
    ip: str | None,
    timeout_ms: int | None,
    reports_dir: Path | None,
    ignore_failures: bool,
    as_json: bool,
) -> None:
    """Run the on-device tests and write JUnit/JSON reports."""
    from rokukit.core.services.test_reports import JSON_REPORT, XML_REPORT
    from rokukit.core.use_cases.device import run_tests

    project = _load_project(ctx)
    reports_dir = reports_dir or project.resolve(project.tests.reports_dir)

    if not as_json:
        click.secho("🧪 Running tests on device", fg="cyan", bold=True)

    try:
        files = run_tests(
            project,
            ip=ip,
            timeout_ms=timeout_ms,
            reports_dir=reports_dir,
            ignore_failures=ignore_failures or None,
            on_event=None if as_json else _echo_event,
        )
    except TestFailuresError as e:
        if as_json:
            click.echo(json.dumps({"ok": False, "error": str(e), "failed": e.failed}, indent=2))
            sys.exit(1)
        click.echo()
        click.echo(f"   Reports: {reports_dir / JSON_REPORT}, {reports_dir / XML_REPORT}")
        _fail(e)
        return
    except (ConfigError, DeviceError) as e:
        if as_json:
            click.echo(json.dumps({"ok": False, "error": str(e)}, indent=2))
            sys.exit(1)
        _fail(e)
        return

    if as_json:
        click.echo(json.dumps({"ok": True, **files.to_dict()}, indent=2))
        return

    s = files.summary
    click.echo()
    click.secho("   Test Results:", bold=True)
    click.echo(f"     Passed:  {s.passed}")
    click.echo(f"     Failed:  {s.failed}")
    click.echo(f"     Ignored: {s.ignored}")
    click.echo(f"     Total:   {s.total}")
    click.echo(f"   Reports: {files.json_path}, {files.xml_path}")
    if s.failed == 0:
        click.secho(f"\n   All {s.passed} test(s) passed!", fg="green", bold=True)
    click.echo()
