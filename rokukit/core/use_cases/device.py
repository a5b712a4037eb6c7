"""
Device use cases — install the package and run the on-device tests.

Both resolve the device settings (option > local.properties > env >
roku.yml), call the protocol service and record the outcome in the
ledger.  Errors propagate to the caller after they are recorded.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from pathlib import Path

from rokukit.core.config.loader import (
    ConfigError,
    require_device_ip,
    require_device_password,
    resolve_device,
)
from rokukit.core.models.project import RokuProject
from rokukit.core.models.testing import TestEvent
from rokukit.core.persistence.ledger import Ledger, LedgerEntry
from rokukit.core.services.device_common import DeviceError, TestFailuresError
from rokukit.core.services.device_install import InstallResult, install_package
from rokukit.core.services.device_tests import run_device_tests
from rokukit.core.services.test_reports import ReportFiles, write_reports

logger = logging.getLogger(__name__)


def _record(project: RokuProject, ledger: Ledger | None, entry: LedgerEntry) -> None:
    (ledger or Ledger(project_root=project.root)).append(entry)


def install(
    project: RokuProject,
    *,
    package: Path | None = None,
    ip: str | None = None,
    password: str | None = None,
    tests: bool = False,
    ledger: Ledger | None = None,
) -> InstallResult:
    """Sideload ``package`` (default: the project's zip, or the test app's
    with ``tests``).

    Raises:
        ConfigError: Device IP or password missing, or no package built.
        DeviceError: Any protocol failure.
    """
    device = resolve_device(project, ip=ip, password=password)
    host = require_device_ip(device)
    secret = require_device_password(device)

    package = package or (project.test_package_path if tests else project.package_path)
    if not package.is_file():
        hint = "rokukit build all --tests" if tests else "rokukit build all"
        raise ConfigError(f"Package not found: {package}. Run '{hint}' first.")

    start = time.monotonic()
    entry = LedgerEntry(operation="install", target=host, context={"package": str(package)})
    try:
        result = install_package(host, package, secret)
    except DeviceError as e:
        entry.status = "failed"
        entry.errors = [str(e)]
        raise
    finally:
        entry.duration_ms = int((time.monotonic() - start) * 1000)
        _record(project, ledger, entry)
    return result


def run_tests(
    project: RokuProject,
    *,
    ip: str | None = None,
    timeout_ms: int | None = None,
    reports_dir: Path | None = None,
    ignore_failures: bool | None = None,
    on_event: Callable[[TestEvent], None] | None = None,
    ledger: Ledger | None = None,
) -> ReportFiles:
    """Collect one test run and write results.json + results.xml.

    Reports are written even when tests failed; the failure is raised
    afterwards unless ``ignore_failures``.

    Raises:
        ConfigError: Device IP missing.
        TestRunTimeoutError: The run exceeded ``timeout_ms``.
        TestFailuresError: Failures reported and not ignored.
        DeviceConnectionError: Console unreachable.
    """
    settings = project.tests
    device = resolve_device(project, ip=ip)
    host = require_device_ip(device)
    timeout_ms = timeout_ms or settings.timeout_ms
    reports_dir = reports_dir or project.resolve(settings.reports_dir)
    if ignore_failures is None:
        ignore_failures = settings.ignore_failures

    start = time.monotonic()
    entry = LedgerEntry(operation="test", target=host)
    try:
        run = run_device_tests(host, port=device.debug_port, timeout_ms=timeout_ms, on_event=on_event)
        files = write_reports(run.events, reports_dir)
        summary = files.summary
        entry.context = {"summary": summary.model_dump(), "reports": str(reports_dir)}
        if summary.failed > 0:
            entry.status = "failed"
            entry.errors = [f"{summary.failed} test(s) failed"]
            if not ignore_failures:
                raise TestFailuresError(summary.failed)
    except DeviceError as e:
        entry.status = "failed"
        if not entry.errors:
            entry.errors = [str(e)]
        raise
    finally:
        entry.duration_ms = int((time.monotonic() - start) * 1000)
        _record(project, ledger, entry)
    return files
