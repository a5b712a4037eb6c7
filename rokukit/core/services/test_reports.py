"""
Test reports — summary, NDJSON event log and JUnit XML from one event list.

Both files are written from the same events, so they always agree:

    results.json   one compact JSON object per event, in arrival order
    results.xml    JUnit <testsuite name="RokuTests"> for CI
"""

from __future__ import annotations

import json
import logging
import xml.etree.ElementTree as ET
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from rokukit.core.models.testing import TestEvent, TestSummary

logger = logging.getLogger(__name__)

SUITE_NAME = "RokuTests"
JSON_REPORT = "results.json"
XML_REPORT = "results.xml"


def fold_events(events: Sequence[TestEvent]) -> TestSummary:
    """Count the individual test events."""
    passed = failed = ignored = duration = 0
    for event in events:
        if event.type == "test_pass":
            passed += 1
            duration += event.duration_ms
        elif event.type in ("test_fail", "test_error"):
            failed += 1
            duration += event.duration_ms
        elif event.type == "test_ignored":
            ignored += 1
    return TestSummary(
        passed=passed,
        failed=failed,
        ignored=ignored,
        total=passed + failed + ignored,
        duration_ms=duration,
        source="events",
    )


def summarize(events: Sequence[TestEvent]) -> TestSummary:
    """Summary from ``run_complete`` when present, else folded from the events.

    When both exist and disagree, ``run_complete`` still wins and the
    mismatch is logged.
    """
    folded = fold_events(events)
    complete = next((e for e in events if e.type == "run_complete"), None)
    if complete is None:
        return folded

    summary = TestSummary(
        passed=complete.passed,
        failed=complete.failed,
        ignored=complete.ignored,
        total=complete.total_tests,
        duration_ms=complete.duration_ms,
        source="run_complete",
    )
    if summary.counts() != folded.counts():
        logger.warning(
            "run_complete reports %d/%d/%d/%d (passed/failed/ignored/total) "
            "but events add up to %d/%d/%d/%d",
            *summary.counts(), *folded.counts(),
        )
    return summary


# ── NDJSON ────────────────────────────────────────────────────────


def events_to_ndjson(events: Sequence[TestEvent]) -> str:
    return "\n".join(json.dumps(e.to_json_dict(), separators=(",", ":")) for e in events)


def write_ndjson(events: Sequence[TestEvent], path: Path) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(events_to_ndjson(events), encoding="utf-8")
    logger.info("JSON results written to %s", path)
    return path


# ── JUnit XML ─────────────────────────────────────────────────────


def _seconds(ms: int) -> str:
    return str(ms / 1000.0)


def build_junit_xml(events: Sequence[TestEvent], summary: TestSummary | None = None) -> str:
    """JUnit XML document for ``events``.

    ``classname`` of each testcase is the suite most recently started.
    """
    summary = summary or summarize(events)
    suite = ET.Element(
        "testsuite",
        {
            "name": SUITE_NAME,
            "tests": str(summary.total),
            "failures": str(summary.failed),
            "skipped": str(summary.ignored),
            "time": _seconds(summary.duration_ms),
        },
    )

    current_suite = ""
    for event in events:
        if event.type == "suite_start":
            current_suite = event.suite
            continue
        if not event.is_test_result:
            continue

        attrs = {"classname": current_suite, "name": event.test}
        if event.type != "test_ignored":
            attrs["time"] = _seconds(event.duration_ms)
        case = ET.SubElement(suite, "testcase", attrs)

        if event.type == "test_fail":
            failure = ET.SubElement(case, "failure", {"message": event.message})
            failure.text = event.message
        elif event.type == "test_error":
            error = ET.SubElement(case, "error", {"type": event.error, "message": event.message})
            error.text = event.message
        elif event.type == "test_ignored":
            ET.SubElement(case, "skipped", {"message": event.reason})

    ET.indent(suite, space="  ")
    body = ET.tostring(suite, encoding="unicode")
    return f'<?xml version="1.0" encoding="UTF-8"?>\n{body}\n'


def write_junit_xml(events: Sequence[TestEvent], path: Path, summary: TestSummary | None = None) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(build_junit_xml(events, summary), encoding="utf-8")
    logger.info("JUnit XML report written to %s", path)
    return path


@dataclass
class ReportFiles:
    json_path: Path
    xml_path: Path
    summary: TestSummary

    def to_dict(self) -> dict:
        return {
            "json": str(self.json_path),
            "xml": str(self.xml_path),
            "summary": self.summary.model_dump(),
        }


def write_reports(events: Sequence[TestEvent], reports_dir: Path) -> ReportFiles:
    """Write results.json and results.xml into ``reports_dir``."""
    summary = summarize(events)
    return ReportFiles(
        json_path=write_ndjson(events, reports_dir / JSON_REPORT),
        xml_path=write_junit_xml(events, reports_dir / XML_REPORT, summary),
        summary=summary,
    )
