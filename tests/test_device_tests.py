"""
Tests for the device test harness — event parsing, markers, timeouts.
"""

import socket
import threading
from pathlib import Path

import pytest

from rokukit.core.services.device_common import (
    DeviceConnectionError,
    TestRunTimeoutError,
)
from rokukit.core.services.device_tests import (
    END_MARKER,
    START_MARKER,
    collect_events,
    parse_event_line,
    run_device_tests,
)
from rokukit.core.services.device_log import tail_console

EVENT_LINES = [
    '{"type":"suite_start","suite":"MathTest","timestamp":1}',
    '{"type":"test_pass","suite":"MathTest","test":"adds","duration_ms":12}',
    '{"type":"test_fail","suite":"MathTest","test":"divides","message":"expected 2","duration_ms":5}',
    '{"type":"suite_end","suite":"MathTest"}',
    '{"type":"run_complete","passed":1,"failed":1,"ignored":0,"total_tests":2,"duration_ms":17}',
]


# ═══════════════════════════════════════════════════════════════════
#  Event parsing
# ═══════════════════════════════════════════════════════════════════


class TestParseEventLine:
    def test_valid_event(self):
        event = parse_event_line('  {"type":"test_pass","test":"adds","duration_ms":3}\r')
        assert event is not None
        assert event.type == "test_pass"
        assert event.test == "adds"
        assert event.duration_ms == 3

    def test_unknown_keys_ignored(self):
        event = parse_event_line('{"type":"suite_start","suite":"S","extra":true}')
        assert event is not None
        assert event.suite == "S"

    def test_not_json(self):
        assert parse_event_line("[app] loading screen") is None
        assert parse_event_line("{not json") is None

    def test_missing_type(self):
        assert parse_event_line('{"test":"adds"}') is None
        assert parse_event_line('{"type":7}') is None


# ═══════════════════════════════════════════════════════════════════
#  Marker state machine
# ═══════════════════════════════════════════════════════════════════


class TestCollectEvents:
    def test_only_lines_between_markers(self):
        lines = [
            '{"type":"test_pass","test":"before start"}',
            "device chatter",
            START_MARKER,
            *EVENT_LINES[:2],
            "------ Compiling dev 'demo' ------",
            END_MARKER,
            '{"type":"test_pass","test":"after end"}',
        ]
        run = collect_events(lines)

        assert run.started
        assert run.completed
        assert [e.type for e in run.events] == ["suite_start", "test_pass"]
        assert run.events[1].test == "adds"

    def test_markers_inside_longer_lines(self):
        run = collect_events([f"12:00:01 {START_MARKER}", EVENT_LINES[1], f"{END_MARKER} done"])
        assert run.completed
        assert len(run.events) == 1

    def test_on_event_callback(self):
        seen = []
        collect_events([START_MARKER, *EVENT_LINES, END_MARKER], on_event=seen.append)
        assert [e.type for e in seen] == [
            "suite_start", "test_pass", "test_fail", "suite_end", "run_complete",
        ]

    def test_stream_ends_without_end_marker(self):
        run = collect_events([START_MARKER, EVENT_LINES[1]])
        assert run.started
        assert not run.completed
        assert len(run.events) == 1

    def test_deadline_checked_per_line(self):
        ticks = iter([0.0, 1.0, 5.0, 11.0])
        with pytest.raises(TestRunTimeoutError):
            collect_events(
                [START_MARKER, *EVENT_LINES, END_MARKER],
                deadline=10.0,
                clock=lambda: next(ticks),
            )


# ═══════════════════════════════════════════════════════════════════
#  Console over TCP
# ═══════════════════════════════════════════════════════════════════


class _FakeConsole:
    """Accepts one connection, sends ``payload``, then holds or closes it."""

    def __init__(self, payload: bytes, *, hold: bool = False):
        self.payload = payload
        self.hold = hold
        self.release = threading.Event()
        self.server = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self.server.bind(("127.0.0.1", 0))
        self.server.listen(1)
        self.port = self.server.getsockname()[1]
        self.thread = threading.Thread(target=self._serve, daemon=True)

    def _serve(self):
        conn, _ = self.server.accept()
        with conn:
            # split across sends so lines straddle reads
            middle = len(self.payload) // 2
            conn.sendall(self.payload[:middle])
            conn.sendall(self.payload[middle:])
            if self.hold:
                self.release.wait(10)

    def __enter__(self):
        self.thread.start()
        return self

    def __exit__(self, *exc):
        self.release.set()
        self.thread.join(5)
        self.server.close()


class TestRunDeviceTests:
    def test_full_run(self):
        payload = "\r\n".join([
            "Roku debug console",
            START_MARKER,
            *EVENT_LINES,
            END_MARKER,
            "",
        ]).encode()

        with _FakeConsole(payload, hold=True) as console:
            seen = []
            run = run_device_tests("127.0.0.1", port=console.port, timeout_ms=5000, on_event=seen.append)

        assert run.completed
        assert len(run.events) == 5
        assert len(seen) == 5
        assert run.events[2].message == "expected 2"

    def test_closed_before_end_marker(self):
        payload = f"{START_MARKER}\n{EVENT_LINES[1]}".encode()
        with _FakeConsole(payload) as console:
            run = run_device_tests("127.0.0.1", port=console.port, timeout_ms=5000)
        assert not run.completed
        assert [e.test for e in run.events] == ["adds"]

    def test_silent_device_times_out(self):
        with _FakeConsole(f"{START_MARKER}\n".encode(), hold=True) as console:
            with pytest.raises(TestRunTimeoutError, match="timed out"):
                run_device_tests("127.0.0.1", port=console.port, timeout_ms=300)

    def test_refused_connection(self):
        with pytest.raises(DeviceConnectionError):
            run_device_tests("127.0.0.1", port=1, timeout_ms=1000)


class TestRunTestsUseCase:
    def test_reports_written_and_failures_raised(self, tmp_path: Path, channel_project: Path):
        from rokukit.core.config.loader import load_project
        from rokukit.core.persistence.ledger import Ledger
        from rokukit.core.services.device_common import TestFailuresError
        from rokukit.core.use_cases.device import run_tests

        payload = "\n".join([START_MARKER, *EVENT_LINES, END_MARKER, ""]).encode()
        project = load_project(channel_project / "roku.yml")
        ledger = Ledger(project_root=channel_project)
        reports = tmp_path / "reports"

        with _FakeConsole(payload, hold=True) as console:
            project.device.debug_port = console.port
            with pytest.raises(TestFailuresError, match="1 test"):
                run_tests(project, ip="127.0.0.1", timeout_ms=5000, reports_dir=reports, ledger=ledger)

        assert (reports / "results.json").is_file()
        assert (reports / "results.xml").is_file()
        entry = ledger.read()[-1]
        assert entry.operation == "test"
        assert entry.status == "failed"


class TestTailConsole:
    def test_forwards_lines_until_close(self):
        with _FakeConsole(b"one\r\ntwo\nthree") as console:
            seen = []
            count = tail_console("127.0.0.1", seen.append, port=console.port)
        assert seen == ["one", "two", "three"]
        assert count == 3

    def test_max_lines(self):
        with _FakeConsole(b"a\nb\nc\n", hold=True) as console:
            seen = []
            tail_console("127.0.0.1", seen.append, port=console.port, max_lines=2)
        assert seen == ["a", "b"]
