"""
Test harness models — events streamed by the on-device test runner.

The harness prints one JSON object per line between its start and end
markers.  Each object becomes a TestEvent; the run is the ordered list of
events as they arrived, never revised.
"""

from __future__ import annotations

import typing
from typing import Literal

from pydantic import BaseModel, ConfigDict

EventType = Literal[
    "suite_start",
    "test_pass",
    "test_fail",
    "test_error",
    "test_ignored",
    "suite_end",
    "run_complete",
]

EVENT_TYPES: frozenset[str] = frozenset(typing.get_args(EventType))


class TestEvent(BaseModel):
    """One harness event.

    Only ``type`` is required; the harness omits fields that do not apply
    (a ``suite_start`` has no ``duration_ms``, a ``run_complete`` has no
    ``test``).  Unknown keys are ignored.
    """

    __test__ = False

    model_config = ConfigDict(extra="ignore", frozen=True)

    type: str
    suite: str = ""
    test: str = ""
    message: str = ""
    error: str = ""
    expected: str = ""
    actual: str = ""
    reason: str = ""
    duration_ms: int = 0
    timestamp: int = 0
    passed: int = 0
    failed: int = 0
    ignored: int = 0
    total_tests: int = 0
    total_suites: int = 0

    @property
    def is_test_result(self) -> bool:
        return self.type in ("test_pass", "test_fail", "test_error", "test_ignored")

    def to_json_dict(self) -> dict:
        """Compact form for the NDJSON log: ``type`` first, defaults dropped."""
        data = self.model_dump(exclude_defaults=True)
        data.pop("type", None)
        return {"type": self.type, **data}


class TestSummary(BaseModel):
    """Aggregate counts for one run.

    ``source`` says where the numbers came from: the harness's own
    ``run_complete`` event, or a fold over the individual test events.
    """

    __test__ = False

    passed: int = 0
    failed: int = 0
    ignored: int = 0
    total: int = 0
    duration_ms: int = 0
    source: Literal["run_complete", "events"] = "events"

    def counts(self) -> tuple[int, int, int, int]:
        return (self.passed, self.failed, self.ignored, self.total)
