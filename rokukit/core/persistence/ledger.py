"""
Operation ledger — append-only history of builds, installs and test runs.

One NDJSON line per operation under ``.state/ledger.ndjson`` in the project
root.  Entries are never rewritten; a corrupt line is skipped on read.
"""

from __future__ import annotations

import json
import logging
import uuid
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field, ValidationError

logger = logging.getLogger(__name__)

LEDGER_DIR = ".state"
LEDGER_FILE = "ledger.ndjson"


class LedgerEntry(BaseModel):
    """One recorded operation."""

    timestamp: str = Field(default_factory=lambda: datetime.now(UTC).isoformat())
    operation_id: str = Field(default_factory=lambda: uuid.uuid4().hex[:12])
    operation: str = ""            # build, install, test
    stage: str = ""                # link, merge, package, compile, all
    status: Literal["ok", "failed"] = "ok"
    duration_ms: int = 0
    target: str = ""               # package path or device address
    errors: list[str] = Field(default_factory=list)
    context: dict[str, Any] = Field(default_factory=dict)


class Ledger:
    """Append-only ledger file."""

    def __init__(self, path: Path | None = None, project_root: Path | None = None):
        if path is not None:
            self._path = path
        else:
            self._path = (project_root or Path.cwd()) / LEDGER_DIR / LEDGER_FILE

    @property
    def path(self) -> Path:
        return self._path

    def append(self, entry: LedgerEntry) -> None:
        """Write ``entry``; a write failure is logged, never raised."""
        line = json.dumps(entry.model_dump(mode="json"), ensure_ascii=False) + "\n"
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with self._path.open("a", encoding="utf-8") as f:
                f.write(line)
            logger.debug("Ledger entry written: %s/%s", entry.operation, entry.operation_id)
        except OSError as e:
            logger.error("Failed to write ledger entry: %s", e)

    def read(self, last: int | None = None) -> list[LedgerEntry]:
        """Entries oldest first; ``last`` keeps only the most recent N."""
        if not self._path.is_file():
            return []

        entries: list[LedgerEntry] = []
        try:
            with self._path.open("r", encoding="utf-8") as f:
                for line_num, line in enumerate(f, start=1):
                    line = line.strip()
                    if not line:
                        continue
                    try:
                        entries.append(LedgerEntry.model_validate(json.loads(line)))
                    except (json.JSONDecodeError, ValidationError) as e:
                        logger.warning("Skipping corrupt ledger entry at line %d: %s", line_num, e)
        except OSError as e:
            logger.error("Failed to read ledger: %s", e)

        return entries[-last:] if last else entries
