"""
Status use case — project summary plus the most recent ledger entries.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from rokukit.core.config.loader import ConfigError, find_project_file, load_project
from rokukit.core.models.project import RokuProject
from rokukit.core.persistence.ledger import Ledger, LedgerEntry


@dataclass
class StatusResult:
    """Result of a status query."""

    project: RokuProject | None = None
    config_path: Path | None = None
    package_exists: bool = False
    recent: list[LedgerEntry] = field(default_factory=list)
    error: str | None = None

    def to_dict(self) -> dict:
        if self.error:
            return {"error": self.error}

        assert self.project is not None
        return {
            "project": self.project.model_dump(mode="json"),
            "config_path": str(self.config_path) if self.config_path else None,
            "package": str(self.project.package_path),
            "package_exists": self.package_exists,
            "recent": [e.model_dump(mode="json") for e in self.recent],
        }


def get_status(config_path: Path | None = None, recent: int = 5) -> StatusResult:
    """Load the project and the last ``recent`` operations."""
    result = StatusResult()

    if config_path is None:
        config_path = find_project_file()
    if config_path is None:
        result.error = "No roku.yml found."
        return result

    try:
        project = load_project(config_path)
    except ConfigError as e:
        result.error = str(e)
        return result

    result.project = project
    result.config_path = config_path
    result.package_exists = project.package_path.is_file()
    result.recent = Ledger(project_root=project.root).read(last=recent)
    return result
