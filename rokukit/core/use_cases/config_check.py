"""
Config check use case — validate roku.yml and report issues.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from rokukit.core.config.loader import (
    ConfigError,
    find_project_file,
    load_project,
    resolve_device,
)
from rokukit.core.models.project import RokuProject


@dataclass
class ConfigCheckResult:
    """Result of configuration validation."""

    valid: bool = False
    project: RokuProject | None = None
    config_path: Path | None = None
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "valid": self.valid,
            "config_path": str(self.config_path) if self.config_path else None,
            "errors": self.errors,
            "warnings": self.warnings,
            "project_name": self.project.name if self.project else None,
            "app_version": self.project.app_version if self.project else None,
        }


def check_config(config_path: Path | None = None) -> ConfigCheckResult:
    """Validate project configuration and report issues.

    Args:
        config_path: Optional explicit path to roku.yml.

    Returns:
        ConfigCheckResult with validation status and any issues.
    """
    result = ConfigCheckResult()

    if config_path is None:
        config_path = find_project_file()
    if config_path is None:
        result.errors.append("No roku.yml found.")
        return result
    result.config_path = config_path

    try:
        project = load_project(config_path)
        result.project = project
    except ConfigError as e:
        result.errors.append(str(e))
        return result

    # Semantic checks
    layout = project.layout
    if not project.resolve(layout.manifest).is_file():
        result.warnings.append(f"Channel manifest not found: {layout.manifest}")
    if not project.resolve(layout.components).is_dir():
        result.warnings.append(f"Components directory not found: {layout.components}")

    if project.tests.timeout_ms <= 0:
        result.errors.append("tests.timeout_ms must be positive.")

    suffixes = project.build.interop_suffixes + project.build.layout_suffixes
    if any(not s for s in suffixes):
        result.errors.append("Empty interop or layout suffix in build section.")

    device = resolve_device(project)
    if not device.ip:
        result.warnings.append("No device IP configured; device commands need --ip.")

    result.valid = len(result.errors) == 0
    return result
