"""
Component linking — analyze and inject every manifest of a directory.

Reads each component manifest, analyzes the component's own compiled
fragment against the catalog, injects the script directives and writes the
result under the same relative path in the output directory.  Only
manifests are written; fragments reach the package through the merger.

A component that fails (unreadable manifest, malformed XML) is recorded and
skipped; the rest of the directory is still linked.
"""

from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass, field
from pathlib import Path

from rokukit.core.services.catalog import CatalogSnapshot
from rokukit.core.services.dependency_analyzer import SymbolScanner, analyze_file
from rokukit.core.services.manifest_injector import inject_scripts

logger = logging.getLogger(__name__)


@dataclass
class LinkedComponent:
    name: str
    manifest: str
    fragment: str | None = None
    injected: int = 0
    runtime: int = 0
    primary: int = 0
    component: int = 0
    warning: str = ""

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "manifest": self.manifest,
            "fragment": self.fragment,
            "injected": self.injected,
            "runtime": self.runtime,
            "primary": self.primary,
            "component": self.component,
            "warning": self.warning,
        }


@dataclass
class LinkReport:
    output: str = ""
    components: list[LinkedComponent] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    @property
    def linked(self) -> int:
        return sum(1 for c in self.components if c.injected)

    @property
    def warnings(self) -> list[str]:
        return [f"{c.manifest}: {c.warning}" for c in self.components if c.warning]

    def to_dict(self) -> dict:
        return {
            "output": self.output,
            "manifests": len(self.components),
            "linked": self.linked,
            "components": [c.to_dict() for c in self.components],
            "warnings": self.warnings,
            "errors": self.errors,
        }


def link_components(
    manifests: Path,
    output: Path,
    snapshot: CatalogSnapshot,
    *,
    scanner: SymbolScanner | None = None,
) -> LinkReport:
    """Write linked copies of every manifest under ``manifests`` to ``output``.

    ``output`` is cleared first.
    """
    report = LinkReport(output=str(output))

    if output.exists():
        shutil.rmtree(output)
    output.mkdir(parents=True, exist_ok=True)

    if not manifests.is_dir():
        logger.warning("Manifests directory not found: %s", manifests)
        return report

    catalog = snapshot.catalog
    for desc in snapshot.components:
        src = manifests / desc.manifest
        dest = output / desc.manifest

        try:
            text = src.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            msg = f"{desc.manifest}: cannot read manifest: {e}"
            logger.warning(msg)
            report.errors.append(msg)
            continue

        deps = analyze_file(desc.fragment, catalog, desc.fragment_path, scanner=scanner)
        result = inject_scripts(text, deps, catalog, desc.fragment_path)

        dest.parent.mkdir(parents=True, exist_ok=True)
        dest.write_text(result.text, encoding="utf-8")

        linked = LinkedComponent(
            name=desc.name,
            manifest=desc.manifest,
            fragment=desc.fragment_path,
            injected=len(result.injected),
            runtime=len(deps.runtime),
            primary=len(deps.primary),
            component=len(deps.component),
            warning=result.warning,
        )
        report.components.append(linked)

        if desc.has_fragment or not deps.is_empty:
            logger.info(
                "Linked %s: %d main source, %d component, %d runtime",
                desc.manifest, linked.primary, linked.component, linked.runtime,
            )

    logger.info("Linked %d/%d manifests into %s", report.linked, len(report.components), output)
    return report
