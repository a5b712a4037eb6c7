"""
Tree merger — overlay the Kotlin output onto the BrighterScript staging tree.

Steps, in order:

    1. clear the destination
    2. copy the base tree verbatim
    3. lay the linked manifests into components/
    4. hybrid guard: source/kotlin/*.brs present → skip steps 5 and 7
    5. overlay source/** into source/ (plan.source instead, when set)
    6. place component fragments beside their manifest (else components/)
    7. copy runtime modules into source/ unless the name already exists
    8. overlay every other file at its mirrored path

Collision rules for overlay files:

    - empty .brs fragment            → skipped_empty
    - exact path from the base copy  → overlay replaces it
    - same path, different case      → existing file kept, skipped_collision
    - path already installed by the overlay in this merge → first wins

Every walk is materialised and sorted before anything is written, so two
merges of the same inputs produce byte-identical trees.
"""

from __future__ import annotations

import logging
import shutil
from collections.abc import Callable, Iterable
from pathlib import Path

from rokukit.core.models.linking import MergePlan, MergeReport
from rokukit.core.services.catalog import (
    COMPONENTS_ROOT,
    SOURCE_ROOT,
    component_placement,
    index_manifests,
    list_files,
    make_resolver,
)
from rokukit.core.services.naming import ArtifactNameResolver, is_fragment

logger = logging.getLogger(__name__)

HYBRID_DIR = "kotlin"

ResolverFactory = Callable[[Iterable[str]], ArtifactNameResolver]


def count_files(root: Path) -> int:
    return sum(1 for p in root.rglob("*") if p.is_file())


def hybrid_mode_active(destination: Path) -> bool:
    """True when source/kotlin/ already holds fragments compiled by bsc."""
    kotlin_dir = destination / SOURCE_ROOT / HYBRID_DIR
    if not kotlin_dir.is_dir():
        return False
    return any(p.is_file() and is_fragment(p) for p in kotlin_dir.iterdir())


class _Installer:
    """Copies overlay files into the destination and applies the collision rules."""

    def __init__(self, destination: Path, report: MergeReport) -> None:
        self.destination = destination
        self.report = report
        self.base_paths: set[str] = set()
        self.installed: dict[str, str] = {}
        # lowercased package path -> path as written
        self.known: dict[str, str] = {}

    def snapshot_base(self) -> None:
        for p in list_files(self.destination):
            rel = p.relative_to(self.destination).as_posix()
            self.base_paths.add(rel)
            self.known.setdefault(rel.lower(), rel)

    def install(self, src: Path, target: str) -> bool:
        report = self.report

        if is_fragment(src) and src.stat().st_size == 0:
            report.skipped_empty += 1
            report.record("skipped_empty", src, target)
            logger.debug("  Skipped empty fragment: %s", src.name)
            return False

        key = target.lower()
        if key in self.installed:
            report.skipped_collision += 1
            report.record("skipped_collision", src, target)
            msg = f"{target}: already installed from {self.installed[key]}"
            report.warnings.append(msg)
            logger.warning("  Skipped %s", msg)
            return False

        dest = self.destination / target
        clash = self.known.get(key)
        if clash is not None and clash != target and target not in self.base_paths:
            report.skipped_collision += 1
            report.record("skipped_collision", src, target)
            msg = f"{target}: differs only in case from existing {clash}"
            report.warnings.append(msg)
            logger.warning("  Skipped %s", msg)
            return False

        replacing = target in self.base_paths and dest.is_file()
        dest.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(src, dest)
        self.installed[key] = str(src)
        self.known[key] = target

        if replacing:
            report.replaced += 1
            report.record("replaced", src, target)
            logger.info("  Overlaid (replaced base): %s", target)
        else:
            report.added += 1
            report.record("added", src, target)
            logger.debug("  Added: %s", target)
        return True


def merge_trees(
    plan: MergePlan,
    resolver_factory: ResolverFactory | None = None,
) -> MergeReport:
    """Build ``plan.destination`` from the base and overlay trees.

    Args:
        plan: Input trees and destination.
        resolver_factory: Builds the fragment → component resolver from the
            component names found in the destination (default: naming
            defaults).

    Returns:
        MergeReport.  Absent inputs are warnings, never errors.
    """
    output = plan.destination
    report = MergeReport(destination=str(output))
    make = resolver_factory or make_resolver

    # 1. clean
    if output.exists():
        shutil.rmtree(output)
    output.mkdir(parents=True)

    # 2. base
    if plan.base is not None and plan.base.is_dir():
        logger.info("Copying base staging from %s", plan.base)
        shutil.copytree(plan.base, output, dirs_exist_ok=True)
        report.base_files = count_files(output)
        logger.info("  Copied %d files", report.base_files)
    else:
        msg = f"Base staging directory does not exist: {plan.base}"
        report.warnings.append(msg)
        logger.warning(msg)

    installer = _Installer(output, report)
    installer.snapshot_base()

    # Materialise every input list before mutating the destination
    manifest_files = list_files(plan.manifests)
    overlay_files = list_files(plan.overlay)
    runtime_files = list_files(plan.runtime, is_fragment)
    replacement_source = list_files(plan.source) if plan.source is not None else None

    # 3. linked manifests
    for f in manifest_files:
        rel = f.relative_to(plan.manifests).as_posix()
        installer.install(f, f"{COMPONENTS_ROOT}/{rel}")

    # 4. guard
    report.hybrid_guard = hybrid_mode_active(output)
    if report.hybrid_guard:
        logger.info("Skipping source overlay and runtime copy: source/%s already compiled (hybrid mode)", HYBRID_DIR)

    source_files: list[tuple[Path, str]] = []
    component_files: list[tuple[Path, str]] = []
    other_files: list[tuple[Path, str]] = []
    for f in overlay_files:
        rel = f.relative_to(plan.overlay).as_posix()
        top, _, rest = rel.partition("/")
        if top == SOURCE_ROOT and rest:
            source_files.append((f, rel))
        elif top == COMPONENTS_ROOT and rest:
            component_files.append((f, rest))
        else:
            other_files.append((f, rel))

    if replacement_source is not None:
        logger.info("Source overlay taken from %s", plan.source)
        source_files = [
            (f, f"{SOURCE_ROOT}/{f.relative_to(plan.source).as_posix()}")
            for f in replacement_source
        ]

    # 5. source overlay
    if not report.hybrid_guard:
        for f, rel in source_files:
            installer.install(f, rel)

    # 6. component fragments
    manifest_dirs = index_manifests(output / COMPONENTS_ROOT)
    resolver = make(manifest_dirs)
    for f, rest in component_files:
        if is_fragment(f):
            target = component_placement(f.name, resolver, manifest_dirs)
            if resolver.resolve(f.name) is None:
                logger.debug("  No manifest for %s; placing at components root", f.name)
        else:
            target = f"{COMPONENTS_ROOT}/{rest}"
        installer.install(f, target)

    # 7. runtime modules
    if not report.hybrid_guard:
        _copy_runtime(runtime_files, output / SOURCE_ROOT, report)

    # 8. everything else
    for f, rel in other_files:
        installer.install(f, rel)

    report.total_files = count_files(output)
    logger.info(
        "Merge complete: %s (%d files; %d added, %d replaced, %d empty, %d collisions)",
        output, report.total_files, report.added, report.replaced,
        report.skipped_empty, report.skipped_collision,
    )
    return report


def _copy_runtime(files: list[Path], source_dir: Path, report: MergeReport) -> None:
    source_dir.mkdir(parents=True, exist_ok=True)
    existing = {p.name.lower() for p in source_dir.iterdir() if p.is_file()}

    for f in sorted(files, key=lambda p: (p.name, str(p))):
        target = f"{SOURCE_ROOT}/{f.name}"
        if f.stat().st_size == 0:
            report.skipped_empty += 1
            report.record("skipped_empty", f, target)
            continue
        if f.name.lower() in existing:
            report.runtime_skipped += 1
            report.record("runtime_skipped", f, target)
            logger.debug("  Runtime module already present: %s", f.name)
            continue
        shutil.copyfile(f, source_dir / f.name)
        existing.add(f.name.lower())
        report.runtime_added += 1
        report.record("runtime_added", f, target)

    logger.info(
        "Added %d runtime modules (skipped %d existing)",
        report.runtime_added, report.runtime_skipped,
    )
