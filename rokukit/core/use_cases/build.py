"""
Build use case — compile, link, merge and package a channel.

Each stage reads the previous stage's output directory and writes its own;
they run in order, synchronously:

    compile   (optional) hybrid staging + npx bsc → base staging tree
    link      manifests + compiled fragments      → linked manifests
    merge     base + overlay + linked + runtime    → merged tree
    package   merged tree                          → <name>.zip

With ``tests=True`` merge and package build the test app instead: the
test source set replaces the main one (falling back to the main source when
the test output is missing or empty), the tree goes to ``test_merged`` and
the zip is ``<name>Tests.zip``.

A failing stage raises ``StageError`` naming the stage; later stages do
not run.  Every ``run_build`` is recorded in the operation ledger.
"""

from __future__ import annotations

import functools
import logging
import time
from dataclasses import dataclass, field
from pathlib import Path

from rokukit.core.models.linking import MergePlan
from rokukit.core.models.project import RokuProject
from rokukit.core.persistence.ledger import Ledger, LedgerEntry
from rokukit.core.services.catalog import SOURCE_ROOT, build_catalog, make_resolver
from rokukit.core.services.compiler import CompileError, run_compiler
from rokukit.core.services.component_link import link_components
from rokukit.core.services.hybrid_stage import hybrid_destination, stage_hybrid_sources
from rokukit.core.services.package_archive import PackageError, create_package
from rokukit.core.services.tree_merge import HYBRID_DIR, hybrid_mode_active, merge_trees

logger = logging.getLogger(__name__)

STAGES = ("link", "merge", "package")


class StageError(Exception):
    """A build stage failed; ``stage`` names it."""

    def __init__(self, stage: str, message: str) -> None:
        super().__init__(f"[{stage}] {message}")
        self.stage = stage
        self.message = message


@dataclass
class BuildResult:
    """What each stage that ran reported."""

    project_name: str = ""
    stages: dict[str, dict] = field(default_factory=dict)
    package: str | None = None
    duration_ms: int = 0
    error: str | None = None
    failed_stage: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> dict:
        result: dict = {
            "project_name": self.project_name,
            "ok": self.ok,
            "stages": self.stages,
            "package": self.package,
            "duration_ms": self.duration_ms,
        }
        if self.error:
            result["error"] = self.error
            result["failed_stage"] = self.failed_stage
        return result


def _overlay_dir(project: RokuProject, sub: str):
    return project.resolve(project.build.overlay) / sub


def _resolver_factory(project: RokuProject):
    return functools.partial(
        make_resolver,
        interop_suffixes=project.build.interop_suffixes,
        layout_suffixes=project.build.layout_suffixes,
    )


# ── Stages ────────────────────────────────────────────────────────


def run_compile(project: RokuProject, *, hybrid: bool = False, on_line=None) -> dict:
    """Optionally stage Kotlin output for bsc, then run bsc."""
    result: dict = {}
    try:
        if hybrid:
            staged = stage_hybrid_sources(
                _overlay_dir(project, SOURCE_ROOT),
                project.resolve(project.build.runtime),
                hybrid_destination(project.resolve(project.build.base_source)),
            )
            result["hybrid"] = staged.to_dict()
        compiled = run_compiler(
            project.build.bsc_command,
            cwd=project.root,
            staging=project.resolve(project.build.base_staging),
            on_line=on_line,
        )
    except (CompileError, OSError) as e:
        raise StageError("compile", str(e)) from e
    result["compile"] = compiled.to_dict()
    return result


def run_link(project: RokuProject) -> dict:
    """Inject script directives into every component manifest."""
    manifests = project.resolve(project.layout.components)
    base_staging = project.resolve(project.build.base_staging)
    source_prefix = f"{SOURCE_ROOT}/{HYBRID_DIR}" if hybrid_mode_active(base_staging) else SOURCE_ROOT

    try:
        snapshot = build_catalog(
            manifests=manifests,
            component_fragments=_overlay_dir(project, "components"),
            primary_fragments=_overlay_dir(project, SOURCE_ROOT),
            runtime_fragments=project.resolve(project.build.runtime),
            source_prefix=source_prefix,
            interop_suffixes=project.build.interop_suffixes,
            layout_suffixes=project.build.layout_suffixes,
        )
        report = link_components(
            manifests,
            project.resolve(project.build.linked_components),
            snapshot,
        )
    except OSError as e:
        raise StageError("link", str(e)) from e

    if report.errors:
        logger.warning("%d manifests could not be linked", len(report.errors))
    data = report.to_dict()
    data["catalog"] = {
        "runtime": len(snapshot.catalog.runtime),
        "primary": len(snapshot.catalog.primary),
        "component": len(snapshot.catalog.component),
    }
    data["source_prefix"] = source_prefix
    return data


def select_test_sources(project: RokuProject) -> Path:
    """Source set for the test app: test output when present, else main."""
    test_source = project.resolve(project.build.test_overlay) / SOURCE_ROOT
    if test_source.is_dir() and any(p.is_file() for p in test_source.rglob("*")):
        return test_source
    logger.info("No test sources in %s; using main sources", test_source)
    return _overlay_dir(project, SOURCE_ROOT)


def run_merge(project: RokuProject, *, tests: bool = False) -> dict:
    """Overlay the Kotlin output and linked manifests onto the base staging tree."""
    source = select_test_sources(project) if tests else None
    destination = project.build.test_merged if tests else project.build.merged
    plan = MergePlan(
        base=project.resolve(project.build.base_staging),
        overlay=project.resolve(project.build.overlay),
        destination=project.resolve(destination),
        runtime=project.resolve(project.build.runtime),
        manifests=project.resolve(project.build.linked_components),
        source=source,
    )
    try:
        report = merge_trees(plan, _resolver_factory(project))
    except OSError as e:
        raise StageError("merge", str(e)) from e
    data = report.to_dict()
    if tests:
        data["source"] = str(source)
    return data


def run_package(project: RokuProject, *, tests: bool = False) -> dict:
    """Zip the merged tree."""
    layout = project.layout
    merged = project.build.test_merged if tests else project.build.merged
    try:
        result = create_package(
            project.resolve(merged),
            project.test_package_path if tests else project.package_path,
            manifest=project.resolve(layout.manifest),
            extra_dirs={
                "images": project.resolve(layout.images),
                "fonts": project.resolve(layout.fonts),
                "assets": project.resolve(layout.assets),
            },
        )
    except PackageError as e:
        raise StageError("package", str(e)) from e
    return result.to_dict()


_STAGE_RUNNERS = {
    "link": run_link,
    "merge": run_merge,
    "package": run_package,
}

# stages that build a different tree for the test app
_VARIANT_STAGES = {"merge", "package"}


def run_build(
    project: RokuProject,
    stages: tuple[str, ...] | list[str] = STAGES,
    *,
    compile_first: bool = False,
    hybrid: bool = False,
    tests: bool = False,
    ledger: Ledger | None = None,
) -> BuildResult:
    """Run ``stages`` in order, stopping at the first failure.

    Failures are reported on the result (``error``, ``failed_stage``),
    not raised; the single-stage functions raise ``StageError``.  ``tests``
    builds the test app in the merge and package stages.
    """
    unknown = [s for s in stages if s not in _STAGE_RUNNERS]
    if unknown:
        raise ValueError(f"Unknown build stage(s): {', '.join(unknown)}")

    result = BuildResult(project_name=project.name)
    start = time.monotonic()

    try:
        if compile_first:
            result.stages["compile"] = run_compile(project, hybrid=hybrid)
        for stage in stages:
            logger.info("── %s ──", stage)
            kwargs = {"tests": tests} if stage in _VARIANT_STAGES else {}
            result.stages[stage] = _STAGE_RUNNERS[stage](project, **kwargs)
    except StageError as e:
        logger.error("Build failed in %s: %s", e.stage, e.message)
        result.error = e.message
        result.failed_stage = e.stage

    if "package" in result.stages and result.ok:
        result.package = result.stages["package"]["path"]
    result.duration_ms = int((time.monotonic() - start) * 1000)

    (ledger or Ledger(project_root=project.root)).append(
        LedgerEntry(
            operation="build",
            stage=",".join((["compile"] if compile_first else []) + list(stages)),
            status="ok" if result.ok else "failed",
            duration_ms=result.duration_ms,
            target=result.package or "",
            errors=[result.error] if result.error else [],
            context={"variant": "tests"} if tests else {},
        )
    )
    return result
