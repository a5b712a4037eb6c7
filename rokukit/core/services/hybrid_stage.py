"""
Hybrid stage — expose Kotlin output to the BrighterScript compiler.

Copies the runtime modules and the Kotlin-compiled source modules into
``source/kotlin/`` of the BrighterScript source tree, so ``bsc`` sees
(and type-checks calls to) every generated function.  The merger detects
the result in the staging tree and skips its own source and runtime steps.
"""

from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass
from pathlib import Path

from rokukit.core.services.catalog import SOURCE_ROOT, list_files
from rokukit.core.services.naming import is_fragment
from rokukit.core.services.tree_merge import HYBRID_DIR

logger = logging.getLogger(__name__)


@dataclass
class HybridStageResult:
    destination: str
    runtime_copied: int = 0
    runtime_empty: int = 0
    source_copied: int = 0

    @property
    def total(self) -> int:
        return self.runtime_copied + self.source_copied

    def to_dict(self) -> dict:
        return {
            "destination": self.destination,
            "runtime_copied": self.runtime_copied,
            "runtime_empty": self.runtime_empty,
            "source_copied": self.source_copied,
            "total": self.total,
        }


def hybrid_destination(base_source: Path) -> Path:
    """``<base source>/source/kotlin``."""
    return base_source / SOURCE_ROOT / HYBRID_DIR


def stage_hybrid_sources(
    overlay_source: Path | None,
    runtime: Path | None,
    destination: Path,
) -> HybridStageResult:
    """Rebuild ``destination`` from runtime modules, then overlay source modules.

    Args:
        overlay_source: Kotlin-compiled ``source/`` directory.
        runtime: Runtime modules directory.
        destination: Usually ``hybrid_destination(base_source)``; cleared first.
    """
    result = HybridStageResult(destination=str(destination))

    if destination.exists():
        logger.info("Cleaning existing %s", destination)
        shutil.rmtree(destination)
    destination.mkdir(parents=True)

    for f in list_files(runtime, is_fragment):
        if f.stat().st_size == 0:
            result.runtime_empty += 1
            continue
        shutil.copyfile(f, destination / f.name)
        result.runtime_copied += 1
    logger.info(
        "Copied %d runtime modules (skipped %d empty)",
        result.runtime_copied, result.runtime_empty,
    )

    if overlay_source is not None and overlay_source.is_dir():
        for f in list_files(overlay_source, is_fragment):
            rel = f.relative_to(overlay_source)
            dest = destination / rel
            dest.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(f, dest)
            result.source_copied += 1
            logger.debug("  Copied user code: %s", rel.as_posix())
    else:
        logger.warning("Kotlin source directory does not exist: %s", overlay_source)

    logger.info("Staged %d modules in %s", result.total, destination)
    return result
