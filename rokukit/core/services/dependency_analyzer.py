"""
Dependency analyzer — which modules does a compiled fragment call into?

Compiled BrightScript names every cross-module call ``<Module>_<member>(``.
The analyzer collects those call targets, keeps the ones that name a module
in the catalog, and adds the runtime core every fragment needs.

Scanning is lexical and deliberately over-approximates: a call target inside
a string literal still counts.  Loading one script too many is harmless; one
too few is a crash on the device.  ``SymbolScanner`` is the seam for a
symbol-table based replacement.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Protocol

from rokukit.core.models.linking import DependencyResult, ModuleCatalog

logger = logging.getLogger(__name__)


class SymbolScanner(Protocol):
    """Extracts candidate module names from fragment text."""

    def candidates(self, text: str) -> set[str]: ...


class RegexSymbolScanner:
    """Default scanner: every underscore prefix of every call target.

    ``Foo_bar_baz(`` yields ``Foo`` and ``Foo_bar`` so modules whose names
    contain underscores (``Main_Layout``) are still found.
    """

    CALL_PATTERN = re.compile(r"\b([A-Za-z_]\w*)\s*\(")

    def candidates(self, text: str) -> set[str]:
        found: set[str] = set()
        for match in self.CALL_PATTERN.finditer(text):
            target = match.group(1)
            parts = target.split("_")
            for i in range(1, len(parts)):
                prefix = "_".join(parts[:i])
                if prefix:
                    found.add(prefix)
        return found


DEFAULT_SCANNER: SymbolScanner = RegexSymbolScanner()


def analyze_fragment(
    text: str,
    catalog: ModuleCatalog,
    own_path: str | None = None,
    *,
    scanner: SymbolScanner | None = None,
) -> DependencyResult:
    """Resolve the modules ``text`` depends on.

    Args:
        text: Fragment source.
        catalog: Known modules.
        own_path: Package path of the fragment itself; the component module
            living there is never reported as its own dependency.
        scanner: Candidate extractor (default: regex).

    Returns:
        DependencyResult, always including the runtime core.
    """
    names = (scanner or DEFAULT_SCANNER).candidates(text)

    runtime = {n for n in names if n in catalog.runtime}
    primary = {n for n in names if n in catalog.primary}
    component = {
        n for n in names
        if n in catalog.component and catalog.component[n] != own_path
    }

    runtime |= catalog.always_required()

    result = DependencyResult.of(runtime, primary, component)
    logger.debug(
        "Analyzed %s: %d runtime, %d primary, %d component",
        own_path or "<fragment>", len(result.runtime), len(result.primary), len(result.component),
    )
    return result


def analyze_file(
    path: Path | None,
    catalog: ModuleCatalog,
    own_path: str | None = None,
    *,
    scanner: SymbolScanner | None = None,
) -> DependencyResult:
    """Analyze a fragment on disk.

    A missing path means "no fragment" and yields the empty result.  An
    unreadable fragment is logged and also yields the empty result; the
    caller carries on with the remaining components.
    """
    if path is None:
        return DependencyResult.empty()
    try:
        text = path.read_text(encoding="utf-8", errors="replace")
    except OSError as e:
        logger.warning("Cannot read fragment %s: %s", path, e)
        return DependencyResult.empty()
    return analyze_fragment(text, catalog, own_path, scanner=scanner)
