"""
Linking models — the values handed from one build stage to the next.

    ModuleCatalog        what compiled modules exist and where they will live
    ComponentDescriptor  one UI component: its manifest and its fragment
    DependencyResult     which modules one fragment needs
    MergePlan            the trees the merger combines
    MergeReport          what the merger did

Catalog paths are *package* paths (``source/Foo.brs``,
``components/screens/Home.brs``): the location a fragment will have in the
merged tree, which is also the ``pkg:/`` URI a manifest loads it from.

Everything here except MergeReport is immutable once built.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType

# Modules every compiled fragment depends on without naming them
ALWAYS_REQUIRED_RUNTIME = ("coreRuntime", "intrinsics", "primitives", "Kotlin")


@dataclass(frozen=True)
class ModuleCatalog:
    """Known module identifiers → package paths, in three catalogs.

    ``runtime``   platform / standard-library modules
    ``primary``   the channel's free-standing ("main") modules
    ``component`` per-component compiled modules

    Built once per run by ``catalog.build_catalog()`` and passed around by
    reference; the mappings are read-only views.
    """

    runtime: Mapping[str, str] = field(default_factory=dict)
    primary: Mapping[str, str] = field(default_factory=dict)
    component: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        for name in ("runtime", "primary", "component"):
            object.__setattr__(self, name, MappingProxyType(dict(getattr(self, name))))

    def always_required(self) -> frozenset[str]:
        """The core runtime modules present in this catalog (case-insensitive)."""
        wanted = {name.lower() for name in ALWAYS_REQUIRED_RUNTIME}
        return frozenset(name for name in self.runtime if name.lower() in wanted)

    def to_dict(self) -> dict:
        return {
            "runtime": dict(sorted(self.runtime.items())),
            "primary": dict(sorted(self.primary.items())),
            "component": dict(sorted(self.component.items())),
        }


@dataclass(frozen=True)
class ComponentDescriptor:
    """A logical UI component.

    ``manifest`` is relative to the manifests directory, ``fragment`` is the
    compiled fragment file and ``fragment_path`` its package path.  Either
    may be missing: a pure-XML component has no fragment, and a fragment
    with no manifest never gets a descriptor of its own.
    """

    name: str
    manifest: str | None = None
    fragment: Path | None = None
    fragment_path: str | None = None

    @property
    def has_fragment(self) -> bool:
        return self.fragment is not None


@dataclass(frozen=True)
class DependencyResult:
    """The modules one compiled fragment requires, per catalog."""

    runtime: frozenset[str] = frozenset()
    primary: frozenset[str] = frozenset()
    component: frozenset[str] = frozenset()

    @classmethod
    def empty(cls) -> DependencyResult:
        return cls()

    @classmethod
    def of(
        cls,
        runtime: Iterable[str] = (),
        primary: Iterable[str] = (),
        component: Iterable[str] = (),
    ) -> DependencyResult:
        return cls(frozenset(runtime), frozenset(primary), frozenset(component))

    @property
    def total(self) -> int:
        return len(self.runtime) + len(self.primary) + len(self.component)

    @property
    def is_empty(self) -> bool:
        return self.total == 0

    def to_dict(self) -> dict:
        return {
            "runtime": sorted(self.runtime),
            "primary": sorted(self.primary),
            "component": sorted(self.component),
        }


@dataclass(frozen=True)
class MergePlan:
    """Inputs and output of one tree merge.

    ``base``       tree copied verbatim first (BrighterScript staging)
    ``overlay``    tree laid on top (Kotlin output: source/, components/)
    ``destination`` cleared and rebuilt on every merge
    ``runtime``    standard-library fragments copied into source/
    ``manifests``  linked component manifests laid into components/
    ``source``     replaces overlay/source/ when set (test app)
    """

    base: Path | None
    overlay: Path | None
    destination: Path
    runtime: Path | None = None
    manifests: Path | None = None
    source: Path | None = None


@dataclass
class MergeReport:
    """Counters and a per-file trail of one merge."""

    destination: str = ""
    base_files: int = 0
    added: int = 0
    replaced: int = 0
    skipped_empty: int = 0
    skipped_collision: int = 0
    runtime_added: int = 0
    runtime_skipped: int = 0
    hybrid_guard: bool = False
    total_files: int = 0
    warnings: list[str] = field(default_factory=list)
    entries: list[dict] = field(default_factory=list)

    def record(self, action: str, source: Path, target: str) -> None:
        self.entries.append({"action": action, "source": str(source), "target": target})

    def to_dict(self) -> dict:
        return {
            "destination": self.destination,
            "base_files": self.base_files,
            "added": self.added,
            "replaced": self.replaced,
            "skipped_empty": self.skipped_empty,
            "skipped_collision": self.skipped_collision,
            "runtime_added": self.runtime_added,
            "runtime_skipped": self.runtime_skipped,
            "hybrid_guard": self.hybrid_guard,
            "total_files": self.total_files,
            "warnings": self.warnings,
        }
