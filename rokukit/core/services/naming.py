"""
Artifact naming — which component does a compiled fragment belong to?

Compilers never record that ``Home.brs`` implements ``Home.xml``; the link
is the file name.  Both the manifest linker and the tree merger need the
same answer, so both ask an ``ArtifactNameResolver``:

    Home.brs          → Home          exact base name
    HomeKt.brs        → Home          compiler interop suffix stripped
    Home_Layout.brs   → Home          layout accessor of a known component
    Util.brs          → None          no component; goes to the components root

Matching is case-insensitive because the device loader is; an exact-case
hit is preferred when two components differ only by case.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from pathlib import PurePath

logger = logging.getLogger(__name__)

FRAGMENT_EXTENSION = ".brs"
MANIFEST_EXTENSION = ".xml"

# Kotlin puts top-level functions of Foo.kt into a FooKt class
DEFAULT_INTEROP_SUFFIXES: tuple[str, ...] = ("Kt",)
DEFAULT_LAYOUT_SUFFIXES: tuple[str, ...] = ("_Layout",)


def base_name(file_name: str) -> str:
    """File name without directory or extension."""
    return PurePath(file_name).stem


def is_fragment(path: PurePath) -> bool:
    return path.suffix.lower() == FRAGMENT_EXTENSION


def is_manifest(path: PurePath) -> bool:
    return path.suffix.lower() == MANIFEST_EXTENSION


def _strip_suffix(name: str, suffix: str) -> str | None:
    """Remove ``suffix`` (case-insensitive); None if absent or nothing remains."""
    if len(name) > len(suffix) and name.lower().endswith(suffix.lower()):
        return name[: -len(suffix)]
    return None


class ArtifactNameResolver:
    """Maps compiled fragment file names to known component names."""

    def __init__(
        self,
        component_names: Iterable[str],
        *,
        interop_suffixes: Iterable[str] = DEFAULT_INTEROP_SUFFIXES,
        layout_suffixes: Iterable[str] = DEFAULT_LAYOUT_SUFFIXES,
    ) -> None:
        self._exact: set[str] = set()
        self._folded: dict[str, str] = {}
        for name in sorted(component_names):
            self._exact.add(name)
            self._folded.setdefault(name.lower(), name)
        self.interop_suffixes = tuple(interop_suffixes)
        self.layout_suffixes = tuple(layout_suffixes)

    @property
    def component_names(self) -> frozenset[str]:
        return frozenset(self._exact)

    def _lookup(self, name: str) -> str | None:
        if name in self._exact:
            return name
        return self._folded.get(name.lower())

    def _match_with_interop(self, name: str) -> str | None:
        found = self._lookup(name)
        if found is not None:
            return found
        for suffix in self.interop_suffixes:
            stripped = _strip_suffix(name, suffix)
            if stripped is not None:
                found = self._lookup(stripped)
                if found is not None:
                    return found
        return None

    def resolve(self, file_name: str) -> str | None:
        """Component owning ``file_name``, or None for a free-standing fragment."""
        name = base_name(file_name)

        found = self._match_with_interop(name)
        if found is not None:
            return found

        for suffix in self.layout_suffixes:
            stripped = _strip_suffix(name, suffix)
            if stripped is None:
                continue
            found = self._match_with_interop(stripped)
            if found is not None:
                logger.debug("Layout accessor %s belongs to component %s", file_name, found)
                return found

        return None

    def is_layout_accessor(self, file_name: str) -> bool:
        """True if ``file_name`` is a layout accessor of a known component."""
        name = base_name(file_name)
        if self._match_with_interop(name) is not None:
            return False
        return any(
            (stripped := _strip_suffix(name, suffix)) is not None
            and self._match_with_interop(stripped) is not None
            for suffix in self.layout_suffixes
        )
