"""
Module catalog — snapshot of what the compilers produced.

Walks the compiled-output directories once and builds the immutable
``ModuleCatalog`` plus one ``ComponentDescriptor`` per component manifest.
Empty fragments are left out, since the merger never copies them.
Catalog values are package paths, computed with the same placement rules
the tree merger applies, so a manifest's ``pkg:/`` URI always points at the
file the merger actually writes.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

from rokukit.core.models.linking import ComponentDescriptor, ModuleCatalog
from rokukit.core.services.naming import (
    ArtifactNameResolver,
    base_name,
    is_fragment,
    is_manifest,
)

logger = logging.getLogger(__name__)

SOURCE_ROOT = "source"
COMPONENTS_ROOT = "components"


@dataclass(frozen=True)
class CatalogSnapshot:
    """Everything the linker needs for one run."""

    catalog: ModuleCatalog
    components: tuple[ComponentDescriptor, ...]
    resolver: ArtifactNameResolver


def list_files(root: Path | None, predicate=None) -> list[Path]:
    """Sorted files under ``root`` (recursive); missing root → []."""
    if root is None or not root.is_dir():
        return []
    files = [p for p in root.rglob("*") if p.is_file()]
    if predicate is not None:
        files = [p for p in files if predicate(p)]
    return sorted(files, key=lambda p: p.relative_to(root).as_posix())


def index_manifests(components_root: Path | None) -> dict[str, str]:
    """Component name → manifest directory (relative, posix, "" for root).

    The first manifest in sorted path order wins when two directories hold
    a component of the same name.
    """
    index: dict[str, str] = {}
    for xml in list_files(components_root, is_manifest):
        name = xml.stem
        rel_dir = xml.parent.relative_to(components_root).as_posix()
        rel_dir = "" if rel_dir == "." else rel_dir
        if name in index:
            logger.warning(
                "Duplicate component manifest %s in %s (keeping %s)",
                name, rel_dir or ".", index[name] or ".",
            )
            continue
        index[name] = rel_dir
    return index


def component_placement(
    fragment_name: str,
    resolver: ArtifactNameResolver,
    manifest_dirs: dict[str, str],
) -> str:
    """Package path for a component fragment: beside its manifest, else the components root."""
    owner = resolver.resolve(fragment_name)
    rel_dir = manifest_dirs.get(owner) if owner is not None else None
    if rel_dir:
        return f"{COMPONENTS_ROOT}/{rel_dir}/{fragment_name}"
    return f"{COMPONENTS_ROOT}/{fragment_name}"


def make_resolver(
    component_names: Iterable[str],
    *,
    interop_suffixes: Iterable[str] | None = None,
    layout_suffixes: Iterable[str] | None = None,
) -> ArtifactNameResolver:
    kwargs = {}
    if interop_suffixes is not None:
        kwargs["interop_suffixes"] = tuple(interop_suffixes)
    if layout_suffixes is not None:
        kwargs["layout_suffixes"] = tuple(layout_suffixes)
    return ArtifactNameResolver(component_names, **kwargs)


def _non_empty_fragment(path: Path) -> bool:
    return is_fragment(path) and path.stat().st_size > 0


def _add(catalog: dict[str, str], name: str, path: str, kind: str) -> None:
    if name in catalog and catalog[name] != path:
        logger.warning("Duplicate %s module %s: %s shadows %s", kind, name, catalog[name], path)
        return
    catalog[name] = path


def build_catalog(
    *,
    manifests: Path | None,
    component_fragments: Path | None = None,
    primary_fragments: Path | None = None,
    runtime_fragments: Path | None = None,
    source_prefix: str = SOURCE_ROOT,
    interop_suffixes: Iterable[str] | None = None,
    layout_suffixes: Iterable[str] | None = None,
) -> CatalogSnapshot:
    """Scan the compiled outputs and component manifests.

    Args:
        manifests: Directory of component manifests (.xml).
        component_fragments: Compiled per-component fragments.
        primary_fragments: Compiled free-standing modules.
        runtime_fragments: Standard-library fragments.
        source_prefix: Package directory primary and runtime modules load
            from (``source/kotlin`` when the hybrid stage placed them).
    """
    manifest_dirs = index_manifests(manifests)
    resolver = make_resolver(
        manifest_dirs,
        interop_suffixes=interop_suffixes,
        layout_suffixes=layout_suffixes,
    )

    runtime: dict[str, str] = {}
    for f in list_files(runtime_fragments, _non_empty_fragment):
        _add(runtime, base_name(f.name), f"{source_prefix}/{f.name}", "runtime")

    primary: dict[str, str] = {}
    for f in list_files(primary_fragments, _non_empty_fragment):
        rel = f.relative_to(primary_fragments).as_posix()
        _add(primary, base_name(f.name), f"{source_prefix}/{rel}", "primary")

    component: dict[str, str] = {}
    fragments_by_owner: dict[str, list[Path]] = {}
    for f in list_files(component_fragments, _non_empty_fragment):
        path = component_placement(f.name, resolver, manifest_dirs)
        _add(component, base_name(f.name), path, "component")
        owner = resolver.resolve(f.name)
        if owner is not None and not resolver.is_layout_accessor(f.name):
            fragments_by_owner.setdefault(owner, []).append(f)

    descriptors = []
    for xml in list_files(manifests, is_manifest):
        name = xml.stem
        rel_manifest = xml.relative_to(manifests).as_posix()
        own = _own_fragment(name, fragments_by_owner.get(name, []))
        if own is not None and manifest_dirs.get(name) != _rel_dir(xml, manifests):
            # a shadowed duplicate manifest does not own the fragment
            own = None
        descriptors.append(
            ComponentDescriptor(
                name=name,
                manifest=rel_manifest,
                fragment=own,
                fragment_path=component[base_name(own.name)] if own is not None else None,
            )
        )

    catalog = ModuleCatalog(runtime=runtime, primary=primary, component=component)
    logger.info(
        "Catalog: %d runtime, %d primary, %d component modules; %d manifests",
        len(runtime), len(primary), len(component), len(descriptors),
    )
    return CatalogSnapshot(catalog=catalog, components=tuple(descriptors), resolver=resolver)


def _rel_dir(xml: Path, root: Path) -> str:
    rel = xml.parent.relative_to(root).as_posix()
    return "" if rel == "." else rel


def _own_fragment(component: str, candidates: list[Path]) -> Path | None:
    """Prefer the fragment named exactly like the component, then any interop variant."""
    if not candidates:
        return None
    for f in candidates:
        if base_name(f.name) == component:
            return f
    for f in candidates:
        if base_name(f.name).lower() == component.lower():
            return f
    return candidates[0]
