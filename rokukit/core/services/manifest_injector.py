"""
Manifest script injector — adds ``<script>`` directives to a component manifest.

A component manifest only loads the scripts it lists.  After analysis the
injector writes one directive per required module, right after the
``<component ...>`` opening tag:

    <component name="Home" extends="Group">
      <script type="text/brightscript" uri="pkg:/components/Home.brs"/>
      <script type="text/brightscript" uri="pkg:/source/Shared.brs"/>
      ...

Order is own fragment, primary modules, sibling components, runtime
modules; each group sorted by package path.  URIs already present in the
manifest are not added again, so injecting twice changes nothing.  A
self-closing root is opened into a start and end tag first.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field

from rokukit.core.models.linking import DependencyResult, ModuleCatalog

logger = logging.getLogger(__name__)

SCRIPT_TYPE = "text/brightscript"
URI_SCHEME = "pkg:/"

_COMPONENT_OPEN = re.compile(r"<component\b[^>]*>", re.IGNORECASE)
_SCRIPT_URI = re.compile(r"<script\b[^>]*\buri\s*=\s*[\"']([^\"']+)[\"']", re.IGNORECASE)


@dataclass
class InjectionResult:
    """Outcome of one injection."""

    text: str
    changed: bool = False
    injected: list[str] = field(default_factory=list)
    skipped_existing: list[str] = field(default_factory=list)
    warning: str = ""

    def to_dict(self) -> dict:
        return {
            "changed": self.changed,
            "injected": self.injected,
            "skipped_existing": self.skipped_existing,
            "warning": self.warning,
        }


def script_tag(package_path: str) -> str:
    return f'  <script type="{SCRIPT_TYPE}" uri="{URI_SCHEME}{package_path}"/>'


def existing_script_uris(manifest_text: str) -> set[str]:
    return set(_SCRIPT_URI.findall(manifest_text))


def ordered_paths(
    deps: DependencyResult,
    catalog: ModuleCatalog,
    own_fragment: str | None = None,
) -> list[str]:
    """Package paths to load, in directive order, without duplicates."""
    groups = [
        [own_fragment] if own_fragment else [],
        sorted(catalog.primary[n] for n in deps.primary if n in catalog.primary),
        sorted(catalog.component[n] for n in deps.component if n in catalog.component),
        sorted(catalog.runtime[n] for n in deps.runtime if n in catalog.runtime),
    ]
    paths: list[str] = []
    seen: set[str] = set()
    for group in groups:
        for path in group:
            if path not in seen:
                seen.add(path)
                paths.append(path)
    return paths


def inject_scripts(
    manifest_text: str,
    deps: DependencyResult,
    catalog: ModuleCatalog,
    own_fragment: str | None = None,
) -> InjectionResult:
    """Insert script directives into ``manifest_text``.

    Args:
        manifest_text: Component manifest XML.
        deps: Modules the component's fragment requires.
        catalog: Where each module lives.
        own_fragment: Package path of the component's own fragment.

    Returns:
        InjectionResult.  ``text`` is the input unchanged when there is
        nothing to add or the manifest has no ``<component>`` tag.
    """
    paths = ordered_paths(deps, catalog, own_fragment)
    if not paths:
        return InjectionResult(text=manifest_text)

    match = _COMPONENT_OPEN.search(manifest_text)
    if match is None:
        warning = "No <component> tag found; manifest left unchanged"
        logger.warning(warning)
        return InjectionResult(text=manifest_text, warning=warning)

    present = existing_script_uris(manifest_text)
    result = InjectionResult(text=manifest_text)
    for path in paths:
        uri = f"{URI_SCHEME}{path}"
        if uri in present:
            result.skipped_existing.append(path)
        else:
            result.injected.append(path)

    if not result.injected:
        logger.debug("All %d scripts already present", len(result.skipped_existing))
        return result

    block = "\n" + "\n".join(script_tag(p) for p in result.injected)
    tag = match.group(0)
    if tag.endswith("/>"):
        # self-closing root: open it so the directives land inside
        name = tag[1:len("<component")]
        opened = tag[:-2].rstrip() + ">"
        replacement = opened + block + f"\n</{name}>"
    else:
        replacement = tag + block
    result.text = manifest_text[:match.start()] + replacement + manifest_text[match.end():]
    result.changed = True
    return result
