"""
Package archive — zip the merged tree into a sideloadable channel.

Entries: ``manifest``, ``source/…``, ``components/…``, ``images/…``,
``fonts/…`` and ``assets/…``.  The merged tree is authoritative; the
project's own layout directories only fill in what the merge did not
produce.  Entries are sorted and stamped with a fixed date, so the same
tree always yields the same bytes.
"""

from __future__ import annotations

import logging
import zipfile
from dataclasses import dataclass, field
from pathlib import Path

logger = logging.getLogger(__name__)

MANIFEST_ENTRY = "manifest"
PACKAGE_DIRS = ("source", "components", "images", "fonts", "assets")

# Earliest timestamp the zip format can store
FIXED_DATE_TIME = (1980, 1, 1, 0, 0, 0)


class PackageError(Exception):
    """The package could not be written."""


@dataclass
class PackageResult:
    path: str
    entries: list[str] = field(default_factory=list)
    size_bytes: int = 0
    has_manifest: bool = False

    def to_dict(self) -> dict:
        return {
            "path": self.path,
            "entries": len(self.entries),
            "size_bytes": self.size_bytes,
            "has_manifest": self.has_manifest,
        }


def collect_entries(
    merged: Path,
    *,
    manifest: Path | None = None,
    extra_dirs: dict[str, Path] | None = None,
) -> dict[str, Path]:
    """Archive name → file, in sorted order."""
    entries: dict[str, Path] = {}

    if merged.is_dir():
        merged_manifest = merged / MANIFEST_ENTRY
        if merged_manifest.is_file():
            entries[MANIFEST_ENTRY] = merged_manifest
        for prefix in PACKAGE_DIRS:
            root = merged / prefix
            if not root.is_dir():
                continue
            for f in root.rglob("*"):
                if f.is_file():
                    entries[f"{prefix}/{f.relative_to(root).as_posix()}"] = f
    else:
        logger.warning("Merged tree not found: %s", merged)

    if manifest is not None and manifest.is_file():
        entries.setdefault(MANIFEST_ENTRY, manifest)

    for prefix, root in (extra_dirs or {}).items():
        if prefix not in PACKAGE_DIRS or root is None or not root.is_dir():
            continue
        for f in root.rglob("*"):
            if f.is_file():
                entries.setdefault(f"{prefix}/{f.relative_to(root).as_posix()}", f)

    return dict(sorted(entries.items()))


def create_package(
    merged: Path,
    output: Path,
    *,
    manifest: Path | None = None,
    extra_dirs: dict[str, Path] | None = None,
) -> PackageResult:
    """Write the channel zip.

    Args:
        merged: Merged tree from ``merge_trees``.
        output: Zip file to (over)write.
        manifest: Project manifest, used when the merged tree has none.
        extra_dirs: ``{"images": path, ...}`` from the project layout.

    Raises:
        PackageError: The zip could not be written.
    """
    entries = collect_entries(merged, manifest=manifest, extra_dirs=extra_dirs)
    result = PackageResult(path=str(output), has_manifest=MANIFEST_ENTRY in entries)
    if not result.has_manifest:
        logger.warning("Package has no manifest; the device will reject it")

    try:
        output.parent.mkdir(parents=True, exist_ok=True)
        with zipfile.ZipFile(output, "w", compression=zipfile.ZIP_DEFLATED) as zf:
            for name, path in entries.items():
                info = zipfile.ZipInfo(name, date_time=FIXED_DATE_TIME)
                info.compress_type = zipfile.ZIP_DEFLATED
                info.external_attr = 0o644 << 16
                zf.writestr(info, path.read_bytes())
                result.entries.append(name)
    except OSError as e:
        raise PackageError(f"Cannot write package {output}: {e}") from e

    result.size_bytes = output.stat().st_size
    logger.info("Created package %s (%d entries, %d bytes)", output, len(result.entries), result.size_bytes)
    return result
