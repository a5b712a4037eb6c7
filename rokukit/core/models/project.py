"""
Project model — the channel being built, loaded from roku.yml.

Every path in the model is relative to the directory holding roku.yml;
``RokuProject.resolve()`` turns one into an absolute path.  Defaults follow
the conventional Roku layout (``manifest``, ``components/``, ``images/`` …)
and the usual compiler output locations, so a minimal roku.yml only needs
``name``.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, Field


class AppLayout(BaseModel):
    """Hand-authored channel content that goes into the package as-is."""

    manifest: str = "manifest"
    components: str = "components"
    images: str = "images"
    fonts: str = "fonts"
    assets: str = "assets"


class BuildPaths(BaseModel):
    """Where the compilers write and where rokukit writes.

    ``base_staging`` is the BrighterScript staging tree, ``overlay`` the
    Kotlin compiler output root (``source/`` + ``components/``) and
    ``runtime`` the directory of standard-library fragments.

    ``test_overlay`` holds the Kotlin output of the test source set; the
    test app is merged into ``test_merged`` and zipped as ``<name>Tests.zip``.
    """

    base_staging: str = "out/staging"
    base_source: str = "src"
    overlay: str = "build/brs/brs/main"
    runtime: str = "build/brs/runtime"
    linked_components: str = "build/roku/processedComponents"
    merged: str = "build/merged-staging"
    test_overlay: str = "build/brs/brs/test"
    test_merged: str = "build/merged-staging-tests"
    package_dir: str = "build/roku"
    bsc_command: str = "npx bsc"
    interop_suffixes: list[str] = Field(default_factory=lambda: ["Kt"])
    layout_suffixes: list[str] = Field(default_factory=lambda: ["_Layout"])


class DeviceSettings(BaseModel):
    """Developer-mode device address and password."""

    ip: str = ""
    password: str = ""
    debug_port: int = 8085


class TestSettings(BaseModel):
    """On-device test run settings."""

    timeout_ms: int = 300_000
    reports_dir: str = "build/test-results/roku"
    ignore_failures: bool = False

    # keep pytest from collecting this class
    __test__ = False


class RokuProject(BaseModel):
    """Root configuration — what to build and where to deploy it."""

    version: int = 1

    name: str
    app_id: str = ""
    app_version: str = "1.0.0"
    min_os: str = "9.4"
    debug: bool = False

    layout: AppLayout = Field(default_factory=AppLayout)
    build: BuildPaths = Field(default_factory=BuildPaths)
    device: DeviceSettings = Field(default_factory=DeviceSettings)
    tests: TestSettings = Field(default_factory=TestSettings)

    # Set by the loader, not read from YAML
    root: Path = Field(default_factory=Path.cwd, exclude=True)

    def resolve(self, relative: str) -> Path:
        """Resolve a roku.yml-relative path against the project root."""
        path = Path(relative)
        return path if path.is_absolute() else (self.root / path)

    @property
    def package_path(self) -> Path:
        """The channel zip written by the package stage."""
        return self.resolve(self.build.package_dir) / f"{self.name}.zip"

    @property
    def test_package_path(self) -> Path:
        """The test app zip written by the package stage in test mode."""
        return self.resolve(self.build.package_dir) / f"{self.name}Tests.zip"
