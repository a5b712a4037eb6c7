"""
Shared test fixtures and configuration.
"""

import textwrap
from pathlib import Path

import pytest


def write_tree(root: Path, files: dict[str, str]) -> Path:
    """Create ``files`` ({relative path: content}) under ``root``."""
    for rel, content in files.items():
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)
    return root


def read_tree(root: Path) -> dict[str, bytes]:
    """{relative posix path: bytes} for every file under ``root``."""
    return {
        p.relative_to(root).as_posix(): p.read_bytes()
        for p in sorted(root.rglob("*"))
        if p.is_file()
    }


@pytest.fixture
def tree():
    """The ``write_tree`` helper as a fixture."""
    return write_tree


@pytest.fixture
def channel_project(tmp_path: Path) -> Path:
    """A channel with a base staging tree, Kotlin output and runtime modules.

    Layout (all relative to the returned root):

        roku.yml
        manifest
        components/screens/Home.xml     component with a Kotlin fragment
        components/Alpha.xml            component with a Kotlin fragment
        components/Plain.xml            pure XML component
        out/staging/...                 BrighterScript output
        build/brs/brs/main/source/...   Kotlin modules
        build/brs/brs/main/components/  Kotlin component fragments
        build/brs/runtime/...           runtime modules
    """
    (tmp_path / "roku.yml").write_text(textwrap.dedent("""\
        name: demo
        app_version: 2.1.0
    """))
    write_tree(tmp_path, {
        "manifest": "title=Demo\nmajor_version=2\n",
        "components/screens/Home.xml": (
            '<?xml version="1.0" encoding="utf-8"?>\n'
            '<component name="Home" extends="Scene">\n'
            "</component>\n"
        ),
        "components/Alpha.xml": (
            '<component name="Alpha" extends="Group">\n'
            "</component>\n"
        ),
        "components/Plain.xml": '<component name="Plain" extends="Group">\n</component>\n',
        "images/icon.png": "png",
        # base pipeline
        "out/staging/manifest": "title=Base\n",
        "out/staging/source/main.brs": "sub Main()\nend sub\n",
        "out/staging/components/screens/Home.xml": '<component name="Home">\n</component>\n',
        "out/staging/components/Alpha.xml": '<component name="Alpha">\n</component>\n',
        "out/staging/components/Plain.xml": '<component name="Plain">\n</component>\n',
        # overlay pipeline
        "build/brs/brs/main/source/Shared.brs": "function Shared_greet()\nend function\n",
        "build/brs/brs/main/source/net/Api.brs": "function Api_get()\nend function\n",
        "build/brs/brs/main/components/Home.brs": (
            "sub init()\n"
            "  Shared_greet()\n"
            "  Home_Layout_build(m.top)\n"
            "  x = ArrayList_new()\n"
            "end sub\n"
        ),
        "build/brs/brs/main/components/Home_Layout.brs": "function Home_Layout_build(t)\nend function\n",
        "build/brs/brs/main/components/Alpha.brs": (
            "sub init()\n"
            "  Shared_greet()\n"
            "  Alpha_helper()\n"
            "end sub\n"
        ),
        "build/brs/runtime/coreRuntime.brs": "' core\n",
        "build/brs/runtime/Kotlin.brs": "' kotlin\n",
        "build/brs/runtime/ArrayList.brs": "function ArrayList_new()\nend function\n",
        "build/brs/runtime/Unused.brs": "' unused\n",
        "build/brs/runtime/Empty.brs": "",
    })
    return tmp_path
