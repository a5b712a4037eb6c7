"""
Tests for the hybrid stage and the base compiler runner.
"""

import sys
from pathlib import Path

import pytest

from rokukit.core.services.compiler import CompileError, run_compiler
from rokukit.core.services.hybrid_stage import hybrid_destination, stage_hybrid_sources


class TestStageHybridSources:
    def test_copies_runtime_then_source(self, tmp_path: Path, tree):
        tree(tmp_path / "runtime", {"coreRuntime.brs": "core", "Empty.brs": ""})
        tree(tmp_path / "overlay", {"Shared.brs": "shared", "net/Api.brs": "api", "notes.txt": "x"})
        dest = hybrid_destination(tmp_path / "src")

        result = stage_hybrid_sources(tmp_path / "overlay", tmp_path / "runtime", dest)

        assert dest == tmp_path / "src" / "source" / "kotlin"
        assert (dest / "coreRuntime.brs").read_text() == "core"
        assert (dest / "Shared.brs").read_text() == "shared"
        assert (dest / "net" / "Api.brs").read_text() == "api"
        assert not (dest / "Empty.brs").exists()
        assert not (dest / "notes.txt").exists()
        assert result.runtime_copied == 1
        assert result.runtime_empty == 1
        assert result.source_copied == 2

    def test_source_overrides_runtime_name(self, tmp_path: Path, tree):
        tree(tmp_path / "runtime", {"Util.brs": "runtime"})
        tree(tmp_path / "overlay", {"Util.brs": "user"})
        dest = tmp_path / "dest"
        stage_hybrid_sources(tmp_path / "overlay", tmp_path / "runtime", dest)
        assert (dest / "Util.brs").read_text() == "user"

    def test_destination_cleaned(self, tmp_path: Path, tree):
        dest = tree(tmp_path / "dest", {"Stale.brs": "old"})
        stage_hybrid_sources(None, None, dest)
        assert dest.is_dir()
        assert list(dest.iterdir()) == []


class TestRunCompiler:
    def test_success_streams_lines(self, tmp_path: Path):
        (tmp_path / "staging").mkdir()
        (tmp_path / "staging" / "a.brs").write_text("x")
        seen: list[str] = []
        cmd = f'"{sys.executable}" -c "print(\'one\'); print(\'two\')"'

        result = run_compiler(cmd, cwd=tmp_path, staging=tmp_path / "staging", on_line=seen.append)

        assert result.returncode == 0
        assert seen == ["one", "two"]
        assert result.staged_files == 1

    def test_non_zero_exit(self, tmp_path: Path):
        cmd = f'"{sys.executable}" -c "import sys; print(\'boom\'); sys.exit(3)"'
        with pytest.raises(CompileError) as exc:
            run_compiler(cmd, cwd=tmp_path)
        assert exc.value.returncode == 3
        assert "boom" in exc.value.output

    def test_missing_command(self, tmp_path: Path):
        with pytest.raises(CompileError, match="not found"):
            run_compiler("definitely-not-a-real-bsc-binary", cwd=tmp_path)
