"""
Base compiler runner — invokes ``bsc`` and streams its output.

The compiler itself is an external tool; this module only runs the
configured command in the project directory, forwards every output line to
the log (and an optional callback), and turns a non-zero exit into
``CompileError``.
"""

from __future__ import annotations

import logging
import shlex
import subprocess
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_BSC_COMMAND = "npx bsc"


class CompileError(Exception):
    """The base compiler could not be run or exited non-zero."""

    def __init__(self, message: str, *, returncode: int | None = None, output: str = "") -> None:
        super().__init__(message)
        self.returncode = returncode
        self.output = output


@dataclass
class CompileResult:
    command: list[str]
    returncode: int = 0
    lines: list[str] = field(default_factory=list)
    staged_files: int = 0

    def to_dict(self) -> dict:
        return {
            "command": " ".join(self.command),
            "returncode": self.returncode,
            "lines": len(self.lines),
            "staged_files": self.staged_files,
        }


def run_compiler(
    command: str = DEFAULT_BSC_COMMAND,
    *,
    cwd: Path,
    staging: Path | None = None,
    on_line: Callable[[str], None] | None = None,
    timeout: int = 600,
) -> CompileResult:
    """Run ``command`` in ``cwd``; stdout and stderr are merged.

    Raises:
        CompileError: Command not found, timed out, or exited non-zero.
    """
    cmd = shlex.split(command)
    if not cmd:
        raise CompileError("Empty compiler command")

    result = CompileResult(command=cmd)
    logger.info("Compiling BrighterScript sources in %s: %s", cwd, command)

    try:
        proc = subprocess.Popen(
            cmd,
            cwd=str(cwd),
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
        )
    except FileNotFoundError as e:
        raise CompileError(f"Compiler not found: {cmd[0]}") from e

    assert proc.stdout is not None
    with proc:
        for raw in proc.stdout:
            line = raw.rstrip("\n")
            result.lines.append(line)
            logger.info("  [bsc] %s", line)
            if on_line is not None:
                on_line(line)
        try:
            result.returncode = proc.wait(timeout=timeout)
        except subprocess.TimeoutExpired as e:
            proc.kill()
            raise CompileError(f"Compiler timed out after {timeout}s") from e

    if result.returncode != 0:
        output = "\n".join(result.lines)
        raise CompileError(
            f"BrighterScript compilation failed with exit code {result.returncode}",
            returncode=result.returncode,
            output=output,
        )

    if staging is not None:
        if staging.is_dir():
            result.staged_files = sum(1 for p in staging.rglob("*") if p.is_file())
            logger.info("Compilation complete: %d files in %s", result.staged_files, staging)
        else:
            logger.warning("Staging directory was not created: %s", staging)
    return result
