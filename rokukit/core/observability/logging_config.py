"""
Logging configuration — one setup call for the CLI entrypoint.

main.py calls ``setup_logging(level_from_flags(...))`` once per process.
Every module that does ``logger = logging.getLogger(__name__)`` inherits
this config; the build stages report each placed file and rewritten
manifest at INFO, so ``--verbose`` doubles as a build trace.

Level precedence:
    --debug / --verbose / --quiet  >  ROKUKIT_LOG_LEVEL  >  WARNING

A second, always-detailed sink can be added with ROKUKIT_LOG_FILE
(level from ROKUKIT_LOG_FILE_LEVEL, else the console level).
"""

from __future__ import annotations

import logging
import os
import sys

ENV_LEVEL = "ROKUKIT_LOG_LEVEL"
ENV_FILE = "ROKUKIT_LOG_FILE"
ENV_FILE_LEVEL = "ROKUKIT_LOG_FILE_LEVEL"

# level → (format, datefmt) for the console
_CONSOLE_FORMATS: tuple[tuple[int, str, str | None], ...] = (
    (logging.DEBUG, "%(asctime)s %(levelname)-5s %(name)s:%(lineno)d — %(message)s", "%H:%M:%S"),
    (logging.INFO, "%(asctime)s [%(name)s] %(message)s", "%H:%M:%S"),
)
_FMT_PLAIN = "%(message)s"

_FMT_FILE = "%(asctime)s %(levelname)-5s %(name)s:%(lineno)d — %(message)s"
_DATEFMT_FILE = "%Y-%m-%d %H:%M:%S"


def level_from_flags(*, debug: bool = False, verbose: bool = False, quiet: bool = False) -> str:
    """Map the global CLI flags to a level name."""
    if debug:
        return "DEBUG"
    if verbose:
        return "INFO"
    if quiet:
        return "ERROR"
    return os.environ.get(ENV_LEVEL, "WARNING")


def setup_logging(
    level: str = "WARNING",
    log_file: str | None = None,
    log_file_level: str | None = None,
) -> None:
    """Install console (and optional file) handlers on the root logger.

    Args:
        level: Console level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_file: Optional log file path; defaults to ``$ROKUKIT_LOG_FILE``.
        log_file_level: Level for the file sink; defaults to
            ``$ROKUKIT_LOG_FILE_LEVEL`` and then to ``level``.
    """
    console_level = parse_level(level)
    log_file = log_file or os.environ.get(ENV_FILE)
    log_file_level = log_file_level or os.environ.get(ENV_FILE_LEVEL)

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(_console_handler(console_level))

    effective = console_level
    if log_file:
        file_level = parse_level(log_file_level) if log_file_level else console_level
        root.addHandler(_file_handler(log_file, file_level))
        effective = min(effective, file_level)
    root.setLevel(effective)

    logging.raiseExceptions = False


def parse_level(level: str | None) -> int:
    """Level name → numeric level; unknown names fall back to WARNING."""
    if not level:
        return logging.WARNING
    numeric = getattr(logging, level.upper(), None)
    return numeric if isinstance(numeric, int) else logging.WARNING


def _console_handler(level: int) -> logging.Handler:
    fmt, datefmt = _FMT_PLAIN, None
    for threshold, candidate_fmt, candidate_datefmt in _CONSOLE_FORMATS:
        if level <= threshold:
            fmt, datefmt = candidate_fmt, candidate_datefmt
            break
    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt, datefmt=datefmt))
    return handler


def _file_handler(path: str, level: int) -> logging.Handler:
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(_FMT_FILE, datefmt=_DATEFMT_FILE))
    return handler
