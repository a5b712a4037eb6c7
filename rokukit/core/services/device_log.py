"""Device log — tail the debug console until end-of-stream or interrupt."""

from __future__ import annotations

import logging
from collections.abc import Callable

from rokukit.core.services.device_common import (
    DEFAULT_DEBUG_PORT,
    DeviceConnectionError,
    iter_lines,
    open_console,
)

logger = logging.getLogger(__name__)


def tail_console(
    host: str,
    on_line: Callable[[str], None],
    *,
    port: int = DEFAULT_DEBUG_PORT,
    max_lines: int | None = None,
) -> int:
    """Forward every console line to ``on_line``; returns the number of lines.

    Blocks until the device closes the connection, ``max_lines`` lines were
    read, or the caller interrupts (KeyboardInterrupt propagates).
    """
    count = 0
    with open_console(host, port, timeout=None) as sock:
        try:
            for line in iter_lines(sock):
                on_line(line)
                count += 1
                if max_lines is not None and count >= max_lines:
                    break
        except OSError as e:
            raise DeviceConnectionError(f"Console connection lost: {e}") from e
    logger.info("Console closed after %d lines", count)
    return count
