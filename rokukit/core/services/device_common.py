"""
Device shared helpers — error taxonomy and the debug-console connection.

Every device failure is a ``DeviceError``; callers that only care about
"the device step failed" catch the base class, the CLI reports the
specific subclass.
"""

from __future__ import annotations

import logging
import socket
from collections.abc import Iterator

logger = logging.getLogger(__name__)

DEVICE_USERNAME = "rokudev"
DEFAULT_DEBUG_PORT = 8085
DEFAULT_CONNECT_TIMEOUT = 30.0


class DeviceError(Exception):
    """Base class for device protocol failures."""


class DeviceAuthError(DeviceError):
    """The device rejected the credentials."""


class DeviceConnectionError(DeviceError):
    """The device is unreachable or stopped responding."""


class DeviceInstallError(DeviceError):
    """The device reported a failed install, or answered with something unparseable."""

    def __init__(self, message: str, *, status: int | None = None, body: str = "") -> None:
        super().__init__(message)
        self.status = status
        self.body = body


class TestRunTimeoutError(DeviceError):
    """The test run exceeded its wall-clock budget."""

    __test__ = False


class TestFailuresError(DeviceError):
    """The harness reported failing tests."""

    __test__ = False

    def __init__(self, failed: int) -> None:
        super().__init__(f"{failed} test(s) failed")
        self.failed = failed


def open_console(
    host: str,
    port: int = DEFAULT_DEBUG_PORT,
    *,
    timeout: float | None = DEFAULT_CONNECT_TIMEOUT,
) -> socket.socket:
    """Connect to the device's debug console.

    Raises:
        DeviceConnectionError: The connection could not be established.
    """
    logger.info("Connecting to debug console at %s:%d", host, port)
    try:
        return socket.create_connection((host, port), timeout=timeout)
    except OSError as e:
        raise DeviceConnectionError(f"Cannot connect to {host}:{port}: {e}") from e


def iter_lines(sock: socket.socket, *, encoding: str = "utf-8") -> Iterator[str]:
    """Yield decoded lines (without line endings) until end-of-stream.

    Socket timeouts propagate to the caller.
    """
    buffer = b""
    while True:
        chunk = sock.recv(4096)
        if not chunk:
            break
        buffer += chunk
        while b"\n" in buffer:
            raw, buffer = buffer.split(b"\n", 1)
            yield raw.decode(encoding, errors="replace").rstrip("\r")
    if buffer:
        yield buffer.decode(encoding, errors="replace").rstrip("\r")
