"""
Device install — sideload a package through the developer web server.

Protocol:

    POST http://<ip>/plugin_install        multipart: mysubmit, archive, passwd
    ← 401 + WWW-Authenticate: Digest ...   (first attempt, no credentials)
    POST again with Authorization: Digest  (username "rokudev", MD5)
    ← HTML page embedding JSON.parse('{"messages":[...]}')

The outcome comes from the embedded messages, not the status code: the
device answers 200 for a rejected package too.
"""

from __future__ import annotations

import hashlib
import json
import logging
import re
import secrets
import time
import urllib.error
import urllib.request
from dataclasses import dataclass, field
from pathlib import Path

from rokukit.core.services.device_common import (
    DEVICE_USERNAME,
    DeviceAuthError,
    DeviceConnectionError,
    DeviceInstallError,
)

logger = logging.getLogger(__name__)

INSTALL_PATH = "/plugin_install"
INSTALL_TIMEOUT = 60

_CHALLENGE_PARAM = re.compile(r'(\w+)=(?:"([^"]+)"|([^,\s]+))')
_MESSAGES_BLOB = re.compile(r"JSON\.parse\('(\{.*?\"messages\":\[.*?\].*?\})'\)", re.DOTALL)
_MESSAGE_ITEM = re.compile(r'"text":"([^"]+)"[^}]*"type":"([^"]+)"')


# ── Digest authentication ─────────────────────────────────────────


def parse_digest_challenge(header: str) -> dict[str, str]:
    """``WWW-Authenticate: Digest realm="r", nonce="n", qop="auth"`` → dict."""
    params: dict[str, str] = {}
    for match in _CHALLENGE_PARAM.finditer(header):
        key, quoted, bare = match.groups()
        params[key] = quoted if quoted is not None else bare
    return params


def _md5(text: str) -> str:
    return hashlib.md5(text.encode("utf-8")).hexdigest()


def digest_response(
    *,
    username: str,
    password: str,
    method: str,
    uri: str,
    realm: str,
    nonce: str,
    qop: str | None = None,
    nc: str = "00000001",
    cnonce: str = "",
) -> str:
    """The ``response`` value of RFC 2617 Digest (MD5)."""
    ha1 = _md5(f"{username}:{realm}:{password}")
    ha2 = _md5(f"{method}:{uri}")
    if qop:
        return _md5(f"{ha1}:{nonce}:{nc}:{cnonce}:{qop}:{ha2}")
    return _md5(f"{ha1}:{nonce}:{ha2}")


def build_digest_header(
    challenge: dict[str, str],
    *,
    password: str,
    username: str = DEVICE_USERNAME,
    method: str = "POST",
    uri: str = INSTALL_PATH,
    cnonce: str | None = None,
) -> str:
    """``Authorization`` header value answering ``challenge``."""
    realm = challenge.get("realm", "")
    nonce = challenge.get("nonce", "")
    qop = challenge.get("qop")
    opaque = challenge.get("opaque")
    nc = "00000001"
    # a multi-valued qop ("auth,auth-int") is answered with plain auth
    if qop and "," in qop:
        qop = "auth"
    cnonce = cnonce or secrets.token_hex(8)

    response = digest_response(
        username=username, password=password, method=method, uri=uri,
        realm=realm, nonce=nonce, qop=qop, nc=nc, cnonce=cnonce,
    )

    parts = [
        f'username="{username}"',
        f'realm="{realm}"',
        f'nonce="{nonce}"',
        f'uri="{uri}"',
        f'response="{response}"',
    ]
    if qop:
        parts += [f"qop={qop}", f"nc={nc}", f'cnonce="{cnonce}"']
    if opaque:
        parts.append(f'opaque="{opaque}"')
    return "Digest " + ", ".join(parts)


# ── Device messages ───────────────────────────────────────────────


@dataclass(frozen=True)
class DeviceMessage:
    text: str
    type: str


def parse_device_messages(body: str) -> list[DeviceMessage]:
    """Extract the status messages embedded in the install page."""
    match = _MESSAGES_BLOB.search(body)
    if match is None:
        return []
    blob = match.group(1).replace("\\'", "'")

    try:
        data = json.loads(blob)
    except json.JSONDecodeError:
        data = None
    if isinstance(data, dict) and isinstance(data.get("messages"), list):
        return [
            DeviceMessage(text=str(m.get("text", "")), type=str(m.get("type", "")))
            for m in data["messages"]
            if isinstance(m, dict)
        ]

    # not strict JSON; fall back to field matching
    return [
        DeviceMessage(text=text.replace("\\n", "\n"), type=kind)
        for text, kind in _MESSAGE_ITEM.findall(blob)
    ]


# ── HTTP ──────────────────────────────────────────────────────────


@dataclass
class HttpResponse:
    status: int
    body: str = ""
    www_authenticate: str | None = None


def encode_multipart(archive_name: str, archive: bytes, boundary: str) -> bytes:
    """The three form fields the install page posts."""
    crlf = b"\r\n"
    out = [
        f"--{boundary}".encode(),
        b'Content-Disposition: form-data; name="mysubmit"',
        b"",
        b"Install",
        f"--{boundary}".encode(),
        f'Content-Disposition: form-data; name="archive"; filename="{archive_name}"'.encode(),
        b"Content-Type: application/zip",
        b"",
        archive,
        f"--{boundary}".encode(),
        b'Content-Disposition: form-data; name="passwd"',
        b"",
        b"",
        f"--{boundary}--".encode(),
        b"",
    ]
    return crlf.join(out)


def post_package(
    url: str,
    archive_name: str,
    archive: bytes,
    *,
    authorization: str | None = None,
    timeout: float = INSTALL_TIMEOUT,
) -> HttpResponse:
    """POST the multipart form; HTTP error statuses are returned, not raised.

    Raises:
        DeviceConnectionError: No HTTP response at all.
    """
    boundary = f"----RokuInstall{int(time.time() * 1000)}"
    data = encode_multipart(archive_name, archive, boundary)
    headers = {"Content-Type": f"multipart/form-data; boundary={boundary}"}
    if authorization:
        headers["Authorization"] = authorization

    req = urllib.request.Request(url, data=data, headers=headers, method="POST")
    try:
        with urllib.request.urlopen(req, timeout=timeout) as resp:
            body = resp.read().decode("utf-8", errors="replace")
            return HttpResponse(resp.status, body, resp.headers.get("WWW-Authenticate"))
    except urllib.error.HTTPError as e:
        try:
            body = e.read().decode("utf-8", errors="replace")
        except OSError:
            body = ""
        return HttpResponse(e.code, body, e.headers.get("WWW-Authenticate") if e.headers else None)
    except (urllib.error.URLError, OSError) as e:
        reason = getattr(e, "reason", e)
        raise DeviceConnectionError(f"Cannot reach {url}: {reason}") from e


# ── Install ───────────────────────────────────────────────────────


@dataclass
class InstallResult:
    host: str
    package: str
    status: int = 0
    authenticated: bool = False
    messages: list[DeviceMessage] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "host": self.host,
            "package": self.package,
            "status": self.status,
            "authenticated": self.authenticated,
            "messages": [{"text": m.text, "type": m.type} for m in self.messages],
        }


def interpret_response(response: HttpResponse) -> list[DeviceMessage]:
    """Decide the outcome of an install response.

    Returns the device messages on success.

    Raises:
        DeviceAuthError: Still 401.
        DeviceInstallError: Error messages, or a non-2xx with no success message.
    """
    messages = parse_device_messages(response.body)
    errors = [m for m in messages if m.type == "error"]
    successes = [m for m in messages if m.type == "success"]

    if response.status == 401:
        raise DeviceAuthError("Authentication failed. Check your device password.")
    if errors:
        text = "\n".join(m.text for m in errors)
        raise DeviceInstallError(f"Install failed:\n{text}", status=response.status, body=response.body)
    if any("install success" in m.text.lower() for m in successes):
        logger.info("Successfully installed to device")
        return messages
    if 200 <= response.status < 300 or successes:
        for m in successes:
            logger.info(m.text)
        logger.info("Device responded with status %d", response.status)
        return messages
    raise DeviceInstallError(
        f"Failed to install: HTTP {response.status}\n{response.body[:500]}",
        status=response.status,
        body=response.body,
    )


def install_package(
    host: str,
    package: Path,
    password: str,
    *,
    timeout: float = INSTALL_TIMEOUT,
    cnonce: str | None = None,
) -> InstallResult:
    """Sideload ``package`` onto the device at ``host``.

    The first POST goes out without credentials; a 401 challenge is answered
    once with Digest.  No further retries.
    """
    try:
        archive = package.read_bytes()
    except OSError as e:
        raise DeviceInstallError(f"Cannot read package {package}: {e}") from e

    url = f"http://{host}{INSTALL_PATH}"
    result = InstallResult(host=host, package=str(package))
    logger.info("Installing %s to device at %s", package.name, host)

    response = post_package(url, package.name, archive, timeout=timeout)

    if response.status == 401:
        if not response.www_authenticate:
            raise DeviceAuthError("Device returned 401 but no WWW-Authenticate header")
        challenge = parse_digest_challenge(response.www_authenticate)
        header = build_digest_header(challenge, password=password, cnonce=cnonce)
        logger.debug("Answering digest challenge (realm=%s)", challenge.get("realm", ""))
        result.authenticated = True
        response = post_package(url, package.name, archive, authorization=header, timeout=timeout)

    result.status = response.status
    result.messages = interpret_response(response)
    return result
