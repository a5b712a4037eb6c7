"""
Configuration loader — reads roku.yml into a RokuProject.

roku.yml is found by walking up from the working directory, parsed with
PyYAML and validated against the pydantic models.  Device credentials are
usually kept out of roku.yml; ``resolve_device()`` layers them in from
``local.properties`` and the environment.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

import yaml

from rokukit.core.models.project import DeviceSettings, RokuProject

logger = logging.getLogger(__name__)

PROJECT_CONFIG_FILE = "roku.yml"
LOCAL_PROPERTIES_FILE = "local.properties"

ENV_DEVICE_IP = "ROKU_DEVICE_IP"
ENV_DEVICE_PASSWORD = "ROKU_PASSWORD"

PROP_DEVICE_IP = "roku.deviceIp"
PROP_DEVICE_PASSWORD = "roku.devicePassword"


class ConfigError(Exception):
    """Raised when project configuration is invalid or missing."""


def find_project_file(start_dir: Path | None = None) -> Path | None:
    """Search for roku.yml starting from the given directory, walking up.

    Args:
        start_dir: Directory to start searching from (default: cwd).

    Returns:
        Path to roku.yml, or None if not found.
    """
    current = (start_dir or Path.cwd()).resolve()

    for _ in range(20):  # safety limit
        candidate = current / PROJECT_CONFIG_FILE
        if candidate.is_file():
            return candidate
        parent = current.parent
        if parent == current:
            break
        current = parent

    return None


def load_project(path: Path | None = None) -> RokuProject:
    """Load and validate roku.yml.

    Args:
        path: Explicit path to roku.yml. If None, searches upward.

    Returns:
        Validated RokuProject with ``root`` set to the file's directory.

    Raises:
        ConfigError: If the file is missing or invalid.
    """
    if path is None:
        path = find_project_file()

    if path is None:
        raise ConfigError(
            f"No {PROJECT_CONFIG_FILE} found. "
            "Create one next to your channel sources, or specify --config."
        )

    if not path.is_file():
        raise ConfigError(f"Config file not found: {path}")

    logger.debug("Loading project config from %s", path)

    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Expected a YAML mapping in {path}, got {type(data).__name__}")

    # Either flat, or app identity under "app:" with sections alongside
    app_data = dict(data["app"]) if isinstance(data.get("app"), dict) else dict(data)
    for key in ("version", "layout", "build", "device", "tests"):
        if key in data and key not in app_data:
            app_data[key] = data[key]
    app_data.pop("app", None)

    try:
        project = RokuProject.model_validate(app_data)
    except Exception as e:
        raise ConfigError(f"Invalid project configuration: {e}") from e

    project.root = path.parent.resolve()
    logger.info("Loaded channel '%s' from %s", project.name, path)
    return project


def read_local_properties(root: Path) -> dict[str, str]:
    """Parse ``key=value`` lines of local.properties (missing file → {})."""
    path = root / LOCAL_PROPERTIES_FILE
    if not path.is_file():
        return {}

    props: dict[str, str] = {}
    try:
        lines = path.read_text(encoding="utf-8").splitlines()
    except OSError as e:
        logger.warning("Cannot read %s: %s", path, e)
        return {}

    for line in lines:
        stripped = line.strip()
        if not stripped or stripped.startswith(("#", "!")):
            continue
        sep = min((i for i in (stripped.find("="), stripped.find(":")) if i >= 0), default=-1)
        if sep < 0:
            continue
        props[stripped[:sep].strip()] = stripped[sep + 1:].strip()
    return props


def resolve_device(
    project: RokuProject | None,
    *,
    ip: str | None = None,
    password: str | None = None,
    root: Path | None = None,
) -> DeviceSettings:
    """Resolve the device address and password.

    Precedence per field: explicit argument > local.properties >
    environment > roku.yml ``device:`` section.  Blank values are returned
    as-is; the device tasks decide whether that is fatal.
    """
    base_dir = root or (project.root if project else Path.cwd())
    props = read_local_properties(base_dir)
    configured = project.device if project else DeviceSettings()

    def _pick(explicit: str | None, prop: str, env: str, fallback: str) -> str:
        for candidate in (explicit, props.get(prop), os.environ.get(env), fallback):
            if candidate:
                return candidate
        return ""

    return DeviceSettings(
        ip=_pick(ip, PROP_DEVICE_IP, ENV_DEVICE_IP, configured.ip),
        password=_pick(password, PROP_DEVICE_PASSWORD, ENV_DEVICE_PASSWORD, configured.password),
        debug_port=configured.debug_port,
    )


def require_device_ip(device: DeviceSettings) -> str:
    """Return the device IP or raise the configuration error."""
    if not device.ip.strip():
        raise ConfigError(
            "Device IP not configured. Set roku.deviceIp in local.properties "
            f"or the {ENV_DEVICE_IP} environment variable."
        )
    return device.ip.strip()


def require_device_password(device: DeviceSettings) -> str:
    """Return the device password or raise the configuration error."""
    if not device.password:
        raise ConfigError(
            "Device password not configured. Set roku.devicePassword in local.properties "
            f"or the {ENV_DEVICE_PASSWORD} environment variable."
        )
    return device.password
