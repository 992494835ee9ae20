"""
Node configuration.

Single source for runtime configuration. Values come from environment variables,
optionally loaded from standard env files.

Priority (lowest -> highest):
1) /etc/rc-component-core/node.env (system install)
2) ~/.config/rc-component-core/.env (user install)
3) ./.env (project override)
4) process environment variables (always win)
"""

from __future__ import annotations

import math
import os
import sys
from dataclasses import dataclass
from importlib.metadata import PackageNotFoundError, version as _pkg_version
from pathlib import Path
from typing import Iterable, Optional

from dotenv import load_dotenv


class ConfigError(ValueError):
    """Raised when configuration is missing or invalid."""


def package_version() -> str:
    try:
        return _pkg_version("rc-component-core")
    except PackageNotFoundError:
        return "0.0.0+dev"


def _env_paths() -> Iterable[Path]:
    # 1) system install
    yield Path("/etc/rc-component-core/node.env")

    # 2) user config dir
    if sys.platform == "win32":
        base = Path(os.environ.get("APPDATA", str(Path.home())))
    else:
        base = Path(os.environ.get("XDG_CONFIG_HOME", str(Path.home() / ".config")))
    yield base / "rc-component-core" / ".env"

    # 3) project override
    yield Path(".env")


def _require_env(key: str) -> str:
    v = os.getenv(key)
    if v is None or v == "":
        raise ConfigError(f"Missing required environment variable: {key}")
    return v


def _optional_env(key: str) -> Optional[str]:
    v = os.getenv(key)
    return v if v else None


def _parse_int(key: str, raw: str) -> int:
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigError(f"Invalid integer for {key}: {raw!r}") from exc


def _parse_float(key: str, raw: str) -> float:
    try:
        value = float(raw)
    except ValueError as exc:
        raise ConfigError(f"Invalid number for {key}: {raw!r}") from exc
    if not math.isfinite(value):
        raise ConfigError(f"{key} must be finite: {raw!r}")
    return value


@dataclass(frozen=True, slots=True)
class NodeConfig:
    mqtt_host: str
    mqtt_port: int
    mqtt_username: Optional[str]
    mqtt_password: Optional[str]
    node_id: str
    version: str
    desired_hz: float
    dead_zone: float
    topic_cmd_vel: str
    topic_rc_in: str
    topic_take_over: str
    status_interval_s: float  # 0 disables periodic status
    rc_timeout_s: float  # 0 disables the RC input watchdog


def load_config(*, dotenv_enabled: bool = True) -> NodeConfig:
    """
    Load config by reading env files and then validating environment variables.

    Returns an immutable NodeConfig. Raises ConfigError on failure.
    """
    if dotenv_enabled:
        for p in _env_paths():
            if p.is_file():
                # do not override existing env vars; later files can fill missing
                load_dotenv(p, override=False)

    mqtt_host = _require_env("MQTT_HOST")
    mqtt_port = _parse_int("MQTT_PORT", _require_env("MQTT_PORT"))
    if not (1 <= mqtt_port <= 65535):
        raise ConfigError(f"MQTT_PORT out of range: {mqtt_port}")

    desired_hz = _parse_float("RC_DESIRED_HZ", os.getenv("RC_DESIRED_HZ", "200.0"))
    if desired_hz <= 0:
        raise ConfigError("RC_DESIRED_HZ must be > 0")

    dead_zone = _parse_float("RC_DEAD_ZONE", os.getenv("RC_DEAD_ZONE", "0.05"))
    if not (0.0 <= dead_zone < 1.0):
        raise ConfigError("RC_DEAD_ZONE must be in [0, 1)")

    status_interval_s = _parse_float("RC_STATUS_INTERVAL", os.getenv("RC_STATUS_INTERVAL", "1.0"))
    if status_interval_s < 0:
        raise ConfigError("RC_STATUS_INTERVAL must be >= 0 (0 disables)")

    rc_timeout_s = _parse_float("RC_TIMEOUT", os.getenv("RC_TIMEOUT", "0"))
    if rc_timeout_s < 0:
        raise ConfigError("RC_TIMEOUT must be >= 0 (0 disables)")

    return NodeConfig(
        mqtt_host=mqtt_host,
        mqtt_port=mqtt_port,
        mqtt_username=_optional_env("MQTT_USERNAME"),
        mqtt_password=_optional_env("MQTT_PASSWORD"),
        node_id=os.getenv("RC_NODE_ID") or "robotnik",
        version=package_version(),
        desired_hz=desired_hz,
        dead_zone=dead_zone,
        topic_cmd_vel=os.getenv("RC_TOPIC_CMD_VEL") or "/cmd_vel",
        topic_rc_in=os.getenv("RC_TOPIC_RC_IN") or "/mavros/rc/in",
        topic_take_over=os.getenv("RC_TOPIC_TAKE_OVER") or "take_over",
        status_interval_s=status_interval_s,
        rc_timeout_s=rc_timeout_s,
    )
