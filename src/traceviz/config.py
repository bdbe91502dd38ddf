"""traceviz configuration management.

Handles:
- Layout defaults (container width, viewport height)
- Child ordering policy and color mode
- .env file loading with precedence: CLI > .env > env vars
"""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from traceviz.trace.span_tree import ChildOrder

logger = logging.getLogger(__name__)

COLOR_MODES = ("status", "service")


class ConfigError(ValueError):
    """A configuration value is malformed or unknown."""


def _default_prefs_file() -> Path:
    return Path.home() / ".traceviz" / "prefs.json"


@dataclass
class Config:
    """traceviz runtime configuration."""

    container_width: float = 1200.0
    viewport_height: float = 600.0
    child_order: ChildOrder = ChildOrder.START_TIME
    color_by: str = "status"
    prefs_file: Path = field(default_factory=_default_prefs_file)
    env_file_path: Path | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "container_width": self.container_width,
            "viewport_height": self.viewport_height,
            "child_order": self.child_order.value,
            "color_by": self.color_by,
            "prefs_file": str(self.prefs_file),
            "env_file_path": str(self.env_file_path) if self.env_file_path else None,
        }


# Optional "export", a key, "=", then the rest of the line as the value
_ENV_LINE = re.compile(r"^(?:export\s+)?([A-Za-z_][A-Za-z0-9_.]*)\s*=\s*(.*)$")


def _unquote(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] and value[0] in ("'", '"'):
        return value[1:-1]
    return value


def parse_env_file(env_file: Path) -> dict[str, str]:
    """Parse ``KEY=value`` lines from a .env file.

    ``export`` prefixes and surrounding quotes are stripped; comments, blank
    lines and lines without a key are skipped. A missing file yields ``{}``.
    """
    if not env_file.exists():
        return {}

    result: dict[str, str] = {}
    for line_num, raw in enumerate(env_file.read_text(encoding="utf-8").splitlines(), 1):
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        match = _ENV_LINE.match(line)
        if match is None:
            logger.debug("Skipping line %d of %s: not KEY=value", line_num, env_file)
            continue
        key, value = match.groups()
        result[key] = _unquote(value.strip())
    return result


def _find_env_file(start: Path | None = None) -> Path | None:
    """Nearest .env at or above ``start``; the search ends at a git root or home."""
    current = (start or Path.cwd()).resolve()
    try:
        home: Path | None = Path.home()
    except RuntimeError:
        home = None

    for directory in (current, *current.parents):
        candidate = directory / ".env"
        if candidate.exists():
            return candidate
        if (directory / ".git").exists() or directory == home:
            return None
    return None


def _parse_float(env_vars: dict[str, str], key: str, default: float) -> float:
    raw = env_vars.get(key)
    if raw is None or raw == "":
        return default
    try:
        value = float(raw)
    except ValueError as e:
        raise ConfigError(f"{key} must be a number, got {raw!r}") from e
    if value < 0:
        raise ConfigError(f"{key} must not be negative, got {raw!r}")
    return value


def load_config(
    env_file: str | Path | None = None,
    cli_overrides: dict[str, Any] | None = None,
) -> Config:
    """Load configuration with precedence: CLI > .env > env vars.

    Args:
        env_file: Path to .env file to load (auto-discovered when omitted)
        cli_overrides: Values from the command line; None entries are ignored

    Returns:
        Loaded Config instance

    Raises:
        ConfigError: If a value is malformed or an enum value is unknown
    """
    cli_overrides = {k: v for k, v in (cli_overrides or {}).items() if v is not None}

    env_vars = dict(os.environ)

    env_file_path: Path | None = Path(env_file) if env_file else _find_env_file()
    if env_file_path and env_file_path.exists():
        env_vars.update(parse_env_file(env_file_path))

    child_order_raw = cli_overrides.get("child_order") or env_vars.get("TRACEVIZ_CHILD_ORDER") or ChildOrder.START_TIME.value
    try:
        child_order = ChildOrder(child_order_raw)
    except ValueError as e:
        choices = ", ".join(c.value for c in ChildOrder)
        raise ConfigError(f"Invalid child order {child_order_raw!r} (expected one of: {choices})") from e

    color_by = cli_overrides.get("color_by") or env_vars.get("TRACEVIZ_COLOR_BY") or "status"
    if color_by not in COLOR_MODES:
        raise ConfigError(f"Invalid color mode {color_by!r} (expected one of: {', '.join(COLOR_MODES)})")

    prefs_raw = cli_overrides.get("prefs_file") or env_vars.get("TRACEVIZ_PREFS_FILE")
    prefs_file = Path(prefs_raw).expanduser() if prefs_raw else _default_prefs_file()

    container_width = cli_overrides.get("container_width")
    if container_width is None:
        container_width = _parse_float(env_vars, "TRACEVIZ_CONTAINER_WIDTH", 1200.0)

    viewport_height = cli_overrides.get("viewport_height")
    if viewport_height is None:
        viewport_height = _parse_float(env_vars, "TRACEVIZ_VIEWPORT_HEIGHT", 600.0)

    return Config(
        container_width=float(container_width),
        viewport_height=float(viewport_height),
        child_order=child_order,
        color_by=color_by,
        prefs_file=prefs_file,
        env_file_path=env_file_path,
    )
