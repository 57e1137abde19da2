"""Flowkeeper configuration management.

Loads configuration from .flowkeeper/config.yaml with sensible defaults.
All settings can be overridden via environment variables (FLOWKEEPER_*).

Config locations (in priority order):
1. Explicit path passed to load_config()
2. .flowkeeper/config.yaml (project-local)
3. ~/.flowkeeper/config.yaml (user-global)
4. Built-in defaults

Thread Safety:
    Uses threading.Lock for thread-safe lazy initialization.
"""

from __future__ import annotations

import logging
import os
import threading
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any

import yaml

from flowkeeper.foundation.errors import config_error

logger = logging.getLogger(__name__)

ENV_PREFIX = "FLOWKEEPER_"


@dataclass(frozen=True, slots=True)
class FlowConfig:
    """Configuration for talking to flow servers."""

    path_to_flow: str = "flow"
    """Binary name or path of the flow executable."""

    config_marker: str = ".flowconfig"
    """File whose nearest enclosing directory is the flow root."""

    max_attempts: int = 5
    """Total invocations per request before giving up on a missing server."""

    no_server_pattern: str = "There is no flow server running"
    """Regex searched in stderr to detect a root with no running server."""

    no_auto_start_flag: str = "--no-auto-start"
    """Flag that stops one-shot commands from starting a server themselves."""

    autocomplete_token: str = "AUTO332"
    """Marker inserted at the cursor for autocomplete requests."""

    crash_signatures: tuple[tuple[int | None, str | None], ...] = ((2, None),)
    """(exit code, signal name) pairs that count as a server crash."""

    dedupe_spawns: bool = True
    """Serialize spawns per root and skip them while a server is tracked."""

    retry_delay_seconds: float = 0.0
    """Pause between spawning a server and retrying the command."""

    extra_env: dict[str, str] = field(default_factory=dict)
    """Variables added to the inherited environment of every flow process."""


@dataclass(frozen=True, slots=True)
class FlowkeeperConfig:
    """Root configuration for Flowkeeper."""

    flow: FlowConfig = field(default_factory=FlowConfig)
    """Flow server supervision settings."""

    debug: bool = False
    """Enable debug logging by default."""


# Global config instance (lazy-loaded, thread-safe)
_config: FlowkeeperConfig | None = None
_config_lock = threading.Lock()


def _deep_update(base: dict, updates: dict) -> dict:
    """Recursively update a dict with another dict."""
    for key, value in updates.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_update(base[key], value)
        else:
            base[key] = value
    return base


def _coerce(value: str) -> Any:
    if value.lower() in ("true", "false"):
        return value.lower() == "true"
    if value.isdigit() or (value.startswith("-") and value[1:].isdigit()):
        return int(value)
    try:
        return float(value)
    except ValueError:
        return value


def _apply_env_overrides(config_dict: dict, environ: dict[str, str] | None = None) -> dict:
    """Apply environment variable overrides.

    Environment variables follow pattern: FLOWKEEPER_SECTION_KEY, or
    FLOWKEEPER_KEY for top-level keys.

    Examples:
        FLOWKEEPER_FLOW_PATH_TO_FLOW=/opt/flow/bin/flow
        FLOWKEEPER_FLOW_MAX_ATTEMPTS=8
        FLOWKEEPER_DEBUG=true
    """
    environ = os.environ if environ is None else environ
    sections = {"flow": set(FlowConfig.__dataclass_fields__)}
    top_level = {"debug"}

    for key, value in environ.items():
        if not key.startswith(ENV_PREFIX):
            continue
        path_str = key[len(ENV_PREFIX):].lower()

        if path_str in top_level:
            config_dict[path_str] = _coerce(value)
            continue

        for section, keys in sections.items():
            if not path_str.startswith(section + "_"):
                continue
            name = path_str[len(section) + 1:]
            # Structured values are only settable from YAML
            if name in keys and name not in ("crash_signatures", "extra_env"):
                config_dict.setdefault(section, {})[name] = _coerce(value)
            break

    return config_dict


def _parse_signatures(raw: Any) -> tuple[tuple[int | None, str | None], ...]:
    signatures = []
    for entry in raw or ():
        if isinstance(entry, dict):
            code, sig = entry.get("code"), entry.get("signal")
        elif isinstance(entry, (list, tuple)) and len(entry) == 2:
            code, sig = entry
        else:
            raise config_error("flow.crash_signatures", f"expected [code, signal], got {entry!r}")
        if code is not None and not isinstance(code, int):
            raise config_error("flow.crash_signatures", f"exit code must be int or null: {code!r}")
        if sig is not None:
            sig = str(sig).upper()
        signatures.append((code, sig))
    return tuple(signatures)


def _dict_to_config(data: dict) -> FlowkeeperConfig:
    """Convert a dict to FlowkeeperConfig."""
    flow_data = dict(data.get("flow") or {})
    unknown = set(flow_data) - set(FlowConfig.__dataclass_fields__)
    if unknown:
        raise config_error("flow", f"unknown keys: {', '.join(sorted(unknown))}")

    if "crash_signatures" in flow_data:
        flow_data["crash_signatures"] = _parse_signatures(flow_data["crash_signatures"])
    if "extra_env" in flow_data:
        flow_data["extra_env"] = {str(k): str(v) for k, v in (flow_data["extra_env"] or {}).items()}

    try:
        flow = FlowConfig(**flow_data)
    except TypeError as e:
        raise config_error("flow", str(e)) from e

    if not isinstance(flow.max_attempts, int) or flow.max_attempts < 1:
        raise config_error("flow.max_attempts", "must be a positive integer")
    if flow.retry_delay_seconds < 0:
        raise config_error("flow.retry_delay_seconds", "must not be negative")

    return FlowkeeperConfig(flow=flow, debug=bool(data.get("debug", False)))


def _defaults() -> dict[str, Any]:
    defaults = asdict(FlowkeeperConfig())
    defaults["flow"]["crash_signatures"] = [list(s) for s in FlowConfig().crash_signatures]
    return defaults


def load_config(path: str | Path | None = None) -> FlowkeeperConfig:
    """Load configuration from file with defaults and env overrides.

    Priority (highest to lowest):
    1. Environment variables (FLOWKEEPER_*)
    2. Explicit path if provided
    3. .flowkeeper/config.yaml (project-local)
    4. ~/.flowkeeper/config.yaml (user-global)
    5. Built-in defaults

    Args:
        path: Optional explicit config file path.

    Returns:
        Merged FlowkeeperConfig instance.

    Raises:
        FlowkeeperError: If the merged configuration is invalid.
    """
    global _config

    config_dict = _defaults()

    config_paths = []
    if path:
        config_paths.append(Path(path))
    config_paths.extend([
        Path(".flowkeeper/config.yaml"),
        Path.home() / ".flowkeeper" / "config.yaml",
    ])

    for config_path in config_paths:
        if config_path.exists():
            try:
                with open(config_path) as f:
                    file_config = yaml.safe_load(f) or {}
            except (OSError, yaml.YAMLError) as e:
                logger.warning("Skipping unreadable config %s: %s", config_path, e)
                continue
            if not isinstance(file_config, dict):
                logger.warning("Skipping config %s: top level is not a mapping", config_path)
                continue
            _deep_update(config_dict, file_config)
            break  # Use first found config

    config_dict = _apply_env_overrides(config_dict)

    _config = _dict_to_config(config_dict)
    return _config


def get_config() -> FlowkeeperConfig:
    """Get the current configuration, loading if needed.

    Thread-safe with double-check locking.
    """
    global _config

    if _config is not None:
        return _config

    with _config_lock:
        if _config is None:
            _config = load_config()
        return _config


def reset_config() -> None:
    """Reset the global config (useful for testing)."""
    global _config
    with _config_lock:
        _config = None


__all__ = [
    "FlowConfig",
    "FlowkeeperConfig",
    "get_config",
    "load_config",
    "reset_config",
]
