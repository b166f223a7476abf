"""Configuration file loading and caching.

Handles:
- YAML file parsing
- Environment variable overrides
- Config caching with reload support
- Conversion from dict to typed Config dataclass
"""

from __future__ import annotations

import logging
import os
import shlex
from collections.abc import Callable
from pathlib import Path
from typing import Any

import yaml

from toolrelay.config.merge import merge_configs
from toolrelay.config.paths import get_config_paths
from toolrelay.config.schema import (
    Config,
    ConfirmationRuleConfig,
    ConfirmationsConfig,
    LoggingConfig,
    ToolsConfig,
    TransportConfig,
)
from toolrelay.mcp.types import ClientMode

_log = logging.getLogger("toolrelay.config")

_cached_config: Config | None = None

_reload_callbacks: list[Callable[[Config], None]] = []


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a YAML file, returning an empty dict if missing or invalid."""
    if not path.exists():
        return {}

    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        _log.warning("Invalid YAML in %s: %s", path, e)
        return {}
    except PermissionError:
        _log.debug("Permission denied reading %s", path)
        return {}
    except OSError as e:
        _log.warning("Error reading %s: %s", path, e)
        return {}

    return data if isinstance(data, dict) else {}


def env_overrides() -> dict[str, Any]:
    """Build a config dict from TOOLRELAY_* environment variables.

    The access token is NOT loaded here; see fetch_secret().
    """
    overrides: dict[str, Any] = {}

    log_path = os.environ.get("TOOLRELAY_LOG")
    if log_path:
        overrides.setdefault("logging", {})["file"] = log_path

    client_mode = os.environ.get("TOOLRELAY_CLIENT_MODE")
    if client_mode:
        overrides.setdefault("transport", {})["client_mode"] = client_mode

    server_command = os.environ.get("TOOLRELAY_SERVER_COMMAND")
    if server_command:
        overrides.setdefault("transport", {})["command"] = shlex.split(server_command)

    return overrides


def _parse_client_mode(value: Any) -> ClientMode:
    try:
        return ClientMode(value)
    except ValueError:
        _log.warning("Unknown client_mode %r, using 'standard'", value)
        return ClientMode.STANDARD


def dict_to_config(data: dict[str, Any]) -> Config:
    """Convert a merged dict to the typed Config dataclass."""
    log_data = data.get("logging", {})
    logging_config = LoggingConfig(
        level=log_data.get("level"),
        verbose=log_data.get("verbose"),
        file=log_data.get("file"),
    )

    transport_data = data.get("transport", {})
    command = transport_data.get("command")
    if isinstance(command, str):
        command = shlex.split(command)
    transport = TransportConfig(
        command=command,
        env={str(k): str(v) for k, v in transport_data.get("env", {}).items()},
        client_name=transport_data.get("client_name", "toolrelay"),
        client_mode=_parse_client_mode(transport_data.get("client_mode", "standard")),
    )

    tools_data = data.get("tools", {})
    defaults = ToolsConfig()
    tools = ToolsConfig(
        hidden_tools=tools_data.get("hidden_tools", defaults.hidden_tools),
        max_steps=tools_data.get("max_steps", defaults.max_steps),
        restricted_model_prefixes=tools_data.get(
            "restricted_model_prefixes", defaults.restricted_model_prefixes
        ),
    )

    confirmations_data = data.get("confirmations", {})
    rules = [
        ConfirmationRuleConfig(
            type=r["type"],
            tools=[t for t in r.get("tools", []) if isinstance(t, str)],
            fields=dict(r.get("fields", {})),
            edit_field=r.get("edit_field"),
        )
        for r in confirmations_data.get("rules", [])
        if isinstance(r, dict) and r.get("type") and r.get("tools")
    ]
    confirmations = ConfirmationsConfig(rules=rules)

    known_keys = {"logging", "transport", "tools", "confirmations"}
    extra = {k: v for k, v in data.items() if k not in known_keys}

    return Config(
        logging=logging_config,
        transport=transport,
        tools=tools,
        confirmations=confirmations,
        extra=extra,
    )


def load_config(project_root: str | None = None, reload: bool = False) -> Config:
    """Load and merge config from all sources.

    Priority order (highest to lowest):
    1. Environment variables
    2. Project config (<project_root>/.toolrelay/config.yaml)
    3. User config
    4. System config

    Args:
        project_root: Project directory for project-level config.
        reload: Force reload even if cached.

    Returns:
        Merged Config object.
    """
    global _cached_config

    if _cached_config is not None and not reload and project_root is None:
        return _cached_config

    configs: list[dict[str, Any]] = []
    for path in get_config_paths(project_root):
        config_data = load_yaml_file(path)
        if config_data:
            _log.debug("Loaded config from %s", path)
            configs.append(config_data)

    env_config = env_overrides()
    if env_config:
        configs.append(env_config)

    config = dict_to_config(merge_configs(*configs))

    # Only the global config is cached
    if project_root is None:
        _cached_config = config

    return config


def get_config() -> Config:
    """Get the cached global config, loading it on first use."""
    if _cached_config is None:
        return load_config()
    return _cached_config


def reset_config() -> None:
    """Drop the cached config."""
    global _cached_config
    _cached_config = None


def reload_config(project_root: str | None = None) -> Config:
    """Reload config from files and notify callbacks."""
    config = load_config(project_root=project_root, reload=True)

    for callback in _reload_callbacks:
        try:
            callback(config)
        except Exception as e:
            _log.warning("Config reload callback error: %s", e)

    return config


def on_config_reload(callback: Callable[[Config], None]) -> Callable[[], None]:
    """Register a reload callback; returns a function that unregisters it."""
    _reload_callbacks.append(callback)

    def unregister() -> None:
        if callback in _reload_callbacks:
            _reload_callbacks.remove(callback)

    return unregister
