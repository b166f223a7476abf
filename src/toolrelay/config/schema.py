"""Configuration schema dataclasses for toolrelay.

Defines the structure of configuration at all levels (system, user, project).
All fields are optional to support partial configs that merge together.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from toolrelay.mcp.types import ClientMode

# Bootstrap-only tool that primes the server with model metadata; never shown to the model
BOOTSTRAP_TOOL = "initialize_toolplex"


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str | None = None  # DEBUG, INFO, WARNING, ERROR
    verbose: int | None = None  # 0-4, takes precedence over level
    file: str | None = None  # Log file path


@dataclass
class TransportConfig:
    """How the default stdio transport launches the tool server.

    Example config.yaml:
        transport:
          command: ["node", "/opt/toolplex/client/dist/mcp-server/index.js"]
          client_mode: standard
          env:
            HTTPS_PROXY: "${HTTPS_PROXY}"
    """

    command: list[str] | None = None  # Server command + args
    env: dict[str, str] = field(default_factory=dict)  # Extra env vars (supports ${VAR})
    client_name: str = "toolrelay"
    client_mode: ClientMode = ClientMode.STANDARD


@dataclass
class ToolsConfig:
    """Tool adapter configuration."""

    hidden_tools: list[str] = field(default_factory=lambda: [BOOTSTRAP_TOOL])
    max_steps: int = 50  # Step cap handed to the streaming engine
    # Model id prefixes whose providers reject union/const/required schema constructs
    restricted_model_prefixes: list[str] = field(
        default_factory=lambda: ["google/", "gemini"]
    )


@dataclass
class ConfirmationRuleConfig:
    """A confirmation rule declared in config.

    Example config.yaml:
        confirmations:
          rules:
            - type: install
              tools: ["install_plugin"]
              fields: {serverId: plugin_id}
              edit_field: config
    """

    type: str
    tools: list[str] = field(default_factory=list)
    fields: dict[str, str] = field(default_factory=dict)  # payload key -> argument key
    edit_field: str | None = None


@dataclass
class ConfirmationsConfig:
    """Confirmation gate configuration."""

    rules: list[ConfirmationRuleConfig] = field(default_factory=list)


@dataclass
class Config:
    """Root configuration object.

    Aggregates all configuration sections. All fields use default factories
    to ensure partial configs work correctly with deep merging.
    """

    logging: LoggingConfig = field(default_factory=LoggingConfig)
    transport: TransportConfig = field(default_factory=TransportConfig)
    tools: ToolsConfig = field(default_factory=ToolsConfig)
    confirmations: ConfirmationsConfig = field(default_factory=ConfirmationsConfig)

    # Extension point for future config sections
    extra: dict[str, Any] = field(default_factory=dict)
