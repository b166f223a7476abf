"""Configuration management for toolrelay.

Hierarchical YAML configuration with:
- System-level config (/etc/toolrelay/ or %PROGRAMDATA%)
- User-level config (~/.config/toolrelay/ or %APPDATA%)
- Project-level config (<project>/.toolrelay/)
- Environment variable overrides (highest priority)

Example usage:
    from toolrelay.config import load_config

    config = load_config(project_root="/path/to/project")
    print(config.tools.hidden_tools)
"""

from toolrelay.config.loader import (
    get_config,
    load_config,
    on_config_reload,
    reload_config,
    reset_config,
)
from toolrelay.config.paths import (
    get_config_paths,
    get_project_config_path,
    get_system_config_path,
    get_user_config_path,
)
from toolrelay.config.schema import (
    BOOTSTRAP_TOOL,
    Config,
    ConfirmationRuleConfig,
    ConfirmationsConfig,
    LoggingConfig,
    ToolsConfig,
    TransportConfig,
)
from toolrelay.config.secrets import (
    clear_secret_cache,
    fetch_secret,
)

__all__ = [
    # Main API
    "Config",
    "load_config",
    "get_config",
    "reload_config",
    "reset_config",
    "on_config_reload",
    # Schema types
    "BOOTSTRAP_TOOL",
    "LoggingConfig",
    "TransportConfig",
    "ToolsConfig",
    "ConfirmationRuleConfig",
    "ConfirmationsConfig",
    # Secrets
    "fetch_secret",
    "clear_secret_cache",
    # Paths
    "get_config_paths",
    "get_system_config_path",
    "get_user_config_path",
    "get_project_config_path",
]
