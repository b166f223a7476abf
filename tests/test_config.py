"""Tests for the configuration module."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

from toolrelay.config import (
    Config,
    clear_secret_cache,
    fetch_secret,
    get_config,
    load_config,
    on_config_reload,
    reload_config,
    reset_config,
)
from toolrelay.config.loader import dict_to_config, env_overrides
from toolrelay.config.merge import deep_merge, merge_configs
from toolrelay.config.paths import (
    get_config_paths,
    get_project_config_path,
    get_system_config_path,
    get_user_config_path,
)
from toolrelay.mcp.types import ClientMode


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep TOOLRELAY_* variables from the outer environment out of these tests."""
    for name in ("TOOLRELAY_LOG", "TOOLRELAY_CLIENT_MODE", "TOOLRELAY_SERVER_COMMAND"):
        monkeypatch.delenv(name, raising=False)


class TestDeepMerge:
    """Test the deep merge algorithm."""

    def test_simple_override(self) -> None:
        """Test that override values replace base values."""
        base = {"a": 1, "b": 2}
        override = {"b": 3, "c": 4}
        result = deep_merge(base, override)
        assert result == {"a": 1, "b": 3, "c": 4}

    def test_nested_merge(self) -> None:
        """Test that nested dicts are recursively merged."""
        base = {"tools": {"max_steps": 50, "hidden_tools": ["a"]}}
        override = {"tools": {"max_steps": 10}}
        result = deep_merge(base, override)
        assert result["tools"]["hidden_tools"] == ["a"]
        assert result["tools"]["max_steps"] == 10

    def test_none_does_not_override(self) -> None:
        """Test that None values in override don't replace base values."""
        result = deep_merge({"a": 1}, {"a": None})
        assert result["a"] == 1

    def test_list_replaced_not_merged(self) -> None:
        """Test that lists are replaced, not concatenated."""
        result = deep_merge({"items": [1, 2, 3]}, {"items": [4, 5]})
        assert result["items"] == [4, 5]

    def test_inputs_not_mutated(self) -> None:
        base = {"a": {"b": 1}}
        deep_merge(base, {"a": {"b": 2}})
        assert base == {"a": {"b": 1}}

    def test_merge_configs_multiple(self) -> None:
        """Test merging multiple configs in order."""
        result = merge_configs({"a": 1, "b": 2}, {"b": 3}, {"c": 4})
        assert result == {"a": 1, "b": 3, "c": 4}


class TestConfigPaths:
    """Test platform-aware path resolution."""

    def test_windows_system_path(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(sys, "platform", "win32")
        monkeypatch.setenv("PROGRAMDATA", "C:\\ProgramData")

        path = get_system_config_path()
        assert path is not None
        assert "ProgramData" in str(path)
        assert "toolrelay" in str(path)

    def test_windows_user_path(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(sys, "platform", "win32")
        monkeypatch.setenv("APPDATA", "C:\\Users\\Test\\AppData\\Roaming")

        path = get_user_config_path()
        assert path is not None
        assert "AppData" in str(path)

    def test_unix_system_path(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(sys, "platform", "linux")
        assert get_system_config_path() == Path("/etc/toolrelay/config.yaml")

    def test_unix_user_path_xdg(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(sys, "platform", "linux")
        monkeypatch.setenv("XDG_CONFIG_HOME", "/home/test/.config-custom")

        path = get_user_config_path()
        assert path == Path("/home/test/.config-custom/toolrelay/config.yaml")

    def test_project_config_path(self) -> None:
        path = get_project_config_path("/home/user/myproject")
        assert path == Path("/home/user/myproject/.toolrelay/config.yaml")

    def test_get_config_paths_order(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(sys, "platform", "linux")
        monkeypatch.delenv("XDG_CONFIG_HOME", raising=False)

        paths = get_config_paths("/project")
        assert len(paths) == 3
        assert "etc" in paths[0].parts
        assert "project" in paths[2].parts


class TestConfigLoading:
    """Test configuration loading."""

    @pytest.fixture(autouse=True)
    def reset_global_config(self) -> None:
        reset_config()

    @pytest.fixture
    def temp_config_dir(self, tmp_path: Path) -> Path:
        config_dir = tmp_path / ".toolrelay"
        config_dir.mkdir()
        return config_dir

    def test_load_yaml_config(self, temp_config_dir: Path) -> None:
        (temp_config_dir / "config.yaml").write_text(
            """
logging:
  verbose: 3
transport:
  command: ["node", "/opt/toolplex/index.js"]
  client_mode: restricted
  env:
    HTTPS_PROXY: "${HTTPS_PROXY}"
tools:
  max_steps: 12
  hidden_tools: [initialize_toolplex, debug_dump]
"""
        )
        config = load_config(project_root=str(temp_config_dir.parent))

        assert config.logging.verbose == 3
        assert config.transport.command == ["node", "/opt/toolplex/index.js"]
        assert config.transport.client_mode is ClientMode.RESTRICTED
        assert config.transport.env == {"HTTPS_PROXY": "${HTTPS_PROXY}"}
        assert config.tools.max_steps == 12
        assert config.tools.hidden_tools == ["initialize_toolplex", "debug_dump"]

    def test_confirmation_rules(self, temp_config_dir: Path) -> None:
        (temp_config_dir / "config.yaml").write_text(
            """
confirmations:
  rules:
    - type: install
      tools: [install_plugin]
      fields: {serverId: plugin_id}
      edit_field: config
    - type: broken
"""
        )
        config = load_config(project_root=str(temp_config_dir.parent))

        assert len(config.confirmations.rules) == 1
        rule = config.confirmations.rules[0]
        assert rule.type == "install"
        assert rule.tools == ["install_plugin"]
        assert rule.fields == {"serverId": "plugin_id"}
        assert rule.edit_field == "config"

    def test_string_command_split(self) -> None:
        config = dict_to_config({"transport": {"command": "npx -y @toolplex/client"}})
        assert config.transport.command == ["npx", "-y", "@toolplex/client"]

    def test_unknown_client_mode_falls_back(self, caplog: pytest.LogCaptureFixture) -> None:
        config = dict_to_config({"transport": {"client_mode": "turbo"}})
        assert config.transport.client_mode is ClientMode.STANDARD
        assert "turbo" in caplog.text

    def test_invalid_yaml_uses_defaults(self, temp_config_dir: Path) -> None:
        (temp_config_dir / "config.yaml").write_text("invalid: yaml: :")

        config = load_config(project_root=str(temp_config_dir.parent))
        assert config.tools.max_steps == 50

    def test_missing_file_uses_defaults(self, tmp_path: Path) -> None:
        config = load_config(project_root=str(tmp_path))
        assert isinstance(config, Config)
        assert config.tools.hidden_tools == ["initialize_toolplex"]
        assert config.tools.restricted_model_prefixes == ["google/", "gemini"]
        assert config.transport.client_name == "toolrelay"

    def test_extra_fields_preserved(self, temp_config_dir: Path) -> None:
        (temp_config_dir / "config.yaml").write_text(
            """
custom_field: custom_value
nested:
  field: value
"""
        )
        config = load_config(project_root=str(temp_config_dir.parent))
        assert config.extra["custom_field"] == "custom_value"
        assert config.extra["nested"]["field"] == "value"


class TestEnvOverrides:
    """Test TOOLRELAY_* environment overrides."""

    @pytest.fixture(autouse=True)
    def reset_global_config(self) -> None:
        reset_config()

    def test_no_env_no_overrides(self) -> None:
        assert env_overrides() == {}

    def test_log_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("TOOLRELAY_LOG", "/tmp/test.log")
        config = load_config()
        assert config.logging.file == "/tmp/test.log"

    def test_client_mode_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("TOOLRELAY_CLIENT_MODE", "automation")
        config = load_config()
        assert config.transport.client_mode is ClientMode.AUTOMATION

    def test_server_command_env_beats_project(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        config_dir = tmp_path / ".toolrelay"
        config_dir.mkdir()
        (config_dir / "config.yaml").write_text("transport:\n  command: [node, a.js]\n")
        monkeypatch.setenv("TOOLRELAY_SERVER_COMMAND", "node b.js --flag")

        config = load_config(project_root=str(tmp_path))
        assert config.transport.command == ["node", "b.js", "--flag"]


class TestSecrets:
    """Test secret lookup."""

    @pytest.fixture(autouse=True)
    def clear_cache(self) -> None:
        clear_secret_cache()

    def test_env_wins(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        secrets = tmp_path / ".env.secrets"
        secrets.write_text("TOOLPLEX_API_KEY=from-file\n")
        monkeypatch.setenv("TOOLPLEX_API_KEY", "from-env")

        assert fetch_secret("TOOLPLEX_API_KEY", secrets_path=secrets) == "from-env"

    def test_file_fallback(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        secrets = tmp_path / ".env.secrets"
        secrets.write_text("TOOLPLEX_API_KEY=from-file\n")
        monkeypatch.delenv("TOOLPLEX_API_KEY", raising=False)

        assert fetch_secret("TOOLPLEX_API_KEY", secrets_path=secrets) == "from-file"

    def test_default(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("TOOLRELAY_MISSING", raising=False)
        missing = tmp_path / "nope"
        assert fetch_secret("TOOLRELAY_MISSING", "fallback", secrets_path=missing) == "fallback"


class TestConfigCaching:
    """Test config caching behavior."""

    @pytest.fixture(autouse=True)
    def reset_global_config(self) -> None:
        reset_config()

    def test_get_config_caches(self) -> None:
        assert get_config() is get_config()

    def test_reset_clears_cache(self) -> None:
        config1 = get_config()
        reset_config()
        assert get_config() is not config1

    def test_project_config_not_cached(self, tmp_path: Path) -> None:
        project_config = load_config(project_root=str(tmp_path))
        assert project_config is not get_config()

    def test_reload_notifies_callbacks(self) -> None:
        seen: list[Config] = []
        unregister = on_config_reload(seen.append)
        try:
            config = reload_config()
        finally:
            unregister()

        assert seen == [config]

    def test_failing_callback_does_not_break_reload(self) -> None:
        def boom(config: Config) -> None:
            raise RuntimeError("boom")

        unregister = on_config_reload(boom)
        try:
            config = reload_config()
        finally:
            unregister()

        assert isinstance(config, Config)
