# tests/test_config_utils.py
import os
from unittest.mock import MagicMock, patch

import pytest
import toml

from aiplan import config_utils


@pytest.fixture
def mock_console():
    """Fixture for a mock Rich console object."""
    return MagicMock()


@pytest.fixture(autouse=True)
def reset_config_globals_and_env(monkeypatch):
    """Reset loaded TOML values and relevant env vars before each test."""
    config_utils._CONFIG_FROM_TOML.clear()
    for p_config in config_utils.SUPPORTED_SET_PARAMS.values():
        if p_config["env_var"] in os.environ:
            monkeypatch.delenv(p_config["env_var"])
    yield
    config_utils._CONFIG_FROM_TOML.clear()


@pytest.fixture
def temp_config_file(tmp_path):
    """Creates a temporary config.toml file and returns its path."""
    config_content = {
        "model": {"name": "toml_model", "api_base": "http://toml.api.base/v1", "max_tokens": 2048, "temperature": 0.5},
        "history": {"file_name": "toml-history.json", "depth": 3},
        "project": {"root_markers": [".hg"]},
        "execution": {"continue_on_error": True, "max_file_size_bytes": 4096},
    }
    config_file = tmp_path / "config.toml"
    with open(config_file, "w", encoding="utf-8") as f:
        toml.dump(config_content, f)
    return config_file


class TestLoadConfiguration:

    @patch('aiplan.config_utils.load_dotenv')
    def test_load_configuration_success(self, mock_load_dotenv, temp_config_file, mock_console, monkeypatch):
        monkeypatch.chdir(temp_config_file.parent)

        config_utils.load_configuration(mock_console)

        mock_load_dotenv.assert_called_once()
        assert config_utils._CONFIG_FROM_TOML["model"] == "toml_model"
        assert config_utils._CONFIG_FROM_TOML["history_depth"] == 3
        assert config_utils._CONFIG_FROM_TOML["root_markers"] == [".hg"]
        mock_console.print.assert_not_called()

    @patch('aiplan.config_utils.load_dotenv')
    def test_load_configuration_file_not_found(self, mock_load_dotenv, mock_console, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)

        config_utils.load_configuration(mock_console)

        assert config_utils._CONFIG_FROM_TOML == {}
        mock_console.print.assert_not_called()

    @patch('aiplan.config_utils.load_dotenv')
    def test_load_configuration_toml_decode_error(self, mock_load_dotenv, tmp_path, mock_console, monkeypatch):
        (tmp_path / "config.toml").write_text("this is not valid toml content {")
        monkeypatch.chdir(tmp_path)

        config_utils.load_configuration(mock_console)

        assert config_utils._CONFIG_FROM_TOML == {}
        message = mock_console.print.call_args[0][0]
        assert message.startswith("[yellow]Warning: Could not load or parse config.toml")


class TestGetConfigValue:

    def test_ultimate_defaults(self, mock_console):
        assert config_utils.get_config_value("model", {}, mock_console) == config_utils.ULTIMATE_DEFAULTS["model"]
        assert config_utils.get_config_value("history_file", {}) == ".aiplan-history.json"
        assert config_utils.get_config_value("continue_on_error", {}) is False
        assert config_utils.get_config_value("root_markers", {}) == [".git", "pyproject.toml", "package.json"]

    @patch('aiplan.config_utils.load_dotenv')
    def test_toml_over_defaults(self, mock_load_dotenv, temp_config_file, monkeypatch):
        monkeypatch.chdir(temp_config_file.parent)
        config_utils.load_configuration(None)
        assert config_utils.get_config_value("max_tokens", {}) == 2048
        assert config_utils.get_config_value("continue_on_error", {}) is True
        assert config_utils.get_config_value("root_markers", {}) == [".hg"]

    @patch('aiplan.config_utils.load_dotenv')
    def test_env_over_toml(self, mock_load_dotenv, temp_config_file, monkeypatch):
        monkeypatch.chdir(temp_config_file.parent)
        config_utils.load_configuration(None)
        monkeypatch.setenv("AIPLAN_MAX_TOKENS", "3000")
        monkeypatch.setenv("AIPLAN_CONTINUE_ON_ERROR", "no")
        monkeypatch.setenv("AIPLAN_TEMPERATURE", "0.3")
        assert config_utils.get_config_value("max_tokens", {}) == 3000
        assert config_utils.get_config_value("continue_on_error", {}) is False
        assert config_utils.get_config_value("temperature", {}) == pytest.approx(0.3)

    def test_runtime_over_env(self, monkeypatch, mock_console):
        monkeypatch.setenv("AIPLAN_MODEL", "env_model")
        overrides = {}
        config_utils.update_runtime_override("model", "runtime_model", overrides, mock_console)
        assert config_utils.get_config_value("model", overrides) == "runtime_model"

    def test_invalid_env_value_is_ignored(self, monkeypatch, mock_console):
        monkeypatch.setenv("AIPLAN_HISTORY_DEPTH", "lots")
        assert config_utils.get_config_value("history_depth", {}, mock_console) == 0
        assert "AIPLAN_HISTORY_DEPTH" in mock_console.print.call_args[0][0]


class TestRuntimeOverrides:

    def test_update_coerces_types(self, mock_console):
        overrides = {}
        config_utils.update_runtime_override("history_depth", "5", overrides, mock_console)
        config_utils.update_runtime_override("CONTINUE_ON_ERROR", "true", overrides, mock_console)
        assert overrides == {"history_depth": 5, "continue_on_error": True}
        mock_console.print.assert_any_call("[green]✓ Runtime override set: history_depth = 5[/green]")

    @pytest.mark.parametrize("param, value", [
        ("temperature", "3.5"),
        ("max_tokens", "many"),
        ("continue_on_error", "maybe"),
        ("not_a_param", "x"),
    ])
    def test_update_rejects_bad_values(self, param, value, mock_console):
        overrides = {}
        config_utils.update_runtime_override(param, value, overrides, mock_console)
        assert overrides == {}
        assert "[red]Error" in mock_console.print.call_args[0][0]

    def test_remove_and_list(self, mock_console):
        overrides = {"model": "x"}
        config_utils.list_runtime_overrides(overrides, mock_console)
        mock_console.print.assert_any_call("  - model: x")
        config_utils.remove_runtime_override("MODEL", overrides, mock_console)
        assert overrides == {}
        config_utils.remove_runtime_override("model", overrides, mock_console)
        mock_console.print.assert_called_with("[dim]No runtime override found for 'model' to remove.[/dim]")
