from __future__ import annotations

from pathlib import Path

import allure
import pytest

from pls_shell.config import ExecutionSettings, PlannerSettings, Settings

pytestmark = [
    allure.epic("Configuration"),
    allure.feature("Runtime Settings"),
]


def test_from_env_defaults(tmp_path: Path) -> None:
    settings = Settings.from_env()

    assert settings.config_path == tmp_path / "pls.json"
    assert settings.debug is False
    assert settings.planner.api_key == ""
    assert settings.execution.default_timeout_seconds == 0.0
    assert settings.execution.shell == "/bin/sh"


def test_from_env_reads_overrides(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.setenv("PLS_DEBUG", "yes")
    monkeypatch.setenv("ANTHROPIC_API_KEY", " fallback-key ")
    monkeypatch.setenv("PLS_MODEL", "custom-model")
    monkeypatch.setenv("PLS_COMMAND_TIMEOUT_SECONDS", "30")
    monkeypatch.setenv("PLS_MAX_OUTPUT_LINES", "10")
    monkeypatch.setenv("PLS_SHELL", "/bin/bash")

    settings = Settings.from_env(config_path=tmp_path / "explicit.json")

    assert settings.config_path == tmp_path / "explicit.json"
    assert settings.debug is True
    assert settings.planner.api_key == "fallback-key"
    assert settings.planner.model == "custom-model"
    assert settings.execution.default_timeout_seconds == 30.0
    assert settings.execution.max_output_lines == 10
    assert settings.execution.shell == "/bin/bash"


def test_pls_api_key_takes_precedence(monkeypatch) -> None:
    monkeypatch.setenv("ANTHROPIC_API_KEY", "fallback")
    monkeypatch.setenv("PLS_API_KEY", "primary")

    assert Settings.from_env().planner.api_key == "primary"


def test_invalid_boolean_env_value_is_rejected(monkeypatch) -> None:
    monkeypatch.setenv("PLS_DEBUG", "sometimes")

    with pytest.raises(ValueError, match="Invalid boolean value for PLS_DEBUG"):
        Settings.from_env()


def test_config_path_is_expanded(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.setenv("PLS_CONFIG_PATH", "~/custom.json")

    assert Settings.from_env().config_path == tmp_path / "custom.json"


def test_validate_for_planner_requires_api_key() -> None:
    settings = Settings(planner=PlannerSettings(api_key=""))

    with pytest.raises(ValueError, match="An API key is required"):
        settings.validate_for_planner()

    Settings(planner=PlannerSettings(api_key="key")).validate_for_planner()


def test_validate_for_execution_rejects_out_of_range_limits() -> None:
    with pytest.raises(ValueError, match="PLS_COMMAND_TIMEOUT_SECONDS"):
        Settings(execution=ExecutionSettings(default_timeout_seconds=-1)).validate_for_execution()
    with pytest.raises(ValueError, match="PLS_KILL_GRACE_SECONDS"):
        Settings(execution=ExecutionSettings(kill_grace_seconds=0)).validate_for_execution()
    with pytest.raises(ValueError, match="PLS_MAX_OUTPUT_LINES"):
        Settings(execution=ExecutionSettings(max_output_lines=0)).validate_for_execution()


def test_validate_for_planner_checks_retry_count() -> None:
    settings = Settings(planner=PlannerSettings(api_key="key", max_retries=-1))

    with pytest.raises(ValueError, match="PLS_MAX_RETRIES"):
        settings.validate_for_planner()
