"""Runtime configuration for the planner client and the execution engine."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from pls_shell.execution.buffers import DEFAULT_MAX_OUTPUT_LINES
from pls_shell.execution.shell import DEFAULT_KILL_GRACE_SECONDS, DEFAULT_SHELL
from pls_shell.planner.client import (
    DEFAULT_BASE_URL,
    DEFAULT_MAX_RETRIES,
    DEFAULT_MAX_TOKENS,
    DEFAULT_MODEL,
    DEFAULT_TIMEOUT_SECONDS,
)

DEFAULT_CONFIG_PATH = Path("~/.pls.json")


@dataclass(slots=True)
class PlannerSettings:
    """Language-model planner settings."""

    api_key: str = ""
    model: str = DEFAULT_MODEL
    base_url: str = DEFAULT_BASE_URL
    request_timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    max_retries: int = DEFAULT_MAX_RETRIES
    max_tokens: int = DEFAULT_MAX_TOKENS


@dataclass(slots=True)
class ExecutionSettings:
    """Shell execution settings."""

    default_timeout_seconds: float = 0.0
    kill_grace_seconds: float = DEFAULT_KILL_GRACE_SECONDS
    max_output_lines: int = DEFAULT_MAX_OUTPUT_LINES
    tick_interval_seconds: float = 1.0
    shell: str = DEFAULT_SHELL


@dataclass(slots=True)
class Settings:
    """Application settings grouped by concern."""

    config_path: Path = DEFAULT_CONFIG_PATH
    debug: bool = False
    planner: PlannerSettings = field(default_factory=PlannerSettings)
    execution: ExecutionSettings = field(default_factory=ExecutionSettings)

    @classmethod
    def from_env(cls, config_path: Path | None = None) -> Settings:
        """Load settings from environment with defaults suitable for interactive use."""

        return cls(
            config_path=(
                config_path or Path(os.getenv("PLS_CONFIG_PATH", str(DEFAULT_CONFIG_PATH)))
            ).expanduser(),
            debug=_env_bool("PLS_DEBUG", default=False),
            planner=PlannerSettings(
                api_key=os.getenv("PLS_API_KEY", os.getenv("ANTHROPIC_API_KEY", "")).strip(),
                model=os.getenv("PLS_MODEL", DEFAULT_MODEL),
                base_url=os.getenv("PLS_API_BASE_URL", DEFAULT_BASE_URL),
                request_timeout_seconds=float(
                    os.getenv("PLS_REQUEST_TIMEOUT_SECONDS", str(DEFAULT_TIMEOUT_SECONDS)),
                ),
                max_retries=int(os.getenv("PLS_MAX_RETRIES", str(DEFAULT_MAX_RETRIES))),
                max_tokens=int(os.getenv("PLS_MAX_TOKENS", str(DEFAULT_MAX_TOKENS))),
            ),
            execution=ExecutionSettings(
                default_timeout_seconds=float(os.getenv("PLS_COMMAND_TIMEOUT_SECONDS", "0")),
                kill_grace_seconds=float(
                    os.getenv("PLS_KILL_GRACE_SECONDS", str(DEFAULT_KILL_GRACE_SECONDS)),
                ),
                max_output_lines=int(
                    os.getenv("PLS_MAX_OUTPUT_LINES", str(DEFAULT_MAX_OUTPUT_LINES)),
                ),
                tick_interval_seconds=float(os.getenv("PLS_TICK_INTERVAL_SECONDS", "1.0")),
                shell=os.getenv("PLS_SHELL", DEFAULT_SHELL),
            ),
        )

    def validate_for_execution(self) -> None:
        """Raise configuration error if execution limits are out of range."""

        if self.execution.default_timeout_seconds < 0:
            raise ValueError("PLS_COMMAND_TIMEOUT_SECONDS must be >= 0.")
        if self.execution.kill_grace_seconds <= 0:
            raise ValueError("PLS_KILL_GRACE_SECONDS must be > 0.")
        if self.execution.max_output_lines <= 0:
            raise ValueError("PLS_MAX_OUTPUT_LINES must be a positive integer.")
        if self.execution.tick_interval_seconds <= 0:
            raise ValueError("PLS_TICK_INTERVAL_SECONDS must be > 0.")

    def validate_for_planner(self) -> None:
        """Raise configuration error if the planner cannot be reached."""

        self.validate_for_execution()
        if not self.planner.api_key:
            raise ValueError(
                "An API key is required. Set PLS_API_KEY or ANTHROPIC_API_KEY.",
            )
        if self.planner.request_timeout_seconds <= 0:
            raise ValueError("PLS_REQUEST_TIMEOUT_SECONDS must be > 0.")
        if self.planner.max_retries < 0:
            raise ValueError("PLS_MAX_RETRIES must be >= 0.")


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    raise ValueError(f"Invalid boolean value for {name}: {value!r}")
