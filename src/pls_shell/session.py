"""Controllers behind the CLI commands: build a workflow session and run it."""

from __future__ import annotations

import logging
import signal
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path

from pls_shell.config import Settings
from pls_shell.console import ConsoleRenderer
from pls_shell.execution.shell import ShellExecutor
from pls_shell.orchestrator.router import TaskRouter
from pls_shell.orchestrator.tasks import load_task_file
from pls_shell.orchestrator.workflow import Workflow
from pls_shell.planner import HttpPlanner, Planner, PlanResult, StaticPlanner
from pls_shell.userconfig.store import UserConfigStore, coerce_config_value, flatten_config

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class AskCommand:
    """CLI input for planning and running a free-text request."""

    request: str
    config_path: Path | None = None
    timeout_seconds: float | None = None


@dataclass(slots=True)
class RunTasksCommand:
    """CLI input for running a saved task list."""

    tasks_file: Path
    config_path: Path | None = None
    timeout_seconds: float | None = None


@dataclass(slots=True)
class ConfigSetCommand:
    key: str
    value: str
    config_path: Path | None = None


class SessionController:
    """Wires settings, planner, executor and renderer into one workflow run."""

    def __init__(self, renderer_factory: Callable[[], ConsoleRenderer] = ConsoleRenderer) -> None:
        self._renderer_factory = renderer_factory

    def ask(self, command: AskCommand) -> int:
        settings = _settings(command.config_path, command.timeout_seconds)
        settings.validate_for_planner()
        with HttpPlanner(
            api_key=settings.planner.api_key,
            model=settings.planner.model,
            base_url=settings.planner.base_url,
            timeout_seconds=settings.planner.request_timeout_seconds,
            max_retries=settings.planner.max_retries,
            max_tokens=settings.planner.max_tokens,
        ) as planner:
            return self._run(
                settings,
                planner,
                lambda router: router.submit(command.request),
            )

    def run_tasks(self, command: RunTasksCommand) -> int:
        settings = _settings(command.config_path, command.timeout_seconds)
        settings.validate_for_execution()
        task_file = load_task_file(command.tasks_file)
        planner = StaticPlanner(PlanResult(message=task_file.message, tasks=task_file.tasks))
        return self._run(
            settings,
            planner,
            lambda router: router.route(task_file.tasks, task_file.message),
        )

    def show_config(self, config_path: Path | None) -> list[str]:
        settings = Settings.from_env(config_path=config_path)
        values = flatten_config(UserConfigStore(settings.config_path).load())
        if not values:
            return [f"No configuration stored in {settings.config_path}."]
        return [f"{key} = {_render_value(values[key])}" for key in sorted(values)]

    def set_config(self, command: ConfigSetCommand) -> list[str]:
        settings = Settings.from_env(config_path=command.config_path)
        UserConfigStore(settings.config_path).set_value(command.key, command.value)
        value = coerce_config_value(command.value)
        return [f"{command.key} = {_render_value(value)}"]

    def _run(
        self,
        settings: Settings,
        planner: Planner,
        start: Callable[[TaskRouter], None],
    ) -> int:
        workflow = Workflow()
        renderer = self._renderer_factory()
        router = TaskRouter(
            workflow,
            planner=planner,
            executor=ShellExecutor(
                shell=settings.execution.shell,
                kill_grace_seconds=settings.execution.kill_grace_seconds,
                max_output_lines=settings.execution.max_output_lines,
                default_timeout_seconds=settings.execution.default_timeout_seconds or None,
            ),
            config_store=UserConfigStore(settings.config_path),
            debug=settings.debug,
            tick_interval_seconds=settings.execution.tick_interval_seconds,
            on_output=renderer.on_output,
        )
        start(router)
        with _interrupts_cancel(workflow):
            exit_code = workflow.run(renderer)
        logger.debug("Workflow finished with exit code %s", exit_code)
        return exit_code


def _settings(config_path: Path | None, timeout_seconds: float | None) -> Settings:
    settings = Settings.from_env(config_path=config_path)
    if timeout_seconds is not None:
        settings.execution.default_timeout_seconds = timeout_seconds
    return settings


def _render_value(value: object) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


@contextmanager
def _interrupts_cancel(workflow: Workflow) -> Iterator[None]:
    """Map SIGINT to cancelling the Active stage while the workflow runs.

    Prompts keep the default KeyboardInterrupt so click can abort them.
    """

    if not hasattr(signal, "SIGINT"):
        yield
        return

    original_sigint = signal.getsignal(signal.SIGINT)

    def _handler(signum: int, _: object | None) -> None:
        stage = workflow.active
        if stage is not None and stage.awaiting_input:
            raise KeyboardInterrupt
        logger.debug("Interrupt received, cancelling %r", stage)
        workflow.cancel_active()

    try:
        signal.signal(signal.SIGINT, _handler)
    except ValueError:
        # Signal handlers can only be installed in main thread.
        yield
        return
    try:
        yield
    finally:
        signal.signal(signal.SIGINT, original_sigint)
