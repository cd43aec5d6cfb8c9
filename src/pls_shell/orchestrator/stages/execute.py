"""Execute stage: drives the shell engine over an ordered list of tasks."""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field, replace
from typing import Any

from pls_shell.execution.buffers import OutputBuffer
from pls_shell.execution.shell import OutputCallback, ShellExecutor
from pls_shell.orchestrator.messages import (
    DEFAULT_EXECUTION_SUMMARY,
    NO_COMMANDS,
    format_duration,
)
from pls_shell.orchestrator.models import (
    CommandOutput,
    ExecuteCommand,
    ExecutionResult,
    ExecutionStatus,
    StageKind,
    Task,
    TaskData,
    TaskOutput,
)
from pls_shell.orchestrator.stages.base import Stage
from pls_shell.planner.base import Planner, PlannerError
from pls_shell.userconfig.placeholders import (
    UnresolvedPlaceholderError,
    ensure_resolved,
    replace_placeholders,
)
from pls_shell.userconfig.store import ConfigError
from pls_shell.userconfig.validator import task_variant

logger = logging.getLogger(__name__)

DEFAULT_TICK_INTERVAL_SECONDS = 1.0


class ProgressTicker:
    """Call ``callback`` every ``interval_seconds`` on a daemon thread until stopped."""

    def __init__(self, interval_seconds: float, callback: Callable[[], None]) -> None:
        self.interval_seconds = interval_seconds
        self._callback = callback
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    def start(self) -> None:
        self._thread = threading.Thread(target=self._loop, name="pls-progress", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join()
            self._thread = None

    def _loop(self) -> None:
        while not self._stop.wait(self.interval_seconds):
            self._callback()


@dataclass(slots=True)
class ExecuteState:
    message: str = ""
    summary: str = ""
    tasks: list[TaskData] = field(default_factory=list)
    completion_message: str | None = None
    error: str | None = None


def _task_command(task: Task) -> ExecuteCommand:
    params = task.params or {}
    command = params.get("command")
    timeout = params.get("timeout")
    return ExecuteCommand(
        description=task.action,
        command=command if isinstance(command, str) else "",
        timeout_seconds=float(timeout) if isinstance(timeout, int | float) else None,
    )


class ExecuteStage(Stage):
    """Run the stage's tasks one at a time, carrying the working directory forward.

    At most one task is Running. A failure leaves the remaining tasks Pending;
    cancellation aborts the running task and cancels the rest.
    """

    kind = StageKind.EXECUTE
    operation = "execution"

    def __init__(  # noqa: PLR0913
        self,
        tasks: Sequence[Task],
        *,
        planner: Planner,
        executor: ShellExecutor,
        load_config: Callable[[], Mapping[str, Any]],
        label: str | None = None,
        upcoming: Sequence[str] = (),
        tick_interval_seconds: float = DEFAULT_TICK_INTERVAL_SECONDS,
        on_output: OutputCallback | None = None,
        on_progress: Callable[[ExecuteStage], None] | None = None,
    ) -> None:
        state = ExecuteState(
            message=label or "",
            tasks=[TaskData(label=task.action, command=_task_command(task)) for task in tasks],
        )
        super().__init__(
            props={"label": label, "upcoming": list(upcoming), "tasks": list(tasks)},
            state=state,
        )
        self.tasks = list(tasks)
        self.planner = planner
        self.executor = executor
        self.tick_interval_seconds = tick_interval_seconds
        self._load_config = load_config
        self._on_output = on_output
        self._on_progress = on_progress
        self._lock = threading.RLock()
        self._finished = False
        self._workdir: str | None = None
        self._live_stdout = OutputBuffer(executor.max_output_lines)
        self._live_stderr = OutputBuffer(executor.max_output_lines)

    @property
    def is_terminal(self) -> bool:
        return self._finished

    @property
    def workdir(self) -> str | None:
        return self._workdir

    def cancel(self) -> None:
        """Request cancellation; the driver finalizes once the engine returns."""

        self.executor.abort()
        self.token.cancel()

    def on_activate(self) -> None:
        if self.token.cancelled:
            self._finish_cancelled()
            return

        if any(not data.command.command.strip() for data in self.state.tasks):
            try:
                plan = self.planner.commands(self.tasks)
            except PlannerError as error:
                if self.token.cancelled:
                    self._finish_cancelled()
                else:
                    self._finish_with_error(str(error))
                return
            if self.token.cancelled:
                self._finish_cancelled()
                return
            self.state.message = plan.message or self.state.message
            self.state.summary = plan.summary
            self.state.tasks = [
                TaskData(
                    label=self.tasks[index].action if index < len(self.tasks) else command.description,
                    command=command,
                )
                for index, command in enumerate(plan.commands)
            ]

        try:
            self._resolve_placeholders()
        except (ConfigError, UnresolvedPlaceholderError) as error:
            self._finish_with_error(str(error))
            return

        if not self.state.tasks:
            self._finished = True
            self.state.completion_message = NO_COMMANDS
            self.on_completed(self.state)
            self._require_workflow().complete_active()
            return

        self._run()

    def _resolve_placeholders(self) -> None:
        config = self._load_config()
        for index, data in enumerate(self.state.tasks):
            variant = task_variant(self.tasks[index]) if index < len(self.tasks) else None
            command = ensure_resolved(replace_placeholders(data.command.command, config, variant))
            workdir = data.command.workdir
            if workdir:
                workdir = ensure_resolved(replace_placeholders(workdir, config, variant))
            data.command = replace(data.command, command=command, workdir=workdir)

    def _run(self) -> None:
        failed: TaskData | None = None
        ticker = ProgressTicker(self.tick_interval_seconds, self._tick)
        ticker.start()
        try:
            for data in self.state.tasks:
                if self.token.cancelled:
                    break
                if data.status is not ExecutionStatus.PENDING:
                    continue
                output = self._run_task(data)
                if self.token.cancelled:
                    break
                if output.result is not ExecutionResult.SUCCESS:
                    failed = data
                    break
        finally:
            ticker.stop()

        if self.token.cancelled:
            self._finish_cancelled()
        elif failed is not None:
            self._finish_with_error(f'Task "{failed.label}" failed: {failed.error}')
        else:
            self._finish_succeeded()

    def _run_task(self, data: TaskData) -> CommandOutput:
        with self._lock:
            data.status = ExecutionStatus.RUNNING
            data.started_at = time.monotonic()
            data.elapsed = 0.0
            data.output = TaskOutput()
            data.error = None
            self._live_stdout.clear()
            self._live_stderr.clear()
            command = data.command
            if self._workdir is not None:
                command = replace(command, workdir=self._workdir)
        self._publish()

        logger.debug("Running %r in %s", command.command, command.workdir or ".")
        output = self.executor.execute(command, on_output=self._handle_output)

        with self._lock:
            if output.workdir:
                self._workdir = output.workdir
            if self.token.cancelled:
                return output
            data.elapsed = time.monotonic() - (data.started_at or time.monotonic())
            data.output = TaskOutput(stdout=output.stdout, stderr=output.stderr)
            if output.result is ExecutionResult.SUCCESS:
                data.status = ExecutionStatus.SUCCESS
            else:
                data.status = ExecutionStatus.FAILED
                data.error = output.error or output.stderr or "Command failed."
        self._publish()
        return output

    def _handle_output(self, text: str, stream: str) -> None:
        if self.token.cancelled:
            return
        with self._lock:
            if stream == "stderr":
                self._live_stderr.push(text)
            else:
                self._live_stdout.push(text)
        if self._on_output is not None:
            self._on_output(text, stream)

    def _tick(self) -> None:
        if self.token.cancelled:
            return
        with self._lock:
            now = time.monotonic()
            for data in self.state.tasks:
                if data.status is ExecutionStatus.RUNNING and data.started_at is not None:
                    data.elapsed = now - data.started_at
                    data.output = TaskOutput(
                        stdout=self._live_stdout.text,
                        stderr=self._live_stderr.text,
                    )
        self._publish()

    def _publish(self) -> None:
        if self._on_progress is not None:
            self._on_progress(self)

    def _finish_cancelled(self) -> None:
        with self._lock:
            now = time.monotonic()
            for data in self.state.tasks:
                if data.status is ExecutionStatus.RUNNING:
                    data.status = ExecutionStatus.ABORTED
                    data.elapsed = now - (data.started_at or now)
                    data.output = TaskOutput(
                        stdout=self._live_stdout.text,
                        stderr=self._live_stderr.text,
                    )
                elif data.status is ExecutionStatus.PENDING:
                    data.status = ExecutionStatus.CANCELLED
            self._finished = True
        self.executor.clear_abort()
        self.on_completed(self.state)
        self.on_aborted(self.operation)

    def _finish_with_error(self, message: str) -> None:
        self._finished = True
        self.state.error = message
        self.on_completed(self.state)
        self.on_error(message)

    def _finish_succeeded(self) -> None:
        self._finished = True
        total = sum(data.elapsed for data in self.state.tasks)
        summary = self.state.summary or DEFAULT_EXECUTION_SUMMARY
        self.state.completion_message = f"{summary} in {format_duration(total)}."
        self.on_completed(self.state)
        self._require_workflow().complete_active()
