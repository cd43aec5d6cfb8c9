"""Plain-text console rendering of the workflow and prompting for user intents."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import rich_click as click

from pls_shell.orchestrator.messages import format_duration
from pls_shell.orchestrator.models import (
    ExecutionStatus,
    FeedbackType,
    StageDefinition,
    StageKind,
    Task,
    TaskType,
)
from pls_shell.orchestrator.stages import (
    ConfigStage,
    ConfirmStage,
    Intent,
    ScheduleStage,
    Stage,
    UserInput,
)
from pls_shell.orchestrator.workflow import Workflow

STATUS_SYMBOLS = {
    ExecutionStatus.PENDING: "·",
    ExecutionStatus.RUNNING: "›",
    ExecutionStatus.SUCCESS: "✓",
    ExecutionStatus.FAILED: "✗",
    ExecutionStatus.ABORTED: "⊘",
    ExecutionStatus.CANCELLED: "-",
}


def describe_stage(definition: StageDefinition) -> list[str]:
    """Lines shown for a stage once it leaves the Active slot."""

    props = definition.props
    state = definition.state
    if definition.name is StageKind.SCHEDULE:
        lines = [props["message"]] if props.get("message") else []
        lines.extend(_task_lines(props.get("tasks", [])))
        return lines
    if definition.name is StageKind.EXECUTE:
        return _execute_lines(state)
    if definition.name is StageKind.ANSWER:
        return [state.answer] if state is not None and state.answer else []
    if definition.name is StageKind.REPORT:
        lines = [props["message"]] if props.get("message") else []
        lines.extend(f"  - {item.name}: {item.description}" for item in props["capabilities"])
        return lines
    if definition.name is StageKind.FEEDBACK:
        return [props["message"]]
    return []


def _task_lines(tasks: list[Task], indent: str = "  ") -> list[str]:
    lines: list[str] = []
    for task in tasks:
        if task.type is TaskType.DEFINE:
            lines.append(f"{indent}- {task.action} (choose one)")
        else:
            lines.append(f"{indent}- {task.action}")
        if task.subtasks:
            lines.extend(_task_lines(list(task.subtasks), indent + "  "))
    return lines


def _execute_lines(state: Any) -> list[str]:
    if state is None:
        return []
    lines: list[str] = [state.message] if state.message else []
    for data in state.tasks:
        symbol = STATUS_SYMBOLS[data.status]
        suffix = f" ({format_duration(data.elapsed)})" if data.started_at is not None else ""
        lines.append(f"  {symbol} {data.label}{suffix}")
        if data.error:
            lines.append(f"      {data.error}")
    if state.completion_message:
        lines.append(state.completion_message)
    return lines


class ConsoleRenderer:
    """Renderer that prints finished stages and prompts through click."""

    def __init__(
        self,
        *,
        echo: Callable[..., None] = click.echo,
        prompt: Callable[..., Any] = click.prompt,
        confirm: Callable[..., bool] = click.confirm,
    ) -> None:
        self._echo = echo
        self._prompt = prompt
        self._confirm = confirm
        self._rendered: set[str] = set()
        self._line_open = False

    def show(self, workflow: Workflow) -> None:
        for definition in workflow.timeline:
            self._render(definition)
        if workflow.pending is not None:
            self._render(workflow.pending.definition)

    def on_output(self, text: str, stream: str) -> None:
        self._echo(text, nl=False, err=stream == "stderr")
        self._line_open = not text.endswith("\n")

    def request_input(self, stage: Stage) -> UserInput:
        try:
            if isinstance(stage, ScheduleStage):
                return self._select(stage)
            if isinstance(stage, ConfirmStage):
                accepted = self._confirm(stage.props["message"], default=True)
                return UserInput(Intent.CONFIRM if accepted else Intent.CANCEL)
            if isinstance(stage, ConfigStage):
                return self._ask_value(stage)
        except click.Abort:
            self._echo("")
        return UserInput(Intent.CANCEL)

    def _render(self, definition: StageDefinition) -> None:
        if definition.id in self._rendered:
            return
        self._rendered.add(definition.id)
        if self._line_open:
            self._echo("")
            self._line_open = False
        failed = (
            definition.name is StageKind.FEEDBACK
            and definition.props.get("type") is FeedbackType.FAILED
        )
        for line in describe_stage(definition):
            self._echo(line, err=failed)

    def _select(self, stage: ScheduleStage) -> UserInput:
        if stage.state.highlighted_index is not None:
            return UserInput(Intent.CONFIRM)
        if stage.id not in self._rendered:
            self._rendered.add(stage.id)
            for line in describe_stage(stage.definition):
                self._echo(line)
        task = stage.current_define_task
        options = stage.current_options
        if task is None or not options:
            return UserInput(Intent.CANCEL)
        self._echo(task.action)
        for number, option in enumerate(options, start=1):
            self._echo(f"  {number}. {option.label}")
        choice = self._prompt("Choose an option", type=click.IntRange(1, len(options)))
        return UserInput(Intent.SELECT, index=choice - 1)

    def _ask_value(self, stage: ConfigStage) -> UserInput:
        step = stage.current_step
        if step is None:
            return UserInput(Intent.CANCEL)
        if stage.state.error:
            self._echo(stage.state.error, err=True)
        value = self._prompt(
            f"{step.description} [{step.path}]",
            default=step.default or "",
            show_default=bool(step.default),
        )
        return UserInput(Intent.SUBMIT, value=str(value))
