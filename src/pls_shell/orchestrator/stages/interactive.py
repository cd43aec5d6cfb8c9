"""Stages that wait for the user: option selection, confirmation and config prompts."""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field, replace

from pls_shell.orchestrator.messages import CONFIGURATION_COMPLETE, CONFIGURATION_SAVED
from pls_shell.orchestrator.models import (
    ConfigRequirement,
    DefineOption,
    FeedbackType,
    StageKind,
    Task,
    TaskType,
)
from pls_shell.orchestrator.stages.base import FeedbackStage, Intent, Stage, UserInput
from pls_shell.orchestrator.tasks import apply_selections, define_options
from pls_shell.userconfig.store import ConfigError, UserConfigStore, is_valid_config_value

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ScheduleState:
    highlighted_index: int | None = None
    current_define_group_index: int = 0
    completed_selections: list[int] = field(default_factory=list)
    confirmed: bool = False


class ScheduleStage(Stage):
    """Shows the plan; walks the user through one choice per Define task."""

    kind = StageKind.SCHEDULE
    operation = "task selection"

    def __init__(
        self,
        message: str,
        tasks: Sequence[Task],
        *,
        on_selection_confirmed: Callable[[list[Task]], None],
    ) -> None:
        super().__init__(props={"message": message, "tasks": list(tasks)}, state=ScheduleState())
        self.tasks = list(tasks)
        self._define_tasks = [task for task in self.tasks if task.type is TaskType.DEFINE]
        self._on_selection_confirmed = on_selection_confirmed

    @property
    def awaiting_input(self) -> bool:
        return self.activated and not self.state.confirmed

    @property
    def is_terminal(self) -> bool:
        return self.state.confirmed

    @property
    def current_define_task(self) -> Task | None:
        if self.state.confirmed or not self._define_tasks:
            return None
        return self._define_tasks[self.state.current_define_group_index]

    @property
    def current_options(self) -> list[DefineOption]:
        task = self.current_define_task
        return define_options(task) if task is not None else []

    def on_activate(self) -> None:
        if not self._define_tasks:
            self._finish()

    def on_input(self, event: UserInput) -> None:
        count = len(self.current_options)
        if count == 0:
            return
        state = self.state
        if event.intent is Intent.NEXT:
            state.highlighted_index = (
                0 if state.highlighted_index is None else (state.highlighted_index + 1) % count
            )
        elif event.intent is Intent.PREVIOUS:
            state.highlighted_index = (
                count - 1
                if state.highlighted_index is None
                else (state.highlighted_index - 1) % count
            )
        elif event.intent is Intent.SELECT:
            if event.index is not None and 0 <= event.index < count:
                state.highlighted_index = event.index
        elif event.intent is Intent.CONFIRM and state.highlighted_index is not None:
            state.completed_selections.append(state.highlighted_index)
            state.highlighted_index = None
            if len(state.completed_selections) < len(self._define_tasks):
                state.current_define_group_index += 1
            else:
                self._finish()

    def _finish(self) -> None:
        self.state.confirmed = True
        refined = apply_selections(self.tasks, self.state.completed_selections)
        self.on_completed(self.state)
        self._require_workflow().complete_active()
        self._on_selection_confirmed(refined)


@dataclass(slots=True)
class ConfirmState:
    selected_index: int = 0
    confirmed: bool | None = None


class ConfirmStage(Stage):
    """Yes/No question. Index 0 is Yes."""

    kind = StageKind.CONFIRM
    operation = "confirmation"

    def __init__(
        self,
        message: str,
        *,
        on_confirmed: Callable[[], None],
        on_cancelled: Callable[[], None],
    ) -> None:
        super().__init__(props={"message": message}, state=ConfirmState())
        self._on_confirmed = on_confirmed
        self._on_cancelled = on_cancelled

    @property
    def awaiting_input(self) -> bool:
        return self.activated and self.state.confirmed is None

    @property
    def is_terminal(self) -> bool:
        return self.state.confirmed is not None

    def cancel(self) -> None:
        # Escape declines instead of aborting the workflow.
        self.token.cancel()
        self.state.selected_index = 1
        self._commit(accepted=False)

    def on_input(self, event: UserInput) -> None:
        if event.intent in (Intent.NEXT, Intent.PREVIOUS):
            self.state.selected_index = 1 - self.state.selected_index
        elif event.intent is Intent.SELECT and event.index in (0, 1):
            self.state.selected_index = event.index
        elif event.intent is Intent.CONFIRM:
            self._commit(accepted=self.state.selected_index == 0)

    def _commit(self, *, accepted: bool) -> None:
        self.state.confirmed = accepted
        self.on_completed(self.state)
        if accepted:
            self._on_confirmed()
        else:
            self._on_cancelled()


@dataclass(frozen=True, slots=True)
class ConfigStep:
    path: str
    description: str
    value_type: str = "string"
    default: str | None = None


@dataclass(slots=True)
class ConfigState:
    values: dict[str, str] = field(default_factory=dict)
    step_index: int = 0
    error: str | None = None
    saved: bool = False


class ConfigStage(Stage):
    """Ask for one value per step, then save them all through the config store."""

    kind = StageKind.CONFIG
    operation = "configuration"

    def __init__(self, steps: Sequence[ConfigStep], *, store: UserConfigStore) -> None:
        super().__init__(props={"steps": list(steps)}, state=ConfigState())
        self.steps = list(steps)
        self.store = store

    @property
    def awaiting_input(self) -> bool:
        return self.activated and not self.state.saved and self.current_step is not None

    @property
    def is_terminal(self) -> bool:
        return self.state.saved

    @property
    def current_step(self) -> ConfigStep | None:
        if self.state.step_index >= len(self.steps):
            return None
        return self.steps[self.state.step_index]

    def on_activate(self) -> None:
        if not self.steps:
            self._save()

    def on_input(self, event: UserInput) -> None:
        step = self.current_step
        if event.intent is not Intent.SUBMIT or step is None:
            return
        raw = (event.value or "").replace("\n", "").strip()
        if not raw and step.default is not None:
            raw = step.default
        if not raw:
            self.state.error = f"A value for {step.path} is required."
            return
        if not is_valid_config_value(raw, step.value_type):
            self.state.error = f"Expected a {step.value_type} value for {step.path}."
            return
        self.state.error = None
        self.state.values[step.path] = raw
        self.state.step_index += 1
        if self.current_step is None:
            self._save()

    def _save(self) -> None:
        self.state.saved = True
        if self.state.values:
            try:
                self.store.save(
                    self.state.values,
                    types={step.path: step.value_type for step in self.steps},
                )
            except ConfigError as error:
                logger.warning("Saving configuration failed: %s", error)
                self.state.error = str(error)
                self.on_completed(self.state)
                self._require_workflow().complete_active(
                    FeedbackStage(FeedbackType.FAILED, f"Failed to save configuration: {error}"),
                )
                return
        self.on_completed(self.state)
        self.on_saved()

    def on_saved(self) -> None:
        self._require_workflow().complete_active(
            FeedbackStage(FeedbackType.SUCCEEDED, CONFIGURATION_SAVED),
        )


class ValidateStage(ConfigStage):
    """Collect every config value that pending Execute tasks are missing."""

    kind = StageKind.VALIDATE
    operation = "validation"

    def __init__(
        self,
        missing: Sequence[ConfigRequirement],
        *,
        store: UserConfigStore,
        on_validated: Callable[[], None],
    ) -> None:
        super().__init__(
            [
                ConfigStep(
                    path=requirement.path,
                    description=requirement.description or requirement.path,
                    value_type=requirement.type,
                )
                for requirement in missing
            ],
            store=store,
        )
        self.definition = replace(
            self.definition,
            props={**self.definition.props, "missing": list(missing)},
        )
        self._on_validated = on_validated

    def on_saved(self) -> None:
        self._require_workflow().complete_active(
            FeedbackStage(FeedbackType.SUCCEEDED, CONFIGURATION_COMPLETE),
        )
        self._on_validated()
