"""Turn planner task lists into an ordered sequence of workflow stages."""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field

from pls_shell.execution.shell import OutputCallback, ShellExecutor
from pls_shell.orchestrator.messages import (
    format_skill_errors,
    get_cancellation_message,
    get_confirmation_message,
    get_unknown_request_message,
)
from pls_shell.orchestrator.models import FeedbackType, Task, TaskType
from pls_shell.orchestrator.stages import (
    AnswerStage,
    CommandStage,
    ConfigStage,
    ConfigStep,
    ConfirmStage,
    ExecuteStage,
    FeedbackStage,
    IntrospectStage,
    ScheduleStage,
    Stage,
    ValidateStage,
)
from pls_shell.orchestrator.tasks import (
    MixedTaskTypesError,
    check_group_types,
    collect_execute_tasks,
    filter_actionable,
    flatten_groups,
    has_define_task,
    operation_name,
)
from pls_shell.orchestrator.workflow import Workflow
from pls_shell.planner.base import Planner
from pls_shell.userconfig.store import ConfigError, UserConfigStore, flatten_config
from pls_shell.userconfig.validator import SkillCatalog, validate_execute_tasks

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class _Unit:
    """One Execute or Answer stage to be dispatched."""

    type: TaskType
    name: str
    tasks: list[Task] = field(default_factory=list)
    label: str | None = None


class TaskRouter:
    """Route tasks through selection, confirmation, validation and dispatch."""

    def __init__(  # noqa: PLR0913
        self,
        workflow: Workflow,
        *,
        planner: Planner,
        executor: ShellExecutor,
        config_store: UserConfigStore,
        skills: SkillCatalog | None = None,
        debug: bool = False,
        tick_interval_seconds: float = 1.0,
        on_output: OutputCallback | None = None,
        on_progress: Callable[[ExecuteStage], None] | None = None,
    ) -> None:
        self.workflow = workflow
        self.planner = planner
        self.executor = executor
        self.config_store = config_store
        self.skills = skills
        self.debug = debug
        self.tick_interval_seconds = tick_interval_seconds
        self.on_output = on_output
        self.on_progress = on_progress

    def submit(self, request: str) -> None:
        """Queue planning of a free-text request."""

        self.workflow.enqueue(CommandStage(request, planner=self.planner, route=self.route))

    def route(self, tasks: Sequence[Task], message: str) -> None:
        valid = filter_actionable(flatten_groups(tasks))
        if not valid:
            self.workflow.enqueue(FeedbackStage(FeedbackType.INFO, get_unknown_request_message()))
            return

        if has_define_task(valid):
            self.workflow.enqueue(
                ScheduleStage(
                    message,
                    valid,
                    on_selection_confirmed=lambda refined: self.route(refined, message),
                ),
            )
            return

        operation = operation_name(valid)

        def _confirmed() -> None:
            self.workflow.complete_active_and_pending()
            self._after_confirmation(valid)

        def _declined() -> None:
            self.workflow.complete_active_and_pending(
                FeedbackStage(FeedbackType.ABORTED, get_cancellation_message(operation)),
            )

        def _scheduled(_refined: list[Task]) -> None:
            self.workflow.enqueue(
                ConfirmStage(
                    get_confirmation_message(),
                    on_confirmed=_confirmed,
                    on_cancelled=_declined,
                ),
            )

        self.workflow.enqueue(ScheduleStage(message, valid, on_selection_confirmed=_scheduled))

    def _after_confirmation(self, tasks: list[Task]) -> None:
        try:
            check_group_types(tasks)
        except MixedTaskTypesError as error:
            self.workflow.error(str(error))
            return

        execute_tasks = collect_execute_tasks(tasks)
        if execute_tasks:
            try:
                config = self.config_store.load()
            except ConfigError as error:
                self.workflow.error(str(error))
                return
            result = validate_execute_tasks(execute_tasks, config, self.skills)
            if result.validation_errors:
                message = "\n\n".join(
                    format_skill_errors(item.skill, item.issues) for item in result.validation_errors
                )
                self.workflow.enqueue(FeedbackStage(FeedbackType.FAILED, message))
                return
            if result.missing_config:
                logger.debug(
                    "Missing config: %s",
                    ", ".join(item.path for item in result.missing_config),
                )
                self.workflow.enqueue(
                    ValidateStage(
                        result.missing_config,
                        store=self.config_store,
                        on_validated=lambda: self.dispatch(tasks),
                    ),
                )
                return

        self.dispatch(tasks)

    def dispatch(self, tasks: Sequence[Task]) -> None:
        """Enqueue the stages that carry out confirmed, validated tasks.

        Config tasks come first as one stage, then Execute and Answer units in
        order, then one Introspect stage.
        """

        config_tasks: list[Task] = []
        introspect_tasks: list[Task] = []
        units: list[_Unit] = []
        for task in tasks:
            if task.type is TaskType.CONFIG:
                config_tasks.append(task)
            elif task.type is TaskType.INTROSPECT:
                introspect_tasks.append(task)
            elif task.type is TaskType.EXECUTE:
                units.append(_Unit(type=TaskType.EXECUTE, name=task.action, tasks=[task]))
            elif task.type is TaskType.ANSWER:
                units.append(_Unit(type=TaskType.ANSWER, name=task.action, tasks=[task]))
            elif task.type is TaskType.GROUP:
                units.extend(self._group_units(task, config_tasks, introspect_tasks))
            else:
                logger.debug("Skipping %s task %r", task.type.value, task.action)

        stages: list[Stage] = []
        if config_tasks:
            stages.append(self._config_stage(config_tasks))
        names = [unit.name for unit in units]
        for index, unit in enumerate(units):
            upcoming = names[index + 1 :]
            if unit.type is TaskType.EXECUTE:
                stages.append(
                    ExecuteStage(
                        unit.tasks,
                        planner=self.planner,
                        executor=self.executor,
                        load_config=self.config_store.load,
                        label=unit.label,
                        upcoming=upcoming,
                        tick_interval_seconds=self.tick_interval_seconds,
                        on_output=self.on_output,
                        on_progress=self.on_progress,
                    ),
                )
            else:
                stages.append(
                    AnswerStage(unit.tasks[0].action, planner=self.planner, upcoming=upcoming),
                )
        if introspect_tasks:
            stages.append(IntrospectStage(introspect_tasks, planner=self.planner, debug=self.debug))
        self.workflow.enqueue(*stages)

    @staticmethod
    def _group_units(
        group: Task,
        config_tasks: list[Task],
        introspect_tasks: list[Task],
    ) -> list[_Unit]:
        subtasks = list(group.subtasks or ())
        units: list[_Unit] = []
        execute = [item for item in subtasks if item.type is TaskType.EXECUTE]
        if execute:
            units.append(
                _Unit(type=TaskType.EXECUTE, name=group.action, tasks=execute, label=group.action),
            )
        for item in subtasks:
            if item.type is TaskType.ANSWER:
                units.append(_Unit(type=TaskType.ANSWER, name=item.action, tasks=[item]))
            elif item.type is TaskType.CONFIG:
                config_tasks.append(item)
            elif item.type is TaskType.INTROSPECT:
                introspect_tasks.append(item)
        return units

    def _config_stage(self, tasks: list[Task]) -> ConfigStage:
        try:
            current = flatten_config(self.config_store.load())
        except ConfigError:
            current = {}
        steps: list[ConfigStep] = []
        seen: set[str] = set()
        for task in tasks:
            params = task.params or {}
            keys = params.get("keys") or ([params["key"]] if "key" in params else [])
            for key in keys:
                if not isinstance(key, str) or key in seen:
                    continue
                seen.add(key)
                value = current.get(key)
                steps.append(
                    ConfigStep(
                        path=key,
                        description=task.action or key,
                        value_type=str(params.get("value_type", _infer_type(value))),
                        default=_render_default(value),
                    ),
                )
        return ConfigStage(steps, store=self.config_store)


def _infer_type(value: object) -> str:
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, int | float):
        return "number"
    return "string"


def _render_default(value: object) -> str | None:
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)
