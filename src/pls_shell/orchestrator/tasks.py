"""Task parsing, serialization and structural helpers used by the router."""

from __future__ import annotations

import json
from collections.abc import Iterable, Iterator, Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from pls_shell.orchestrator.models import DefineOption, Task, TaskType

_SKIPPED_TYPES = frozenset({TaskType.IGNORE, TaskType.DISCARD})


class TaskParseError(ValueError):
    """Planner payload cannot be turned into tasks."""


class MixedTaskTypesError(ValueError):
    """A group bundles task types that cannot run together."""


@dataclass(slots=True)
class TaskFile:
    """Task list loaded from disk for `pls run`."""

    message: str
    tasks: list[Task]


def parse_task(payload: Any) -> Task:
    """Build one task from its JSON object."""

    if not isinstance(payload, Mapping):
        raise TaskParseError("task must be an object")
    action = payload.get("action", "")
    raw_type = payload.get("type")
    params = payload.get("params")
    config = payload.get("config")
    subtasks = payload.get("subtasks")
    if not isinstance(action, str):
        raise TaskParseError("task.action must be a string")
    try:
        task_type = TaskType(str(raw_type).lower())
    except ValueError as error:
        raise TaskParseError(f"Unknown task type: {raw_type!r}") from error
    if params is not None and not isinstance(params, Mapping):
        raise TaskParseError("task.params must be an object when provided")
    if config is not None and (
        not isinstance(config, list) or not all(isinstance(item, str) for item in config)
    ):
        raise TaskParseError("task.config must be an array of strings when provided")
    if subtasks is not None and not isinstance(subtasks, list):
        raise TaskParseError("task.subtasks must be an array when provided")

    return Task(
        action=action,
        type=task_type,
        params=dict(params) if params is not None else None,
        config=tuple(config) if config is not None else None,
        subtasks=tuple(parse_task(item) for item in subtasks) if subtasks is not None else None,
    )


def parse_tasks(payload: Any) -> list[Task]:
    if not isinstance(payload, list):
        raise TaskParseError("tasks must be an array")
    return [parse_task(item) for item in payload]


def task_to_dict(task: Task) -> dict[str, Any]:
    """Serialize a task back to its JSON shape, omitting absent fields."""

    payload: dict[str, Any] = {"action": task.action, "type": task.type.value}
    if task.params is not None:
        payload["params"] = dict(task.params)
    if task.config is not None:
        payload["config"] = list(task.config)
    if task.subtasks is not None:
        payload["subtasks"] = [task_to_dict(item) for item in task.subtasks]
    return payload


def load_task_file(path: Path) -> TaskFile:
    """Read a task list saved as JSON: either an array or ``{message, tasks}``."""

    try:
        raw = json.loads(path.read_text("utf-8"))
    except json.JSONDecodeError as error:
        raise TaskParseError(f"Invalid task file {path}: {error}") from error
    if isinstance(raw, list):
        return TaskFile(message="", tasks=parse_tasks(raw))
    if not isinstance(raw, dict):
        raise TaskParseError(f"Expected JSON array or object in {path}")
    message = raw.get("message", "")
    if not isinstance(message, str):
        raise TaskParseError("task file message must be a string")
    return TaskFile(message=message, tasks=parse_tasks(raw.get("tasks")))


def flatten_groups(tasks: Iterable[Task]) -> list[Task]:
    """Keep top-level groups as labelled bundles, dissolving nested ones."""

    flattened: list[Task] = []
    for task in tasks:
        if task.type is TaskType.GROUP:
            flattened.append(
                Task(
                    action=task.action,
                    type=task.type,
                    params=task.params,
                    config=task.config,
                    subtasks=tuple(_leaves(task.subtasks or ())),
                ),
            )
        else:
            flattened.append(task)
    return flattened


def _leaves(tasks: Iterable[Task]) -> Iterator[Task]:
    for task in tasks:
        if task.type is TaskType.GROUP:
            yield from _leaves(task.subtasks or ())
        else:
            yield task


def filter_actionable(tasks: Iterable[Task]) -> list[Task]:
    """Drop Ignore/Discard tasks, also inside groups; empty groups go too."""

    kept: list[Task] = []
    for task in tasks:
        if task.type in _SKIPPED_TYPES:
            continue
        if task.type is TaskType.GROUP:
            subtasks = tuple(item for item in task.subtasks or () if item.type not in _SKIPPED_TYPES)
            if not subtasks:
                continue
            if len(subtasks) != len(task.subtasks or ()):
                task = Task(
                    action=task.action,
                    type=task.type,
                    params=task.params,
                    config=task.config,
                    subtasks=subtasks,
                )
        kept.append(task)
    return kept


def has_define_task(tasks: Iterable[Task]) -> bool:
    return any(task.type is TaskType.DEFINE for task in tasks)


def leaf_types(tasks: Iterable[Task]) -> list[TaskType]:
    types: list[TaskType] = []
    for task in tasks:
        if task.type is TaskType.GROUP:
            types.extend(item.type for item in task.subtasks or ())
        else:
            types.append(task.type)
    return types


def operation_name(tasks: Sequence[Task]) -> str:
    """Name of the overall operation, used in cancellation messages."""

    types = leaf_types(tasks)
    if types and all(item is TaskType.INTROSPECT for item in types):
        return "introspection"
    if types and all(item is TaskType.ANSWER for item in types):
        return "answer"
    return "execution"


def define_options(task: Task) -> list[DefineOption]:
    """Alternatives of a Define task, accepting plain labels or ``{label, command}``."""

    raw_options = (task.params or {}).get("options") or []
    options: list[DefineOption] = []
    for item in raw_options:
        if isinstance(item, str):
            options.append(DefineOption(label=item))
        elif isinstance(item, Mapping) and isinstance(item.get("label"), str):
            command = item.get("command")
            options.append(
                DefineOption(
                    label=item["label"],
                    command=command if isinstance(command, str) and command else None,
                ),
            )
    return options


def apply_selections(tasks: Sequence[Task], selections: Sequence[int]) -> list[Task]:
    """Replace each Define task, in order, by an Execute task for the chosen option."""

    refined: list[Task] = []
    choice = iter(selections)
    for task in tasks:
        if task.type is not TaskType.DEFINE:
            refined.append(task)
            continue
        options = define_options(task)
        index = next(choice, None)
        if index is None or not 0 <= index < len(options):
            raise IndexError(f"No valid selection for define task {task.action!r}")
        option = options[index]
        refined.append(
            Task(
                action=option.label,
                type=TaskType.EXECUTE,
                params={"command": option.command} if option.command else None,
                config=(),
            ),
        )
    return refined


def check_group_types(tasks: Iterable[Task]) -> None:
    """Reject groups whose subtasks mix kinds that cannot share one stage.

    A group may hold Execute and Answer subtasks together; any other mix is
    a structural error.
    """

    for task in tasks:
        if task.type is not TaskType.GROUP:
            continue
        kinds = {item.type for item in task.subtasks or ()}
        if len(kinds) <= 1 or kinds <= {TaskType.EXECUTE, TaskType.ANSWER}:
            continue
        names = ", ".join(sorted(kind.value for kind in kinds))
        raise MixedTaskTypesError(
            f'Group "{task.action}" mixes task types that cannot run together: {names}.',
        )


def collect_execute_tasks(tasks: Iterable[Task]) -> list[Task]:
    """All Execute tasks, standalone and inside groups."""

    collected: list[Task] = []
    for task in tasks:
        if task.type is TaskType.EXECUTE:
            collected.append(task)
        elif task.type is TaskType.GROUP:
            collected.extend(item for item in task.subtasks or () if item.type is TaskType.EXECUTE)
    return collected
