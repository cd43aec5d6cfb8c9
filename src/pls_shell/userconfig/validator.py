"""Pre-execution check of the config values that Execute tasks depend on."""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Protocol

from pls_shell.orchestrator.models import ConfigRequirement, SkillValidationError, Task
from pls_shell.userconfig.placeholders import (
    extract_placeholders,
    resolve_from_config,
    resolve_variant,
)

_NON_VARIANT_PARAMS = frozenset({"skill", "type", "command"})


@dataclass(frozen=True, slots=True)
class SkillDefinition:
    """Parsed skill as handed over by the skill catalog.

    ``execution`` holds the already expanded command lines; ``issues`` is
    non-empty when the definition is invalid.
    """

    name: str
    execution: tuple[str, ...] = ()
    config_types: Mapping[str, str] = field(default_factory=dict)
    issues: tuple[str, ...] = ()

    @property
    def is_valid(self) -> bool:
        return not self.issues


class SkillCatalog(Protocol):
    def get(self, name: str) -> SkillDefinition | None: ...


@dataclass(slots=True)
class ExecuteValidationResult:
    missing_config: list[ConfigRequirement] = field(default_factory=list)
    validation_errors: list[SkillValidationError] = field(default_factory=list)


def has_config_path(config: Mapping[str, Any], dotted: str) -> bool:
    return resolve_from_config(config, dotted.split(".")) is not None


def task_variant(task: Task) -> str | None:
    """Variant name from ``params.variant`` or the first other string param."""

    params = task.params or {}
    variant = params.get("variant")
    if isinstance(variant, str):
        return variant.lower()
    for key, value in params.items():
        if key not in _NON_VARIANT_PARAMS and isinstance(value, str):
            return value.lower()
    return None


def validate_execute_tasks(
    tasks: Sequence[Task],
    config: Mapping[str, Any],
    skills: SkillCatalog | None = None,
) -> ExecuteValidationResult:
    """Collect invalid skills and config paths missing from ``config``.

    Skill errors short-circuit: when any referenced skill is invalid, no
    missing config is reported.
    """

    errors = _skill_errors(tasks, skills)
    if errors:
        return ExecuteValidationResult(validation_errors=errors)

    result = ExecuteValidationResult()
    seen: set[str] = set()

    def _require(path: str, value_type: str = "string", description: str | None = None) -> None:
        if path in seen:
            return
        seen.add(path)
        if not has_config_path(config, path):
            result.missing_config.append(
                ConfigRequirement(path=path, type=value_type, description=description),
            )

    for task in tasks:
        for path in task.config or ():
            _require(path, description=task.action)

        skill = _lookup_skill(task, skills)
        if skill is not None:
            variant = task_variant(task)
            for line in skill.execution:
                for info in extract_placeholders(line):
                    path = info.path
                    if info.has_variant:
                        if variant is None:
                            continue
                        path = resolve_variant(path, variant)
                    dotted = ".".join(path)
                    _require(dotted, skill.config_types.get(dotted, "string"))
            continue

        for text in _task_texts(task):
            for info in extract_placeholders(text):
                if not info.has_variant:
                    _require(info.dotted, description=task.action)

    return result


def _skill_errors(
    tasks: Iterable[Task],
    skills: SkillCatalog | None,
) -> list[SkillValidationError]:
    errors: list[SkillValidationError] = []
    seen: set[str] = set()
    for task in tasks:
        skill = _lookup_skill(task, skills)
        if skill is None or skill.name in seen:
            continue
        seen.add(skill.name)
        if not skill.is_valid:
            errors.append(SkillValidationError(skill=skill.name, issues=skill.issues))
    return errors


def _lookup_skill(task: Task, skills: SkillCatalog | None) -> SkillDefinition | None:
    name = (task.params or {}).get("skill")
    if skills is None or not isinstance(name, str) or not name:
        return None
    return skills.get(name)


def _task_texts(task: Task) -> list[str]:
    texts = [task.action]
    command = (task.params or {}).get("command")
    if isinstance(command, str):
        texts.append(command)
    return texts
