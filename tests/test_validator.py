from __future__ import annotations

import allure

from pls_shell.orchestrator.models import ConfigRequirement, Task, TaskType
from pls_shell.userconfig.validator import SkillDefinition, task_variant, validate_execute_tasks

pytestmark = [
    allure.epic("User Config"),
    allure.feature("Execute Validation"),
]


class _Skills:
    def __init__(self, *skills: SkillDefinition) -> None:
        self._skills = {skill.name: skill for skill in skills}

    def get(self, name: str) -> SkillDefinition | None:
        return self._skills.get(name)


def _execute(action: str, **params) -> Task:
    return Task(action=action, type=TaskType.EXECUTE, params=params or None)


def test_missing_placeholders_are_reported_once_in_order() -> None:
    tasks = [
        _execute("Build {project.name}", command="make -C {project.path}"),
        _execute("Again", command="echo {project.path} {user.email}"),
    ]

    result = validate_execute_tasks(tasks, {"user": {"email": "me@example.com"}})

    assert result.validation_errors == []
    assert [item.path for item in result.missing_config] == ["project.name", "project.path"]
    assert result.missing_config[0].description == "Build {project.name}"


def test_explicit_config_paths_are_required() -> None:
    task = Task(action="Deploy", type=TaskType.EXECUTE, config=("deploy.host",))

    result = validate_execute_tasks([task], {})

    assert result.missing_config == [
        ConfigRequirement(path="deploy.host", type="string", description="Deploy"),
    ]


def test_present_values_and_variant_placeholders_are_not_missing() -> None:
    tasks = [_execute("Open", command="cd {project.path} && code {project.ALPHA.repo}")]

    result = validate_execute_tasks(tasks, {"project": {"path": "/src"}})

    assert result.missing_config == []


def test_skill_placeholders_resolve_the_task_variant() -> None:
    skills = _Skills(
        SkillDefinition(
            name="build",
            execution=("cd {project.VARIANT.repo}", "make {build.VERBOSE.flag} {build.jobs}"),
            config_types={"build.jobs": "number"},
        ),
    )
    task = _execute("Build beta", skill="build", variant="Beta")

    result = validate_execute_tasks(
        [task],
        {"project": {"beta": {"repo": "/src/beta"}}},
        skills,
    )

    assert [(item.path, item.type) for item in result.missing_config] == [
        ("build.beta.flag", "string"),
        ("build.jobs", "number"),
    ]


def test_invalid_skill_short_circuits_missing_config() -> None:
    skills = _Skills(
        SkillDefinition(name="broken", execution=("echo {a.b}",), issues=("no steps",)),
    )
    tasks = [
        _execute("One", skill="broken"),
        _execute("Two", skill="broken", command="echo {c.d}"),
    ]

    result = validate_execute_tasks(tasks, {}, skills)

    assert result.missing_config == []
    assert [(item.skill, item.issues) for item in result.validation_errors] == [
        ("broken", ("no steps",)),
    ]


def test_task_variant_prefers_explicit_variant_param() -> None:
    assert task_variant(_execute("x", variant="Alpha", target="beta")) == "alpha"
    assert task_variant(_execute("x", skill="s", command="c", target="Prod")) == "prod"
    assert task_variant(_execute("x", skill="s")) is None
