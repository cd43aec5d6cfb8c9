"""Shared test fixtures."""

from __future__ import annotations

import os
from collections.abc import Sequence

import pytest

from pls_shell.orchestrator.models import Capability, Task
from pls_shell.orchestrator.stages import Stage, UserInput
from pls_shell.orchestrator.workflow import Workflow
from pls_shell.planner.base import CommandPlan, IntrospectResult, PlannerError, PlanResult
from pls_shell.planner.static import StaticPlanner


class ScriptedRenderer:
    """Renderer that answers prompts from a fixed list of intents."""

    def __init__(self, *inputs: UserInput) -> None:
        self.inputs = list(inputs)
        self.prompted: list[Stage] = []
        self.shows = 0

    def show(self, workflow: Workflow) -> None:
        self.shows += 1

    def request_input(self, stage: Stage) -> UserInput:
        self.prompted.append(stage)
        if not self.inputs:
            raise AssertionError(f"Unexpected prompt for {stage!r}")
        return self.inputs.pop(0)


class FakePlanner:
    """In-memory planner recording every call."""

    def __init__(self) -> None:
        self.plan_result = PlanResult(message="")
        self.command_plan: CommandPlan | None = None
        self.answers: dict[str, str] = {}
        self.capabilities: list[Capability] = []
        self.error: PlannerError | None = None
        self.calls: list[tuple[str, object]] = []

    def plan(self, request: str) -> PlanResult:
        self.calls.append(("plan", request))
        if self.error is not None:
            raise self.error
        return self.plan_result

    def commands(self, tasks: Sequence[Task]) -> CommandPlan:
        self.calls.append(("commands", [task.action for task in tasks]))
        if self.error is not None:
            raise self.error
        if self.command_plan is not None:
            return self.command_plan
        return StaticPlanner().commands(tasks)

    def answer(self, question: str) -> str:
        self.calls.append(("answer", question))
        if question not in self.answers:
            raise PlannerError(f"No answer for {question!r}")
        return self.answers[question]

    def introspect(self, action: str) -> IntrospectResult:
        self.calls.append(("introspect", action))
        return IntrospectResult(message="Capabilities:", capabilities=list(self.capabilities))


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch, tmp_path):
    """Keep user environment and home config out of every test."""

    for name in list(os.environ):
        if name.startswith("PLS_"):
            monkeypatch.delenv(name)
    monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
    monkeypatch.setenv("PLS_CONFIG_PATH", str(tmp_path / "pls.json"))


@pytest.fixture()
def scripted_renderer():
    return ScriptedRenderer


@pytest.fixture()
def fake_planner() -> FakePlanner:
    return FakePlanner()
