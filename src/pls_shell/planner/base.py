"""Planner interface: the language model that turns requests into tasks."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Protocol

from pls_shell.orchestrator.models import Capability, ExecuteCommand, Task


class PlannerError(RuntimeError):
    """Planner request failed or returned an unusable payload."""


@dataclass(slots=True)
class PlanResult:
    """Tasks planned for one user request."""

    message: str
    tasks: list[Task] = field(default_factory=list)


@dataclass(slots=True)
class CommandPlan:
    """Concrete shell steps for a list of Execute tasks."""

    message: str
    summary: str
    commands: list[ExecuteCommand] = field(default_factory=list)


@dataclass(slots=True)
class IntrospectResult:
    message: str
    capabilities: list[Capability] = field(default_factory=list)


class Planner(Protocol):
    """Protocol implemented by planner clients."""

    def plan(self, request: str) -> PlanResult:
        """Turn a free-text request into typed tasks."""

    def commands(self, tasks: Sequence[Task]) -> CommandPlan:
        """Turn Execute task actions into shell commands."""

    def answer(self, question: str) -> str:
        """Answer a question in plain text."""

    def introspect(self, action: str) -> IntrospectResult:
        """List the assistant's capabilities."""
