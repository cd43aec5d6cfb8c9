"""Planner that serves a pre-built task list without a language model."""

from __future__ import annotations

from collections.abc import Sequence

from pls_shell.orchestrator.models import Capability, CapabilityOrigin, ExecuteCommand, Task
from pls_shell.planner.base import CommandPlan, IntrospectResult, PlannerError, PlanResult

BUILTIN_CAPABILITIES: tuple[Capability, ...] = (
    Capability("Execute", "Run shell commands, one step at a time."),
    Capability("Config", "Store values used by {placeholders} in commands."),
    Capability("Introspect", "List what pls can do."),
    Capability("Schedule", "Let you pick between alternatives.", CapabilityOrigin.INDIRECT),
    Capability("Validate", "Ask for configuration a task is missing.", CapabilityOrigin.INDIRECT),
)


class StaticPlanner:
    """Replays a fixed plan; every Execute task must carry ``params.command``."""

    def __init__(self, result: PlanResult | None = None) -> None:
        self.result = result or PlanResult(message="")

    def plan(self, request: str) -> PlanResult:
        return self.result

    def commands(self, tasks: Sequence[Task]) -> CommandPlan:
        commands: list[ExecuteCommand] = []
        for task in tasks:
            command = (task.params or {}).get("command")
            if not isinstance(command, str) or not command.strip():
                raise PlannerError(f"No command given for task {task.action!r}.")
            commands.append(ExecuteCommand(description=task.action, command=command))
        return CommandPlan(message="", summary="", commands=commands)

    def answer(self, question: str) -> str:
        raise PlannerError("Answering questions needs a language model; use `pls ask`.")

    def introspect(self, action: str) -> IntrospectResult:
        return IntrospectResult(
            message="Here is what I can do:",
            capabilities=list(BUILTIN_CAPABILITIES),
        )
