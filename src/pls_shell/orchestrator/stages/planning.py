"""Stages backed by one planner call: request planning, answers and introspection."""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field

from pls_shell.orchestrator.models import Capability, CapabilityOrigin, StageKind, Task
from pls_shell.orchestrator.stages.base import ReportStage, Stage
from pls_shell.planner.base import Planner, PlannerError

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class CommandState:
    message: str = ""
    tasks: list[Task] = field(default_factory=list)
    error: str | None = None


class CommandStage(Stage):
    """Plan the user's raw request, then hand the tasks to the router."""

    kind = StageKind.COMMAND
    operation = "request"

    def __init__(
        self,
        request: str,
        *,
        planner: Planner,
        route: Callable[[list[Task], str], None],
    ) -> None:
        super().__init__(props={"request": request}, state=CommandState())
        self.request = request
        self.planner = planner
        self._route = route

    def on_activate(self) -> None:
        try:
            result = self.planner.plan(self.request)
        except PlannerError as error:
            if self.token.cancelled:
                return
            self.state.error = str(error)
            self.on_completed(self.state)
            self.on_error(str(error))
            return
        if self.token.cancelled:
            logger.debug("Discarding plan for cancelled request %r", self.request)
            return

        self.state.message = result.message
        self.state.tasks = list(result.tasks)
        self.on_completed(self.state)
        self._require_workflow().complete_active()
        self._route(list(result.tasks), result.message)


@dataclass(slots=True)
class AnswerState:
    answer: str | None = None
    error: str | None = None


class AnswerStage(Stage):
    kind = StageKind.ANSWER
    operation = "answer"

    def __init__(self, question: str, *, planner: Planner, upcoming: Sequence[str] = ()) -> None:
        super().__init__(
            props={"question": question, "upcoming": list(upcoming)},
            state=AnswerState(),
        )
        self.question = question
        self.planner = planner

    def on_activate(self) -> None:
        try:
            answer = self.planner.answer(self.question)
        except PlannerError as error:
            if self.token.cancelled:
                return
            self.state.error = str(error)
            self.on_completed(self.state)
            self.on_error(str(error))
            return
        if self.token.cancelled:
            return

        self.state.answer = answer
        self.on_completed(self.state)
        self._require_workflow().complete_active()


@dataclass(slots=True)
class IntrospectState:
    message: str = ""
    capabilities: list[Capability] = field(default_factory=list)
    error: str | None = None


class IntrospectStage(Stage):
    """Ask the planner what it can do and publish a report."""

    kind = StageKind.INTROSPECT
    operation = "introspection"

    def __init__(self, tasks: Sequence[Task], *, planner: Planner, debug: bool = False) -> None:
        super().__init__(props={"tasks": list(tasks)}, state=IntrospectState())
        self.tasks = list(tasks)
        self.planner = planner
        self.debug = debug

    def on_activate(self) -> None:
        action = self.tasks[0].action if self.tasks else "list capabilities"
        try:
            result = self.planner.introspect(action)
        except PlannerError as error:
            if self.token.cancelled:
                return
            self.state.error = str(error)
            self.on_completed(self.state)
            self.on_error(str(error))
            return
        if self.token.cancelled:
            return

        capabilities = [
            capability
            for capability in result.capabilities
            if self.debug or capability.origin is not CapabilityOrigin.INDIRECT
        ]
        self.state.message = result.message
        self.state.capabilities = capabilities
        self.on_completed(self.state)
        self._require_workflow().complete_active(ReportStage(result.message, capabilities))
