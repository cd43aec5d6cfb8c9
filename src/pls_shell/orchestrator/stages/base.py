"""Stage controllers: the lifecycle every workflow stage shares."""

from __future__ import annotations

import copy
import threading
from collections.abc import Mapping
from dataclasses import dataclass, replace
from enum import Enum
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, ClassVar

from pls_shell.orchestrator.models import (
    Capability,
    FeedbackType,
    StageDefinition,
    StageKind,
    StageStatus,
    new_stage_id,
)

if TYPE_CHECKING:
    from pls_shell.orchestrator.workflow import Workflow


class Intent(str, Enum):
    """User intents delivered to a stage awaiting input."""

    NEXT = "next"
    PREVIOUS = "previous"
    SELECT = "select"
    CONFIRM = "confirm"
    CANCEL = "cancel"
    SUBMIT = "submit"


@dataclass(frozen=True, slots=True)
class UserInput:
    intent: Intent
    index: int | None = None
    value: str | None = None


class CancellationToken:
    """Set once; long-running work checks it before reporting a result."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


class Stage:
    """Controller owning one stage definition and its continuations.

    The definition is pure data; callbacks live on the controller so the
    timeline only ever stores serializable snapshots.
    """

    kind: ClassVar[StageKind]
    operation: ClassVar[str] = "operation"

    def __init__(
        self,
        *,
        props: Mapping[str, Any] | None = None,
        state: Any = None,
    ) -> None:
        self.definition = StageDefinition(
            id=new_stage_id(),
            name=self.kind,
            props=dict(props or {}),
            state=state,
        )
        self.workflow: Workflow | None = None
        self.activated = False
        self.token = CancellationToken()

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.id[:8]} {self.status.value}>"

    @property
    def id(self) -> str:
        return self.definition.id

    @property
    def name(self) -> StageKind:
        return self.definition.name

    @property
    def status(self) -> StageStatus:
        return self.definition.status

    @property
    def props(self) -> Mapping[str, Any]:
        return self.definition.props

    @property
    def state(self) -> Any:
        return self.definition.state

    @property
    def is_simple(self) -> bool:
        return self.definition.is_simple

    @property
    def awaiting_input(self) -> bool:
        return False

    @property
    def is_terminal(self) -> bool:
        return False

    def bind(self, workflow: Workflow) -> None:
        self.workflow = workflow

    def mark(self, status: StageStatus) -> None:
        self.definition = replace(self.definition, status=status)

    def snapshot(self) -> StageDefinition:
        """Frozen, detached copy for the timeline."""

        return replace(
            self.definition,
            status=StageStatus.DONE,
            props=MappingProxyType(copy.deepcopy(dict(self.definition.props))),
            state=copy.deepcopy(self.definition.state),
        )

    def activate(self) -> None:
        if self.activated:
            return
        self.activated = True
        self.on_activate()

    def on_activate(self) -> None:
        """Start the stage's work; called once, right after it becomes Active."""

    def handle(self, event: UserInput) -> None:
        if event.intent is Intent.CANCEL:
            if not self.is_terminal:
                self.cancel()
            return
        self.on_input(event)

    def on_input(self, event: UserInput) -> None:
        """Process a non-cancel intent."""

    def cancel(self) -> None:
        self.token.cancel()
        self.on_aborted(self.operation)

    def on_completed(self, final_state: Any) -> None:
        self._require_workflow().update_state(self, final_state)

    def on_aborted(self, operation: str) -> None:
        self._require_workflow().abort(operation)

    def on_error(self, message: str) -> None:
        self._require_workflow().error(message)

    def _require_workflow(self) -> Workflow:
        if self.workflow is None:
            raise RuntimeError(f"{self!r} is not attached to a workflow")
        return self.workflow


class FeedbackStage(Stage):
    kind = StageKind.FEEDBACK

    def __init__(self, feedback_type: FeedbackType, message: str) -> None:
        super().__init__(props={"type": feedback_type, "message": message})


class ReportStage(Stage):
    kind = StageKind.REPORT

    def __init__(self, message: str, capabilities: list[Capability]) -> None:
        super().__init__(props={"message": message, "capabilities": list(capabilities)})
