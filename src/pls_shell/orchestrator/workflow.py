"""Workflow state machine: Queue, Active, Pending and Timeline slots."""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any, Protocol

from pls_shell.orchestrator.messages import get_cancellation_message
from pls_shell.orchestrator.models import FeedbackType, StageDefinition, StageKind, StageStatus
from pls_shell.orchestrator.stages.base import FeedbackStage, Intent, Stage, UserInput

logger = logging.getLogger(__name__)


class WorkflowStalledError(RuntimeError):
    """Active stage neither finished nor waits for input."""


class Renderer(Protocol):
    """Display surface driven by the workflow loop."""

    def show(self, workflow: Workflow) -> None:
        """Render the current slots."""

    def request_input(self, stage: Stage) -> UserInput:
        """Block until the user produces an intent for ``stage``."""


class Workflow:
    """Owns exactly one Active stage at a time and moves stages forward.

    A stage lives in exactly one of Queue, Active, Pending or Timeline and only
    ever moves towards the Timeline. Pending holds a finished stage that stays
    visible while a following Confirm stage is Active.
    """

    def __init__(self) -> None:
        self.queue: list[Stage] = []
        self.active: Stage | None = None
        self.pending: Stage | None = None
        self.timeline: list[StageDefinition] = []

    def enqueue(self, *stages: Stage) -> None:
        for stage in stages:
            stage.bind(self)
            self.queue.append(stage)

    def complete_active(self, *follow_ups: Stage) -> None:
        """Move Active to Pending and put ``follow_ups`` at the head of the Queue."""

        if self.active is not None:
            if self.pending is not None:
                self._archive(self.pending)
            self.active.mark(StageStatus.PENDING)
            self.pending = self.active
            self.active = None
            logger.debug("Stage %r moved to pending", self.pending)
        for stage in follow_ups:
            stage.bind(self)
        self.queue[:0] = follow_ups

    def complete_active_and_pending(self, *follow_ups: Stage) -> None:
        """Archive Pending, then Active, and append ``follow_ups`` to the Queue."""

        if self.pending is not None:
            self._archive(self.pending)
            self.pending = None
        if self.active is not None:
            self._archive(self.active)
            self.active = None
        self.enqueue(*follow_ups)

    def abort(self, operation: str) -> None:
        """Archive Active and replace the whole Queue with an aborted feedback."""

        if self.active is not None:
            self._archive(self.active)
            self.active = None
        dropped = len(self.queue)
        self.queue = []
        self.enqueue(FeedbackStage(FeedbackType.ABORTED, get_cancellation_message(operation)))
        logger.debug("Aborted %s, dropped %d queued stage(s)", operation, dropped)

    def error(self, message: str) -> None:
        """Archive Active and append a failed feedback; the Queue is kept."""

        if self.active is not None:
            self._archive(self.active)
            self.active = None
        self.enqueue(FeedbackStage(FeedbackType.FAILED, message))
        logger.debug("Workflow error: %s", message)

    def update_state(self, stage: Stage, final_state: Any) -> None:
        if stage is not self.active:
            return
        stage.definition = replace(stage.definition, state=final_state)

    def cancel_active(self) -> None:
        """Deliver a cancel intent to the Active stage, if any."""

        stage = self.active
        if stage is not None and not stage.is_simple:
            stage.handle(UserInput(Intent.CANCEL))

    def advance(self) -> None:
        """Apply the advancement rule until nothing changes."""

        while self._step():
            pass

    def _step(self) -> bool:
        if self.active is None and self.queue:
            stage = self.queue.pop(0)
            if stage.name is not StageKind.CONFIRM and self.pending is not None:
                self._archive(self.pending)
                self.pending = None
            stage.mark(StageStatus.ACTIVE)
            self.active = stage
            logger.debug("Stage %r is active", stage)
            return True
        if self.active is not None and self.active.is_simple:
            self._archive(self.active)
            self.active = None
            return True
        if self.active is None and not self.queue and self.pending is not None:
            self._archive(self.pending)
            self.pending = None
            return True
        return False

    def _archive(self, stage: Stage) -> None:
        self.timeline.append(stage.snapshot())

    @property
    def finished(self) -> bool:
        return (
            not self.queue
            and self.active is None
            and self.pending is None
            and bool(self.timeline)
        )

    @property
    def exit_code(self) -> int:
        if not self.timeline:
            return 0
        last = self.timeline[-1]
        if last.name is StageKind.FEEDBACK and last.props.get("type") is FeedbackType.FAILED:
            return 1
        return 0

    def run(self, renderer: Renderer | None = None) -> int:
        """Drive stages until the workflow finishes; return the exit code."""

        while True:
            self.advance()
            if renderer is not None:
                renderer.show(self)

            stage = self.active
            if stage is None:
                return self.exit_code

            if not stage.activated:
                stage.activate()
                continue
            if stage.awaiting_input:
                if renderer is None:
                    raise WorkflowStalledError(f"{stage!r} waits for input but no renderer is set")
                stage.handle(renderer.request_input(stage))
                continue
            raise WorkflowStalledError(f"{stage!r} is active but has nothing left to do")
