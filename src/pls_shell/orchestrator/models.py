"""Typed domain models for tasks, stages and command execution."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any
from uuid import uuid4


class TaskType(str, Enum):
    """Task kinds emitted by the planner."""

    EXECUTE = "execute"
    ANSWER = "answer"
    INTROSPECT = "introspect"
    CONFIG = "config"
    DEFINE = "define"
    IGNORE = "ignore"
    DISCARD = "discard"
    GROUP = "group"
    REPORT = "report"
    SCHEDULE = "schedule"


class StageKind(str, Enum):
    """Kinds of workflow stages."""

    COMMAND = "command"
    SCHEDULE = "schedule"
    CONFIRM = "confirm"
    VALIDATE = "validate"
    EXECUTE = "execute"
    ANSWER = "answer"
    INTROSPECT = "introspect"
    CONFIG = "config"
    FEEDBACK = "feedback"
    REPORT = "report"


class StageStatus(str, Enum):
    """Lifecycle position of a stage inside the workflow."""

    AWAITING = "awaiting"
    ACTIVE = "active"
    PENDING = "pending"
    DONE = "done"


class FeedbackType(str, Enum):
    """Outcome flavour of a feedback stage."""

    INFO = "info"
    SUCCEEDED = "succeeded"
    ABORTED = "aborted"
    FAILED = "failed"


class ExecutionStatus(str, Enum):
    """Lifecycle of one task inside an Execute stage."""

    PENDING = "pending"
    RUNNING = "running"
    SUCCESS = "success"
    FAILED = "failed"
    ABORTED = "aborted"
    CANCELLED = "cancelled"


class ExecutionResult(str, Enum):
    """Outcome of one shell command."""

    SUCCESS = "success"
    ERROR = "error"
    ABORTED = "aborted"


class CapabilityOrigin(str, Enum):
    """Where an introspected capability comes from."""

    SYSTEM = "system"
    USER = "user"
    INDIRECT = "indirect"


@dataclass(frozen=True, slots=True)
class Task:
    """One planner task. Immutable once parsed."""

    action: str
    type: TaskType
    params: Mapping[str, Any] | None = None
    config: tuple[str, ...] | None = None
    subtasks: tuple[Task, ...] | None = None


@dataclass(frozen=True, slots=True)
class DefineOption:
    """One alternative offered by a Define task."""

    label: str
    command: str | None = None


@dataclass(frozen=True, slots=True)
class StageDefinition:
    """Pure-data description of a stage as stored in the timeline.

    ``state is None`` marks a simple stage that auto-completes on activation.
    """

    id: str
    name: StageKind
    status: StageStatus = StageStatus.AWAITING
    props: Mapping[str, Any] = field(default_factory=dict)
    state: Any = None

    @property
    def is_simple(self) -> bool:
        return self.state is None


@dataclass(frozen=True, slots=True)
class ExecuteCommand:
    """Concrete shell step for the execution engine."""

    description: str
    command: str
    workdir: str | None = None
    timeout_seconds: float | None = None


@dataclass(slots=True)
class TaskOutput:
    """Captured (line-capped) output of one task."""

    stdout: str = ""
    stderr: str = ""


@dataclass(slots=True)
class TaskData:
    """Per-task progress record owned by an Execute stage."""

    label: str
    command: ExecuteCommand
    status: ExecutionStatus = ExecutionStatus.PENDING
    elapsed: float = 0.0
    output: TaskOutput | None = None
    error: str | None = None
    started_at: float | None = None


@dataclass(slots=True)
class CommandOutput:
    """Outcome of one shell command run by the engine."""

    description: str
    command: str
    stdout: str
    stderr: str
    result: ExecutionResult
    error: str | None = None
    workdir: str | None = None
    exit_code: int | None = None


@dataclass(frozen=True, slots=True)
class ConfigRequirement:
    """Config path that a task needs but the user config lacks."""

    path: str
    type: str = "string"
    description: str | None = None


@dataclass(frozen=True, slots=True)
class SkillValidationError:
    """Structural problems found in a skill definition."""

    skill: str
    issues: tuple[str, ...]


@dataclass(frozen=True, slots=True)
class Capability:
    """One entry of an introspection report."""

    name: str
    description: str
    origin: CapabilityOrigin = CapabilityOrigin.SYSTEM


def new_stage_id() -> str:
    return uuid4().hex
