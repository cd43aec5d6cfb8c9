"""Workflow stage controllers."""

from pls_shell.orchestrator.stages.base import (
    CancellationToken,
    FeedbackStage,
    Intent,
    ReportStage,
    Stage,
    UserInput,
)
from pls_shell.orchestrator.stages.execute import ExecuteStage, ExecuteState, ProgressTicker
from pls_shell.orchestrator.stages.interactive import (
    ConfigStage,
    ConfigState,
    ConfigStep,
    ConfirmStage,
    ConfirmState,
    ScheduleStage,
    ScheduleState,
    ValidateStage,
)
from pls_shell.orchestrator.stages.planning import (
    AnswerStage,
    AnswerState,
    CommandStage,
    CommandState,
    IntrospectStage,
    IntrospectState,
)

__all__ = [
    "AnswerStage",
    "AnswerState",
    "CancellationToken",
    "CommandStage",
    "CommandState",
    "ConfigStage",
    "ConfigState",
    "ConfigStep",
    "ConfirmStage",
    "ConfirmState",
    "ExecuteStage",
    "ExecuteState",
    "FeedbackStage",
    "Intent",
    "IntrospectStage",
    "IntrospectState",
    "ProgressTicker",
    "ReportStage",
    "ScheduleStage",
    "ScheduleState",
    "Stage",
    "UserInput",
    "ValidateStage",
]
