from __future__ import annotations

import threading
import time
from pathlib import Path

import allure

from pls_shell.execution.buffers import WORKDIR_MARKER
from pls_shell.execution.shell import ShellExecutor
from pls_shell.orchestrator.messages import NO_COMMANDS
from pls_shell.orchestrator.models import (
    ExecuteCommand,
    ExecutionResult,
    ExecutionStatus,
    FeedbackType,
    StageKind,
    Task,
    TaskType,
)
from pls_shell.orchestrator.stages import ExecuteStage
from pls_shell.orchestrator.workflow import Workflow
from pls_shell.planner.base import CommandPlan, PlannerError

pytestmark = [
    allure.epic("Shell Execution"),
    allure.feature("Execute Stage"),
]


def _shell(action: str, command: str, **params) -> Task:
    return Task(action=action, type=TaskType.EXECUTE, params={"command": command, **params})


def _stage(tasks, planner, config=None, **kwargs) -> ExecuteStage:
    return ExecuteStage(
        tasks,
        planner=planner,
        executor=ShellExecutor(),
        load_config=lambda: config or {},
        tick_interval_seconds=0.05,
        **kwargs,
    )


def _run(stage: ExecuteStage) -> tuple[Workflow, int]:
    workflow = Workflow()
    workflow.enqueue(stage)
    return workflow, workflow.run()


def _statuses(stage: ExecuteStage) -> list[ExecutionStatus]:
    return [data.status for data in stage.state.tasks]


def test_empty_task_list_completes_without_commands(fake_planner) -> None:
    stage = _stage([], fake_planner)

    workflow, exit_code = _run(stage)

    assert exit_code == 0
    assert stage.state.completion_message == NO_COMMANDS
    assert [definition.name for definition in workflow.timeline] == [StageKind.EXECUTE]


def test_tasks_run_in_order_and_report_duration(fake_planner) -> None:
    stage = _stage([_shell("One", "echo one"), _shell("Two", "echo two")], fake_planner)

    _, exit_code = _run(stage)

    assert exit_code == 0
    assert _statuses(stage) == [ExecutionStatus.SUCCESS, ExecutionStatus.SUCCESS]
    assert [data.output.stdout for data in stage.state.tasks] == ["one", "two"]
    assert stage.state.completion_message.startswith("Execution completed in ")
    assert fake_planner.calls == []


def test_failure_halts_and_leaves_later_tasks_pending(fake_planner) -> None:
    stage = _stage(
        [_shell("First", "echo first"), _shell("Broken", "false"), _shell("Third", "echo third")],
        fake_planner,
    )

    workflow, exit_code = _run(stage)

    assert exit_code == 1
    assert _statuses(stage) == [
        ExecutionStatus.SUCCESS,
        ExecutionStatus.FAILED,
        ExecutionStatus.PENDING,
    ]
    feedback = workflow.timeline[-1]
    assert feedback.props["type"] is FeedbackType.FAILED
    assert feedback.props["message"] == (
        'Task "Broken" failed: Command failed with exit code 1.'
    )
    assert workflow.timeline[0].state.tasks[1].status is ExecutionStatus.FAILED


def test_working_directory_carries_to_next_task(tmp_path: Path, fake_planner) -> None:
    stage = _stage([_shell("Enter", f"cd '{tmp_path}'"), _shell("Where", "pwd")], fake_planner)

    _, exit_code = _run(stage)

    assert exit_code == 0
    assert Path(stage.state.tasks[1].output.stdout).resolve() == tmp_path.resolve()
    assert Path(stage.workdir).resolve() == tmp_path.resolve()


def test_output_callback_receives_streamed_text(fake_planner) -> None:
    seen: list[str] = []
    stage = _stage(
        [_shell("Say", "echo streamed")],
        fake_planner,
        on_output=lambda text, _stream: seen.append(text),
    )

    _run(stage)

    assert "".join(seen) == "streamed"
    assert WORKDIR_MARKER not in "".join(seen)


def test_placeholders_resolve_from_config_and_variant(fake_planner) -> None:
    config = {"greeting": {"word": "hey"}, "project": {"beta": {"name": "b-side"}}}
    stage = _stage(
        [
            _shell("Greet", "echo {greeting.word}"),
            _shell("Variant", "echo {project.ALPHA.name}", variant="Beta"),
        ],
        fake_planner,
        config,
    )

    _, exit_code = _run(stage)

    assert exit_code == 0
    assert [data.output.stdout for data in stage.state.tasks] == ["hey", "b-side"]


def test_unresolved_placeholder_fails_before_running(fake_planner) -> None:
    stage = _stage([_shell("Greet", "echo {greeting.word}")], fake_planner)

    workflow, exit_code = _run(stage)

    assert exit_code == 1
    assert "Unresolved placeholders" in workflow.timeline[-1].props["message"]
    assert _statuses(stage) == [ExecutionStatus.PENDING]


def test_planner_supplies_missing_commands(fake_planner) -> None:
    fake_planner.command_plan = CommandPlan(
        message="Listing files",
        summary="Listed files",
        commands=[ExecuteCommand(description="list", command="echo listed")],
    )
    stage = _stage([Task(action="List the files", type=TaskType.EXECUTE)], fake_planner)

    _, exit_code = _run(stage)

    assert exit_code == 0
    assert fake_planner.calls == [("commands", ["List the files"])]
    assert stage.state.message == "Listing files"
    assert stage.state.tasks[0].label == "List the files"
    assert stage.state.tasks[0].output.stdout == "listed"
    assert stage.state.completion_message.startswith("Listed files in ")


def test_planner_error_fails_the_stage(fake_planner) -> None:
    fake_planner.error = PlannerError("no commands for you")
    stage = _stage([Task(action="Do it", type=TaskType.EXECUTE)], fake_planner)

    workflow, exit_code = _run(stage)

    assert exit_code == 1
    assert workflow.timeline[-1].props["message"] == "no commands for you"


def _cancel_when_running(workflow: Workflow, stage: ExecuteStage) -> None:
    deadline = time.monotonic() + 5
    while time.monotonic() < deadline:
        if any(data.status is ExecutionStatus.RUNNING for data in stage.state.tasks):
            time.sleep(0.2)
            workflow.cancel_active()
            return
        time.sleep(0.02)


def test_cancellation_aborts_running_and_cancels_pending(fake_planner) -> None:
    stage = _stage(
        [_shell("Wait", "echo waiting; sleep 10"), _shell("Never", "echo never")],
        fake_planner,
    )
    workflow = Workflow()
    workflow.enqueue(stage)
    canceller = threading.Thread(target=_cancel_when_running, args=(workflow, stage))
    canceller.start()
    started = time.monotonic()

    exit_code = workflow.run()

    canceller.join()
    assert time.monotonic() - started < 8
    assert exit_code == 0
    assert _statuses(stage) == [ExecutionStatus.ABORTED, ExecutionStatus.CANCELLED]
    assert [definition.name for definition in workflow.timeline] == [
        StageKind.EXECUTE,
        StageKind.FEEDBACK,
    ]
    feedback = workflow.timeline[-1]
    assert feedback.props["type"] is FeedbackType.ABORTED
    assert "execution" in feedback.props["message"]


def test_progress_callback_sees_running_task(fake_planner) -> None:
    snapshots: list[list[ExecutionStatus]] = []
    stage = _stage(
        [_shell("Nap", "sleep 0.3")],
        fake_planner,
        on_progress=lambda current: snapshots.append(_statuses(current)),
    )

    _run(stage)

    assert [ExecutionStatus.RUNNING] in snapshots
    assert [ExecutionStatus.SUCCESS] in snapshots
    assert _statuses(stage) == [ExecutionStatus.SUCCESS]


def test_cancel_during_command_planning_leaves_executor_reusable(fake_planner) -> None:
    executor = ShellExecutor()
    workflow = Workflow()
    stage = ExecuteStage(
        [Task(action="Plan me", type=TaskType.EXECUTE)],
        planner=fake_planner,
        executor=executor,
        load_config=dict,
    )
    planned = fake_planner.commands

    def _commands_then_cancel(tasks):
        result = planned(tasks)
        workflow.cancel_active()
        return result

    fake_planner.commands = _commands_then_cancel
    fake_planner.command_plan = CommandPlan(
        message="",
        summary="",
        commands=[ExecuteCommand(description="Never", command="echo never")],
    )
    workflow.enqueue(stage)

    assert workflow.run() == 0
    assert workflow.timeline[-1].props["type"] is FeedbackType.ABORTED

    following = executor.execute(ExecuteCommand(description="Next", command="echo next"))

    assert following.result is ExecutionResult.SUCCESS
    assert following.stdout == "next"
