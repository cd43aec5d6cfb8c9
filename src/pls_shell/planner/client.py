"""HTTP planner client for an Anthropic-compatible messages endpoint."""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping, Sequence
from typing import Any

import httpx

from pls_shell.orchestrator.models import Capability, CapabilityOrigin, ExecuteCommand, Task
from pls_shell.orchestrator.tasks import TaskParseError, parse_tasks, task_to_dict
from pls_shell.planner.base import CommandPlan, IntrospectResult, PlannerError, PlanResult

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.anthropic.com"
DEFAULT_MODEL = "claude-sonnet-4-5"
DEFAULT_TIMEOUT_SECONDS = 60.0
DEFAULT_MAX_RETRIES = 2
DEFAULT_MAX_TOKENS = 4_096
API_VERSION = "2023-06-01"

_TASK_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "action": {"type": "string"},
        "type": {
            "type": "string",
            "enum": ["execute", "answer", "introspect", "config", "define", "ignore", "group"],
        },
        "params": {"type": "object"},
        "config": {"type": "array", "items": {"type": "string"}},
        "subtasks": {"type": "array", "items": {"type": "object"}},
    },
    "required": ["action", "type"],
}

TOOLS: dict[str, dict[str, Any]] = {
    "plan": {
        "description": (
            "Break the user's request into typed tasks. Use 'define' with params.options "
            "when several concrete alternatives exist, 'answer' for questions, 'config' "
            "with params.key for settings and 'ignore' for anything unclear."
        ),
        "input_schema": {
            "type": "object",
            "properties": {
                "message": {"type": "string"},
                "tasks": {"type": "array", "items": _TASK_SCHEMA},
            },
            "required": ["message", "tasks"],
        },
    },
    "execute": {
        "description": (
            "Turn each task into exactly one POSIX shell command, in the same order. "
            "Keep {config.paths} placeholders untouched."
        ),
        "input_schema": {
            "type": "object",
            "properties": {
                "message": {"type": "string"},
                "summary": {"type": "string"},
                "commands": {
                    "type": "array",
                    "items": {
                        "type": "object",
                        "properties": {
                            "description": {"type": "string"},
                            "command": {"type": "string"},
                            "workdir": {"type": "string"},
                            "timeout": {"type": "number"},
                        },
                        "required": ["description", "command"],
                    },
                },
            },
            "required": ["message", "summary", "commands"],
        },
    },
    "answer": {
        "description": "Answer the question concisely in plain text.",
        "input_schema": {
            "type": "object",
            "properties": {"answer": {"type": "string"}},
            "required": ["answer"],
        },
    },
    "introspect": {
        "description": (
            "List the assistant's capabilities. Mark workflow internals with origin 'indirect'."
        ),
        "input_schema": {
            "type": "object",
            "properties": {
                "message": {"type": "string"},
                "capabilities": {
                    "type": "array",
                    "items": {
                        "type": "object",
                        "properties": {
                            "name": {"type": "string"},
                            "description": {"type": "string"},
                            "origin": {"type": "string", "enum": ["system", "user", "indirect"]},
                        },
                        "required": ["name", "description"],
                    },
                },
            },
            "required": ["message", "capabilities"],
        },
    },
}

SYSTEM_PROMPT = (
    "You are pls, a command-line assistant. You plan shell work for the user's machine "
    "and never invent facts about it. Always respond by calling the provided tool."
)


class HttpPlanner:
    """Planner backed by tool calls against the messages API."""

    def __init__(  # noqa: PLR0913
        self,
        *,
        api_key: str,
        model: str = DEFAULT_MODEL,
        base_url: str = DEFAULT_BASE_URL,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        max_retries: int = DEFAULT_MAX_RETRIES,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.model = model
        self.max_tokens = max_tokens
        self._client = httpx.Client(
            base_url=base_url,
            timeout=httpx.Timeout(timeout_seconds, connect=10.0),
            headers={
                "x-api-key": api_key,
                "anthropic-version": API_VERSION,
                "content-type": "application/json",
            },
            transport=transport or httpx.HTTPTransport(retries=max_retries),
        )

    def plan(self, request: str) -> PlanResult:
        payload = self._call("plan", request)
        try:
            tasks = parse_tasks(payload.get("tasks", []))
        except TaskParseError as error:
            raise PlannerError(f"Planner returned invalid tasks: {error}") from error
        return PlanResult(message=_text(payload, "message"), tasks=tasks)

    def commands(self, tasks: Sequence[Task]) -> CommandPlan:
        prompt = json.dumps([task_to_dict(task) for task in tasks], ensure_ascii=False)
        payload = self._call("execute", prompt)
        raw_commands = payload.get("commands")
        if not isinstance(raw_commands, list):
            raise PlannerError("Planner response is missing the commands array")
        return CommandPlan(
            message=_text(payload, "message"),
            summary=_text(payload, "summary"),
            commands=[_parse_command(item) for item in raw_commands],
        )

    def answer(self, question: str) -> str:
        payload = self._call("answer", question)
        answer = payload.get("answer")
        if not isinstance(answer, str):
            raise PlannerError("Planner response is missing the answer")
        return answer.strip()

    def introspect(self, action: str) -> IntrospectResult:
        payload = self._call("introspect", action)
        raw = payload.get("capabilities")
        if not isinstance(raw, list):
            raise PlannerError("Planner response is missing the capabilities array")
        capabilities: list[Capability] = []
        for item in raw:
            if not isinstance(item, Mapping):
                continue
            try:
                origin = CapabilityOrigin(item.get("origin", CapabilityOrigin.SYSTEM.value))
            except ValueError:
                origin = CapabilityOrigin.SYSTEM
            capabilities.append(
                Capability(
                    name=str(item.get("name", "")),
                    description=str(item.get("description", "")),
                    origin=origin,
                ),
            )
        return IntrospectResult(message=_text(payload, "message"), capabilities=capabilities)

    def _call(self, tool: str, content: str) -> dict[str, Any]:
        body = {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "system": SYSTEM_PROMPT,
            "tools": [{"name": tool, **TOOLS[tool]}],
            "tool_choice": {"type": "tool", "name": tool},
            "messages": [{"role": "user", "content": content}],
        }
        try:
            response = self._client.post("/v1/messages", json=body)
        except httpx.TimeoutException as error:
            logger.warning("Planner request timed out (%s)", tool)
            raise PlannerError("Planner request timed out.") from error
        except httpx.HTTPError as error:
            logger.warning("Planner request failed (%s): %s", tool, error)
            raise PlannerError(f"Planner request failed: {error}") from error

        if not response.is_success:
            logger.warning("Planner returned HTTP %s (%s)", response.status_code, tool)
            raise PlannerError(f"Planner returned HTTP {response.status_code}: {_error_text(response)}")
        try:
            document = response.json()
        except ValueError as error:
            raise PlannerError("Planner returned a non-JSON response") from error

        for block in document.get("content", []) if isinstance(document, dict) else []:
            if isinstance(block, dict) and block.get("type") == "tool_use":
                tool_input = block.get("input")
                if isinstance(tool_input, dict):
                    return tool_input
        raise PlannerError(f"Planner response has no {tool!r} tool call")

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> HttpPlanner:
        return self

    def __exit__(self, *_: object) -> None:
        self.close()


def _text(payload: Mapping[str, Any], key: str) -> str:
    value = payload.get(key, "")
    return value if isinstance(value, str) else ""


def _parse_command(item: Any) -> ExecuteCommand:
    if not isinstance(item, Mapping):
        raise PlannerError("Planner command entry must be an object")
    command = item.get("command")
    if not isinstance(command, str) or not command.strip():
        raise PlannerError("Planner command entry is missing the command")
    workdir = item.get("workdir")
    timeout = item.get("timeout")
    return ExecuteCommand(
        description=str(item.get("description", command)),
        command=command,
        workdir=workdir if isinstance(workdir, str) and workdir else None,
        timeout_seconds=float(timeout) if isinstance(timeout, int | float) else None,
    )


def _error_text(response: httpx.Response) -> str:
    try:
        document = response.json()
    except ValueError:
        return response.text[:200]
    error = document.get("error") if isinstance(document, dict) else None
    if isinstance(error, dict) and isinstance(error.get("message"), str):
        return error["message"]
    return response.text[:200]
