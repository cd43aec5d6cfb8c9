"""Subprocess-based executor for shell steps."""

from __future__ import annotations

import codecs
import logging
import os
import signal
import subprocess
import threading
from collections.abc import Callable
from typing import IO

from pls_shell.execution.buffers import (
    DEFAULT_MAX_OUTPUT_LINES,
    WORKDIR_MARKER,
    MarkerStreamParser,
    OutputBuffer,
)
from pls_shell.orchestrator.models import CommandOutput, ExecuteCommand, ExecutionResult

logger = logging.getLogger(__name__)

DEFAULT_SHELL = "/bin/sh"
DEFAULT_KILL_GRACE_SECONDS = 3.0
_READ_CHUNK_BYTES = 4_096

OutputCallback = Callable[[str, str], None]
"""Receives ``(text, stream)`` where stream is ``"stdout"`` or ``"stderr"``."""


def wrap_command(command: str, marker: str = WORKDIR_MARKER) -> str:
    """Append the trailer that reports the final working directory."""

    return f'{command}; __exit=$?; echo ""; echo "{marker}"; pwd; exit $__exit'


class ShellExecutor:
    """Run one shell step at a time with timeout, abort and workdir recovery."""

    def __init__(
        self,
        *,
        shell: str = DEFAULT_SHELL,
        kill_grace_seconds: float = DEFAULT_KILL_GRACE_SECONDS,
        max_output_lines: int = DEFAULT_MAX_OUTPUT_LINES,
        default_timeout_seconds: float | None = None,
    ) -> None:
        self.shell = shell
        self.kill_grace_seconds = kill_grace_seconds
        self.max_output_lines = max_output_lines
        self.default_timeout_seconds = default_timeout_seconds
        self._lock = threading.RLock()
        self._terminator: _ProcessTerminator | None = None
        self._abort_requested = False

    def execute(
        self,
        command: ExecuteCommand,
        on_output: OutputCallback | None = None,
    ) -> CommandOutput:
        """Run ``command`` to completion and return its captured outcome.

        An ``abort()`` that arrives before the process starts still applies.
        """

        try:
            process = subprocess.Popen(  # noqa: S603
                [self.shell, "-c", wrap_command(command.command)],
                cwd=command.workdir or None,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                start_new_session=True,
            )
        except (OSError, ValueError) as error:
            with self._lock:
                self._abort_requested = False
            logger.warning("Failed to start %r: %s", command.command, error)
            return CommandOutput(
                description=command.description,
                command=command.command,
                stdout="",
                stderr=str(error),
                result=ExecutionResult.ERROR,
                error=f"Failed to start command: {error}",
            )

        logger.debug("Started pid=%s: %s", process.pid, command.command)
        terminator = _ProcessTerminator(process, grace_seconds=self.kill_grace_seconds)
        with self._lock:
            self._terminator = terminator
            abort_early = self._abort_requested
        if abort_early:
            terminator.terminate(reason=_ABORT)

        timeout = (
            command.timeout_seconds
            if command.timeout_seconds is not None
            else self.default_timeout_seconds
        )
        if timeout and timeout > 0:
            terminator.schedule_timeout(timeout)

        parser = MarkerStreamParser()
        stdout_buffer = OutputBuffer(self.max_output_lines)
        stderr_buffer = OutputBuffer(self.max_output_lines)

        def _emit(text: str, buffer: OutputBuffer, stream: str) -> None:
            if not text:
                return
            buffer.push(text)
            if on_output is not None:
                on_output(text, stream)

        readers = [
            threading.Thread(
                target=_pump,
                args=(process.stdout, lambda text: _emit(parser.feed(text), stdout_buffer, "stdout")),
                name="pls-stdout",
                daemon=True,
            ),
            threading.Thread(
                target=_pump,
                args=(process.stderr, lambda text: _emit(text, stderr_buffer, "stderr")),
                name="pls-stderr",
                daemon=True,
            ),
        ]
        try:
            for reader in readers:
                reader.start()
            returncode = process.wait()
            for reader in readers:
                reader.join()
        finally:
            terminator.cancel()
            with self._lock:
                self._terminator = None
                self._abort_requested = False

        _emit(parser.finish(), stdout_buffer, "stdout")
        logger.debug("pid=%s exited with %s", process.pid, returncode)

        output = CommandOutput(
            description=command.description,
            command=command.command,
            stdout=stdout_buffer.text,
            stderr=stderr_buffer.text,
            result=ExecutionResult.SUCCESS,
            workdir=parser.workdir,
            exit_code=returncode,
        )
        if terminator.reason == _ABORT:
            output.result = ExecutionResult.ABORTED
            output.error = "Command was aborted."
        elif terminator.reason == _TIMEOUT:
            output.result = ExecutionResult.ERROR
            output.error = f"Command timed out after {timeout:g} seconds."
            logger.warning("Command timed out after %ss: %s", timeout, command.command)
        elif returncode != 0:
            output.result = ExecutionResult.ERROR
            output.error = _describe_exit(returncode)
        return output

    def abort(self) -> None:
        """Terminate the running command, escalating to SIGKILL after the grace period."""

        with self._lock:
            self._abort_requested = True
            terminator = self._terminator
        if terminator is not None:
            terminator.terminate(reason=_ABORT)

    def clear_abort(self) -> None:
        """Drop an abort request that never met a running command."""

        with self._lock:
            if self._terminator is None:
                self._abort_requested = False


_ABORT = "abort"
_TIMEOUT = "timeout"


class _ProcessTerminator:
    """Two-phase kill: SIGTERM to the process group, SIGKILL after a grace period."""

    def __init__(self, process: subprocess.Popen[bytes], *, grace_seconds: float) -> None:
        self._process = process
        self._grace_seconds = grace_seconds
        self._lock = threading.RLock()
        self._timers: list[threading.Timer] = []
        self._finished = False
        self.reason: str | None = None

    def schedule_timeout(self, seconds: float) -> None:
        with self._lock:
            self._start_timer(seconds, lambda: self.terminate(reason=_TIMEOUT))

    def terminate(self, *, reason: str) -> None:
        with self._lock:
            if self._finished or self.reason is not None:
                return
            self.reason = reason
            logger.debug("Terminating pid=%s (%s)", self._process.pid, reason)
            _signal_group(self._process, signal.SIGTERM)
            self._start_timer(self._grace_seconds, self._kill)

    def cancel(self) -> None:
        with self._lock:
            self._finished = True
            for timer in self._timers:
                timer.cancel()
            self._timers.clear()

    def _kill(self) -> None:
        with self._lock:
            if self._finished:
                return
            logger.warning("pid=%s ignored SIGTERM, sending SIGKILL", self._process.pid)
            _signal_group(self._process, signal.SIGKILL)

    def _start_timer(self, seconds: float, callback: Callable[[], None]) -> None:
        timer = threading.Timer(seconds, callback)
        timer.daemon = True
        self._timers.append(timer)
        timer.start()


def _signal_group(process: subprocess.Popen[bytes], signum: int) -> None:
    try:
        os.killpg(process.pid, signum)
    except ProcessLookupError:
        return
    except OSError as error:
        logger.warning("Failed to signal pid=%s: %s", process.pid, error)


def _pump(stream: IO[bytes] | None, sink: Callable[[str], None]) -> None:
    if stream is None:
        return
    decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
    with stream:
        while chunk := stream.read1(_READ_CHUNK_BYTES):  # type: ignore[attr-defined]
            text = decoder.decode(chunk)
            if text:
                sink(text)
        tail = decoder.decode(b"", final=True)
        if tail:
            sink(tail)


def _describe_exit(returncode: int) -> str:
    if returncode < 0:
        try:
            name = signal.Signals(-returncode).name
        except ValueError:
            name = str(-returncode)
        return f"Command was terminated by signal {name}."
    return f"Command failed with exit code {returncode}."
