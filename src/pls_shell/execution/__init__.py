"""Shell command execution engine."""

from pls_shell.execution.buffers import (
    WORKDIR_MARKER,
    MarkerStreamParser,
    OutputBuffer,
)
from pls_shell.execution.shell import OutputCallback, ShellExecutor, wrap_command

__all__ = [
    "WORKDIR_MARKER",
    "MarkerStreamParser",
    "OutputBuffer",
    "OutputCallback",
    "ShellExecutor",
    "wrap_command",
]
