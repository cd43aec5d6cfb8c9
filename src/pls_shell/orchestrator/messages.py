"""User-facing message variants and duration formatting."""

from __future__ import annotations

import random

CONFIRMATION_MESSAGES: tuple[str, ...] = (
    "Should I execute this plan?",
    "Do you want me to proceed with these tasks?",
    "Ready to execute?",
    "Shall I execute this plan?",
    "Would you like me to run these tasks?",
    "Execute this plan?",
)

CANCELLATION_TEMPLATES: tuple[str, ...] = (
    "I've cancelled the {operation}.",
    "I've aborted the {operation}.",
    "The {operation} was cancelled.",
    "The {operation} has been aborted.",
)

UNKNOWN_REQUEST_MESSAGES: tuple[str, ...] = (
    "I'm not sure what you want me to do.",
    "I couldn't find anything to do in that request.",
    "That request didn't translate into any tasks.",
    "I don't know how to help with that yet.",
)

CONFIGURATION_SAVED = "Configuration saved successfully."
CONFIGURATION_COMPLETE = "Configuration complete."
NO_COMMANDS = "There were no commands to run."
DEFAULT_EXECUTION_SUMMARY = "Execution completed"


def get_confirmation_message() -> str:
    return random.choice(CONFIRMATION_MESSAGES)


def get_cancellation_message(operation: str) -> str:
    return random.choice(CANCELLATION_TEMPLATES).format(operation=operation.lower())


def get_unknown_request_message() -> str:
    return random.choice(UNKNOWN_REQUEST_MESSAGES)


def format_skill_errors(skill: str, issues: tuple[str, ...] | list[str]) -> str:
    lines = "\n".join(f"  - {issue}" for issue in issues)
    return f'Invalid skill definition "{skill}":\n\n{lines}'


def format_duration(seconds: float) -> str:
    """Render a duration as e.g. ``1 hour 2 minutes 5 seconds``.

    Fractions of a second are dropped; a zero duration reads ``0 seconds``.
    """

    total = max(0, int(seconds))
    hours, remainder = divmod(total, 3600)
    minutes, secs = divmod(remainder, 60)

    parts: list[str] = []
    if hours:
        parts.append(f"{hours} {'hour' if hours == 1 else 'hours'}")
    if minutes:
        parts.append(f"{minutes} {'minute' if minutes == 1 else 'minutes'}")
    if secs or not parts:
        parts.append(f"{secs} {'second' if secs == 1 else 'seconds'}")
    return " ".join(parts)
