from __future__ import annotations

import allure

from pls_shell.orchestrator.messages import (
    CANCELLATION_TEMPLATES,
    CONFIRMATION_MESSAGES,
    format_duration,
    format_skill_errors,
    get_cancellation_message,
    get_confirmation_message,
)

pytestmark = [
    allure.epic("Workflow"),
    allure.feature("User Messages"),
]


def test_format_duration_spells_out_units() -> None:
    assert format_duration(0) == "0 seconds"
    assert format_duration(1) == "1 second"
    assert format_duration(59.9) == "59 seconds"
    assert format_duration(65) == "1 minute 5 seconds"
    assert format_duration(120) == "2 minutes"
    assert format_duration(3725) == "1 hour 2 minutes 5 seconds"
    assert format_duration(7200) == "2 hours"


def test_format_duration_clamps_negative_values() -> None:
    assert format_duration(-3) == "0 seconds"


def test_cancellation_message_names_operation_in_lower_case() -> None:
    message = get_cancellation_message("Execution")

    assert message in {template.format(operation="execution") for template in CANCELLATION_TEMPLATES}


def test_confirmation_message_is_one_of_the_variants() -> None:
    assert get_confirmation_message() in CONFIRMATION_MESSAGES


def test_format_skill_errors_lists_issues() -> None:
    assert format_skill_errors("deploy", ["missing steps", "bad name"]) == (
        'Invalid skill definition "deploy":\n\n  - missing steps\n  - bad name'
    )
