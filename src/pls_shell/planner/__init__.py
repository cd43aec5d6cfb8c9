"""Planner implementations."""

from pls_shell.planner.base import (
    CommandPlan,
    IntrospectResult,
    Planner,
    PlannerError,
    PlanResult,
)
from pls_shell.planner.client import HttpPlanner
from pls_shell.planner.static import StaticPlanner

__all__ = [
    "CommandPlan",
    "HttpPlanner",
    "IntrospectResult",
    "PlanResult",
    "Planner",
    "PlannerError",
    "StaticPlanner",
]
