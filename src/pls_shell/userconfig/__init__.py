"""User configuration tree: storage, placeholder resolution and validation."""

from pls_shell.userconfig.placeholders import (
    PlaceholderInfo,
    UnresolvedPlaceholderError,
    extract_placeholders,
    find_unresolved,
    replace_placeholders,
    resolve_variant,
)
from pls_shell.userconfig.store import ConfigError, UserConfigStore
from pls_shell.userconfig.validator import (
    ExecuteValidationResult,
    SkillCatalog,
    SkillDefinition,
    validate_execute_tasks,
)

__all__ = [
    "ConfigError",
    "ExecuteValidationResult",
    "PlaceholderInfo",
    "SkillCatalog",
    "SkillDefinition",
    "UnresolvedPlaceholderError",
    "UserConfigStore",
    "extract_placeholders",
    "find_unresolved",
    "replace_placeholders",
    "resolve_variant",
    "validate_execute_tasks",
]
