"""Resolution of ``{path.to.value}`` placeholders against the user config tree."""

from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

PLACEHOLDER_PATTERN = re.compile(r"(?<!\$)\{([A-Za-z_][\w-]*(?:\.[A-Za-z_][\w-]*)*)\}")


class UnresolvedPlaceholderError(ValueError):
    """A command still references config values that are not set."""

    def __init__(self, command: str, placeholders: list[str]) -> None:
        super().__init__(
            f"Unresolved placeholders in command {command!r}: {', '.join(placeholders)}",
        )
        self.command = command
        self.placeholders = placeholders


@dataclass(frozen=True, slots=True)
class PlaceholderInfo:
    original: str
    path: tuple[str, ...]
    variant_index: int | None = None

    @property
    def has_variant(self) -> bool:
        return self.variant_index is not None

    @property
    def dotted(self) -> str:
        return ".".join(self.path)


def is_variant_segment(segment: str) -> bool:
    """Uppercase segments (``{project.ALPHA.repo}``) stand for the chosen variant."""

    return segment == segment.upper() and segment != segment.lower()


def _parse(original: str, inner: str) -> PlaceholderInfo:
    path = tuple(inner.split("."))
    variant_index = next(
        (index for index, segment in enumerate(path) if is_variant_segment(segment)),
        None,
    )
    return PlaceholderInfo(original=original, path=path, variant_index=variant_index)


def extract_placeholders(text: str) -> list[PlaceholderInfo]:
    return [_parse(match.group(0), match.group(1)) for match in PLACEHOLDER_PATTERN.finditer(text)]


def resolve_variant(path: Sequence[str], variant: str) -> tuple[str, ...]:
    return tuple(variant if is_variant_segment(segment) else segment for segment in path)


def resolve_from_config(config: Mapping[str, Any], path: Sequence[str]) -> str | bool | float | None:
    """Scalar value at ``path`` or None; nested objects do not count as values."""

    current: Any = config
    for segment in path:
        if not isinstance(current, Mapping):
            return None
        current = current.get(segment)
        if current is None:
            return None
    if isinstance(current, str | bool | int | float):
        return current
    return None


def _render(value: str | bool | float) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def replace_placeholders(
    text: str,
    config: Mapping[str, Any],
    variant: str | None = None,
) -> str:
    """Substitute known placeholders; unknown ones are left untouched.

    Variant placeholders are only resolved when ``variant`` is given.
    """

    def _substitute(match: re.Match[str]) -> str:
        info = _parse(match.group(0), match.group(1))
        path = info.path
        if info.has_variant:
            if variant is None:
                return info.original
            path = resolve_variant(path, variant)
        value = resolve_from_config(config, path)
        if value is None:
            return info.original
        return _render(value)

    return PLACEHOLDER_PATTERN.sub(_substitute, text)


def required_config_paths(text: str) -> list[str]:
    """Unique dotted paths referenced by non-variant placeholders, in order."""

    paths: list[str] = []
    for info in extract_placeholders(text):
        if not info.has_variant and info.dotted not in paths:
            paths.append(info.dotted)
    return paths


def find_unresolved(text: str) -> list[str]:
    return [info.original for info in extract_placeholders(text)]


def ensure_resolved(text: str) -> str:
    unresolved = find_unresolved(text)
    if unresolved:
        raise UnresolvedPlaceholderError(text, unresolved)
    return text
