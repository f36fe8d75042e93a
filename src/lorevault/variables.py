"""``{{name}}`` placeholder substitution over manifest entities.

Every string-bearing value the manifest can hold goes through the same three
functions: :func:`required_variables` collects placeholder names,
:func:`substitute` replaces one of them literally and :func:`apply_variables`
fills all of them from a resolved mapping. Pydantic models take part by
exposing ``variable_fields()``, the names of the fields that may carry
placeholders. Everything else (tags, hashes, ports) is left alone.
"""

from __future__ import annotations

import re
from pathlib import Path, PurePath
from typing import Any, Mapping, TypeVar

from pydantic import BaseModel

from .errors import VariableError
from .log import get_logger
from .settings import VARIABLE_RESOLUTION_LIMIT

PLACEHOLDER_PATTERN = re.compile(r"\{\{([^{}]+)\}\}")
RESERVED_PREFIX = "SELF_"
RESERVED_LEADING_CHARS = ("!",)

T = TypeVar("T")

logger = get_logger("variables")


def placeholder(name: str) -> str:
    return "{{" + name + "}}"


def required_variables(value: Any) -> set[str]:
    """Return the names of every ``{{name}}`` placeholder inside ``value``."""

    if isinstance(value, str):
        return set(PLACEHOLDER_PATTERN.findall(value))
    if isinstance(value, PurePath):
        return required_variables(str(value))
    if isinstance(value, (list, tuple)):
        names: set[str] = set()
        for item in value:
            names |= required_variables(item)
        return names
    if isinstance(value, BaseModel):
        names = set()
        for field in _variable_fields(value):
            names |= required_variables(getattr(value, field))
        return names
    return set()


def substitute(value: T, name: str, replacement: str) -> T:
    """Replace every literal ``{{name}}`` in ``value`` with ``replacement``."""

    if isinstance(value, str):
        return value.replace(placeholder(name), replacement)  # type: ignore[return-value]
    if isinstance(value, PurePath):
        return Path(substitute(str(value), name, replacement))  # type: ignore[return-value]
    if isinstance(value, list):
        return [substitute(item, name, replacement) for item in value]  # type: ignore[return-value]
    if isinstance(value, tuple):
        return tuple(substitute(item, name, replacement) for item in value)  # type: ignore[return-value]
    if isinstance(value, BaseModel):
        update = {
            field: substitute(getattr(value, field), name, replacement) for field in _variable_fields(value)
        }
        return value.model_copy(update=update)  # type: ignore[return-value]
    return value


def apply_variables(value: T, variables: Mapping[str, str]) -> T:
    """Fill every placeholder in ``value`` or fail naming the missing key."""

    for key in sorted(required_variables(value)):
        if key not in variables:
            raise VariableError(f"Required variable '{key}' is not defined")
        value = substitute(value, key, variables[key])
    return value


def validate_variable_names(names: Mapping[str, str] | set[str] | list[str]) -> None:
    """Reject user variables that collide with the reserved namespace."""

    for name in names:
        if name.startswith(RESERVED_PREFIX):
            raise VariableError(f"Variables starting with {RESERVED_PREFIX} are protected ('{name}')")
        if not name or name.startswith(RESERVED_LEADING_CHARS):
            raise VariableError(f"Invalid variable name '{name}'")


def resolve_references(
    variables: Mapping[str, str],
    *,
    max_iterations: int = VARIABLE_RESOLUTION_LIMIT,
) -> dict[str, str]:
    """Resolve variables whose values reference other variables.

    Each pass promotes every variable whose referenced names are already
    resolved. Resolution fails once a pass makes no progress, which covers
    direct and indirect cycles as well as references to undefined names.
    """

    resolved: dict[str, str] = {}
    resolved_count = 0
    for _ in range(max_iterations):
        if len(resolved) == len(variables):
            return resolved
        for key, value in variables.items():
            if key in resolved:
                continue
            references = required_variables(value)
            if references <= resolved.keys():
                resolved[key] = apply_variables(value, resolved)
        if len(resolved) == resolved_count:
            break
        resolved_count = len(resolved)
        logger.debug("Resolved %d of %d variables", resolved_count, len(variables))

    if len(resolved) == len(variables):
        return resolved
    unresolved = sorted(set(variables) - set(resolved))
    raise VariableError(
        "There seems to be some problem with variable inter-reference: could not resolve "
        + ", ".join(unresolved)
    )


def _variable_fields(model: BaseModel) -> tuple[str, ...]:
    getter = getattr(model, "variable_fields", None)
    if getter is None:
        return ()
    return tuple(getter())


__all__ = [
    "PLACEHOLDER_PATTERN",
    "RESERVED_PREFIX",
    "apply_variables",
    "placeholder",
    "required_variables",
    "resolve_references",
    "substitute",
    "validate_variable_names",
]
