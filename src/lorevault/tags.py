"""Tag validation and activation."""

from __future__ import annotations

from typing import Iterable

from .errors import TagError

NEGATION_PREFIX = "!"
RESERVED_TAG = "default"


def validate_tag(tag: str) -> str:
    """Return ``tag`` if it may be declared in a manifest."""

    if not isinstance(tag, str):
        raise ValueError(f"Tag {tag!r} must be a string")
    if tag.startswith(NEGATION_PREFIX):
        raise TagError(f"Tag '{tag}' must not start with '{NEGATION_PREFIX}'")
    if tag.strip().lower() == RESERVED_TAG:
        raise TagError(f"'{RESERVED_TAG}' is reserved and cannot be used as a tag")
    if not tag.strip():
        raise TagError("Tags must not be empty")
    return tag


def validate_tags(tags: Iterable[str] | str | None) -> tuple[str, ...]:
    """Validate a tag list; a single string counts as one tag."""

    if tags is None:
        return ()
    if isinstance(tags, str):
        tags = [tags]
    if not isinstance(tags, (list, tuple, set, frozenset)):
        raise ValueError(f"Tags must be a list of strings, not {tags!r}")
    return tuple(validate_tag(tag) for tag in tags)


def is_active(tags: Iterable[str], active: Iterable[str]) -> bool:
    """An entity is active if it is untagged or shares a tag with ``active``."""

    own = set(tags)
    if not own:
        return True
    return not own.isdisjoint(active)


def split_request(requested: Iterable[str]) -> tuple[set[str], set[str]]:
    """Split a request into positive tags and ``!``-prefixed negative tags."""

    positive: set[str] = set()
    negative: set[str] = set()
    for tag in requested:
        if tag.startswith(NEGATION_PREFIX):
            negative.add(tag[len(NEGATION_PREFIX) :])
        else:
            positive.add(tag)
    conflicting = sorted(positive & negative)
    if conflicting:
        raise TagError(f"The tag {conflicting[0]} is requested and excluded at the same time")
    return positive, negative


def active_tags(
    requested: Iterable[str],
    *,
    defaults: Iterable[str] = (),
    declared: Iterable[str] | None = None,
) -> frozenset[str]:
    """Compute ``(defaults | positive) - negative`` and check it against ``declared``."""

    positive, negative = split_request(requested)
    active = (set(defaults) | positive) - negative
    if declared is not None:
        universe = set(declared)
        for tag in sorted(active | negative):
            if tag not in universe:
                raise TagError(f"The tag {tag} is not defined in the config file.")
    return frozenset(active)


__all__ = [
    "NEGATION_PREFIX",
    "active_tags",
    "is_active",
    "split_request",
    "validate_tag",
    "validate_tags",
]
