"""Parsing of general paths: local paths, URLs and ``repo#id:subpath`` locators."""

from __future__ import annotations

import re
from dataclasses import dataclass

URL_PREFIXES = ("http://", "https://")
REMOTE_REPO_PREFIXES = ("http://", "https://", "ssh://", "git://", "git@", "file://")

# A commit-looking id disambiguates repos or paths that contain '#' or ':'.
_HASH_ID_PATTERN = re.compile(r"^(?P<repo>.+)#(?P<id>[0-9a-fA-F]{7,40}):(?P<path>.*)$")
_SIMPLE_PATTERN = re.compile(r"^(?P<repo>[^#]+)#(?P<id>[^#:]+):(?P<path>.*)$")


@dataclass(frozen=True, slots=True)
class Locator:
    """A file or directory inside a git repository at a given commit or tag."""

    repo: str
    id: str
    path: str

    @property
    def root(self) -> str:
        return f"{self.repo}#{self.id}:"

    def __str__(self) -> str:
        return f"{self.repo}#{self.id}:{self.path}"


def parse_locator(text: str) -> Locator | None:
    """Return the ``Locator`` encoded in ``text`` or ``None`` for plain paths."""

    text = text.strip()
    match = _HASH_ID_PATTERN.match(text) or _SIMPLE_PATTERN.match(text)
    if match is None:
        return None
    repo = match.group("repo")
    if not repo:
        return None
    return Locator(repo=repo, id=match.group("id"), path=match.group("path").lstrip("/"))


def is_locator(text: str) -> bool:
    return parse_locator(text) is not None


def is_url(text: str) -> bool:
    return text.startswith(URL_PREFIXES)


def is_remote_repo(text: str) -> bool:
    return text.startswith(REMOTE_REPO_PREFIXES)


__all__ = ["Locator", "is_locator", "is_remote_repo", "is_url", "parse_locator"]
