"""Filesystem helpers for lorevault."""

from __future__ import annotations

import shutil
from hashlib import sha3_256
from pathlib import Path, PurePosixPath

from .errors import FilesystemError


def compute_hash(content: bytes) -> str:
    """Return the uppercase hex SHA3-256 digest of ``content``."""

    return sha3_256(content).hexdigest().upper()


def hash_matches(content: bytes, expected: str) -> bool:
    return compute_hash(content) == expected.strip().upper()


def hash_path(path: Path) -> str:
    """Return the content digest of the file at ``path``."""

    hasher = sha3_256()
    with path.open("rb") as handle:
        for chunk in iter(lambda: handle.read(1024 * 1024), b""):
            hasher.update(chunk)
    return hasher.hexdigest().upper()


def format_subpath(path: Path | str) -> Path:
    """Return ``path`` relative to its root with ``.`` segments removed."""

    parts = [part for part in PurePosixPath(str(path).replace("\\", "/")).parts if part not in ("/", ".")]
    return Path(*parts) if parts else Path()


def contains_parent_dir(path: Path | str) -> bool:
    return ".." in PurePosixPath(str(path).replace("\\", "/")).parts


def first_component(path: Path) -> str:
    parts = format_subpath(path).parts
    if not parts:
        raise FilesystemError(f"Encountered empty path '{path}'")
    return parts[0]


def ensure_parent(path: Path) -> None:
    """Ensure the parent directory exists."""

    path.parent.mkdir(parents=True, exist_ok=True)


def remove_path(path: Path) -> None:
    """Delete ``path`` whether it is a file, directory, or symlink."""

    if not path.exists() and not path.is_symlink():
        return
    if path.is_symlink() or path.is_file():
        path.unlink()
        return
    shutil.rmtree(path)


def read_reference(root: Path, subpath: Path) -> bytes | None:
    """Return the bytes stored at ``root / subpath`` or ``None`` if unreadable."""

    candidate = root / subpath
    if not candidate.is_file():
        return None
    try:
        return candidate.read_bytes()
    except OSError:
        return None


def read_tree(root: Path) -> dict[Path, bytes]:
    """Load every regular file below ``root`` keyed by its relative path."""

    if not root.is_dir():
        raise FilesystemError(f"Path '{root}' is not a directory")
    tree: dict[Path, bytes] = {}
    for child in sorted(root.rglob("*")):
        if child.is_file():
            tree[child.relative_to(root)] = child.read_bytes()
    return tree


__all__ = [
    "compute_hash",
    "contains_parent_dir",
    "ensure_parent",
    "first_component",
    "format_subpath",
    "hash_matches",
    "hash_path",
    "read_reference",
    "read_tree",
    "remove_path",
]
