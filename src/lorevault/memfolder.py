"""In-memory target snapshots and their materialisation on disk."""

from __future__ import annotations

import shutil
from enum import Enum
from pathlib import Path
from typing import Iterable, Mapping

from .errors import FilesystemError
from .files import FileDeclaration
from .filesystem import (
    compute_hash,
    contains_parent_dir,
    ensure_parent,
    first_component,
    format_subpath,
    hash_matches,
    read_reference,
    read_tree,
    remove_path,
)
from .log import get_logger
from .manifest import Manifest
from .models import ResolvedFile
from .settings import Settings

logger = get_logger("memfolder")


class WriteMode(str, Enum):
    """How a snapshot replaces the content of an existing directory."""

    FULL_REPLACE = "full_replace"
    SKIP_FIRST_LEVEL = "skip_first_level"


class MemFolder:
    """Mapping of relative target paths to the bytes that belong there."""

    def __init__(self, files: Mapping[Path, bytes] | None = None) -> None:
        self.files: dict[Path, bytes] = {}
        for path, content in (files or {}).items():
            self.files[_checked_subpath(path)] = content

    @classmethod
    def empty(cls) -> "MemFolder":
        return cls()

    @classmethod
    def load(cls, root: Path) -> "MemFolder":
        """Return a view of the regular files currently stored below ``root``."""

        try:
            return cls(read_tree(root))
        except OSError as exc:
            raise FilesystemError(f"Could not read directory {root}: {exc}") from exc

    @classmethod
    def build(
        cls,
        declarations: Iterable[FileDeclaration],
        active: Iterable[str],
        reference: Path | None = None,
        settings: Settings | None = None,
    ) -> "MemFolder":
        """Produce the snapshot for ``declarations``, reusing pinned reference files.

        A file under ``reference`` is reused instead of fetched when it matches
        the declared hash and no edit is active for it. The hash pins raw
        source bytes, so a reference file written through edits can never
        stand in for them.
        """

        active = frozenset(active)
        memfolder = cls()
        for declaration in declarations:
            subpath = _checked_subpath(declaration.target_path)
            content = None
            if reference is not None and declaration.hash is not None and not declaration.has_active_edits(active):
                existing = read_reference(reference, subpath)
                if existing is not None and hash_matches(existing, declaration.hash):
                    logger.info("Retrieved %s from reference.", subpath.as_posix())
                    content = declaration.from_reference(existing, active)
            if content is None:
                content = declaration.build(active, settings)
            memfolder.files[subpath] = content
        return memfolder

    @classmethod
    def from_manifest(
        cls,
        manifest: Manifest,
        requested: Iterable[str] = (),
        reference: Path | None = None,
    ) -> "MemFolder":
        requested = list(requested)
        declarations = manifest.get_active(requested)
        return cls.build(declarations, manifest.active_tags(requested), reference, manifest.settings)

    def resolved_files(self) -> list[ResolvedFile]:
        return [ResolvedFile(path=path, content=self.files[path]) for path in sorted(self.files)]

    def hashes(self) -> dict[Path, str]:
        return {path: compute_hash(content) for path, content in self.files.items()}

    def tracked_subpaths(self) -> list[str]:
        """Return the distinct top-level names the snapshot writes to."""

        return sorted({first_component(path) for path in self.files})

    def size_in_bytes(self) -> int:
        return sum(len(content) for content in self.files.values())

    def write(self, target: Path, mode: WriteMode = WriteMode.FULL_REPLACE) -> None:
        try:
            if mode is WriteMode.SKIP_FIRST_LEVEL:
                self._write_skip_first_level(target)
            else:
                self._write_full_replace(target)
        except OSError as exc:
            raise FilesystemError(f"Could not write to {target}: {exc}") from exc

    def _write_full_replace(self, target: Path) -> None:
        if target.exists() or target.is_symlink():
            if not target.is_dir() or target.is_symlink():
                raise FilesystemError(f"Path {target} exists, but it is not a directory.")
            shutil.rmtree(target)
        target.mkdir(parents=True)
        self._write_entries(target)

    def _write_skip_first_level(self, target: Path) -> None:
        if target.exists() and not target.is_dir():
            raise FilesystemError(f"Path {target} exists, but it is not a directory.")
        target.mkdir(parents=True, exist_ok=True)
        for name in self.tracked_subpaths():
            remove_path(target / name)
        self._write_entries(target)

    def _write_entries(self, target: Path) -> None:
        for subpath in sorted(self.files):
            destination = target / _checked_subpath(subpath)
            ensure_parent(destination)
            destination.write_bytes(self.files[subpath])


def _checked_subpath(path: Path) -> Path:
    if contains_parent_dir(path):
        raise FilesystemError(f"Escaping the current folder (..) is not allowed: {path}")
    subpath = format_subpath(path)
    if not subpath.parts:
        raise FilesystemError(f"Encountered empty path '{path}'")
    return subpath


__all__ = ["MemFolder", "WriteMode"]
