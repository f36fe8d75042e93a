"""High level orchestration for lorevault operations."""

from __future__ import annotations

import os
import shutil
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterable

from .errors import ConfirmationError, FilesystemError, HashMismatchError, LorevaultError, SourceExhaustedError
from .filesystem import compute_hash, contains_parent_dir, first_component, remove_path
from .log import get_logger
from .manifest import Manifest, check_recursion, load_manifest
from .memfolder import MemFolder, WriteMode
from .settings import Settings, expand_path
from .sources import fetch_first_valid

logger = get_logger("manager")

ConfirmCallback = Callable[[str], bool]


@dataclass(frozen=True, slots=True)
class SyncResult:
    """Outcome of writing a snapshot into an output directory."""

    output: Path
    mode: WriteMode
    paths: tuple[Path, ...]
    size: int


@dataclass(frozen=True, slots=True)
class CheckEntry:
    path: Path
    digest: str
    pinned: bool


@dataclass(frozen=True, slots=True)
class CheckReport:
    entries: tuple[CheckEntry, ...]
    hardened: bool


class VaultManager:
    """Coordinates loading a manifest and reconciling output directories."""

    def __init__(self, reference: str | Path, settings: Settings | None = None) -> None:
        self.reference = str(reference)
        self.settings = settings or Settings.from_env()

    def load(self) -> Manifest:
        """Run the recursion guard, then load and resolve the root manifest."""

        check_recursion(self.reference, self.settings)
        return load_manifest(self.reference, allow_local=True, settings=self.settings)

    def sync(
        self,
        output: Path,
        tags: Iterable[str] = (),
        *,
        skip_first_level: bool = False,
        confirm: ConfirmCallback | None = None,
    ) -> SyncResult:
        output = Path(output)
        if not skip_first_level and _is_cwd(output):
            raise FilesystemError("This would overwrite your current working directory!")

        manifest = self.load()
        memfolder = MemFolder.from_manifest(manifest, tags, reference=output)
        mode = WriteMode.SKIP_FIRST_LEVEL if skip_first_level else WriteMode.FULL_REPLACE

        if confirm is not None and output.exists():
            if skip_first_level:
                listing = "\n".join(f"- {output / name}" for name in memfolder.tracked_subpaths())
                prompt = f"The paths:\n{listing}\nWill be overwritten!\nIs that OK?"
            else:
                prompt = f"The directory {output} will be replaced by {len(memfolder.files)} files. Is that OK?"
            if not confirm(prompt):
                raise ConfirmationError("Folder overwrite not confirmed.")

        memfolder.write(output, mode)
        return SyncResult(
            output=output,
            mode=mode,
            paths=tuple(sorted(memfolder.files)),
            size=memfolder.size_in_bytes(),
        )

    def sync_config_dir(self, tags: Iterable[str] = (), *, confirm: ConfirmCallback | None = None) -> SyncResult:
        return self.sync(user_config_dir(), tags, skip_first_level=True, confirm=confirm)

    def clean(
        self,
        output: Path,
        tags: Iterable[str] = (),
        *,
        skip_first_level: bool = False,
        confirm: ConfirmCallback | None = None,
    ) -> list[Path]:
        """Delete ``output``, or only the top-level entries the manifest writes."""

        output = Path(output)
        if not skip_first_level:
            if not output.is_dir():
                raise FilesystemError(f"Directory {output} does not exist")
            if confirm is not None and not confirm(f"This will delete the directory {output}"):
                raise ConfirmationError("Not confirmed")
            try:
                shutil.rmtree(output)
            except OSError as exc:
                raise FilesystemError(f"Could not remove {output}: {exc}") from exc
            return [output]

        paths = self.list_paths(tags)
        for path in paths:
            if contains_parent_dir(path):
                raise FilesystemError(f"Refusing to delete outside of {output}: {path}")
        to_delete = sorted({output / first_component(path) for path in paths})
        if confirm is not None:
            listing = "\n".join(f"- {path}" for path in to_delete)
            if not confirm(f"The paths:\n{listing}\nWill be deleted!\nIs that OK?"):
                raise ConfirmationError("Not confirmed")

        removed: list[Path] = []
        for path in to_delete:
            if not path.exists() and not path.is_symlink():
                logger.warning("Skipping missing path %s", path)
                continue
            try:
                remove_path(path)
            except OSError as exc:
                raise FilesystemError(f"Could not remove {path}: {exc}") from exc
            removed.append(path)
        return removed

    def check(self, tags: Iterable[str] = (), *, strict: bool = False) -> CheckReport:
        """Fetch every active file and verify its pin without writing anything."""

        tags = list(tags)
        manifest = self.load()
        entries: list[CheckEntry] = []
        for declaration in manifest.get_active(tags):
            try:
                content = fetch_first_valid(declaration.sources, declaration.hash, self.settings)
            except SourceExhaustedError as exc:
                raise SourceExhaustedError(
                    f"No valid source for {declaration.target_path.as_posix()} "
                    "(unreachable, or the hash did not match)"
                ) from exc
            entries.append(
                CheckEntry(
                    path=declaration.target_path,
                    digest=compute_hash(content),
                    pinned=declaration.hash is not None,
                )
            )

        hardened = manifest.is_fully_hardened(tags)
        if strict and not hardened:
            raise HashMismatchError("The manifest is not fully hardened: some files or inclusions have no hash")
        return CheckReport(entries=tuple(sorted(entries, key=lambda entry: entry.path.parts)), hardened=hardened)

    def tags(self) -> list[str]:
        return self.load().tags()

    def list_paths(self, tags: Iterable[str] = ()) -> list[Path]:
        manifest = self.load()
        return sorted((declaration.target_path for declaration in manifest.get_active(tags)), key=lambda p: p.parts)


def user_config_dir() -> Path:
    """Return the per-user configuration directory (Linux only)."""

    if not sys.platform.startswith("linux"):
        raise LorevaultError("Detecting the config-directory is currently only supported on linux.")
    configured = os.environ.get("XDG_CONFIG_HOME")
    if configured:
        return expand_path(configured)
    return Path.home() / ".config"


def _is_cwd(output: Path) -> bool:
    if not output.exists():
        return False
    return output.resolve() == Path.cwd().resolve()


__all__ = ["CheckEntry", "CheckReport", "SyncResult", "VaultManager", "user_config_dir"]
