"""Directory declarations expanded into one file declaration per listed file."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated, Any, Iterable, Literal, Optional, Sequence, Union

from pydantic import AliasChoices, Field, field_validator

from .errors import FetchError, ParseError, SourceExhaustedError
from .files import FileDeclaration
from .filesystem import contains_parent_dir, format_subpath
from .git import list_tree
from .locators import parse_locator
from .log import get_logger
from .models import ManifestModel, TaggedModel
from .sources import ContentSource, GitSource, LocalSource

logger = get_logger("directories")


class LocalDirSource(ManifestModel):
    type: Literal["local"] = "local"
    path: Path

    def variable_fields(self) -> tuple[str, ...]:
        return ("path",)

    def __str__(self) -> str:
        return str(self.path)


class GitDirSource(ManifestModel):
    type: Literal["git"] = "git"
    repo: str
    id: str
    path: Path = Path()

    def variable_fields(self) -> tuple[str, ...]:
        return ("repo", "id", "path")

    def __str__(self) -> str:
        return f"{self.repo}#{self.id}:{self.path.as_posix()}"


class AutoDirSource(ManifestModel):
    type: Literal["auto"] = "auto"
    locator: str

    def variable_fields(self) -> tuple[str, ...]:
        return ("locator",)

    def __str__(self) -> str:
        return self.locator


DirSource = Annotated[Union[LocalDirSource, GitDirSource, AutoDirSource], Field(discriminator="type")]


def dir_source_from_string(text: str) -> LocalDirSource | GitDirSource:
    locator = parse_locator(text)
    if locator is not None:
        return GitDirSource(repo=locator.repo, id=locator.id, path=Path(locator.path))
    return LocalDirSource(path=Path(text).expanduser())


def list_files(source: DirSource) -> list[Path]:
    """Return the relative paths of every file the directory source holds."""

    match source:
        case LocalDirSource(path=path):
            if not path.is_absolute():
                raise FetchError(f"Path to directory must be absolute {path}")
            if not path.is_dir():
                raise FetchError(f"Directory {path} does not exist")
            listing = [child.relative_to(path) for child in _iter_files(path)]
        case GitDirSource(repo=repo, id=revision, path=path):
            listing = list_tree(repo, revision, path)
        case AutoDirSource(locator=locator):
            listing = list_files(dir_source_from_string(locator))
        case _:
            raise FetchError(f"Unsupported directory source {source!r}")
    return sorted(format_subpath(item) for item in listing)


def single_file_source(source: DirSource, subpath: Path) -> ContentSource:
    """Return the content source for one file listed by ``source``."""

    subpath = format_subpath(subpath)
    match source:
        case LocalDirSource(path=path):
            return LocalSource(path=path / subpath)
        case GitDirSource(repo=repo, id=revision, path=path):
            return GitSource(repo=repo, id=revision, path=format_subpath(path / subpath))
        case AutoDirSource(locator=locator):
            return single_file_source(dir_source_from_string(locator), subpath)
    raise FetchError(f"Unsupported directory source {source!r}")


def list_first_valid(sources: Sequence[DirSource]) -> tuple[DirSource, list[Path]]:
    for source in sources:
        try:
            return source, list_files(source)
        except FetchError as exc:
            logger.warning("Invalid directory source %s\nError: %s", source, exc)
    raise SourceExhaustedError("No valid source for directory")


def _iter_files(path: Path) -> list[Path]:
    files: list[Path] = []
    for child in sorted(path.iterdir()):
        if child.is_symlink():
            raise FetchError(f"Only regular files are supported ({child})")
        if child.is_dir():
            nested = _iter_files(child)
            if not nested:
                raise FetchError(f"Empty folders not supported ({child})")
            files.extend(nested)
        elif child.is_file():
            files.append(child)
        else:
            raise FetchError(f"Only regular files are supported ({child})")
    return files


class DirectoryDeclaration(TaggedModel):
    """A target prefix filled with every file a directory source lists."""

    path: Path
    count: Optional[int] = None
    sources: list[DirSource] = Field(validation_alias=AliasChoices("sources", "source"))
    ignore_hidden: bool = False

    @field_validator("path")
    @classmethod
    def _check_path(cls, value: Path) -> Path:
        if contains_parent_dir(value):
            raise ParseError(f"Directory path '{value}' must not escape the target directory")
        return value

    @field_validator("sources", mode="before")
    @classmethod
    def _coerce_sources(cls, value: Any) -> Any:
        if isinstance(value, (str, dict)):
            value = [value]
        if not isinstance(value, list):
            raise ValueError(f"Expected a source or a list of sources, not {value!r}")
        return [AutoDirSource(locator=item) if isinstance(item, str) else item for item in value]

    def variable_fields(self) -> tuple[str, ...]:
        return ("path", "sources")

    def get_active(self, active: Iterable[str]) -> list[FileDeclaration]:
        if not self.is_active(active):
            return []
        return self.get_all_files()

    def get_all_files(self) -> list[FileDeclaration]:
        try:
            source, listing = list_first_valid(self.sources)
        except SourceExhaustedError as exc:
            raise SourceExhaustedError(f"No valid source for directory: {self.path}") from exc

        if self.ignore_hidden:
            listing = [item for item in listing if not any(part.startswith(".") for part in item.parts)]

        if self.count is not None and self.count != len(listing):
            raise SourceExhaustedError(
                f"Expected {self.count} files for directory {self.path}, found {len(listing)}"
            )
        if not listing:
            raise SourceExhaustedError(f"No files found for directory {self.path}")

        return [
            FileDeclaration(
                path=self.path / subpath,
                tags=self.tags,
                sources=[single_file_source(source, subpath)],
            )
            for subpath in listing
        ]


__all__ = [
    "AutoDirSource",
    "DirSource",
    "DirectoryDeclaration",
    "GitDirSource",
    "LocalDirSource",
    "dir_source_from_string",
    "list_files",
    "list_first_valid",
    "single_file_source",
]
