"""Manifest loading, variable resolution and active file computation."""

from __future__ import annotations

import tomllib
from pathlib import Path
from typing import Any, Iterable, Mapping, Optional

from pydantic import AliasChoices, Field, PrivateAttr, ValidationError, field_validator

from .directories import DirectoryDeclaration
from .edits import bake_edits
from .errors import (
    FetchError,
    FilesystemError,
    HashMismatchError,
    ParseError,
    PathCollisionError,
    RecursionLimitError,
    VariableError,
)
from .files import FileDeclaration
from .filesystem import contains_parent_dir, hash_matches
from .locators import is_remote_repo
from .log import get_logger
from .models import ManifestModel, TaggedModel
from .settings import Settings
from .sources import GitSource, LocalSource, fetch, source_from_string
from .tags import active_tags, validate_tags
from .variables import apply_variables, resolve_references, validate_variable_names

logger = get_logger("manifest")


class Inclusion(TaggedModel):
    """Files pulled in from another manifest."""

    config: str
    with_tags: tuple[str, ...] = ()
    subfolder: Path = Field(default=Path(), validation_alias=AliasChoices("path", "subfolder"))
    hash: Optional[str] = None

    @field_validator("subfolder")
    @classmethod
    def _check_subfolder(cls, value: Path) -> Path:
        if contains_parent_dir(value):
            raise ParseError(f"Inclusion path '{value}' must not escape the target directory")
        return value

    def variable_fields(self) -> tuple[str, ...]:
        return ("config", "subfolder")

    def load(self, settings: Settings | None = None) -> "Manifest":
        return load_manifest(self.config, allow_local=False, expected_hash=self.hash, settings=settings)

    def get_files(self, settings: Settings | None = None) -> list[FileDeclaration]:
        """Resolve the child manifest and rewrite its files for the parent."""

        child = self.load(settings)
        child_active = child.active_tags(self.with_tags)
        files = [
            original.model_copy(
                update={
                    "path": self.subfolder / original.target_path,
                    "tags": self.tags,
                    "edits": bake_edits(original.edits, child_active, self.tags),
                }
            )
            for original in child.get_active(self.with_tags)
        ]
        if not files:
            raise ParseError(f"Including zero files from a different config is not allowed. ({self.config})")
        return files


class Manifest(ManifestModel):
    """A parsed manifest; file lists are only available once variables are set."""

    variables: dict[str, str] = Field(default_factory=dict, validation_alias=AliasChoices("variables", "var"))
    default_tags: tuple[str, ...] = ()
    content: list[FileDeclaration] = Field(default_factory=list, validation_alias=AliasChoices("file", "content"))
    directories: list[DirectoryDeclaration] = Field(
        default_factory=list, validation_alias=AliasChoices("directory", "directories")
    )
    inclusions: list[Inclusion] = Field(default_factory=list, validation_alias=AliasChoices("include", "inclusions"))

    _variables_set: bool = PrivateAttr(default=False)
    _resolved_variables: dict[str, str] = PrivateAttr(default_factory=dict)
    _settings: Settings = PrivateAttr(default_factory=Settings)

    @field_validator("variables")
    @classmethod
    def _check_variable_names(cls, value: dict[str, str]) -> dict[str, str]:
        validate_variable_names(value)
        return value

    @field_validator("default_tags", mode="before")
    @classmethod
    def _check_default_tags(cls, value: Any) -> Any:
        return validate_tags(value)

    @property
    def variables_set(self) -> bool:
        return self._variables_set

    @property
    def resolved_variables(self) -> dict[str, str]:
        return dict(self._resolved_variables)

    @property
    def settings(self) -> Settings:
        return self._settings

    def resolve_variables(
        self,
        provenance: Mapping[str, str] | None = None,
        settings: Settings | None = None,
    ) -> "Manifest":
        """Return a copy with every placeholder filled in."""

        if self._variables_set:
            raise VariableError("Variables have already been set for this manifest")
        settings = settings or self._settings
        variables = {**self.variables, **(provenance or {})}
        resolved = resolve_references(variables, max_iterations=settings.variable_iterations)
        logger.debug("Variables: %s", resolved)

        manifest = self.model_copy(
            update={
                "content": apply_variables(self.content, resolved),
                "directories": apply_variables(self.directories, resolved),
                "inclusions": apply_variables(self.inclusions, resolved),
            }
        )
        manifest._check_resolved_paths()
        manifest._variables_set = True
        manifest._resolved_variables = resolved
        manifest._settings = settings
        return manifest

    def _check_resolved_paths(self) -> None:
        """Reject target paths that escape the target once variables are filled in."""

        paths = [declaration.path for declaration in self.content]
        paths += [directory.path for directory in self.directories]
        paths += [inclusion.subfolder for inclusion in self.inclusions]
        for path in paths:
            if contains_parent_dir(path):
                raise ParseError(f"Path '{path}' must not escape the target directory")

    def tags(self) -> list[str]:
        """Return every tag declared on files, edits, inclusions and directories.

        Included manifests are not searched: their files take the tags of the
        inclusion that pulls them in, so only those inclusion tags can ever be
        active here.
        """

        universe: set[str] = set()
        for declaration in self.content:
            universe.update(declaration.tags)
            for edit in declaration.edits:
                universe.update(edit.tags)
        for inclusion in self.inclusions:
            universe.update(inclusion.tags)
        for directory in self.directories:
            universe.update(directory.tags)
        return sorted(universe)

    def active_tags(self, requested: Iterable[str]) -> frozenset[str]:
        return active_tags(requested, defaults=self.default_tags, declared=self.tags())

    def get_active(self, requested: Iterable[str] = ()) -> list[FileDeclaration]:
        """Return the deduplicated active files from all three origins.

        An untagged file is suppressed by an active tagged file with the same
        path; any other overlap is an error.
        """

        if not self._variables_set:
            raise VariableError("Variables must have been set to get file list")

        active = self.active_tags(requested)
        candidates: list[FileDeclaration] = list(self.content)
        for directory in self.directories:
            candidates.extend(directory.get_active(active))
        for inclusion in self.inclusions:
            if inclusion.is_active(active):
                candidates.extend(inclusion.get_files(self._settings))
        return select_active(candidates, active)

    def is_fully_hardened(self, requested: Iterable[str] = ()) -> bool:
        """True if every active file is pinned and every inclusion pins a hardened child."""

        if any(declaration.hash is None for declaration in self.get_active(requested)):
            return False
        for inclusion in self.inclusions:
            if inclusion.hash is None:
                return False
            if not inclusion.load(self._settings).is_fully_hardened(inclusion.with_tags):
                return False
        return True


def select_active(candidates: Iterable[FileDeclaration], active: frozenset[str]) -> list[FileDeclaration]:
    candidates = list(candidates)
    tagged_paths = {item.target_path for item in candidates if item.tags and item.is_active(active)}

    selected: list[FileDeclaration] = []
    seen: set[Path] = set()
    for item in candidates:
        if not item.is_active(active):
            continue
        path = item.target_path
        if contains_parent_dir(path):
            raise FilesystemError(f"Escaping the current folder (..) is not allowed: {path}")
        if not item.tags and path in tagged_paths:
            continue
        if path in seen:
            raise PathCollisionError(f"There are two files for path {path.as_posix()}")
        seen.add(path)
        selected.append(item)
    return selected


def parse_manifest(data: bytes | str) -> Manifest:
    """Parse manifest text without resolving variables."""

    if isinstance(data, bytes):
        try:
            data = data.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise ParseError("Manifest is not valid UTF-8") from exc
    try:
        raw = tomllib.loads(data)
    except tomllib.TOMLDecodeError as exc:
        raise ParseError(f"Manifest is not valid TOML: {exc}") from exc
    try:
        return Manifest.model_validate(raw)
    except ValidationError as exc:
        raise ParseError(f"Invalid manifest: {exc}") from exc


def provenance_variables(source: LocalSource | GitSource) -> dict[str, str]:
    """Reserved variables describing where a manifest was loaded from."""

    match source:
        case GitSource(repo=repo, id=revision, path=path):
            if not path.name:
                raise ParseError("Config must have a name.")
            repo_string = repo if is_remote_repo(repo) else str(Path(repo).expanduser().resolve())
            return {
                "SELF_ID": revision,
                "SELF_REPO": repo,
                "SELF_NAME": path.name,
                "SELF_ROOT": f"{repo_string}#{revision}:",
            }
        case LocalSource(path=path):
            resolved = path.resolve()
            parent = str(resolved.parent)
            return {"SELF_PARENT": parent, "SELF_ROOT": parent, "SELF_NAME": resolved.name}
    return {}


def load_manifest(
    reference: str,
    *,
    allow_local: bool = True,
    expected_hash: str | None = None,
    settings: Settings | None = None,
) -> Manifest:
    """Load a manifest from a general path and resolve its variables.

    Relative local paths are only accepted when ``allow_local`` is set, which
    is the case for the manifest named on the command line.
    """

    settings = settings or Settings()
    source = source_from_string(reference)
    match source:
        case LocalSource(path=path):
            if not path.is_absolute() and not allow_local:
                raise ParseError(f"Trying to load config from relative path {path}")
            logger.info("Loading config from local file %s", path)
            try:
                data = path.read_bytes()
            except OSError as exc:
                raise ParseError(f"Could not load config {path}: {exc}") from exc
        case GitSource():
            logger.info("Loading config from %s", source)
            try:
                data = fetch(source, settings)
            except FetchError as exc:
                raise ParseError(f"Could not load config {source}: {exc}") from exc
        case _:
            raise ParseError(f"Loading config from unsupported filesource {reference}")

    if expected_hash is not None and not hash_matches(data, expected_hash):
        raise HashMismatchError(f"Hash of loaded config {reference} did not match.")

    return parse_manifest(data).resolve_variables(provenance_variables(source), settings)


def next_inclusion_level(references: Iterable[str], *, allow_local: bool, settings: Settings) -> set[str]:
    """Return the set of manifests included by ``references``."""

    found: set[str] = set()
    for reference in sorted(set(references)):
        manifest = load_manifest(reference, allow_local=allow_local, settings=settings)
        found.update(inclusion.config for inclusion in manifest.inclusions)
    return found


def check_recursion(reference: str, settings: Settings | None = None) -> None:
    """Fail if the inclusion graph below ``reference`` is cyclic or too deep.

    Must be called before :meth:`Manifest.get_active`, which recurses into
    included manifests without any bound of its own.
    """

    settings = settings or Settings()
    frontier = {reference}
    for depth in range(settings.inclusion_limit + 1):
        logger.info("Looking for recursions %d levels deep", depth)
        frontier = next_inclusion_level(frontier, allow_local=depth == 0, settings=settings)
        logger.info("Found %d dependencies.", len(frontier))
        if not frontier:
            return
    raise RecursionLimitError(
        f"The inclusions are too deep (max depth={settings.inclusion_limit}) or recursive."
    )


__all__ = [
    "Inclusion",
    "Manifest",
    "check_recursion",
    "load_manifest",
    "next_inclusion_level",
    "parse_manifest",
    "provenance_variables",
    "select_active",
]
