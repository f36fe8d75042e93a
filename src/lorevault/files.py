"""File declarations: a target path backed by a fallback chain of sources."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Iterable, Optional

from pydantic import AliasChoices, Field, field_validator

from .edits import FileEdit, apply_edits, has_active_edits, parse_edit
from .errors import ParseError
from .filesystem import contains_parent_dir, format_subpath
from .models import TaggedModel
from .settings import Settings
from .sources import ContentSource, coerce_source, fetch_first_valid


class FileDeclaration(TaggedModel):
    """One file of the target directory."""

    path: Path
    hash: Optional[str] = None
    sources: list[ContentSource] = Field(validation_alias=AliasChoices("sources", "source"))
    edits: list[FileEdit] = Field(default_factory=list, validation_alias=AliasChoices("edit", "edits"))

    @field_validator("path")
    @classmethod
    def _check_path(cls, value: Path) -> Path:
        if contains_parent_dir(value):
            raise ParseError(f"File path '{value}' must not escape the target directory")
        return value

    @field_validator("sources", mode="before")
    @classmethod
    def _coerce_sources(cls, value: Any) -> Any:
        if isinstance(value, (str, dict)):
            value = [value]
        if not isinstance(value, list):
            raise ValueError(f"Expected a source or a list of sources, not {value!r}")
        return [coerce_source(item) for item in value]

    @field_validator("edits", mode="before")
    @classmethod
    def _coerce_edits(cls, value: Any) -> Any:
        if isinstance(value, dict):
            value = [value]
        if not isinstance(value, list):
            raise ValueError(f"Expected an edit table or a list of edits, not {value!r}")
        return [parse_edit(item) for item in value]

    def variable_fields(self) -> tuple[str, ...]:
        return ("path", "sources", "edits")

    @property
    def target_path(self) -> Path:
        return format_subpath(self.path)

    def has_active_edits(self, active: Iterable[str]) -> bool:
        return has_active_edits(self.edits, active)

    def from_reference(self, content: bytes, active: Iterable[str]) -> bytes:
        """Run the edit pipeline over already available raw bytes."""

        return apply_edits(self.edits, active, content)

    def build(self, active: Iterable[str], settings: Settings | None = None) -> bytes:
        """Fetch the first valid source and apply the active edits."""

        content = fetch_first_valid(self.sources, self.hash, settings)
        return self.from_reference(content, active)


__all__ = ["FileDeclaration"]
