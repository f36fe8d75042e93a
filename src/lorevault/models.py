"""Shared models for lorevault."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable

from pydantic import BaseModel, ConfigDict, field_validator

from .tags import is_active, validate_tags


class ManifestModel(BaseModel):
    """Immutable value object parsed from a manifest; unknown keys are rejected."""

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    def variable_fields(self) -> tuple[str, ...]:
        return ()


class TaggedModel(ManifestModel):
    """A manifest entity gated by an optional tag set."""

    tags: tuple[str, ...] = ()

    @field_validator("tags", mode="before")
    @classmethod
    def _check_tags(cls, value: Any) -> Any:
        return validate_tags(value)

    def is_active(self, active: Iterable[str]) -> bool:
        return is_active(self.tags, active)


@dataclass(frozen=True, slots=True)
class ResolvedFile:
    """A target path and the final bytes to write there."""

    path: Path
    content: bytes


__all__ = ["ManifestModel", "ResolvedFile", "TaggedModel"]
