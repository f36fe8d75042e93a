"""Tag-gated text edits applied to fetched content."""

from __future__ import annotations

from typing import Any, Iterable, Literal, Sequence, Union

from .errors import EditError, ParseError
from .models import TaggedModel


class ReplaceEdit(TaggedModel):
    """Replace every occurrence of ``replace`` by ``to``."""

    replace: str
    to: str
    required: bool = True

    def variable_fields(self) -> tuple[str, ...]:
        return ("replace", "to")

    def apply(self, text: str) -> str:
        if self.required and self.replace not in text:
            raise EditError(f"Replacement {self.replace!r} was required but not found")
        return text.replace(self.replace, self.to)


class InsertEdit(TaggedModel):
    """Insert ``insert`` at the start, the end, or as line ``position``."""

    insert: str
    position: Union[Literal["append", "prepend"], int] = "append"

    def variable_fields(self) -> tuple[str, ...]:
        return ("insert",)

    def apply(self, text: str) -> str:
        if self.position == "append":
            return text + self.insert
        if self.position == "prepend":
            return self.insert + text

        lines = text.splitlines(keepends=True)
        line = int(self.position)
        if line < 1:
            raise EditError(f"Cannot insert at line {line}; lines start at 1")
        if line > len(lines) + 1:
            raise EditError(f"Cannot insert at line {line}; the document has {len(lines)} lines")
        if line == len(lines) + 1 and lines and not lines[-1].endswith("\n"):
            lines[-1] += "\n"
        content = self.insert if self.insert.endswith("\n") else self.insert + "\n"
        lines.insert(line - 1, content)
        return "".join(lines)


class DeleteEdit(TaggedModel):
    """Delete the 1-indexed inclusive line range ``delete_from..delete_to``."""

    delete_from: int
    delete_to: int

    def apply(self, text: str) -> str:
        lines = text.splitlines(keepends=True)
        start, end = self.delete_from, self.delete_to
        if start < 1 or end < 1:
            raise EditError("Line numbers for deletion start at 1")
        if start > end:
            raise EditError(f"Invalid deletion range {start}-{end}")
        if end > len(lines):
            raise EditError(f"Cannot delete up to line {end}; the document has {len(lines)} lines")
        del lines[start - 1 : end]
        return "".join(lines)


FileEdit = Union[ReplaceEdit, InsertEdit, DeleteEdit]


def parse_edit(raw: Any) -> Any:
    """Pick the edit model from the keys present in ``raw``."""

    if not isinstance(raw, dict):
        return raw
    if "replace" in raw:
        return ReplaceEdit.model_validate(raw)
    if "insert" in raw:
        return InsertEdit.model_validate(raw)
    if "delete_from" in raw or "delete_to" in raw:
        return DeleteEdit.model_validate(raw)
    raise ParseError(f"Unrecognised edit {raw!r}; expected 'replace', 'insert' or 'delete_from'/'delete_to'")


def apply_edits(edits: Sequence[FileEdit], active: Iterable[str], content: bytes) -> bytes:
    """Apply the edits active under ``active`` to ``content`` in order."""

    if not edits:
        return content
    try:
        text = content.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise EditError("Content with edits must be valid UTF-8") from exc

    active = frozenset(active)
    for edit in edits:
        if not edit.is_active(active):
            continue
        text = edit.apply(text)
    return text.encode("utf-8")


def has_active_edits(edits: Sequence[FileEdit], active: Iterable[str]) -> bool:
    active = frozenset(active)
    return any(edit.is_active(active) for edit in edits)


def bake_edits(edits: Sequence[FileEdit], with_tags: Iterable[str], tags: tuple[str, ...]) -> list[FileEdit]:
    """Decide edit activation at inclusion time and retag the survivors.

    Edits inactive under the child's ``with_tags`` are dropped; the remaining
    ones carry the inclusion's own ``tags`` so they follow the included file.
    """

    with_tags = frozenset(with_tags)
    return [edit.model_copy(update={"tags": tags}) for edit in edits if edit.is_active(with_tags)]


__all__ = [
    "DeleteEdit",
    "FileEdit",
    "InsertEdit",
    "ReplaceEdit",
    "apply_edits",
    "bake_edits",
    "has_active_edits",
    "parse_edit",
]
