"""Exception hierarchy for lorevault."""

from __future__ import annotations


class LorevaultError(RuntimeError):
    """Base class for every error raised by lorevault."""


class ParseError(LorevaultError):
    """Raised when a manifest cannot be read, decoded or validated."""


class ConfigError(ParseError):
    """Raised when runtime settings are invalid."""


class VariableError(LorevaultError):
    """Raised for missing bindings, reserved names and unresolvable references."""


class TagError(LorevaultError):
    """Raised for undeclared tags, conflicting requests and invalid tag names."""


class PathCollisionError(LorevaultError):
    """Raised when two active files map to the same target path."""


class RecursionLimitError(LorevaultError):
    """Raised when the inclusion graph is too deep or cyclic."""


class HashMismatchError(LorevaultError):
    """Raised when loaded content disagrees with its hash pin."""


class FetchError(LorevaultError):
    """Raised by a single content or directory source that could not deliver."""


class SourceExhaustedError(LorevaultError):
    """Raised when every fallback source of a file or directory failed."""


class FilesystemError(LorevaultError):
    """Raised when reading or writing the target or reference tree fails."""


class EditError(LorevaultError):
    """Raised when an edit precondition is not met."""


class ConfirmationError(LorevaultError):
    """Raised when an overwrite or deletion was not confirmed."""


__all__ = [
    "ConfigError",
    "ConfirmationError",
    "EditError",
    "FetchError",
    "FilesystemError",
    "HashMismatchError",
    "LorevaultError",
    "ParseError",
    "PathCollisionError",
    "RecursionLimitError",
    "SourceExhaustedError",
    "TagError",
    "VariableError",
]
