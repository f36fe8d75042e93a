"""Core package for the lorevault project."""

from .cli import app, run
from .errors import (
    ConfigError,
    ConfirmationError,
    EditError,
    FetchError,
    FilesystemError,
    HashMismatchError,
    LorevaultError,
    ParseError,
    PathCollisionError,
    RecursionLimitError,
    SourceExhaustedError,
    TagError,
    VariableError,
)
from .manager import CheckReport, SyncResult, VaultManager
from .manifest import Inclusion, Manifest, check_recursion, load_manifest, parse_manifest
from .memfolder import MemFolder, WriteMode
from .models import ResolvedFile
from .settings import Settings

__all__ = [
    "CheckReport",
    "ConfigError",
    "ConfirmationError",
    "EditError",
    "FetchError",
    "FilesystemError",
    "HashMismatchError",
    "Inclusion",
    "LorevaultError",
    "Manifest",
    "MemFolder",
    "ParseError",
    "PathCollisionError",
    "RecursionLimitError",
    "ResolvedFile",
    "Settings",
    "SourceExhaustedError",
    "SyncResult",
    "TagError",
    "VariableError",
    "VaultManager",
    "WriteMode",
    "app",
    "check_recursion",
    "load_manifest",
    "parse_manifest",
    "run",
]
