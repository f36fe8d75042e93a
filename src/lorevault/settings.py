"""Runtime settings for lorevault."""

from __future__ import annotations

import os
import tempfile
from pathlib import Path
from typing import Any, Mapping

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import ConfigError

ENV_PREFIX = "LOREVAULT_"
INCLUSION_RECURSION_LIMIT = 10
VARIABLE_RESOLUTION_LIMIT = 1000


def expand_path(raw: str | os.PathLike[str] | Path, *, base_dir: Path | None = None) -> Path:
    """Return an absolute ``Path`` by expanding env vars and user segments."""

    text = str(raw)
    expanded = Path(os.path.expandvars(text)).expanduser()
    if expanded.is_absolute():
        return expanded.resolve(strict=False)
    return ((base_dir or Path.cwd()) / expanded).resolve(strict=False)


class Settings(BaseModel):
    """Tunables shared by the resolver, the transports and the reconciler."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    inclusion_limit: int = Field(default=INCLUSION_RECURSION_LIMIT, ge=1)
    variable_iterations: int = Field(default=VARIABLE_RESOLUTION_LIMIT, ge=1)
    http_timeout: float = Field(default=30.0, gt=0)
    cache_root: Path = Field(default_factory=lambda: Path(tempfile.gettempdir()))

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any]) -> "Settings":
        values = dict(raw)
        if "cache_root" in values:
            values["cache_root"] = expand_path(values["cache_root"])
        try:
            return cls(**values)
        except ValidationError as exc:
            raise ConfigError(f"Invalid settings: {exc}") from exc

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "Settings":
        """Build settings from ``LOREVAULT_*`` environment variables."""

        environ = os.environ if environ is None else environ
        raw: dict[str, Any] = {}
        for name in cls.model_fields:
            value = environ.get(f"{ENV_PREFIX}{name.upper()}")
            if value is not None and value != "":
                raw[name] = value
        return cls.from_raw(raw)


__all__ = ["Settings", "expand_path", "INCLUSION_RECURSION_LIMIT", "VARIABLE_RESOLUTION_LIMIT"]
