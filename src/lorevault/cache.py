"""Process-scoped cache directory for cloned repositories."""

from __future__ import annotations

import shutil
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from .log import get_logger
from .settings import Settings

logger = get_logger("cache")


class CacheDir:
    """A temporary directory created on first use and removed by ``cleanup``."""

    def __init__(self) -> None:
        self.root: Path | None = None
        self._path: Path | None = None
        self._clones: dict[str, Path] = {}

    @property
    def created(self) -> bool:
        return self._path is not None

    def path(self) -> Path:
        if self._path is None:
            root = self.root or Path(tempfile.gettempdir())
            root.mkdir(parents=True, exist_ok=True)
            self._path = Path(tempfile.mkdtemp(prefix="lorevault-", dir=root))
            logger.debug("Created cache directory %s", self._path)
        return self._path

    def clone_for(self, repo: str) -> Path | None:
        return self._clones.get(repo)

    def new_clone_dir(self, repo: str) -> Path:
        destination = self.path() / f"repo-{len(self._clones)}"
        self._clones[repo] = destination
        return destination

    def forget_clone(self, repo: str) -> None:
        self._clones.pop(repo, None)

    def cleanup(self) -> None:
        path, self._path = self._path, None
        self._clones.clear()
        if path is not None and path.exists():
            shutil.rmtree(path, ignore_errors=True)
            logger.debug("Removed cache directory %s", path)


_CACHE = CacheDir()


def get_cache() -> CacheDir:
    return _CACHE


@contextmanager
def cache_session(settings: Settings | None = None) -> Iterator[CacheDir]:
    """Yield the process cache and remove it on every exit path, interrupts included."""

    previous_root = _CACHE.root
    if settings is not None:
        _CACHE.root = settings.cache_root
    try:
        yield _CACHE
    finally:
        _CACHE.cleanup()
        _CACHE.root = previous_root


__all__ = ["CacheDir", "cache_session", "get_cache"]
