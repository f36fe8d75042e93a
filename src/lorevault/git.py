"""Reading blobs and trees from git repositories through the ``git`` executable."""

from __future__ import annotations

import subprocess
from pathlib import Path

from .cache import get_cache
from .errors import FetchError
from .filesystem import format_subpath
from .locators import is_remote_repo
from .log import get_logger

logger = get_logger("git")


def run_git(args: list[str], *, cwd: Path | None = None) -> bytes:
    command = ["git", *args]
    if cwd is not None:
        command = ["git", "-C", str(cwd), *args]
    try:
        result = subprocess.run(command, capture_output=True, check=False)
    except FileNotFoundError as exc:
        raise FetchError("git might not be installed") from exc
    if result.returncode != 0:
        message = result.stderr.decode("utf-8", errors="replace").strip()
        raise FetchError(f"git {' '.join(args)} failed: {message}")
    return result.stdout


def open_repository(repo: str) -> Path:
    """Return a local path holding ``repo``, cloning remote repositories once."""

    if not is_remote_repo(repo):
        path = Path(repo).expanduser()
        if not path.is_absolute():
            raise FetchError(f"Path to repo must be absolute {repo}")
        if not path.exists():
            raise FetchError(f"Repository {repo} does not exist")
        return path

    cache = get_cache()
    existing = cache.clone_for(repo)
    if existing is not None and existing.exists():
        return existing

    destination = cache.new_clone_dir(repo)
    logger.info("Cloning %s", repo)
    try:
        run_git(["clone", "--quiet", "--bare", repo, str(destination)])
    except FetchError:
        cache.forget_clone(repo)
        raise
    return destination


def read_blob(repo: str, id: str, path: Path | str) -> bytes:
    """Return the content of ``path`` at commit or tag ``id``."""

    location = format_subpath(path).as_posix()
    return run_git(["cat-file", "blob", f"{id}:{location}"], cwd=open_repository(repo))


def list_tree(repo: str, id: str, path: Path | str) -> list[Path]:
    """Return every file below ``path`` at ``id``, relative to ``path``."""

    location = format_subpath(path).as_posix()
    treeish = f"{id}:" if location == "." else f"{id}:{location}"
    output = run_git(["ls-tree", "-r", "--name-only", "-z", treeish], cwd=open_repository(repo))
    return [Path(name) for name in output.decode("utf-8").split("\0") if name]


__all__ = ["list_tree", "open_repository", "read_blob", "run_git"]
