"""Content sources and the fallback fetch over them.

The set of sources is closed: every variant is one pydantic model tagged by
its ``type`` key and :func:`fetch` dispatches over them with ``match``. A bare
string in a manifest becomes an :class:`AutoSource` whose general path is
only interpreted when it is fetched, after variables have been filled in.
"""

from __future__ import annotations

import shutil
import subprocess
import tarfile
import tempfile
import zipfile
from pathlib import Path
from typing import Annotated, Literal, Sequence, Union

import requests
from pydantic import Field

from .errors import FetchError, SourceExhaustedError
from .filesystem import format_subpath, hash_matches
from .git import read_blob
from .locators import is_url, parse_locator
from .log import get_logger
from .models import ManifestModel
from .settings import Settings

logger = get_logger("sources")

ARCHIVE_SUFFIXES = (".zip", ".tar", ".tar.gz", ".tgz", ".tar.xz")


class LocalSource(ManifestModel):
    type: Literal["file"] = "file"
    path: Path

    def variable_fields(self) -> tuple[str, ...]:
        return ("path",)

    def __str__(self) -> str:
        return str(self.path)


class DownloadSource(ManifestModel):
    type: Literal["http"] = "http"
    url: str

    def variable_fields(self) -> tuple[str, ...]:
        return ("url",)

    def __str__(self) -> str:
        return self.url


class GitSource(ManifestModel):
    type: Literal["git"] = "git"
    repo: str
    id: str
    path: Path

    def variable_fields(self) -> tuple[str, ...]:
        return ("repo", "id", "path")

    def __str__(self) -> str:
        return f"{self.repo}#{self.id}:{self.path.as_posix()}"


class SftpSource(ManifestModel):
    type: Literal["sftp"] = "sftp"
    user: str
    host: str
    path: Path
    port: int = 22

    def variable_fields(self) -> tuple[str, ...]:
        return ("user", "host", "path")

    def __str__(self) -> str:
        return f"sftp://{self.user}@{self.host}:{self.port}{self.path.as_posix()}"


class TextSource(ManifestModel):
    type: Literal["text"] = "text"
    content: str
    ignore_variables: bool = False

    def variable_fields(self) -> tuple[str, ...]:
        return () if self.ignore_variables else ("content",)

    def __str__(self) -> str:
        return "inline text"


class ArchiveSource(ManifestModel):
    type: Literal["archive"] = "archive"
    archive: Path
    path: Path

    def variable_fields(self) -> tuple[str, ...]:
        return ("archive", "path")

    def __str__(self) -> str:
        return f"{self.archive}/{self.path.as_posix()}"


class BackupSource(ManifestModel):
    type: Literal["borg"] = "borg"
    archive: Path
    backup_id: str
    path: Path

    def variable_fields(self) -> tuple[str, ...]:
        return ("archive", "backup_id", "path")

    def __str__(self) -> str:
        return f"{self.archive}::{self.backup_id}/{self.path.as_posix()}"


class AutoSource(ManifestModel):
    """A general path given as a bare string."""

    type: Literal["auto"] = "auto"
    locator: str

    def variable_fields(self) -> tuple[str, ...]:
        return ("locator",)

    def __str__(self) -> str:
        return self.locator


ContentSource = Annotated[
    Union[
        LocalSource,
        DownloadSource,
        GitSource,
        SftpSource,
        TextSource,
        ArchiveSource,
        BackupSource,
        AutoSource,
    ],
    Field(discriminator="type"),
]


def coerce_source(raw: object) -> object:
    """Turn bare strings into :class:`AutoSource` before validation."""

    if isinstance(raw, str):
        return AutoSource(locator=raw)
    return raw


def source_from_string(text: str) -> LocalSource | GitSource | DownloadSource:
    """Interpret a general path as a git locator, a URL or a local file."""

    locator = parse_locator(text)
    if locator is not None:
        return GitSource(repo=locator.repo, id=locator.id, path=Path(locator.path))
    if is_url(text):
        return DownloadSource(url=text)
    return LocalSource(path=Path(text).expanduser())


def fetch(source: ContentSource, settings: Settings | None = None) -> bytes:
    """Return the bytes behind ``source`` or raise :class:`FetchError`."""

    settings = settings or Settings()
    match source:
        case LocalSource(path=path):
            return _read_local(path)
        case DownloadSource(url=url):
            return _download(url, timeout=settings.http_timeout)
        case GitSource(repo=repo, id=revision, path=path):
            return read_blob(repo, revision, path)
        case SftpSource(user=user, host=host, path=path, port=port):
            return _read_sftp(user, host, path, port)
        case TextSource(content=content):
            return content.encode("utf-8")
        case ArchiveSource(archive=archive, path=path):
            return _read_archive(archive, path)
        case BackupSource(archive=archive, backup_id=backup_id, path=path):
            return _read_borg(archive, backup_id, path)
        case AutoSource(locator=locator):
            return fetch(source_from_string(locator), settings)
    raise FetchError(f"Unsupported source {source!r}")


def fetch_first_valid(
    sources: Sequence[ContentSource],
    expected_hash: str | None,
    settings: Settings | None = None,
) -> bytes:
    """Return the content of the first source that fetches and matches ``expected_hash``."""

    for source in sources:
        try:
            content = fetch(source, settings)
        except FetchError as exc:
            logger.warning("Invalid source %s\nError: %s", source, exc)
            continue
        if expected_hash is None or hash_matches(content, expected_hash):
            return content
        logger.warning("Invalid hash %s", source)
    raise SourceExhaustedError("No valid source in list.")


def _read_local(path: Path) -> bytes:
    path = path.expanduser()
    if not path.is_absolute():
        raise FetchError(f"Relative paths are not allowed! ({path})")
    try:
        return path.read_bytes()
    except OSError as exc:
        raise FetchError(f"could not read local file {path}: {exc}") from exc


def _download(url: str, *, timeout: float) -> bytes:
    try:
        response = requests.get(url, timeout=timeout)
        response.raise_for_status()
    except requests.exceptions.RequestException as exc:
        raise FetchError(f"Download of {url} failed: {exc}") from exc
    return response.content


def _read_sftp(user: str, host: str, path: Path, port: int) -> bytes:
    with tempfile.TemporaryDirectory(prefix="lorevault-sftp-") as staging:
        local = Path(staging) / "payload"
        batch = f'get "{path.as_posix()}" "{local}"\n'
        command = ["sftp", "-q", "-o", "BatchMode=yes", "-P", str(port), "-b", "-", f"{user}@{host}"]
        try:
            result = subprocess.run(command, input=batch.encode("utf-8"), capture_output=True, check=False)
        except FileNotFoundError as exc:
            raise FetchError("sftp might not be installed") from exc
        if result.returncode != 0 or not local.exists():
            message = result.stderr.decode("utf-8", errors="replace").strip()
            raise FetchError(f"sftp transfer from {host} failed: {message}")
        return local.read_bytes()


def _strip_first_level(name: str) -> str:
    parts = name.strip("/").split("/")
    if len(parts) > 1:
        return "/".join(parts[1:])
    return name


def _read_archive(archive: Path, path: Path) -> bytes:
    wanted = format_subpath(path).as_posix()
    name = archive.name
    if not name.endswith(ARCHIVE_SUFFIXES):
        raise FetchError(f"Unsupported archive type (ending) {archive}")
    try:
        if name.endswith(".zip"):
            with zipfile.ZipFile(archive) as bundle:
                for info in bundle.infolist():
                    if not info.is_dir() and _strip_first_level(info.filename) == wanted:
                        return bundle.read(info)
        else:
            with tarfile.open(archive, mode="r:*") as bundle:
                for member in bundle.getmembers():
                    if member.isfile() and _strip_first_level(member.name) == wanted:
                        handle = bundle.extractfile(member)
                        if handle is not None:
                            with handle:
                                return handle.read()
    except (OSError, zipfile.BadZipFile, tarfile.TarError) as exc:
        raise FetchError(f"Could not read archive {archive}: {exc}") from exc
    raise FetchError(f"file {wanted} not found in {archive}")


def _read_borg(archive: Path, backup_id: str, path: Path) -> bytes:
    if shutil.which("borg") is None:
        raise FetchError("borg might not be installed")
    command = ["borg", "extract", "--stdout", f"{archive}::{backup_id}", format_subpath(path).as_posix()]
    result = subprocess.run(command, capture_output=True, check=False)
    if result.returncode != 0:
        raise FetchError(f"Call to borg failed: {result.stderr.decode('utf-8', errors='replace').strip()}")
    return result.stdout


__all__ = [
    "ArchiveSource",
    "AutoSource",
    "BackupSource",
    "ContentSource",
    "DownloadSource",
    "GitSource",
    "LocalSource",
    "SftpSource",
    "TextSource",
    "coerce_source",
    "fetch",
    "fetch_first_valid",
    "source_from_string",
]
