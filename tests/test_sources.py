from __future__ import annotations

import tarfile
import zipfile
from pathlib import Path

import pytest
import requests

from lorevault import sources
from lorevault.errors import FetchError, SourceExhaustedError
from lorevault.filesystem import compute_hash
from lorevault.locators import is_remote_repo, parse_locator
from lorevault.sources import (
    ArchiveSource,
    AutoSource,
    DownloadSource,
    GitSource,
    LocalSource,
    TextSource,
    fetch,
    fetch_first_valid,
    source_from_string,
)


def test_parse_locator_variants() -> None:
    locator = parse_locator("git@github.com:owner/repo#v1.0:dir/file.txt")
    assert locator is not None
    assert (locator.repo, locator.id, locator.path) == ("git@github.com:owner/repo", "v1.0", "dir/file.txt")

    locator = parse_locator("https://example.com/a/b.git#0123abcd:/config.toml")
    assert locator is not None
    assert locator.id == "0123abcd"
    assert locator.path == "config.toml"
    assert locator.root == "https://example.com/a/b.git#0123abcd:"

    assert parse_locator("/plain/local/path.txt") is None
    assert is_remote_repo("ssh://host/repo")
    assert not is_remote_repo("/srv/repo")


def test_source_from_string_picks_variant(tmp_path: Path) -> None:
    assert isinstance(source_from_string("/srv/repo#abc1234:file.txt"), GitSource)
    assert isinstance(source_from_string("https://example.com/file.txt"), DownloadSource)
    local = source_from_string(str(tmp_path / "file.txt"))
    assert isinstance(local, LocalSource)
    assert local.path == tmp_path / "file.txt"


def test_fetch_local_requires_absolute_path(tmp_path: Path) -> None:
    target = tmp_path / "data.txt"
    target.write_bytes(b"payload")

    assert fetch(LocalSource(path=target)) == b"payload"
    assert compute_hash(fetch(LocalSource(path=target))) == compute_hash(b"payload")
    with pytest.raises(FetchError, match="Relative"):
        fetch(LocalSource(path=Path("data.txt")))
    with pytest.raises(FetchError):
        fetch(LocalSource(path=tmp_path / "missing.txt"))


def test_local_fetch_hash_is_stable(tmp_path: Path) -> None:
    target = tmp_path / "stable.bin"
    target.write_bytes(b"\x00unchanged content\n")
    source = LocalSource(path=target)

    digests = {compute_hash(fetch(source)) for _ in range(3)}

    assert digests == {compute_hash(b"\x00unchanged content\n")}


def test_fetch_text_and_auto(tmp_path: Path) -> None:
    target = tmp_path / "auto.txt"
    target.write_text("auto")

    assert fetch(TextSource(content="inline")) == b"inline"
    assert fetch(AutoSource(locator=str(target))) == b"auto"


def test_fetch_download(monkeypatch: pytest.MonkeyPatch) -> None:
    calls: list[tuple[str, float]] = []

    class FakeResponse:
        content = b"remote"

        def raise_for_status(self) -> None:
            return None

    def fake_get(url: str, timeout: float) -> FakeResponse:
        calls.append((url, timeout))
        return FakeResponse()

    monkeypatch.setattr(sources.requests, "get", fake_get)

    assert fetch(DownloadSource(url="https://example.com/file.txt")) == b"remote"
    assert calls == [("https://example.com/file.txt", 30.0)]


def test_fetch_download_failure(monkeypatch: pytest.MonkeyPatch) -> None:
    def fake_get(url: str, timeout: float) -> None:
        raise requests.exceptions.ConnectionError("unreachable")

    monkeypatch.setattr(sources.requests, "get", fake_get)

    with pytest.raises(FetchError, match="unreachable"):
        fetch(DownloadSource(url="https://example.com/file.txt"))


def test_fetch_from_zip_strips_first_level(tmp_path: Path) -> None:
    archive = tmp_path / "bundle.zip"
    with zipfile.ZipFile(archive, "w") as bundle:
        bundle.writestr("bundle/inner/file.txt", "zipped")
        bundle.writestr("bundle/other.txt", "other")

    assert fetch(ArchiveSource(archive=archive, path=Path("inner/file.txt"))) == b"zipped"
    with pytest.raises(FetchError, match="not found"):
        fetch(ArchiveSource(archive=archive, path=Path("missing.txt")))


def test_fetch_from_tarball(tmp_path: Path) -> None:
    staging = tmp_path / "staging" / "top"
    staging.mkdir(parents=True)
    (staging / "file.txt").write_text("tarred")
    archive = tmp_path / "bundle.tar.xz"
    with tarfile.open(archive, "w:xz") as bundle:
        bundle.add(staging, arcname="top")

    assert fetch(ArchiveSource(archive=archive, path=Path("file.txt"))) == b"tarred"


def test_fetch_archive_rejects_unknown_suffix(tmp_path: Path) -> None:
    with pytest.raises(FetchError, match="Unsupported archive"):
        fetch(ArchiveSource(archive=tmp_path / "bundle.rar", path=Path("file.txt")))


def test_fetch_first_valid_falls_back(tmp_path: Path) -> None:
    candidates = [
        LocalSource(path=tmp_path / "missing.txt"),
        TextSource(content="wrong"),
        TextSource(content="right"),
    ]

    assert fetch_first_valid(candidates, None) == b"wrong"
    assert fetch_first_valid(candidates, compute_hash(b"right")) == b"right"


def test_fetch_first_valid_exhausted(tmp_path: Path) -> None:
    with pytest.raises(SourceExhaustedError, match="No valid source in list."):
        fetch_first_valid([LocalSource(path=tmp_path / "missing.txt")], None)
    with pytest.raises(SourceExhaustedError):
        fetch_first_valid([TextSource(content="text")], compute_hash(b"different"))
    with pytest.raises(SourceExhaustedError):
        fetch_first_valid([], None)
