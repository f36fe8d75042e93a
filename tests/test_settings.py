from __future__ import annotations

import logging
from pathlib import Path

import pytest
from rich.console import Console
from rich.logging import RichHandler

from lorevault.cache import CacheDir, cache_session
from lorevault.errors import ConfigError
from lorevault.log import configure_logging, get_logger
from lorevault.settings import Settings, expand_path


def test_settings_defaults() -> None:
    settings = Settings()
    assert settings.inclusion_limit == 10
    assert settings.variable_iterations == 1000
    assert settings.http_timeout == 30.0


def test_settings_from_env(tmp_path: Path) -> None:
    settings = Settings.from_env(
        {
            "LOREVAULT_INCLUSION_LIMIT": "3",
            "LOREVAULT_HTTP_TIMEOUT": "2.5",
            "LOREVAULT_CACHE_ROOT": str(tmp_path / "cache"),
            "UNRELATED": "ignored",
        }
    )

    assert settings.inclusion_limit == 3
    assert settings.http_timeout == 2.5
    assert settings.cache_root == (tmp_path / "cache").resolve()


@pytest.mark.parametrize(
    "environ",
    [
        {"LOREVAULT_INCLUSION_LIMIT": "0"},
        {"LOREVAULT_HTTP_TIMEOUT": "-1"},
        {"LOREVAULT_VARIABLE_ITERATIONS": "many"},
    ],
)
def test_invalid_settings_raise_config_error(environ: dict[str, str]) -> None:
    with pytest.raises(ConfigError):
        Settings.from_env(environ)


def test_expand_path_uses_base_dir(tmp_path: Path, fake_home: Path) -> None:
    assert expand_path("relative/file", base_dir=tmp_path) == tmp_path / "relative" / "file"
    assert expand_path("~/file") == fake_home / "file"


def test_cache_dir_is_created_lazily_and_removed(tmp_path: Path) -> None:
    cache = CacheDir()
    cache.root = tmp_path
    assert not cache.created

    path = cache.path()
    assert path.parent == tmp_path
    assert path.name.startswith("lorevault-")
    assert cache.new_clone_dir("https://example.com/repo.git") == path / "repo-0"

    cache.cleanup()
    assert not path.exists()
    assert cache.clone_for("https://example.com/repo.git") is None


def test_cache_session_cleans_up_on_error(tmp_path: Path) -> None:
    with pytest.raises(KeyboardInterrupt):
        with cache_session(Settings(cache_root=tmp_path)) as cache:
            created = cache.path()
            raise KeyboardInterrupt
    assert not created.exists()


def test_configure_logging_installs_single_rich_handler() -> None:
    console = Console(record=True)
    configure_logging(console=console)
    logger = configure_logging(verbose=True, console=console)

    assert logger.level == logging.DEBUG
    assert len(logger.handlers) == 1
    assert isinstance(logger.handlers[0], RichHandler)

    get_logger("tests").debug("hello from the tests")
    assert "hello from the tests" in console.export_text()
