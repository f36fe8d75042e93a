from __future__ import annotations

from pathlib import Path

from typer.testing import CliRunner

from lorevault.cli import app
from lorevault.filesystem import compute_hash

runner = CliRunner()

CONFIG = """
[variables]
project = "demo"

[[file]]
path = "{{project}}/readme.txt"
source = { type = "text", content = "welcome to {{project}}" }

[[file]]
path = "notes.txt"
tags = ["notes"]
source = { type = "text", content = "remember" }
"""


def _write_config(directory: Path, body: str = CONFIG) -> Path:
    directory.mkdir(parents=True, exist_ok=True)
    config_path = directory / "lorevault.toml"
    config_path.write_text(body)
    return config_path


def test_cli_sync_and_list(tmp_path: Path, fake_home: Path) -> None:
    config_path = _write_config(tmp_path / "project")
    output = tmp_path / "output"

    sync_result = runner.invoke(app, ["sync", str(config_path), str(output), "--no-confirm", "-t", "notes"])
    assert sync_result.exit_code == 0
    assert "Wrote 2 files" in sync_result.output
    assert (output / "demo" / "readme.txt").read_text() == "welcome to demo"
    assert (output / "notes.txt").read_text() == "remember"

    list_result = runner.invoke(app, ["list", str(config_path)])
    assert list_result.exit_code == 0
    assert "- demo/readme.txt" in list_result.output
    assert "notes.txt" not in list_result.output

    tags_result = runner.invoke(app, ["tags", str(config_path)])
    assert tags_result.exit_code == 0
    assert "- notes" in tags_result.output


def test_cli_rejects_undeclared_tag(tmp_path: Path, fake_home: Path) -> None:
    config_path = _write_config(tmp_path / "project")

    result = runner.invoke(app, ["sync", str(config_path), str(tmp_path / "output"), "--no-confirm", "-t", "wrongtag"])

    assert result.exit_code == 1
    assert "The tag wrongtag is not defined" in result.output
    assert not (tmp_path / "output").exists()


def test_cli_sync_prompts_before_overwrite(tmp_path: Path, fake_home: Path) -> None:
    config_path = _write_config(tmp_path / "project")
    output = tmp_path / "output"
    output.mkdir()
    (output / "precious.txt").write_text("keep")

    declined = runner.invoke(app, ["sync", str(config_path), str(output)], input="n\n")
    assert declined.exit_code == 1
    assert "not confirmed" in declined.output
    assert (output / "precious.txt").exists()

    accepted = runner.invoke(app, ["sync", str(config_path), str(output)], input="y\n")
    assert accepted.exit_code == 0
    assert not (output / "precious.txt").exists()


def test_cli_check(tmp_path: Path, fake_home: Path) -> None:
    config_path = _write_config(tmp_path / "project")

    report = runner.invoke(app, ["check", str(config_path)])
    assert report.exit_code == 0
    assert "not fully hardened" in report.output

    strict = runner.invoke(app, ["check", str(config_path), "--strict"])
    assert strict.exit_code == 1


def test_cli_clean(tmp_path: Path, fake_home: Path) -> None:
    config_path = _write_config(tmp_path / "project")
    output = tmp_path / "output"
    runner.invoke(app, ["sync", str(config_path), str(output), "--no-confirm"])
    (output / "unrelated.txt").write_text("keep")

    result = runner.invoke(app, ["clean", str(config_path), str(output), "--no-confirm", "--skip-first-level"])

    assert result.exit_code == 0
    assert not (output / "demo").exists()
    assert (output / "unrelated.txt").exists()


def test_cli_hash(tmp_path: Path) -> None:
    target = tmp_path / "data.txt"
    target.write_bytes(b"hello")

    result = runner.invoke(app, ["hash", str(target)])

    assert result.exit_code == 0
    assert f'hash = "{compute_hash(b"hello")}"' in result.output

    missing = runner.invoke(app, ["hash", str(tmp_path / "missing.txt")])
    assert missing.exit_code == 1


def test_cli_show(tmp_path: Path) -> None:
    source = tmp_path / "source.txt"
    source.write_text("shown content\n")
    destination = tmp_path / "copy.txt"

    printed = runner.invoke(app, ["show", str(source)])
    assert printed.exit_code == 0
    assert "shown content" in printed.output

    saved = runner.invoke(app, ["show", str(source), "-o", str(destination)])
    assert saved.exit_code == 0
    assert destination.read_text() == "shown content\n"

    missing = runner.invoke(app, ["show", str(tmp_path / "missing.txt")])
    assert missing.exit_code == 1


def test_cli_example_refuses_to_overwrite(tmp_path: Path) -> None:
    example_path = tmp_path / "example.toml"

    first = runner.invoke(app, ["example", "--path", str(example_path)])
    assert first.exit_code == 0
    assert "Saved example as" in first.output
    assert example_path.read_text().startswith("# lorevault manifest")

    second = runner.invoke(app, ["example", "--path", str(example_path)])
    assert second.exit_code == 1
    assert "already exists" in second.output


def test_cli_invalid_settings(tmp_path: Path, fake_home: Path) -> None:
    config_path = _write_config(tmp_path / "project")

    result = runner.invoke(app, ["list", str(config_path)], env={"LOREVAULT_HTTP_TIMEOUT": "soon"})

    assert result.exit_code == 1
    assert "Invalid settings" in result.output


def test_cli_verbose_flag(tmp_path: Path, fake_home: Path) -> None:
    config_path = _write_config(tmp_path / "project")

    result = runner.invoke(app, ["--verbose", "list", str(config_path)])

    assert result.exit_code == 0
    assert "Loading config from local file" in result.output
