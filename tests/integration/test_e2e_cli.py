from __future__ import annotations

from pathlib import Path

from typer.testing import CliRunner

from lorevault.cli import app

runner = CliRunner()


def test_cli_full_cycle_from_example(tmp_path: Path, fake_home: Path) -> None:
    example_path = tmp_path / "vault" / "lorevault.toml"
    example_path.parent.mkdir()
    output = tmp_path / "output"

    example_result = runner.invoke(app, ["example", "--path", str(example_path)])
    assert example_result.exit_code == 0

    sync_result = runner.invoke(app, ["sync", str(example_path), str(output), "--no-confirm"])
    assert sync_result.exit_code == 0
    assert (output / "README.md").read_text() == "# Hello from lorevault\n"
    assert (output / "notes" / "todo.txt").read_text() == "TODO\n- nothing yet\n"

    (example_path.parent / "todo.txt").write_text("- nothing yet\n- write docs\n")
    busy_result = runner.invoke(app, ["sync", str(example_path), str(output), "--no-confirm", "-t", "busy"])
    assert busy_result.exit_code == 0
    assert (output / "notes" / "todo.txt").read_text() == "TODO\n- everything yet\n- write docs\n"

    quiet_result = runner.invoke(app, ["sync", str(example_path), str(output), "--no-confirm", "-t", "!notes"])
    assert quiet_result.exit_code == 0
    assert not (output / "notes").exists()

    list_result = runner.invoke(app, ["list", str(example_path)])
    assert list_result.exit_code == 0
    assert "- notes/todo.txt" in list_result.output

    check_result = runner.invoke(app, ["check", str(example_path)])
    assert check_result.exit_code == 0

    clean_result = runner.invoke(app, ["clean", str(example_path), str(output), "--no-confirm"])
    assert clean_result.exit_code == 0
    assert not output.exists()
