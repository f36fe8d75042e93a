"""Command-line interface for lorevault."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Any, Iterable

import tomli_w
import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .cache import cache_session
from .errors import LorevaultError
from .filesystem import hash_path
from .log import configure_logging
from .manager import CheckReport, SyncResult, VaultManager
from .settings import Settings
from .sources import AutoSource, fetch

EXAMPLE_FILENAME = "lorevault_example.toml"

app = typer.Typer(help="Make a folder reproducible by specifying its contents in a file.")
console = Console()
err_console = Console(stderr=True)


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Show informational log output")) -> None:
    configure_logging(verbose=verbose, console=err_console)


def _handle_error(exc: BaseException) -> None:
    if isinstance(exc, KeyboardInterrupt):
        err_console.print("[red]Canceled[/red]")
        raise typer.Exit(code=2)
    if isinstance(exc, PermissionError):
        err_console.print("[red]Permission denied.[/red] Re-run the command with sufficient privileges.")
        raise typer.Exit(code=1)
    if isinstance(exc, LorevaultError):
        err_console.print(f"[red]Error: {escape(str(exc))}[/red]", highlight=False)
        raise typer.Exit(code=1)
    raise exc


def _confirm(no_confirm: bool):
    if no_confirm:
        return None
    return lambda prompt: typer.confirm(prompt, default=False)


def _settings() -> Settings:
    return Settings.from_env()


def _format_sync_result(result: SyncResult) -> None:
    console.print(
        f"[green]Wrote {len(result.paths)} files ({result.size} bytes) to '{result.output}' "
        f"({result.mode.value}).[/green]"
    )


def _format_check_report(report: CheckReport) -> None:
    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Path")
    table.add_column("Hash", overflow="fold")
    table.add_column("Pinned")

    for entry in report.entries:
        style = "green" if entry.pinned else "yellow"
        table.add_row(entry.path.as_posix(), entry.digest, f"[{style}]{'yes' if entry.pinned else 'no'}[/{style}]")

    console.print(table)
    if report.hardened:
        console.print("[green]The manifest is fully hardened.[/green]")
    else:
        console.print("[yellow]The manifest is not fully hardened.[/yellow]")


def _print_list(items: Iterable[Any]) -> None:
    console.rule()
    for item in items:
        console.print(f"- {item}", highlight=False)
    console.rule()


@app.command()
def sync(
    file: str = typer.Argument(..., help="Manifest file or repo#id:path locator"),
    output: Path = typer.Argument(..., help="Destination folder"),
    tags: list[str] = typer.Option(None, "--tags", "-t", help="Activate (TAG) or deactivate (!TAG) a tag"),
    no_confirm: bool = typer.Option(False, "--no-confirm", help="Do not ask before overwriting"),
    skip_first_level: bool = typer.Option(
        False,
        "--skip-first-level",
        help="Only replace the top-level entries the manifest writes",
    ),
) -> None:
    """Sync the manifest into a directory."""

    try:
        with cache_session(_settings()):
            manager = VaultManager(file, _settings())
            result = manager.sync(output, tags or [], skip_first_level=skip_first_level, confirm=_confirm(no_confirm))
        _format_sync_result(result)
    except (Exception, KeyboardInterrupt) as exc:  # noqa: BLE001
        _handle_error(exc)


@app.command("config")
def config_command(
    file: str = typer.Argument(..., help="Manifest file or repo#id:path locator"),
    tags: list[str] = typer.Option(None, "--tags", "-t", help="Activate (TAG) or deactivate (!TAG) a tag"),
    no_confirm: bool = typer.Option(False, "--no-confirm", help="Do not ask before overwriting"),
) -> None:
    """Sync the manifest into the user config directory, keeping unrelated entries."""

    try:
        with cache_session(_settings()):
            manager = VaultManager(file, _settings())
            result = manager.sync_config_dir(tags or [], confirm=_confirm(no_confirm))
        _format_sync_result(result)
    except (Exception, KeyboardInterrupt) as exc:  # noqa: BLE001
        _handle_error(exc)


@app.command()
def clean(
    file: str = typer.Argument(..., help="Manifest file or repo#id:path locator"),
    output: Path = typer.Argument(..., help="Folder to clean"),
    tags: list[str] = typer.Option(None, "--tags", "-t", help="Activate (TAG) or deactivate (!TAG) a tag"),
    no_confirm: bool = typer.Option(False, "--no-confirm", help="Do not ask before deleting"),
    skip_first_level: bool = typer.Option(
        False,
        "--skip-first-level",
        help="Only delete the top-level entries the manifest writes",
    ),
) -> None:
    """Delete a synced folder, or only what the manifest put there."""

    try:
        with cache_session(_settings()):
            manager = VaultManager(file, _settings())
            removed = manager.clean(output, tags or [], skip_first_level=skip_first_level, confirm=_confirm(no_confirm))
        for path in removed:
            console.print(f"[green]Removed '{path}'.[/green]")
    except (Exception, KeyboardInterrupt) as exc:  # noqa: BLE001
        _handle_error(exc)


@app.command()
def check(
    file: str = typer.Argument(..., help="Manifest file or repo#id:path locator"),
    tags: list[str] = typer.Option(None, "--tags", "-t", help="Activate (TAG) or deactivate (!TAG) a tag"),
    strict: bool = typer.Option(False, "--strict", help="Fail unless every file and inclusion is hash-pinned"),
) -> None:
    """Print a report. Fails if a file has no valid sources or a hash does not match."""

    try:
        with cache_session(_settings()):
            report = VaultManager(file, _settings()).check(tags or [], strict=strict)
        _format_check_report(report)
    except (Exception, KeyboardInterrupt) as exc:  # noqa: BLE001
        _handle_error(exc)


@app.command()
def show(
    source: str = typer.Argument(..., help="Local path, URL or repo#id:path locator"),
    output: Path | None = typer.Option(None, "--output", "-o", help="Write the content to this file"),
) -> None:
    """Fetch a single source and print or save it."""

    try:
        with cache_session(_settings()):
            content = fetch(AutoSource(locator=source), _settings())
        if output is None:
            sys.stdout.write(content.decode("utf-8"))
        else:
            output.write_bytes(content)
    except UnicodeDecodeError:
        err_console.print("[red]Error: The content is not valid UTF-8; use --output to save it.[/red]")
        raise typer.Exit(code=1)
    except (Exception, KeyboardInterrupt) as exc:  # noqa: BLE001
        _handle_error(exc)


def render_example() -> str:
    data = {
        "variables": {"greeting": "Hello", "message": "{{greeting}} from lorevault"},
        "default_tags": ["notes"],
        "file": [
            {
                "path": "README.md",
                "sources": [{"type": "text", "content": "# {{message}}\n"}],
            },
            {
                "path": "notes/todo.txt",
                "tags": ["notes"],
                "sources": ["{{SELF_PARENT}}/todo.txt", {"type": "text", "content": "- nothing yet\n"}],
                "edit": [
                    {"insert": "TODO\n", "position": "prepend"},
                    {"replace": "nothing", "to": "everything", "required": False, "tags": ["busy"]},
                ],
            },
        ],
    }
    return "# lorevault manifest\n\n" + tomli_w.dumps(data)


@app.command()
def example(
    path: Path = typer.Option(Path(EXAMPLE_FILENAME), "--path", "-p", help="Where to write the example manifest"),
) -> None:
    """Write out an example manifest."""

    if path.exists():
        err_console.print(f"[red]Error: File already exists: {path}[/red]")
        raise typer.Exit(code=1)
    path.write_text(render_example(), encoding="utf-8")
    console.print(f"[green]Saved example as {path}[/green]")


@app.command("hash")
def hash_command(file: Path = typer.Argument(..., help="File to hash")) -> None:
    """Print the sha3-256 hash of a file."""

    try:
        digest = hash_path(file)
    except OSError as exc:
        err_console.print(f"[red]Error: Could not read {file}: {exc}[/red]")
        raise typer.Exit(code=1)
    console.print(f'hash = "{digest}"', highlight=False)


@app.command()
def tags(file: str = typer.Argument(..., help="Manifest file or repo#id:path locator")) -> None:
    """List the tags a manifest defines."""

    try:
        with cache_session(_settings()):
            defined = VaultManager(file, _settings()).tags()
        _print_list(defined)
    except (Exception, KeyboardInterrupt) as exc:  # noqa: BLE001
        _handle_error(exc)


@app.command("list")
def list_command(
    file: str = typer.Argument(..., help="Manifest file or repo#id:path locator"),
    tags: list[str] = typer.Option(None, "--tags", "-t", help="Activate (TAG) or deactivate (!TAG) a tag"),
) -> None:
    """List the paths a sync would write."""

    try:
        with cache_session(_settings()):
            paths = VaultManager(file, _settings()).list_paths(tags or [])
        _print_list(path.as_posix() for path in paths)
    except (Exception, KeyboardInterrupt) as exc:  # noqa: BLE001
        _handle_error(exc)


def run() -> None:
    """Entry point used for console_script bindings."""

    app()
