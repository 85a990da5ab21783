"""CLI entry point for trailwriter."""

import json
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.progress import BarColumn, Progress, SpinnerColumn, TaskProgressColumn, TextColumn

from trailwriter.config import load_settings
from trailwriter.core.exceptions import TrailWriterError
from trailwriter.core.ingest import FileIngester
from trailwriter.core.logging import configure_logging
from trailwriter.core.session import Session

app = typer.Typer(
    name="trailwriter",
    help="Create and populate Sourcetrail code-index databases.",
    no_args_is_help=True,
)
console = Console()


@app.callback()
def main(
    log_level: Annotated[
        str | None, typer.Option("--log-level", help="Override TRAILWRITER_LOG_LEVEL")
    ] = None,
) -> None:
    """Configure logging before any command runs."""
    settings = load_settings(**({"log_level": log_level} if log_level else {}))
    configure_logging(level=settings.log_level, json_format=settings.log_format == "json")


@app.command()
def create(
    database: Annotated[Path, typer.Argument(help="Database path (.srctrldb is appended)")],
    force: Annotated[bool, typer.Option("--force", "-f", help="Replace an existing file")] = False,
) -> None:
    """Create an empty database and its project file."""
    try:
        with Session.create(database, overwrite=force) as session:
            console.print(f"[green]Created[/green] {session.path}")
    except TrailWriterError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e


@app.command("add-files")
def add_files(
    database: Annotated[Path, typer.Argument(help="Existing database")],
    directory: Annotated[Path, typer.Argument(help="Directory to scan")] = Path("."),
    pattern: Annotated[str, typer.Option("--glob", "-g", help="File name pattern")] = "*.py",
    exclude: Annotated[
        list[str] | None, typer.Option("--exclude", "-e", help="Patterns to exclude")
    ] = None,
    language: Annotated[
        str | None, typer.Option("--language", "-l", help="Language for every file")
    ] = None,
) -> None:
    """Record source files (content and modification time) into a database."""
    directory = directory.resolve()

    try:
        with Session.open(database) as session:
            ingester = FileIngester(session)

            with Progress(
                SpinnerColumn(),
                TextColumn("[progress.description]{task.description}"),
                BarColumn(),
                TaskProgressColumn(),
                console=console,
            ) as progress:
                task = progress.add_task(f"Recording [cyan]{directory.name}[/]", total=None)

                def on_progress(file: Path, current: int, total: int) -> None:
                    progress.update(task, total=total, completed=current)
                    try:
                        rel_path: Path | str = file.relative_to(directory)
                    except ValueError:
                        rel_path = file.name
                    progress.update(task, description=f"[cyan]{rel_path}[/]")

                stats = ingester.ingest_directory(
                    directory,
                    pattern=pattern,
                    exclude_patterns=exclude or [],
                    language=language,
                    on_progress=on_progress,
                )
    except TrailWriterError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e

    console.print("[green]Done![/green]")
    console.print(f"  Files recorded: {stats.files}")
    if stats.skipped:
        console.print(f"  [dim]Skipped: {stats.skipped}[/]")
    if stats.errors:
        console.print(f"  [red]Errors: {len(stats.errors)}[/red]")
        for error in stats.errors:
            console.print(f"    {error}")


@app.command()
def stats(
    database: Annotated[Path, typer.Argument(help="Existing database")],
    output_json: Annotated[bool, typer.Option("--json", "-j", help="Output as JSON")] = False,
) -> None:
    """Show row counts and the storage version."""
    try:
        with Session.open(database) as session:
            result = session.describe()
    except TrailWriterError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e

    if output_json:
        print(json.dumps(result))
    else:
        console.print(f"Database: {result['path']}")
        console.print(f"Storage version: {result['storage_version']}")
        console.print(f"Nodes: {result['node']}")
        console.print(f"Edges: {result['edge']}")
        console.print(f"Files: {result['file']}")
        console.print(f"Local symbols: {result['local_symbol']}")
        console.print(f"Source locations: {result['source_location']}")
        if result["error"]:
            console.print(f"[yellow]Errors: {result['error']}[/]")


if __name__ == "__main__":
    app()
