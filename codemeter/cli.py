"""CLI entry point for Codemeter."""

import json
import logging
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.progress import BarColumn, Progress, SpinnerColumn, TaskProgressColumn, TextColumn
from rich.table import Table

from codemeter.config import MetricsSettings
from codemeter.core.exceptions import CodemeterError
from codemeter.core.metrics import MetricsEngine
from codemeter.core.models import FileMetrics, RecomputeStats
from codemeter.core.storage import GraphRepository

app = typer.Typer(
    name="codemeter",
    help="Precomputed size and coupling metrics for an indexed code graph.",
    no_args_is_help=True,
)
console = Console()
err_console = Console(stderr=True)


def get_settings(path: Path) -> MetricsSettings:
    """Get settings for the project at the given path."""
    return MetricsSettings.from_env(path.resolve())


def get_repo(settings: MetricsSettings) -> GraphRepository:
    """Get or create a repository for the given settings."""
    return GraphRepository(settings.db_path)


def print_stats(stats: RecomputeStats) -> None:
    console.print("[green]Done![/green]")
    console.print(f"  Files updated: {stats.files_updated}")
    console.print(f"  Symbols updated: {stats.symbols_updated}")
    if stats.files_deleted or stats.symbols_deleted:
        console.print(
            f"  [dim]Deleted: {stats.files_deleted} files, {stats.symbols_deleted} symbols[/]"
        )
    if stats.retries:
        console.print(f"  [dim]Snapshot retries: {stats.retries}[/]")
    if stats.errors:
        console.print(f"  [red]Errors: {len(stats.errors)}[/red]")
        for key, message in stats.errors:
            console.print(f"    {key}: {message}")


@app.callback()
def main(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Debug logging")] = False,
) -> None:
    """Configure logging for every command."""
    logging.basicConfig(
        level=logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=err_console, show_path=False)],
    )
    if verbose:
        logging.getLogger("codemeter").setLevel(logging.DEBUG)


@app.command()
def backfill(
    path: Annotated[Path, typer.Argument(help="Project root")] = Path("."),
) -> None:
    """Recompute metrics for every file and symbol in the graph."""
    settings = get_settings(path)

    with get_repo(settings) as repo:
        engine = MetricsEngine(repo, settings)

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TaskProgressColumn(),
            console=console,
        ) as progress:
            task = progress.add_task(f"Metering [cyan]{settings.project_root.name}[/]", total=None)

            def on_progress(current: int, total: int) -> None:
                progress.update(task, total=total, completed=current)

            try:
                stats = engine.backfill(on_progress=on_progress)
            except CodemeterError as e:
                console.print(f"[red]Backfill aborted:[/red] {e}")
                raise typer.Exit(1) from e

        print_stats(stats)


@app.command()
def refresh(
    files: Annotated[list[Path], typer.Argument(help="Files that were (re)indexed")],
) -> None:
    """Recompute metrics for changed files and their direct neighbors."""
    settings = get_settings(Path("."))

    with get_repo(settings) as repo:
        engine = MetricsEngine(repo, settings)
        try:
            stats = engine.refresh_files(files)
        except CodemeterError as e:
            console.print(f"[red]Refresh aborted:[/red] {e}")
            raise typer.Exit(1) from e
        print_stats(stats)


@app.command()
def remove(
    file: Annotated[Path, typer.Argument(help="File to remove from the graph")],
) -> None:
    """Remove a file from the graph and update the metrics of its former neighbors."""
    settings = get_settings(Path("."))

    with get_repo(settings) as repo:
        engine = MetricsEngine(repo, settings)
        try:
            stats = engine.remove_file(file)
        except CodemeterError as e:
            console.print(f"[red]Remove aborted:[/red] {e}")
            raise typer.Exit(1) from e
        print_stats(stats)


@app.command("file")
def file_metrics(
    file: Annotated[Path, typer.Argument(help="File path as indexed")],
    symbols: Annotated[bool, typer.Option("--symbols", "-s", help="Include symbols")] = False,
    output_json: Annotated[bool, typer.Option("--json", "-j", help="Output as JSON")] = False,
) -> None:
    """Show the stored metrics of one file."""
    settings = get_settings(Path("."))

    with get_repo(settings) as repo:
        row = repo.metrics.get_file_metrics(file)
        symbol_rows = repo.metrics.list_symbol_metrics(file) if symbols else []

        if output_json:
            result: dict[str, object] = {"file": row.to_dict() if row else None}
            if symbols:
                result["symbols"] = [s.to_dict() for s in symbol_rows]
            print(json.dumps(result))
            return

        if row is None:
            console.print(f"No metrics for '[cyan]{file}[/cyan]' (not indexed or not metered)")
            raise typer.Exit(1)

        console.print(f"[bold cyan]{row.file_path}[/]")
        console.print(f"  LOC: {row.loc} [dim](estimated {row.estimated_loc:.1f})[/]")
        console.print(f"  Symbols: {row.symbol_count}")
        console.print(f"  Fan-in: {row.fan_in}  Fan-out: {row.fan_out}")
        console.print(f"  Complexity score: [yellow]{row.complexity_score:.2f}[/]")

        if symbol_rows:
            table = Table("id", "name", "kind", "loc", "fan-in", "fan-out", "cc")
            for s in symbol_rows:
                table.add_row(
                    str(s.symbol_id),
                    s.symbol_name,
                    s.kind,
                    str(s.loc),
                    str(s.fan_in),
                    str(s.fan_out),
                    f"{s.cyclomatic_complexity}*",
                )
            console.print(table)
            console.print("[dim]* cyclomatic complexity is a placeholder, not measured[/]")


@app.command("symbol")
def symbol_metrics(
    symbol_id: Annotated[int, typer.Argument(help="Symbol ID")],
    output_json: Annotated[bool, typer.Option("--json", "-j", help="Output as JSON")] = False,
) -> None:
    """Show the stored metrics of one symbol."""
    settings = get_settings(Path("."))

    with get_repo(settings) as repo:
        row = repo.metrics.get_symbol_metrics(symbol_id)

        if output_json:
            print(json.dumps(row.to_dict() if row else None))
            return

        if row is None:
            console.print(f"No metrics for symbol [cyan]{symbol_id}[/cyan]")
            raise typer.Exit(1)

        console.print(f"[bold cyan]{row.symbol_name}[/] ({row.kind})")
        console.print(f"  [dim]{row.file_path}[/]")
        console.print(f"  LOC: {row.loc} [dim](estimated {row.estimated_loc:.1f})[/]")
        console.print(f"  Fan-in: {row.fan_in}  Fan-out: {row.fan_out}")
        console.print(
            f"  Cyclomatic complexity: {row.cyclomatic_complexity} "
            f"[dim]({row.complexity_source.value})[/]"
        )


@app.command()
def hotspots(
    limit: Annotated[int | None, typer.Option("--limit", "-n", help="Maximum files")] = None,
    min_loc: Annotated[int | None, typer.Option("--min-loc", help="Minimum LOC")] = None,
    min_fan_in: Annotated[int | None, typer.Option("--min-fan-in", help="Minimum fan-in")] = None,
    min_fan_out: Annotated[
        int | None, typer.Option("--min-fan-out", help="Minimum fan-out")
    ] = None,
    output_json: Annotated[bool, typer.Option("--json", "-j", help="Output as JSON")] = False,
) -> None:
    """List files with the highest complexity score."""
    settings = get_settings(Path("."))

    with get_repo(settings) as repo:
        rows = repo.metrics.get_hotspots(
            limit=limit or settings.hotspot_limit,
            min_loc=min_loc,
            min_fan_in=min_fan_in,
            min_fan_out=min_fan_out,
        )

        if output_json:
            print(json.dumps([r.to_dict() for r in rows]))
            return

        if not rows:
            console.print("No metered files match")
            return

        console.print(_hotspot_table(rows))


def _hotspot_table(rows: list[FileMetrics]) -> Table:
    table = Table("file", "score", "loc", "fan-in", "fan-out", "symbols")
    for r in rows:
        table.add_row(
            str(r.file_path),
            f"{r.complexity_score:.2f}",
            str(r.loc),
            str(r.fan_in),
            str(r.fan_out),
            str(r.symbol_count),
        )
    return table


@app.command()
def stats(
    output_json: Annotated[bool, typer.Option("--json", "-j", help="Output as JSON")] = False,
) -> None:
    """Show graph and metrics statistics."""
    settings = get_settings(Path("."))

    with get_repo(settings) as repo:
        result = repo.get_stats()

        if output_json:
            print(json.dumps(result, default=str))
        else:
            console.print(f"Files: {result['files']}")
            console.print(f"Symbols: {result['symbols']}")
            console.print(f"Edges: {result['edges']}")
            console.print(f"File metrics rows: {result['file_metrics']}")
            console.print(f"Symbol metrics rows: {result['symbol_metrics']}")
            if result["last_indexed"]:
                console.print(f"Last indexed: {result['last_indexed']}")


if __name__ == "__main__":
    app()
