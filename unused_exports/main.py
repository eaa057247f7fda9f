"""unused-exports CLI - find exports and class members nothing references."""
import asyncio
import json
import signal
from pathlib import Path
from typing import Dict, List, Optional

import typer
from rich.markup import escape
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TaskProgressColumn,
    TextColumn,
    TimeElapsedColumn,
)
from rich.table import Table

from .analyzer.pipeline import AnalysisPipeline, CancellationToken, FileReport, WorkspaceReport
from .config import __version__, get_config
from .utils.debounce import Debouncer
from .utils.file_utils import discover_source_files, to_relative_path
from .utils.logger import configure_logging
from .utils.safe_console import SafeConsole

app = typer.Typer(
    name="unused-exports",
    help="Find unused exports and unused private class members in TypeScript/JavaScript projects",
    add_completion=False,
)
console = SafeConsole()

WATCH_POLL_SECONDS = 0.5


def _build_pipeline(project_root: Path) -> AnalysisPipeline:
    """Pipeline from the current configuration; bad settings end the command.

    Every setting is read once here so an invalid value is reported before
    any analysis starts.
    """
    config = get_config()
    try:
        config.as_dict()
        return AnalysisPipeline(config, project_root)
    except ValueError as e:
        console.print(f"[bold red]Configuration error:[/bold red] {escape(str(e))}")
        raise typer.Exit(1)


def _report_to_dict(report: FileReport, project_root: Path) -> Dict[str, object]:
    return {
        'file': to_relative_path(report.file_path, project_root),
        'from_cache': report.from_cache,
        'degraded': report.degraded,
        'skipped_reason': report.skipped_reason,
        'diagnostics': report.diagnostics,
        'items': [
            {
                'type': item.type,
                'name': item.name,
                'detail': item.detail,
                'line': item.range.start_line + 1,
                'column': item.range.start_column + 1,
            }
            for item in report.items
        ],
    }


def _print_reports(reports: List[FileReport], project_root: Path):
    rows = [(report, item) for report in reports for item in report.items]
    if not rows:
        console.print("[bold green]No unused exports or members found![/bold green]")
        return

    table = Table(title="Unused Exports and Members")
    table.add_column("Name", style="cyan")
    table.add_column("Detail", style="yellow")
    table.add_column("File", style="magenta", no_wrap=False)
    table.add_column("Line", style="green", justify="right")

    for report, item in rows:
        table.add_row(
            escape(item.name),
            item.detail,
            escape(to_relative_path(report.file_path, project_root)),
            str(item.range.start_line + 1),
        )
    console.print(table)

    degraded = [r for r in reports if r.degraded]
    if degraded:
        console.print(
            f"[yellow]⚠ External search failed for {len(degraded)} file(s); "
            f"some items above may be used elsewhere.[/yellow]"
        )


def _print_summary(workspace: WorkspaceReport):
    console.print("\n[bold yellow]Summary:[/bold yellow]")
    console.print(f"  Files analyzed: {workspace.analyzed_files}/{workspace.total_files}")
    console.print(f"  Unused exports: {workspace.unused_exports_count}")
    console.print(f"  Unused members: {workspace.unused_members_count}")
    if workspace.failed_files:
        console.print(f"  Unreadable files: {len(workspace.failed_files)}")
    if workspace.cancelled:
        console.print("[yellow]Analysis cancelled before all files were processed.[/yellow]")


@app.command()
def analyze(
    files: List[Path] = typer.Argument(..., help="Source files to analyze"),
    project_root: Path = typer.Option(Path("."), "--root", "-r", help="Project root searched for cross-file usage"),
    json_output: bool = typer.Option(False, "--json", help="Print results as JSON"),
    fail_on_unused: bool = typer.Option(False, "--fail-on-unused", help="Exit with status 1 when anything is unused"),
):
    """Analyze individual files."""
    project_root = project_root.resolve()
    if not project_root.is_dir():
        console.print(f"[bold red]Error:[/bold red] Project root is not a directory: {escape(str(project_root))}")
        raise typer.Exit(1)

    pipeline = _build_pipeline(project_root)

    async def run() -> List[FileReport]:
        reports = []
        for file_path in files:
            try:
                reports.append(await pipeline.analyze_file(file_path))
            except OSError as e:
                console.print(f"[bold red]Error:[/bold red] Cannot read {escape(str(file_path))}: {escape(str(e))}")
        return reports

    reports = asyncio.run(run())
    if len(reports) != len(files):
        raise typer.Exit(1)

    if json_output:
        typer.echo(json.dumps([_report_to_dict(r, project_root) for r in reports], indent=2))
    else:
        for report in reports:
            if report.skipped_reason:
                console.print(f"[dim]Skipped {escape(to_relative_path(report.file_path, project_root))}: "
                              f"{report.skipped_reason}[/dim]")
        _print_reports(reports, project_root)

    if fail_on_unused and any(report.items for report in reports):
        raise typer.Exit(1)


@app.command()
def workspace(
    project_path: Path = typer.Argument(Path("."), help="Project root path to analyze"),
    json_output: bool = typer.Option(False, "--json", help="Print results as JSON"),
    fail_on_unused: bool = typer.Option(False, "--fail-on-unused", help="Exit with status 1 when anything is unused"),
):
    """Analyze every supported file in the project. Ctrl-C stops at the next file."""
    project_path = project_path.resolve()
    if not project_path.is_dir():
        console.print(f"[bold red]Error:[/bold red] Project path does not exist: {escape(str(project_path))}")
        raise typer.Exit(1)

    pipeline = _build_pipeline(project_path)
    token = CancellationToken()

    async def run(progress: Optional[Progress]) -> WorkspaceReport:
        loop = asyncio.get_running_loop()
        try:
            loop.add_signal_handler(signal.SIGINT, token.cancel)
        except (NotImplementedError, RuntimeError):
            pass  # no signal handlers on this platform; Ctrl-C aborts instead

        task = progress.add_task("[cyan]Analyzing workspace...", total=None) if progress else None

        def report_progress(done: int, total: int, path: Path):
            if progress is not None:
                progress.update(task, completed=done, total=total,
                                description=f"[cyan]{escape(to_relative_path(path, project_path))}")

        try:
            return await pipeline.analyze_workspace(token, report_progress)
        finally:
            try:
                loop.remove_signal_handler(signal.SIGINT)
            except (NotImplementedError, RuntimeError):
                pass

    if json_output:
        result = asyncio.run(run(None))
        typer.echo(json.dumps({
            'total_files': result.total_files,
            'analyzed_files': result.analyzed_files,
            'cancelled': result.cancelled,
            'failed_files': [to_relative_path(f, project_path) for f in result.failed_files],
            'reports': [_report_to_dict(r, project_path) for r in result.reports if r.items],
        }, indent=2))
    else:
        console.print(f"[bold blue]Analyzing project:[/bold blue] {escape(str(project_path))}\n")
        with Progress(
            SpinnerColumn(),
            TextColumn("{task.description}"),
            BarColumn(),
            TaskProgressColumn(),
            TimeElapsedColumn(),
            console=console,
            transient=True,
        ) as progress:
            result = asyncio.run(run(progress))
        _print_reports(result.reports, project_path)
        _print_summary(result)

    if fail_on_unused and (result.unused_exports_count or result.unused_members_count):
        raise typer.Exit(1)


@app.command()
def watch(
    project_path: Path = typer.Argument(Path("."), help="Project root path to watch"),
):
    """Re-analyze files as they change, after the configured debounce delay."""
    project_path = project_path.resolve()
    if not project_path.is_dir():
        console.print(f"[bold red]Error:[/bold red] Project path does not exist: {escape(str(project_path))}")
        raise typer.Exit(1)

    pipeline = _build_pipeline(project_path)
    delay = pipeline.config.debounce_ms / 1000

    async def reanalyze(path: Path):
        evicted = pipeline.on_file_saved(path)
        try:
            report = await pipeline.analyze_file(path)
        except OSError as e:
            console.print(f"[red]✗[/red] Cannot read {escape(str(path))}: {escape(str(e))}")
            return
        label = escape(to_relative_path(path, project_path))
        if report.skipped_reason:
            return
        if report.items:
            console.print(f"[yellow]{label}[/yellow]: {len(report.items)} unused")
            for item in report.items:
                console.print(f"  line {item.range.start_line + 1}: {escape(item.name)} ({item.detail})")
        else:
            console.print(f"[green]✓[/green] {label}")
        if evicted:
            console.print(f"[dim]  {len(evicted)} dependent cache entries refreshed on next analysis[/dim]")

    def snapshot() -> Dict[Path, float]:
        mtimes = {}
        for path in discover_source_files(project_path, pipeline.config.exclude_patterns):
            try:
                mtimes[path] = path.stat().st_mtime
            except OSError:
                continue
        return mtimes

    async def run():
        debouncers: Dict[Path, Debouncer] = {}
        known = snapshot()
        while True:
            await asyncio.sleep(WATCH_POLL_SECONDS)
            current = snapshot()
            for path, mtime in current.items():
                if known.get(path) != mtime:
                    debouncer = debouncers.setdefault(path, Debouncer(delay, reanalyze))
                    debouncer.trigger(path)
            for path in set(known) - set(current):
                pipeline.on_file_saved(path)
                debouncers.pop(path, Debouncer(delay, reanalyze)).cancel()
            known = current

    console.print(f"[bold green]Watching[/bold green] [cyan]{escape(str(project_path))}[/cyan] for changes...")
    console.print(f"[dim]  Debounce: {delay:g}s\n  Press Ctrl+C to stop[/dim]\n")
    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        console.print("\n[yellow]Stopped watching.[/yellow]")


@app.command("config")
def show_config():
    """Print the effective configuration."""
    try:
        settings = get_config().as_dict()
    except ValueError as e:
        console.print(f"[bold red]Configuration error:[/bold red] {escape(str(e))}")
        raise typer.Exit(1)

    table = Table(title="unused-exports configuration", show_header=True, header_style="bold cyan")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")
    for key, value in settings.items():
        if isinstance(value, list):
            value = ', '.join(value)
        table.add_row(key, escape(str(value)))
    console.print(table)


@app.command()
def version():
    """Print the installed version."""
    console.print(f"unused-exports {__version__}")


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging"),
):
    """unused-exports - find exports and class members nothing references."""
    configure_logging(verbose, SafeConsole(stderr=True))


if __name__ == "__main__":
    app()
