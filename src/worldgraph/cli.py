"""worldgraph CLI - typer application entry point."""

from __future__ import annotations

import asyncio
import atexit
import copy
import json
from pathlib import Path
from typing import TYPE_CHECKING, Annotated, NoReturn

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from worldgraph.graph.errors import AdditionValidationError, WorldGraphError
from worldgraph.observability import (
    bind_run_context,
    close_file_logging,
    configure_logging,
    get_logger,
)

if TYPE_CHECKING:
    from worldgraph.config import WorldgraphConfig
    from worldgraph.graph.consistency import ConsistencyReport
    from worldgraph.graph.mutations import AdditionResult

# Load environment variables from .env file
load_dotenv()

app = typer.Typer(
    name="wg",
    help="worldgraph: build, verify and enrich the world location graph.",
    no_args_is_help=True,
)
console = Console()
err_console = Console(stderr=True)

log = get_logger(__name__)

# Project root, set by the callback and used by every command
_root: Path = Path()


@app.callback()
def main(
    ctx: typer.Context,
    verbose: Annotated[
        int,
        typer.Option(
            "-v",
            "--verbose",
            count=True,
            help="Increase verbosity: -v for INFO, -vv for DEBUG.",
        ),
    ] = 0,
    log_to_file: Annotated[
        bool,
        typer.Option(
            "--log",
            help="Append every log event as JSON to {root}/logs/wg.jsonl.",
        ),
    ] = False,
    root: Annotated[
        Path,
        typer.Option(
            "--root",
            "-r",
            help="Project root. Data paths are resolved against it and may not leave it.",
            envvar="WORLDGRAPH_ROOT",
        ),
    ] = Path(),
) -> None:
    """worldgraph: build, verify and enrich the world location graph."""
    global _root
    _root = root.resolve()

    configure_logging(verbosity=verbose, log_root=_root if log_to_file else None)
    if log_to_file:
        atexit.register(close_file_logging)
    bind_run_context(ctx.invoked_subcommand, _root)


def _fail(error: WorldGraphError) -> NoReturn:
    """Print a diagnostic for *error* and exit with its status."""
    err_console.print(f"[red]Error:[/red] {escape(str(error))}")
    log.debug("command_failed", error_type=type(error).__name__, exit_code=error.exit_code)
    raise typer.Exit(error.exit_code) from error


def _load_config() -> WorldgraphConfig:
    from worldgraph.config import load_config

    return load_config(_root)


@app.command()
def version() -> None:
    """Show version information."""
    from worldgraph import __version__

    console.print(f"worldgraph v{__version__}")


@app.command()
def seed(
    data: Annotated[
        str | None,
        typer.Option("--data", help="Blueprint JSON file (default from worldgraph.yaml)."),
    ] = None,
) -> None:
    """Seed a location blueprint into the configured graph store.

    Safe to run repeatedly: existing locations are updated in place and
    existing exits are left alone.
    """
    from worldgraph.files import load_blueprint
    from worldgraph.graph.seeding import seed_world
    from worldgraph.graph.store import open_store

    try:
        config = _load_config()
        blueprint = load_blueprint(config.root, data or config.data_path)
        store = open_store(config.persistence)
        try:
            result = asyncio.run(seed_world(store, blueprint))
        finally:
            store.close()
    except WorldGraphError as e:
        _fail(e)

    table = Table(title=f"Seeded into {store.mode} store")
    table.add_column("Metric", style="cyan")
    table.add_column("Count", justify="right")
    table.add_row("Locations processed", str(result.locations_processed))
    table.add_row("Vertices created", str(result.location_vertices_created))
    table.add_row("Exits created", str(result.exits_created))
    table.add_row("Exits skipped", str(len(result.exits_skipped)))
    console.print(table)

    for skipped in result.exits_skipped:
        console.print(
            f"  [yellow]![/yellow] {skipped['from']} --{skipped['direction']}--> "
            f"{skipped['to']}: {skipped['reason']}"
        )
    if not store.durable:
        console.print("[yellow]Note:[/yellow] memory mode, nothing was persisted.")


def _print_scan_summary(report: ConsistencyReport) -> None:
    err_console.print()
    err_console.print("Scan Summary:")
    err_console.print(f"  Total Locations: {report.total_locations}")
    err_console.print(f"  Total Exits: {report.total_exits}")
    err_console.print(f"  Dangling Exits: {len(report.dangling_exits)}")
    err_console.print(f"  Orphan Locations: {len(report.orphan_locations)}")
    err_console.print(f"  Missing Reciprocal Exits: {len(report.missing_reciprocal_exits)}")
    err_console.print()
    if report.passed:
        err_console.print("[green]✓ PASS:[/green] No dangling or one-sided exits found")
    else:
        err_console.print("[red]✗ FAIL:[/red] Dangling or one-sided exits detected")


@app.command()
def scan(
    output: Annotated[
        str | None,
        typer.Option("--output", "-o", help="Write the JSON report to this file."),
    ] = None,
    seed_locations: Annotated[
        str | None,
        typer.Option(
            "--seed-locations",
            help="Comma-separated location ids exempt from orphan reporting.",
        ),
    ] = None,
) -> None:
    """Scan the durable graph store for structural anomalies.

    Exit status: 0 when clean (orphans alone never fail), 1 when dangling or
    one-sided exits exist, 2 when the store cannot be scanned.
    """
    from worldgraph.files import resolve_within_root, write_json
    from worldgraph.graph.consistency import exit_status, scan_consistency
    from worldgraph.graph.store import open_store

    extra = [s.strip() for s in (seed_locations or "").split(",") if s.strip()]

    try:
        config = _load_config()
        if output:
            resolve_within_root(config.root, output)
        store = open_store(config.persistence)
        try:
            report = asyncio.run(scan_consistency(store, [*config.anchors, *extra]))
        finally:
            store.close()
        payload = report.to_dict()
        if output:
            written = write_json(config.root, output, payload)
            err_console.print(f"[green]✓[/green] Scan results written to {written}")
        else:
            typer.echo(json.dumps(payload, indent=2, ensure_ascii=False))
    except WorldGraphError as e:
        _fail(e)

    _print_scan_summary(report)
    status = exit_status(report)
    if status:
        raise typer.Exit(status)


@app.command("analyze-exits")
def analyze_exits(
    data: Annotated[
        str | None,
        typer.Option("--data", help="Locations JSON file (default from worldgraph.yaml)."),
    ] = None,
    output: Annotated[
        str | None,
        typer.Option("--output", "-o", help="Write the JSON report to this file."),
    ] = None,
) -> None:
    """Report exits implied by location descriptions but not yet recorded.

    Review the report, curate entries into an additions file, then merge
    them with ``wg apply-exits``.
    """
    from worldgraph.files import load_blueprint, write_json
    from worldgraph.graph.implicit_exits import analyse_locations

    try:
        config = _load_config()
        locations = load_blueprint(config.root, data or config.data_path)
        report = analyse_locations(locations)
        payload = report.to_dict()
        if output:
            written = write_json(config.root, output, payload)
            console.print(f"[green]✓[/green] Report written to {written}")
        else:
            typer.echo(json.dumps(payload, indent=2, ensure_ascii=False))
    except WorldGraphError as e:
        _fail(e)

    summary = report.summary()
    err_console.print(
        f"Candidates: {summary['totalCandidates']} "
        f"(high {summary['highConfidence']}, medium {summary['mediumConfidence']}, "
        f"low {summary['lowConfidence']}); skipped locations: {summary['skippedLocations']}"
    )


def _print_additions_result(result: AdditionResult, dry_run: bool) -> None:
    if result.applied:
        title = "Proposed additions (dry run)" if dry_run else "Applied additions"
        table = Table(title=title)
        table.add_column("Location", style="cyan")
        table.add_column("Direction")
        table.add_column("Availability")
        table.add_column("Reason", style="dim")
        for entry in result.applied:
            table.add_row(
                escape(entry["locationName"] or entry["locationId"]),
                entry["direction"],
                entry["availability"],
                escape(entry["reason"]),
            )
        console.print(table)
    else:
        console.print("[dim]No additions to apply.[/dim]")

    for entry in result.skipped:
        console.print(
            f"  [yellow]○[/yellow] skipped {escape(str(entry.get('locationId')))} "
            f"{entry.get('direction')}: {entry['skipReason']}"
        )
    console.print(f"Applied: {len(result.applied)}  Skipped: {len(result.skipped)}")


@app.command("apply-exits")
def apply_exits(
    data: Annotated[
        str | None,
        typer.Option("--data", help="Locations JSON file (default from worldgraph.yaml)."),
    ] = None,
    additions: Annotated[
        str | None,
        typer.Option(
            "--additions", help="Curated additions JSON file (default from worldgraph.yaml)."
        ),
    ] = None,
    dry_run: Annotated[
        bool,
        typer.Option("--dry-run", help="Show proposed changes without modifying any file."),
    ] = False,
) -> None:
    """Merge curated exit-availability additions into the locations file.

    Existing hard exits and availability entries are never overwritten. If
    any addition is invalid, nothing is applied.
    """
    from worldgraph.files import load_blueprint, load_json_array, write_blueprint
    from worldgraph.graph.mutations import apply_additions

    data_path: str = ""
    try:
        config = _load_config()
        data_path = data or config.data_path
        locations = load_blueprint(config.root, data_path)
        entries = load_json_array(
            config.root, additions or config.additions_path, label="additions"
        )
        target = copy.deepcopy(locations) if dry_run else locations
        result = apply_additions(target, entries)
        if not dry_run and result.applied:
            write_blueprint(config.root, data_path, target)
    except AdditionValidationError as e:
        err_console.print(f"[red]Error:[/red] {len(e.errors)} invalid addition(s), none applied:")
        for message in e.errors:
            err_console.print(f"  [red]✗[/red] {escape(message)}")
        raise typer.Exit(e.exit_code) from e
    except WorldGraphError as e:
        _fail(e)

    _print_additions_result(result, dry_run)
    if dry_run:
        console.print("[yellow]Dry run:[/yellow] no files were modified.")
    elif result.applied:
        console.print(f"[green]✓[/green] Updated {data_path}")


@app.command()
def doctor() -> None:
    """Check configuration and graph store reachability."""
    console.print("[bold]worldgraph Doctor[/bold]")
    console.print()

    all_ok = _check_configuration()
    if all_ok:
        all_ok &= asyncio.run(_check_store())

    console.print()
    if all_ok:
        console.print("[green]All checks passed![/green]")
    else:
        console.print("[yellow]Some checks failed.[/yellow]")
        raise typer.Exit(1)


def _check_configuration() -> bool:
    """Check project configuration."""
    from worldgraph.config import CONFIG_FILENAME

    console.print("[bold]Configuration[/bold]")
    console.print(f"  [green]✓[/green] Root: {_root}")
    if (_root / CONFIG_FILENAME).exists():
        console.print(f"  [green]✓[/green] {CONFIG_FILENAME}: Found")
    else:
        console.print(f"  [dim]○[/dim] {CONFIG_FILENAME}: Not found (using defaults)")

    try:
        config = _load_config()
    except WorldGraphError as e:
        console.print(f"  [red]✗[/red] Config error: {escape(str(e))}")
        return False

    persistence = config.persistence
    console.print(f"  [green]✓[/green] Persistence mode: {persistence.mode}")
    if persistence.mode == "sqlite":
        console.print(f"  [green]✓[/green] SQLite path: {persistence.sqlite_path}")
        console.print(f"  [green]✓[/green] Strict: {persistence.strict}")
    console.print(f"  [green]✓[/green] Anchors: {', '.join(config.anchors)}")

    data_file = config.root / config.data_path
    if data_file.exists():
        console.print(f"  [green]✓[/green] Data file: {config.data_path}")
    else:
        console.print(f"  [dim]○[/dim] Data file: {config.data_path} (not found)")
    console.print()
    return True


async def _check_store() -> bool:
    """Check that the configured store opens and answers queries."""
    from worldgraph.graph import store as q

    console.print("[bold]Graph store[/bold]")
    try:
        store = q.open_store(_load_config().persistence)
        try:
            locations = await store.submit(q.list_locations())
            exits = await store.submit(q.list_exits())
        finally:
            store.close()
    except WorldGraphError as e:
        console.print(f"  [red]✗[/red] {escape(str(e))}")
        return False

    console.print(
        f"  [green]✓[/green] {store.mode}: {len(locations)} location(s), {len(exits)} exit(s)"
    )
    if not store.durable:
        console.print("  [dim]○[/dim] Not durable: consistency scans are unavailable")
    return True


if __name__ == "__main__":
    app()
