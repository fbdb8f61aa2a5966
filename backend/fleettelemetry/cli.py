"""FleetTelemetry CLI: vessel telemetry workbook ingestion.

Commands:
  init-db  create database tables
  ingest   ingest one XLSX workbook
  vessels  list vessels with latest timestamp per stream
  serve    run the HTTP API
"""
from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table


app = typer.Typer(
    name="fleettelemetry",
    help="Vessel telemetry workbook ingestion and query.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)
console = Console()


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@app.command("init-db")
def init_db_command():
    """Create all tables (safe to re-run)."""
    from fleettelemetry.database import init_db

    with console.status("[bold]Creating database..."):
        init_db()
    console.print("[green]Database ready.[/green]")


@app.command("ingest")
def ingest(
    path: Path = typer.Argument(..., exists=True, dir_okay=False, readable=True, help="XLSX workbook"),
    imo: Optional[str] = typer.Option(None, "--imo", help="IMO number (overrides the workbook's)"),
    vessel_name: Optional[str] = typer.Option(None, "--vessel-name", help="Vessel name when no IMO is known"),
    period_start: Optional[str] = typer.Option(None, "--period-start", help="RFC 3339 reference timestamp"),
    note: Optional[str] = typer.Option(None, "--note"),
):
    """Ingest one telemetry workbook."""
    from fleettelemetry.database import SessionLocal, init_db
    from fleettelemetry.modules.ingest import process_file
    from fleettelemetry.utils.timestamps import parse_rfc3339

    reference_ts = None
    if period_start:
        reference_ts = parse_rfc3339(period_start)
        if reference_ts is None:
            console.print("[red]Invalid --period-start, use RFC 3339 (e.g. 2024-03-01T00:00:00Z)[/red]")
            raise typer.Exit(1)

    init_db()
    db = SessionLocal()
    try:
        with console.status(f"[bold]Ingesting {path.name}..."):
            result = process_file(
                db,
                path.read_bytes(),
                path.name,
                imo=imo,
                vessel_name=vessel_name,
                reference_ts=reference_ts,
                note=note,
            )
    except ValueError as e:
        console.print(f"[red]Ingestion failed: {e}[/red]")
        raise typer.Exit(1)
    finally:
        db.close()

    if result.status == "already_ingested":
        console.print(
            f"[yellow]Already ingested[/yellow] as upload {result.upload_id} (vessel {result.vessel_id})"
        )
        return

    console.print(f"[green]Ingested[/green] upload {result.upload_id} for vessel {result.vessel_id}")
    table = Table(title="Rows inserted")
    table.add_column("Stream", style="cyan")
    table.add_column("Rows", justify="right")
    for stream, count in sorted(result.rows_inserted.items()):
        table.add_row(stream, str(count))
    console.print(table)

    if result.warnings:
        console.print(f"[yellow]{len(result.warnings)} warning(s):[/yellow]")
        for w in result.warnings:
            console.print(f"  - {w}")


@app.command("vessels")
def list_vessels():
    """List vessels and the latest timestamp of each stream."""
    from fleettelemetry.database import SessionLocal
    from fleettelemetry.models.vessel import Vessel
    from fleettelemetry.utils.timestamps import format_rfc3339

    db = SessionLocal()
    try:
        vessels = db.query(Vessel).order_by(Vessel.name, Vessel.id).all()
        if not vessels:
            console.print("[yellow]No vessels found[/yellow]")
            return

        table = Table(title="Vessels")
        table.add_column("ID", justify="right")
        table.add_column("IMO")
        table.add_column("Name", style="bold")
        table.add_column("Flag")
        table.add_column("Type")
        table.add_column("Latest")
        for v in vessels:
            latest = ", ".join(f"{s.stream}: {format_rfc3339(s.latest_ts)}" for s in v.stream_latest)
            table.add_row(str(v.id), v.imo or "", v.name, v.flag or "", v.vessel_type or "", latest or "-")
        console.print(table)
    finally:
        db.close()


@app.command("serve")
def serve(
    host: str = typer.Option("127.0.0.1", "--host"),
    port: int = typer.Option(8000, "--port"),
):
    """Run the HTTP API."""
    import uvicorn

    console.print(f"API running at [cyan]http://{host}:{port}/api/v1[/cyan] (Ctrl+C to stop)")
    uvicorn.run("fleettelemetry.main:app", host=host, port=port)
