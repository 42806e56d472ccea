from __future__ import annotations

import json
import logging
import uuid

import typer

from brandlens_core.db.session import SessionLocal
from evidence_service.archive.backfill import archive_citation, backfill_archives
from evidence_service.archive.wayback import WaybackSnapshotter
from evidence_service.discovery.outlet import OutletDiscoveryResolver
from evidence_service.fetch.http_client import PoliteHttpClient
from evidence_service.orchestrator import ResolutionOrchestrator, parse_mode
from evidence_service.runs.ledger import RunLedger
from evidence_service.settings import settings

app = typer.Typer(help="Evidence link resolver (agency permalinks, outlet discovery, archival).")


@app.callback()
def main(
    log_level: str = typer.Option("INFO", help="Logging level (DEBUG, INFO, WARNING, ...)."),
) -> None:
    logging.basicConfig(
        level=log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _parse_uuid(value: str | None, name: str) -> uuid.UUID | None:
    if value is None:
        return None
    try:
        return uuid.UUID(value)
    except ValueError:
        typer.echo(f"Invalid {name}: {value}", err=True)
        raise typer.Exit(2)


@app.command()
def resolve(
    mode: str = typer.Option(settings.default_mode, help="agency-only | agency-first | full"),
    limit: int = typer.Option(settings.default_limit, min=1, help="Maximum citations to process"),
    event_id: str | None = typer.Option(None, help="Only citations of this event"),
    source_id: str | None = typer.Option(None, help="Only this citation"),
    no_archive: bool = typer.Option(False, "--no-archive", help="Skip Wayback snapshots"),
) -> None:
    """
    Resolve pending generic citations into specific article/document links.

    Example:
        brandlens-evidence resolve --mode full --limit 100
    """
    try:
        resolve_mode = parse_mode(mode)
    except ValueError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(2)
    event_uuid = _parse_uuid(event_id, "event id")
    source_uuid = _parse_uuid(source_id, "source id")

    with SessionLocal() as session, PoliteHttpClient() as http, WaybackSnapshotter() as archiver:
        orchestrator = ResolutionOrchestrator(
            session,
            discovery=OutletDiscoveryResolver(http),
            archiver=None if no_archive else archiver,
        )
        try:
            summary = orchestrator.run(resolve_mode, limit, event_id=event_uuid, source_id=source_uuid)
        except Exception as e:
            typer.echo(f"✗ Resolver run failed: {e}", err=True)
            raise typer.Exit(1)

    typer.echo(json.dumps(summary.to_dict()))
    if summary.circuit_open:
        typer.echo("Circuit breaker tripped: too many consecutive skips, batch stopped early.", err=True)


@app.command("archive-url")
def archive_url(
    source_id: str = typer.Argument(..., help="Citation id"),
    url: str = typer.Argument(..., help="URL to snapshot"),
) -> None:
    """Snapshot one URL on the Wayback Machine and record it on the citation."""
    source_uuid = _parse_uuid(source_id, "source id")
    with SessionLocal() as session, WaybackSnapshotter() as archiver:
        try:
            archived = archive_citation(session, archiver, source_uuid, url)
        except ValueError as exc:
            typer.echo(str(exc), err=True)
            raise typer.Exit(2)

    if archived is None:
        typer.echo("✗ Archive failed", err=True)
        raise typer.Exit(1)
    typer.echo(f"archived: {archived}")


@app.command("backfill-archives")
def backfill(
    limit: int = typer.Option(100, min=1, help="Maximum citations to archive"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Only count candidates"),
) -> None:
    """Archive citations that still have no archive link."""
    with SessionLocal() as session, WaybackSnapshotter() as archiver:
        result = backfill_archives(session, archiver, limit=limit, dry_run=dry_run)

    if result.dry_run:
        typer.echo(f"Would process {result.found} sources")
    else:
        typer.echo(f"Archived {result.archived}/{result.processed} sources")


@app.command()
def runs(
    limit: int = typer.Option(10, min=1, help="Number of runs to show"),
) -> None:
    """Show recent resolver runs, newest first."""
    with SessionLocal() as session:
        for run in RunLedger(session).recent(limit=limit):
            finished = run.finished_at.isoformat() if run.finished_at else "-"
            typer.echo(
                f"{run.run_id}  {run.status.value:<9}  {run.mode:<12}  "
                f"processed={run.processed} resolved={run.resolved} "
                f"skipped={run.skipped} failed={run.failed}  finished={finished}"
            )
            if run.notes and run.notes.get("error"):
                typer.echo(f"    error: {run.notes['error']}")


if __name__ == "__main__":
    app()
