"""CLI entry point for investor ingestion.

Commands:
    investorhub ingest   Validate and store every investor in a CSV/JSON file
    investorhub submit   Ingest a file as a background job
    investorhub job      Show the state and result of a job
    investorhub show     Print a stored investor by name
    investorhub status   Show what's in the local database
    investorhub serve    Start the HTTP API
"""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from investorhub.config import Settings
from investorhub.errors import InvestorHubError
from investorhub.models import BulkOperationResult, OperationStatus
from investorhub.store import InvestorStore

console = Console()

_STATUS_STYLES = {
    OperationStatus.COMPLETED: "bold green",
    OperationStatus.PARTIAL_SUCCESS: "bold yellow",
    OperationStatus.FAILED: "bold red",
    OperationStatus.IN_PROGRESS: "bold cyan",
}


def _get_settings(**overrides: object) -> Settings:
    try:
        return Settings(**overrides)  # type: ignore[arg-type]
    except Exception as exc:
        console.print(f"[red]Configuration error:[/red] {exc}")
        console.print("See the INVESTORHUB_* environment variables or your .env file.")
        sys.exit(1)


# ---------------------------------------------------------------------------
# Root group
# ---------------------------------------------------------------------------


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.option(
    "--db",
    "db_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Override the SQLite database path",
)
@click.pass_context
def main(ctx: click.Context, verbose: bool, db_path: Path | None) -> None:
    """Investor bulk ingestion: validate, store and track imports."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
        datefmt="%H:%M:%S",
    )
    ctx.ensure_object(dict)
    if db_path:
        ctx.obj["db_path"] = db_path


def _settings_from_ctx() -> Settings:
    """Build Settings, applying any CLI override from the click context."""
    ctx = click.get_current_context()
    overrides: dict[str, object] = {}
    db_path = ctx.obj.get("db_path") if ctx.obj else None
    if db_path:
        overrides["db_path"] = db_path
    return _get_settings(**overrides)


def _print_result(result: BulkOperationResult, max_errors: int = 20) -> None:
    style = _STATUS_STYLES.get(result.status, "bold")
    console.print(f"\n[{style}]{result.status.value}[/{style}] {result.message}")
    console.print(f"  Processed: {result.total_processed}")
    console.print(f"  Succeeded: {result.success_count}")
    console.print(f"  Failed:    {result.failure_count}")
    console.print(f"  Duration:  {result.duration_ms}ms")

    if result.errors:
        table = Table(title=f"Errors ({len(result.errors)})")
        table.add_column("Index", justify="right")
        table.add_column("Investor")
        table.add_column("Code")
        table.add_column("Field")
        table.add_column("Message")
        for err in result.errors[:max_errors]:
            table.add_row(
                str(err.item_index),
                err.record_name or "—",
                err.error_code.value,
                err.field_name or "",
                err.error_message,
            )
        console.print(table)
        if len(result.errors) > max_errors:
            console.print(f"  [dim]... and {len(result.errors) - max_errors} more[/dim]")

    for warning in result.warnings:
        console.print(f"  [yellow]Warning: {warning}[/yellow]")


# ---------------------------------------------------------------------------
# ingest
# ---------------------------------------------------------------------------


@main.command("ingest")
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
def ingest_cmd(file: Path) -> None:
    """Validate and store every investor in FILE (CSV or JSON)."""
    from investorhub.importer import InvestorImporter

    settings = _settings_from_ctx()
    importer = InvestorImporter(settings)
    try:
        result = importer.bulk_insert_from_file(file.read_bytes(), file.name)
    except InvestorHubError as exc:
        console.print(f"[bold red]Cannot ingest {file.name}:[/bold red] {exc}")
        sys.exit(1)
    _print_result(result)
    if result.status is OperationStatus.FAILED:
        sys.exit(1)


# ---------------------------------------------------------------------------
# submit / job
# ---------------------------------------------------------------------------


@main.command("submit")
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--wait", "wait_for_result", is_flag=True, help="Block until the job finishes")
def submit_cmd(file: Path, wait_for_result: bool) -> None:
    """Ingest FILE as a background job and print its id."""
    from investorhub.errors import JobRejectedError
    from investorhub.jobs import AsyncJobRunner

    settings = _settings_from_ctx()
    runner = AsyncJobRunner(settings)
    try:
        job_id = runner.launch(file.read_bytes(), file.name)
    except JobRejectedError as exc:
        console.print(f"[bold red]Job rejected:[/bold red] {exc}")
        runner.shutdown()
        sys.exit(1)

    console.print(f"[bold]Job {job_id}[/bold] submitted for {file.name}")
    if wait_for_result:
        result = runner.wait(job_id)
        if result is not None:
            _print_result(result)
    else:
        console.print(f"Poll with: investorhub job {job_id}")
    runner.shutdown()


@main.command("job")
@click.argument("job_id", type=int)
def job_cmd(job_id: int) -> None:
    """Show the state and latest result of JOB_ID."""
    settings = _settings_from_ctx()
    store = InvestorStore(settings.db_path, max_retries=settings.store_max_retries)
    job = store.get_job(job_id)
    if job is None:
        console.print(f"[red]Job {job_id} not found.[/red]")
        sys.exit(1)
    console.print(f"[bold]Job {job.job_id}[/bold] ({job.filename or 'upload'}): {job.state.value}")
    console.print(f"  Created: {job.created_at:%Y-%m-%d %H:%M:%S}")
    console.print(f"  Updated: {job.updated_at:%Y-%m-%d %H:%M:%S}")
    _print_result(job.result)


# ---------------------------------------------------------------------------
# show
# ---------------------------------------------------------------------------


@main.command("show")
@click.argument("name")
def show_cmd(name: str) -> None:
    """Print the stored investor called NAME."""
    settings = _settings_from_ctx()
    store = InvestorStore(settings.db_path, max_retries=settings.store_max_retries)
    investor = store.find_by_name(name)
    if investor is None:
        console.print(f"[red]No investor named '{name}'.[/red]")
        sys.exit(1)
    console.print_json(json.dumps(investor.model_dump(mode="json", by_alias=True)))


# ---------------------------------------------------------------------------
# status
# ---------------------------------------------------------------------------


@main.command("status")
def status_cmd() -> None:
    """Show a summary of the local investor database."""
    settings = _settings_from_ctx()
    store = InvestorStore(settings.db_path, max_retries=settings.store_max_retries)

    investors = store.list_investors(limit=20)
    jobs = store.list_jobs(limit=10)

    console.print("\n[bold]Local Database Summary[/bold]")
    console.print(f"  Investors stored: {store.count_investors()}")
    console.print(f"  Database:         {settings.db_path}")

    if investors:
        table = Table(title="Stored Investors")
        table.add_column("Name")
        table.add_column("Status")
        table.add_column("Type")
        table.add_column("Sectors")
        table.add_column("Score", justify="right")
        for inv in investors:
            score = str(inv.completeness_score) if inv.completeness_score is not None else "—"
            table.add_row(
                inv.name or "", inv.status or "", inv.type or "", ", ".join(inv.sectors), score
            )
        console.print(table)

    if jobs:
        console.print("\n[bold]Recent Jobs[/bold]")
        for job in jobs:
            console.print(
                f"  [{job.created_at:%Y-%m-%d %H:%M}] #{job.job_id} {job.filename} "
                f"{job.state.value}: {job.result.message}"
            )


# ---------------------------------------------------------------------------
# serve
# ---------------------------------------------------------------------------


@main.command("serve")
@click.option("--host", default="127.0.0.1", help="Bind address")
@click.option("--port", "-p", default=8080, type=int, help="Port number")
def serve_cmd(host: str, port: int) -> None:
    """Start the HTTP API for investor ingestion."""
    import uvicorn

    from investorhub.web import create_app

    settings = _settings_from_ctx()
    console.print(f"[bold]Starting Investor Hub API at http://{host}:{port}[/bold]")

    app = create_app(settings=settings)
    uvicorn.run(app, host=host, port=port, log_level="info")


if __name__ == "__main__":
    main()
