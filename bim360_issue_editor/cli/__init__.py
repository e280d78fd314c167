"""
Command Line Interface for the BIM360 Issue Editor.

Export and import are driven by a JSON job file carrying the credentials and
the ids of the project to work on, for example::

    {
        "three_legged_token": "...",
        "client_id": "...",
        "client_secret": "...",
        "region": "US",
        "hub_id": "b.1234",
        "project_id": "b.5678",
        "issue_container_id": "...",
        "location_container_id": "..."
    }
"""

import asyncio
import json
import logging
from pathlib import Path
from typing import Literal, Optional, Tuple

import typer
import uvicorn
from pydantic import BaseModel, ConfigDict, ValidationError
from rich import print as rprint
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from ..config import get_settings
from ..integrations import BIM360Client, ForgeAuthClient
from ..models import ImportResult
from ..routes.deps import APP_SCOPES
from ..sync import ExportOptions, export_issues, import_issues

app = typer.Typer(help="BIM360 Issue Editor - bulk issue editing through spreadsheets")
console = Console()
# Import results go to stdout as JSON, the summary to stderr
err_console = Console(stderr=True)


class JobConfig(BaseModel):
    """Contents of a CLI job file."""

    model_config = ConfigDict(extra="ignore")

    three_legged_token: str
    client_id: Optional[str] = None
    client_secret: Optional[str] = None
    region: Literal["US", "EMEA"] = "US"
    hub_id: Optional[str] = None
    project_id: Optional[str] = None
    issue_container_id: str
    location_container_id: Optional[str] = None
    page_offset: Optional[int] = None
    page_limit: Optional[int] = None
    # Falls back to the LEGACY_STATUSES setting when absent
    legacy_statuses: Optional[bool] = None


def load_job(path: Path) -> JobConfig:
    try:
        return JobConfig.model_validate_json(path.read_text())
    except (OSError, ValidationError) as e:
        console.print(f"❌ Invalid config file {path}: {e}")
        raise typer.Exit(code=1)


def parse_rows(value: Optional[str]) -> Optional[Tuple[int, int]]:
    """Parse an ``A:B`` sheet row range."""
    if not value:
        return None
    first, sep, last = value.partition(":")
    try:
        row_range = (int(first), int(last)) if sep else (int(first), int(first))
    except ValueError:
        raise typer.BadParameter("Expected a row range like 2:50")
    if row_range[0] < 2 or row_range[1] < row_range[0]:
        raise typer.BadParameter("Rows start at 2 and the range must not be empty")
    return row_range


def _configure_logging() -> None:
    logging.basicConfig(level=get_settings().log_level.upper())


async def _run_export(job: JobConfig) -> bytes:
    settings = get_settings()
    if not job.hub_id or not job.project_id:
        raise typer.BadParameter("Export needs hub_id and project_id in the config file")
    options = ExportOptions(
        hub_id=job.hub_id,
        project_id=job.project_id,
        issue_container_id=job.issue_container_id,
        location_container_id=job.location_container_id,
        page_offset=job.page_offset,
        page_limit=job.page_limit,
        users_scope=settings.users_scope,
        document_source=settings.document_source,
        page_size=settings.page_size,
        document_chunk_size=settings.document_chunk_size,
        max_rate_limit_retries=settings.max_rate_limit_retries,
        location_path_separator=settings.location_path_separator,
        protect_sheets=settings.protect_sheets,
        legacy_statuses=(
            settings.legacy_statuses if job.legacy_statuses is None else job.legacy_statuses
        ),
    )

    app_client = None
    if job.client_id and job.client_secret:
        auth = ForgeAuthClient(job.client_id, job.client_secret, base_url=settings.forge_base_url)
        token = await auth.authenticate(APP_SCOPES)
        app_client = BIM360Client(
            token,
            region=job.region,
            base_url=settings.forge_base_url,
            timeout=settings.request_timeout_seconds,
        )

    try:
        async with BIM360Client(
            job.three_legged_token,
            region=job.region,
            base_url=settings.forge_base_url,
            timeout=settings.request_timeout_seconds,
        ) as client:
            return await export_issues(options, client, app_client)
    finally:
        if app_client:
            await app_client.close()


async def _run_import(
    job: JobConfig, data: bytes, sequential: bool, row_range: Optional[Tuple[int, int]]
) -> ImportResult:
    settings = get_settings()
    async with BIM360Client(
        job.three_legged_token,
        region=job.region,
        base_url=settings.forge_base_url,
        timeout=settings.request_timeout_seconds,
    ) as client:
        return await import_issues(
            data,
            job.issue_container_id,
            client,
            sequential=sequential,
            row_range=row_range,
            page_size=settings.page_size,
        )


@app.command("export")
def export_command(
    config: Path = typer.Argument(..., help="JSON job file"),
    output: Path = typer.Argument(..., help="Where to write the xlsx workbook"),
):
    """Export issues of a project into a spreadsheet."""
    _configure_logging()
    job = load_job(config)
    content = asyncio.run(_run_export(job))
    output.write_bytes(content)
    console.print(f"✅ Exported issues to {output}")


@app.command("import")
def import_command(
    config: Path = typer.Argument(..., help="JSON job file"),
    input: Path = typer.Argument(..., help="Edited xlsx workbook"),
    sequential: bool = typer.Option(False, help="Apply rows one at a time, in row order"),
    rows: Optional[str] = typer.Option(None, help="Only process sheet rows A:B (row 1 is the header)"),
):
    """Apply an edited spreadsheet to the issues of a container."""
    _configure_logging()
    job = load_job(config)
    row_range = parse_rows(rows)
    result = asyncio.run(_run_import(job, input.read_bytes(), sequential, row_range))

    print(json.dumps(result.model_dump(mode="json")))

    table = Table(title="Import Summary", show_header=True, header_style="bold magenta")
    table.add_column("Row", style="cyan")
    table.add_column("Issue", style="yellow")
    table.add_column("Outcome")
    for success in result.succeeded:
        table.add_row("", f"#{success.number} {success.id}", "🟢 Applied")
    for failure in result.failed:
        table.add_row(
            str(failure.row or ""),
            f"#{failure.number} {failure.id}" if failure.number else str(failure.id or "new"),
            f"🔴 {escape(str(failure.error))}",
        )
    err_console.print(table)
    if result.failed:
        raise typer.Exit(code=1)


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, help="Host to bind the server to"),
    port: Optional[int] = typer.Option(None, help="Port to run the API server on"),
):
    """Run the web API."""
    settings = get_settings()
    _configure_logging()
    rprint(Panel.fit("🏗️ Starting BIM360 Issue Editor", style="bold blue"))
    uvicorn.run(
        "bim360_issue_editor.main:app",
        host=host or settings.api_host,
        port=port or settings.api_port,
        reload=settings.debug,
    )


def main():
    """Main entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
