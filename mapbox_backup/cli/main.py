"""Mapbox Backup CLI.

Usage:
    mapbox-backup backup [SCOPES] [OPTIONS]
    mapbox-backup scopes
    mapbox-backup version

Exit codes: 0=success, 1=error (missing token, failed listing, or any
failed artifact with --strict).
"""

# Load .env file before any other imports
from dotenv import load_dotenv

load_dotenv()

import asyncio
import logging
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from mapbox_backup import __version__
from mapbox_backup.api import MapboxClient, redact_token, username_from_token
from mapbox_backup.config import BACKUP_SCOPES, DEFAULT_OUTPUT_DIR, SCOPE_REQUIRES, get_settings
from mapbox_backup.config.settings import Settings
from mapbox_backup.core.types import BackupResult
from mapbox_backup.fetch import (
    BackupOrchestrator,
    IncrementalFetchPolicy,
    plan_jobs,
    resolve_scopes,
)
from mapbox_backup.observability import ProgressReporter, get_logger, setup_logging
from mapbox_backup.storage import LocalStore

# Create CLI app
app = typer.Typer(
    name="mapbox-backup",
    help="Back up a Mapbox account to a local directory",
    add_completion=False,
)

console = Console()
err_console = Console(stderr=True)

logger = get_logger(__name__)


def configure_logging(quiet: bool = False, verbose: bool = False, json_logs: bool = False) -> None:
    """Configure logging; rich output on stderr unless JSON is requested."""
    level = logging.ERROR if quiet else (logging.DEBUG if verbose else logging.WARNING)
    handler = None if json_logs else RichHandler(console=err_console, show_path=False)
    setup_logging(level=level, json_format=json_logs, handler=handler, force=True)


@app.command()
def backup(
    styles_list: Annotated[bool, typer.Option("--styles-list", help="Save the styles list")] = False,
    style_documents: Annotated[
        bool, typer.Option("--style-documents", help="Save style documents (published and draft)")
    ] = False,
    style_sprites: Annotated[
        bool, typer.Option("--style-sprites", help="Save sprite indexes and sheets")
    ] = False,
    tilesets_list: Annotated[bool, typer.Option("--tilesets-list", help="Save the tilesets list")] = False,
    datasets_list: Annotated[bool, typer.Option("--datasets-list", help="Save the datasets list")] = False,
    dataset_documents: Annotated[
        bool, typer.Option("--dataset-documents", help="Save dataset features")
    ] = False,
    tokens_list: Annotated[bool, typer.Option("--tokens-list", help="Save the tokens list")] = False,
    access_token: Annotated[
        str | None, typer.Option("--access-token", help="Mapbox access token")
    ] = None,
    output: Annotated[
        Path | None, typer.Option("--output", "-o", help="Output directory (default: account name)")
    ] = None,
    username: Annotated[
        str | None, typer.Option("--username", "-u", help="Account name (default: from token)")
    ] = None,
    force: Annotated[
        bool, typer.Option("--force", "-f", help="Re-download unchanged artifacts")
    ] = False,
    abort_on_failure: Annotated[
        bool, typer.Option("--abort-on-failure", help="Stop after the first failed category")
    ] = False,
    strict: Annotated[
        bool, typer.Option("--strict", help="Exit 1 when any artifact failed")
    ] = False,
    quiet: Annotated[bool, typer.Option("--quiet", "-q", help="Minimal output")] = False,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Verbose output")] = False,
    json_logs: Annotated[bool, typer.Option("--json-logs", help="Log as JSON lines")] = False,
) -> None:
    """Back up the selected scopes (all of them when none is given).

    Examples:
        mapbox-backup backup
        mapbox-backup backup --style-documents --output ./backup
        mapbox-backup backup --datasets-list --tokens-list --quiet
    """
    configure_logging(quiet=quiet, verbose=verbose, json_logs=json_logs)

    flags = {
        "styles-list": styles_list,
        "style-documents": style_documents,
        "style-sprites": style_sprites,
        "tilesets-list": tilesets_list,
        "datasets-list": datasets_list,
        "dataset-documents": dataset_documents,
        "tokens-list": tokens_list,
    }
    scopes = resolve_scopes(scope for scope, enabled in flags.items() if enabled)

    settings = get_settings()
    token = access_token or settings.access_token
    if not token:
        err_console.print(
            "[red]No access token. Pass --access-token or set MapboxAccessToken.[/red]"
        )
        raise typer.Exit(code=1)

    account = username or username_from_token(token)
    output_dir = output or Path(account or DEFAULT_OUTPUT_DIR)
    abort = abort_on_failure or settings.abort_on_failure

    if not quiet:
        console.print(f"[bold]Mapbox Backup[/bold] {account or DEFAULT_OUTPUT_DIR} -> {output_dir}")
    logger.info(
        "Starting backup",
        extra={"scopes": sorted(scopes), "token": redact_token(token), "force": force},
    )

    result = asyncio.run(
        _run_backup(
            settings=settings,
            token=token,
            username=account,
            output_dir=output_dir,
            scopes=scopes,
            force=force,
            abort_on_failure=abort,
            show_progress=not quiet,
        )
    )

    if not quiet:
        _print_summary(result)

    raise typer.Exit(code=result.exit_code(strict=strict))


@app.command()
def scopes() -> None:
    """List the backup scopes."""
    for scope in BACKUP_SCOPES:
        required = SCOPE_REQUIRES.get(scope)
        suffix = f" [dim](implies {required})[/dim]" if required else ""
        console.print(f"--{scope}{suffix}")


@app.command()
def version() -> None:
    """Show version information."""
    console.print(f"[bold]Mapbox Backup v{__version__}[/bold]")


# ==================== Helper Functions ====================


async def _run_backup(
    settings: Settings,
    token: str,
    username: str | None,
    output_dir: Path,
    scopes: set[str],
    force: bool = False,
    abort_on_failure: bool = False,
    show_progress: bool = True,
) -> BackupResult:
    store = LocalStore(output_dir)
    store.ensure_dir()

    async with MapboxClient(
        access_token=token,
        username=username,
        base_url=settings.api_url,
        timeout=settings.request_timeout,
        page_limit=settings.page_limit,
    ) as client:
        jobs = plan_jobs(
            scopes,
            client=client,
            store=store,
            settings=settings,
            policy=IncrementalFetchPolicy(enabled=not force),
            reporter=ProgressReporter(console=console, enabled=show_progress),
        )
        orchestrator = BackupOrchestrator(jobs, abort_on_failure=abort_on_failure)
        return await orchestrator.run()


def _print_summary(result: BackupResult) -> None:
    console.print("\n" + "=" * 44)
    for category in result.categories:
        if not category.ok:
            console.print(f"[red]{escape(str(category.failure))}[/red]")
            continue

        console.print(f"{category.category}: {category.item_count} items")
        for group in category.groups:
            line = f"  {group.label}: {group.done}/{group.total}"
            if group.skipped:
                line += f" ({group.skipped} unchanged)"
            color = "yellow" if group.schedule.failed else "green"
            console.print(f"[{color}]{line}[/{color}]")

    if result.aborted:
        console.print("[yellow]Backup aborted after a failed category.[/yellow]")
    elif result.success and not result.has_partial_failures:
        console.print("[green]Backup completed![/green]")
    else:
        console.print("[yellow]Backup completed with errors.[/yellow]")
    console.print("=" * 44)
