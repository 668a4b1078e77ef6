"""FSBO lead sync CLI - run jobs and inspect tokens from a shell or cron."""

import asyncio
import json
import logging

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .config import settings

app = typer.Typer(
    name="fsbo",
    help="FSBO lead sync - scheduled searches, GHL exports and token upkeep",
    no_args_is_help=True,
)
console = Console()

# Sub-command groups
jobs_app = typer.Typer(help="Background job commands")
tokens_app = typer.Typer(help="GHL token commands")
db_app = typer.Typer(help="Database commands")

app.add_typer(jobs_app, name="jobs")
app.add_typer(tokens_app, name="tokens")
app.add_typer(db_app, name="db")


@app.callback()
def main():
    logging.basicConfig(level=settings.log_level)


def _print_report(title: str, report) -> None:
    style = "green" if report.ok else "red"
    console.print(
        Panel(
            json.dumps(report.body, indent=2, default=str),
            title=f"{title} [{style}]{report.status_code}[/{style}]",
        )
    )
    if not report.ok:
        raise typer.Exit(code=1)


# ============================================================================
# Jobs
# ============================================================================


@jobs_app.command("run-searches")
def jobs_run_searches(
    all_due: bool = typer.Option(False, "--all", help="Process every due search, not just the next one"),
):
    """Run due scheduled searches and export their results."""
    from .database import async_session_factory
    from .jobs import run_scheduled_searches
    from .listings.client import ListingSearchClient, ListingSearchError

    async def _run():
        async with ListingSearchClient.from_settings() as source:
            async with async_session_factory() as db:
                limit = None if all_due else settings.scheduled_search_batch_size
                return await run_scheduled_searches(db, source, limit=limit)

    try:
        report = asyncio.run(_run())
    except ListingSearchError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(code=1)
    _print_report("Scheduled searches", report)


@jobs_app.command("refresh-tokens")
def jobs_refresh_tokens():
    """Refresh every GHL token expiring within the next hour."""
    from .database import async_session_factory
    from .jobs import refresh_expiring_tokens
    from .oauth.client import OAuthClient, OAuthError

    async def _run():
        oauth = OAuthClient.from_settings()
        async with async_session_factory() as db:
            return await refresh_expiring_tokens(db, oauth)

    try:
        report = asyncio.run(_run())
    except OAuthError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(code=1)
    _print_report("Token refresh", report)


# ============================================================================
# Tokens
# ============================================================================


@tokens_app.command("status")
def tokens_status():
    """Show stored GHL tokens per location (no secrets)."""
    from .database import async_session_factory
    from .services import token_svc

    async def _load():
        async with async_session_factory() as db:
            return [token_svc.token_status(r) for r in await token_svc.list_tokens(db)]

    rows = asyncio.run(_load())
    if not rows:
        console.print("[yellow]No locations connected.[/yellow]")
        return

    table = Table(title="GHL Tokens")
    table.add_column("Location", style="cyan")
    table.add_column("State", style="green")
    table.add_column("Expires At")
    table.add_column("Search Limit", justify="right")

    colors = {"active": "green", "expiring_soon": "yellow", "expired": "red"}
    for row in rows:
        color = colors.get(row["state"], "white")
        table.add_row(
            row["location_id"],
            f"[{color}]{row['state']}[/{color}]",
            row["expires_at"] or "-",
            str(row["max_searches_limit"]),
        )
    console.print(table)


# ============================================================================
# Database
# ============================================================================


@db_app.command("init")
def db_init():
    """Create tables directly (SQLite / local dev)."""
    from .database import create_all

    asyncio.run(create_all())
    console.print(f"[green]Tables created[/green] for {settings.database_url}")


@app.command()
def version():
    """Show version information."""
    from . import __version__

    console.print(f"FSBO Lead Sync v{__version__}")


if __name__ == "__main__":
    app()
