"""CLI entry point for Gmail Sender Tally."""

from __future__ import annotations

import click

from . import __version__
from .auth import TokenStore, check_auth, get_credentials, get_gmail_service, run_local_flow
from .config import configure_logging, get_settings
from .constants import PAGE_SIZE
from .display import console, display_scan_summary, display_standings
from .errors import TallyError
from .export import export_tally
from .gmail_client import GmailSource
from .scanner import scan_top_senders, summarize
from .store import StateStore


@click.group()
@click.version_option(version=__version__, prog_name="gmail-sender-tally")
def cli() -> None:
    """Gmail Sender Tally - count who sends you the most mail."""


@cli.command()
@click.option("--host", default=None, help="Interface to bind (default from settings).")
@click.option("--port", default=None, type=int, help="Port to listen on (default from settings).")
def serve(host: str | None, port: int | None) -> None:
    """Run the HTTP server."""
    import uvicorn

    from .server import create_app

    settings = get_settings()
    configure_logging(settings.log_level)
    uvicorn.run(
        create_app(settings),
        host=host or settings.server_host,
        port=port or settings.server_port,
        log_level=settings.log_level.lower(),
    )


@cli.command()
@click.option("--batch-cap", default=None, type=click.IntRange(min=1), help="Max new messages this run.")
@click.option(
    "--page-size",
    default=None,
    type=click.IntRange(min=1, max=PAGE_SIZE),
    help="Message ids per list page.",
)
def scan(batch_cap: int | None, page_size: int | None) -> None:
    """Advance the sender scan by one batch and show the top senders."""
    settings = get_settings()
    configure_logging(settings.log_level)
    try:
        service = get_gmail_service(settings)
        with StateStore(settings.state_db_path) as store:
            summary = scan_top_senders(
                GmailSource(service),
                store,
                batch_cap=batch_cap or settings.batch_cap,
                page_size=page_size or settings.page_size,
            )
    except TallyError as e:
        raise click.ClickException(str(e)) from e

    display_scan_summary(summary)


@cli.command()
def status() -> None:
    """Show current standings without contacting Gmail."""
    settings = get_settings()
    try:
        with StateStore(settings.state_db_path) as store:
            info = store.get_info()
            standings = summarize(store.load())
    except TallyError as e:
        raise click.ClickException(str(e)) from e

    display_standings(standings, info)


@cli.command()
@click.option("--yes", is_flag=True, help="Do not ask for confirmation.")
def reset(yes: bool) -> None:
    """Discard all scan progress and start over."""
    if not yes:
        click.confirm("This deletes the whole sender tally. Continue?", abort=True)

    settings = get_settings()
    try:
        with StateStore(settings.state_db_path) as store:
            store.reset()
    except TallyError as e:
        raise click.ClickException(str(e)) from e
    console.print("[green]Scan state reset.[/green]")


@cli.command(name="export")
@click.option(
    "--format",
    "fmt",
    type=click.Choice(["csv", "json"]),
    default="csv",
    help="Output format.",
)
@click.option("-o", "--output", required=True, help="Output file path.")
def export_cmd(fmt: str, output: str) -> None:
    """Export the full sender tally to CSV or JSON."""
    settings = get_settings()
    try:
        with StateStore(settings.state_db_path) as store:
            state = store.load()
    except TallyError as e:
        raise click.ClickException(str(e)) from e

    if not state.started:
        raise click.ClickException("No scan has run yet. Run 'scan' first.")

    count = export_tally(state, format=fmt, output_path=output)
    console.print(f"Saved {count} senders to {output}")


@cli.command()
@click.option("--login", is_flag=True, help="Run the browser consent flow even if a token exists.")
def auth(login: bool) -> None:
    """Test Gmail authentication, logging in if needed."""
    settings = get_settings()
    try:
        if login or get_credentials(TokenStore(settings.token_path)) is None:
            run_local_flow(settings)
        email = check_auth(settings)
    except TallyError as e:
        raise click.ClickException(f"Authentication failed: {e}") from e

    console.print(f"Authenticated as [bold]{email}[/bold]")
