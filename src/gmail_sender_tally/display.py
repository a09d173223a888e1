"""Rich-based display functions for Gmail Sender Tally."""

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .models import ScanSummary, SenderCount, Standings

console = Console()


def _senders_table(title: str, senders: list[SenderCount]) -> Table:
    table = Table(title=title)
    table.add_column("#", justify="right", style="dim")
    table.add_column("Sender")
    table.add_column("Count", justify="right")

    for idx, entry in enumerate(senders, start=1):
        table.add_row(str(idx), entry.sender, str(entry.count))
    return table


def display_scan_summary(summary: ScanSummary) -> None:
    """Display the outcome of one scan invocation."""
    console.print(_senders_table("Top Senders", summary.top_senders))

    color = "green" if summary.done else "yellow"
    console.print(
        Panel(
            f"Fetched this run: {summary.processed_this_call}  |  "
            f"Total processed: {summary.total_processed}  |  "
            f"Status: [{color}]{summary.status}[/{color}]",
            title="Summary",
        )
    )
    if not summary.done:
        console.print("[dim]Run 'scan' again to continue where this run stopped.[/dim]")


def display_standings(standings: Standings, info: dict) -> None:
    """Display current standings and store statistics."""
    if info["updated_at"] is None:
        console.print("[dim]No scan has run yet.[/dim]")
        return

    console.print(_senders_table("Current Standings", standings.top_senders))
    state = "[green]complete[/green]" if standings.done else "[yellow]in progress[/yellow]"
    lines = [
        f"[bold]Total processed:[/bold] {standings.total_processed}",
        f"[bold]Pass:[/bold] {state}",
        f"[bold]Last saved:[/bold] {info['updated_at']} (revision {info['version']})",
        f"[bold]Database size:[/bold] {info['db_file_size'] / 1024:.1f} KB",
    ]
    console.print(Panel("\n".join(lines), title="Scan State"))
