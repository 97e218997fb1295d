"""Rich renderables for pipeline results.

Torrent names, URLs and error messages come from the backend and may contain
square brackets, so they are always rendered as `Text` and never parsed as markup.
"""
from typing import Optional, Sequence

from rich.console import Console
from rich.table import Table
from rich.text import Text

from .relocation_manager import ReplaceOutcome, ScanResult, TrackerDomain


def display_scan_result(result: ScanResult, console: Optional[Console] = None) -> None:
    """Prints the scan summary followed by one row per planned replacement."""
    console = console or Console()
    console.print(
        f"Scanned [bold]{result.total_torrents}[/bold] torrent(s): "
        f"[bold cyan]{result.matched_torrents}[/bold cyan] matched, "
        f"[bold]{len(result.matches)}[/bold] tracker(s) to replace."
    )
    if not result.matches:
        return
    table = Table(title="Planned Replacements", show_header=True, header_style="bold magenta")
    table.add_column("Torrent", overflow="fold", max_width=40)
    table.add_column("Old URL", style="yellow", overflow="fold")
    table.add_column("New URL", style="green", overflow="fold")
    for match in result.matches:
        table.add_row(Text(match.name), Text(match.old_url), Text(match.new_url))
    console.print(table)


def display_replace_outcomes(outcomes: Sequence[ReplaceOutcome], console: Optional[Console] = None) -> None:
    console = console or Console()
    if not outcomes:
        console.print("No trackers matched the enabled rules. Nothing was changed.")
        return
    table = Table(title="Replacement Results", show_header=True, header_style="bold magenta")
    table.add_column("Torrent", overflow="fold", max_width=40)
    table.add_column("Old URL", overflow="fold")
    table.add_column("New URL", overflow="fold")
    table.add_column("Result")
    for outcome in outcomes:
        if outcome.success:
            status = Text("OK", style="green")
        else:
            status = Text.assemble(("FAILED", "red"), " ", outcome.error or '')
        table.add_row(Text(outcome.torrent_name), Text(outcome.old_url), Text(outcome.new_url), status)
    console.print(table)
    failed = sum(1 for outcome in outcomes if not outcome.success)
    style = "red" if failed else "green"
    console.print(f"[{style}]{len(outcomes) - failed} succeeded, {failed} failed.[/{style}]")


def display_tracker_domains(domains: Sequence[TrackerDomain], console: Optional[Console] = None) -> None:
    console = console or Console()
    if not domains:
        console.print("No http/udp trackers found.")
        return
    table = Table(title="Tracker Domains", show_header=True, header_style="bold magenta")
    table.add_column("Domain", style="cyan")
    table.add_column("Torrents", justify="right")
    for entry in domains:
        table.add_row(Text(entry.domain), str(entry.count))
    console.print(table)
