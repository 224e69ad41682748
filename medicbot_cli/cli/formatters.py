"""
Functions for formatting and displaying data in the console using Rich.
"""

from pathlib import Path
from typing import Any

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from medicbot_cli.models.audio import AudioTrack


def format_error_with_suggestions(
    error: Exception, context: dict | None = None
) -> Panel:
    """Formats an error with actionable suggestions into a Rich Panel."""
    error_type = type(error).__name__
    error_msg = str(error)

    suggestions_map = {
        "ConfigurationError": [
            "• Check your settings with `medicbot config --show`.",
            "• Set the client ID: `medicbot config --set discord_client_id=<ID>`.",
        ],
        "AuthorizationCancelled": [
            "• Run `medicbot login` and approve the Discord consent screen.",
            "• Make sure nothing else is using the redirect port.",
        ],
        "TokenExchangeError": [
            "• The Discord client ID may not match the MedicBot backend.",
            "• Verify `api_base_url` points at the right MedicBot server.",
            "• Run `medicbot login` to try again.",
        ],
        "CatalogFetchError": [
            "• The MedicBot API might be temporarily unavailable.",
            "• Run `medicbot logout` and sign in again if this persists.",
        ],
        "AssetFetchError": [
            "• The audio ID may not exist. Use `medicbot list` to find it.",
            "• The MedicBot API might be temporarily unavailable.",
        ],
        "TimeoutError": [
            "• A request timed out. Check your internet connection.",
            "• Increase `request_timeout` in the configuration.",
        ],
    }

    suggestions = suggestions_map.get(
        error_type, ["• Run the command with -vv for detailed logs."]
    )

    error_text = Text()
    error_text.append(f"{error_type}: ", style="bold red")
    error_text.append(error_msg)

    suggestion_text = Text("\n".join(suggestions))

    content = Table.grid(padding=(1, 0))
    content.add_row(error_text)
    content.add_row()
    content.add_row(Text("Suggestions", style="bold yellow"))
    content.add_row(suggestion_text)

    if context:
        content.add_row()
        content.add_row(Text(f"Context: {context}", style="dim"))

    return Panel(
        content,
        title="[bold red]An Error Occurred[/bold red]",
        border_style="red",
        expand=False,
    )


def print_config(config_path: Path, config_data: dict[str, Any]):
    """Displays the current settings."""
    console = Console()
    content = ""
    for key, value in sorted(config_data.items()):
        if key == "discord_client_id" and not value:
            value = "[red]<not set>[/red]"
        content += f"{key} = {value}\n"

    console.print(
        Panel(
            content.strip(),
            title=f"Configuration ([dim]{config_path}[/dim])",
            border_style="cyan",
        )
    )


def build_accessories(track: AudioTrack) -> str:
    """Favorite marker followed by the first two tags."""
    parts = []
    if track.is_favorite:
        parts.append("[yellow]★[/yellow]")
    if track.tags:
        parts.append(", ".join(track.tags[:2]))
    return " ".join(parts)


def print_catalog_table(tracks: list[AudioTrack], query: str | None = None):
    """Displays catalog entries as a table."""
    console = Console()
    if not tracks:
        if query:
            console.print(f"[yellow]No audio found for '{query}'.[/yellow]")
        else:
            console.print("[yellow]No audio found.[/yellow]")
        return

    table = Table(box=box.SIMPLE_HEAD)
    table.add_column("Name", style="bold")
    table.add_column("ID", style="cyan")
    table.add_column("Aliases", style="dim")
    table.add_column("", no_wrap=True)
    for track in tracks:
        table.add_row(
            track.name,
            track.id,
            ", ".join(track.aliases),
            build_accessories(track),
        )
    console.print(table)
    console.print(f"[dim]{len(tracks)} track(s)[/dim]")
