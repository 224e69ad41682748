"""
Defines the command-line interface for the application using Typer.
"""

import asyncio
import logging
import os
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler

from medicbot_cli import __version__
from medicbot_cli.api.client import MedicBotAPIClient
from medicbot_cli.models.config import MedicBotSettings
from medicbot_cli.storage.audio_cache import AudioCache
from medicbot_cli.storage.config_manager import ConfigManager
from medicbot_cli.storage.token_store import TokenStore

from .formatters import print_catalog_table, print_config

console = Console()

logging.basicConfig(
    level="INFO",
    format="%(message)s",
    datefmt="[%X]",
    handlers=[
        RichHandler(
            console=console,
            rich_tracebacks=True,
            show_path=False,
            show_level=False,
            markup=True,
        )
    ],
)
log = logging.getLogger("medicbot_cli")

app = typer.Typer(
    name="medicbot",
    help="Search, download and share audio from MedicBot.",
    rich_markup_mode="rich",
    pretty_exceptions_show_locals=False,
    add_completion=False,
)


def get_config_dir() -> Path:
    if os.name == "nt":
        base_dir = Path(os.getenv("APPDATA", "~\\AppData\\Roaming"))
    else:
        base_dir = Path(os.getenv("XDG_CONFIG_HOME", "~/.config"))
    return base_dir.expanduser() / "medicbot-cli"


CONFIG_DIR = get_config_dir()
CONFIG_FILE = CONFIG_DIR / "config.ini"
TOKEN_FILE = CONFIG_DIR / "tokens.json"
AUDIO_CACHE_DIR = CONFIG_DIR / "audio-cache"


def _load_settings() -> MedicBotSettings:
    return ConfigManager(CONFIG_FILE).load_config()


def _build_client(settings: MedicBotSettings) -> MedicBotAPIClient:
    return MedicBotAPIClient(
        settings,
        TokenStore(TOKEN_FILE),
        AudioCache(AUDIO_CACHE_DIR),
    )


@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    verbose: int = typer.Option(
        0,
        "--verbose",
        "-v",
        count=True,
        help="Increase logging verbosity (-vv for debug).",
    ),
    version: bool = typer.Option(
        False, "--version", help="Show version and exit.", is_eager=True
    ),
):
    """MedicBot audio CLI"""
    if version:
        console.print(f"[bold]medicbot-cli[/bold] version [cyan]{__version__}[/cyan]")
        raise typer.Exit()

    log_level = "INFO"
    if verbose >= 2:
        log_level = "DEBUG"
    logging.getLogger("medicbot_cli").setLevel(log_level)

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())


@app.command()
def login():
    """Sign in with Discord, replacing the stored tokens once it succeeds."""
    settings = _load_settings()

    async def _login_async():
        async with _build_client(settings) as client:
            await client.authorizer.authorize()

    asyncio.run(_login_async())


@app.command()
def logout():
    """Forget the stored MedicBot tokens."""
    TokenStore(TOKEN_FILE).clear()
    console.print("[green]✓ Signed out.[/green]")


@app.command(name="list")
def list_command(
    query: str | None = typer.Argument(
        None, help="Filter by name, ID, alias or tag (case-insensitive)."
    ),
    favorites: bool = typer.Option(
        False, "--favorites", "-f", help="Only show favorite tracks."
    ),
):
    """List the audio catalog."""
    settings = _load_settings()

    async def _list_async():
        async with _build_client(settings) as client:
            return await client.fetch_catalog()

    tracks = asyncio.run(_list_async())
    if query:
        tracks = [track for track in tracks if track.matches(query)]
    if favorites:
        tracks = [track for track in tracks if track.is_favorite]
    print_catalog_table(tracks, query)


@app.command()
def fetch(audio_id: str = typer.Argument(..., help="The audio ID to download.")):
    """Download an audio file (or reuse the cached copy) and print its path."""
    settings = _load_settings()

    async def _fetch_async():
        async with _build_client(settings) as client:
            return await client.fetch_audio_file(audio_id)

    path = asyncio.run(_fetch_async())
    console.print(path, soft_wrap=True, highlight=False)


@app.command()
def link(
    audio_id: str = typer.Argument(..., help="The audio ID to link to."),
    token: str | None = typer.Option(
        None, "--token", "-t", help="Token to embed in the link."
    ),
):
    """Print the shareable link for an audio ID."""
    client = _build_client(_load_settings())
    console.print(client.build_shareable_link(audio_id, token), soft_wrap=True)


@app.command()
def config(
    show: bool = typer.Option(False, "--show", help="Display the current settings."),
    set_values: list[str] | None = typer.Option(  # noqa: B008
        None, "--set", help="Set a value, e.g. --set discord_client_id=1234."
    ),
):
    """Show or change settings."""
    config_manager = ConfigManager(CONFIG_FILE)
    for assignment in set_values or []:
        key, sep, value = assignment.partition("=")
        if not sep:
            console.print(f"[red]✗ Expected KEY=VALUE, got '{assignment}'.[/red]")
            raise typer.Exit(code=1)
        config_manager.update_value(key.strip(), value.strip())
        console.print(f"[green]✓ Set {key.strip()}.[/green]")

    if show or not set_values:
        settings = config_manager.load_config()
        print_config(
            CONFIG_FILE,
            settings.model_dump(include=MedicBotSettings.get_ini_keys()),
        )


@app.command(name="clear-cache")
def clear_cache():
    """Delete all downloaded audio files."""
    removed = AudioCache(AUDIO_CACHE_DIR).clear()
    console.print(
        f"[green]✓ Audio cache cleared ({removed} files removed).[/green]"
    )
