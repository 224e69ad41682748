"""
Entry point for ``medicbot``: runs the Typer app and turns MedicBot errors
into a rendered panel and a process exit code.
"""

import asyncio
import logging
import sys

import typer
from rich.console import Console

from medicbot_cli.cli.app import app
from medicbot_cli.cli.formatters import format_error_with_suggestions
from medicbot_cli.exceptions import (
    AuthorizationCancelled,
    ConfigurationError,
    MedicBotError,
)

log = logging.getLogger("medicbot_cli")

EXIT_FAILURE = 1
EXIT_CONFIGURATION = 2
EXIT_NOT_SIGNED_IN = 3


def exit_code_for(error: MedicBotError) -> int:
    if isinstance(error, ConfigurationError):
        return EXIT_CONFIGURATION
    if isinstance(error, AuthorizationCancelled):
        return EXIT_NOT_SIGNED_IN
    return EXIT_FAILURE


def error_context(error: Exception) -> dict | None:
    """HTTP status of the failed call; 0 means the server never answered."""
    status_code = getattr(error, "status_code", None)
    if status_code is None:
        return None
    if status_code == 0:
        return {"status": "no response"}
    return {"status": status_code}


def main() -> None:
    console = Console(stderr=True)

    try:
        app()
    except (typer.Exit, typer.Abort):
        pass
    except (KeyboardInterrupt, asyncio.CancelledError):
        console.print("\n[yellow]Interrupted.[/yellow]")
        sys.exit(130)
    except MedicBotError as e:
        console.print(format_error_with_suggestions(e, error_context(e)))
        sys.exit(exit_code_for(e))
    except Exception as e:
        console.print(format_error_with_suggestions(e, {"type": "Unexpected"}))
        log.debug("Full traceback:", exc_info=True)
        sys.exit(EXIT_FAILURE)


if __name__ == "__main__":
    main()
