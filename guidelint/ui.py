"""Central console for guidelint.

Single source of truth for Rich console styling. Import this instead of
instantiating Console() in every command file.

Usage:
    from guidelint.ui import console, print_warning

    console.print("[success]No findings[/success]")
    print_warning("Configuration file not found")
"""

import sys

from rich.console import Console
from rich.theme import Theme

GUIDELINT_THEME = Theme(
    {
        "info": "bold cyan",
        "warning": "bold yellow",
        "error": "bold red",
        "success": "bold green",
        "critical": "bold red",
        "high": "bold yellow",
        "medium": "bold blue",
        "low": "cyan",
        "path": "bold cyan",
        "rule": "bold magenta",
        "dim": "dim white",
    }
)

console = Console(theme=GUIDELINT_THEME, force_terminal=sys.stdout.isatty())


def print_header(title: str) -> None:
    """Print a styled section header with horizontal rules."""
    console.rule(f"[bold]{title}[/bold]")



def print_warning(msg: str) -> None:
    console.print(f"[warning]WARNING:[/warning] {msg}", highlight=False)


def print_success(msg: str) -> None:
    console.print(f"[success]OK:[/success] {msg}", highlight=False)
