"""Shared Rich consoles and small output helpers for the bpm CLI.

Normal output goes to ``console``; warnings and errors go to ``err_console``
so that ``--json`` output on stdout stays parseable.
"""

import sys

from rich.console import Console
from rich.table import Table

from bpm.core.theme import get_theme


def _color_system(stream) -> str:
    # Theme colors are hex values, which only render faithfully in truecolor.
    return "truecolor" if stream.isatty() else "auto"


console = Console(theme=get_theme(), color_system=_color_system(sys.stdout))
err_console = Console(theme=get_theme(), stderr=True, color_system=_color_system(sys.stderr))


def create_table(title: str, *, striped: bool = True) -> Table:
    """Create a table with the shared header and border styling."""
    return Table(
        title=title,
        show_header=True,
        header_style="bold_header",
        border_style="border",
        row_styles=["", "on grey7"] if striped else None,
    )


def format_size(size: int) -> str:
    """Format a byte count for display.

    Example:
        >>> format_size(1536)
        '1.5 KB'
    """
    value = float(size)
    for unit in ("B", "KB", "MB", "GB"):
        if value < 1024 or unit == "GB":
            return f"{int(value)} {unit}" if unit == "B" else f"{value:.1f} {unit}"
        value /= 1024
    return f"{value:.1f} GB"


def format_duration(seconds: int) -> str:
    """Format a duration in seconds using the largest whole unit.

    Example:
        >>> format_duration(172800)
        '2d'
    """
    for suffix, length in (("w", 604800), ("d", 86400), ("h", 3600), ("m", 60)):
        if seconds >= length and seconds % length == 0:
            return f"{seconds // length}{suffix}"
    return f"{seconds}s"


def print_info(message: str) -> None:
    """Print an info message."""
    console.print(f"[info]{message}[/]")


def print_warning(message: str) -> None:
    """Print a warning message."""
    err_console.print(f"[warning]Warning:[/] {message}")


def print_error(message: str) -> None:
    """Print an error message."""
    err_console.print(f"[error]Error:[/] {message}")


def print_success(message: str) -> None:
    """Print a success message."""
    console.print(f"[success]{message}[/]")
