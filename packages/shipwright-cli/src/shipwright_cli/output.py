"""Rich console output for shipwright-cli.

Status lines go to stderr so stdout carries only command output
(JSON reports, rendered Containerfiles). NO_COLOR and --no-color
disable styling on both streams.
"""

from __future__ import annotations

import json
import os
from typing import Any

from rich.console import Console
from rich.markup import escape

_force_no_color = os.environ.get("NO_COLOR") is not None


def create_console(no_color: bool = False, *, stderr: bool = False) -> Console:
    """Create a Rich Console honoring --no-color and NO_COLOR.

    Args:
        no_color: Disable colored output.
        stderr: Write to stderr instead of stdout.

    Returns:
        Configured Console instance.
    """
    disabled = no_color or _force_no_color
    return Console(
        force_terminal=False if disabled else None,
        no_color=disabled,
        stderr=stderr,
        highlight=False,
    )


# Command output (reports, tables, JSON)
console = create_console()

# Status messages
err_console = create_console(stderr=True)


def _status(prefix: str, message: str, markup: bool, **kwargs: Any) -> None:
    # markup=False only escapes the message; the prefix keeps its style
    text = message if markup else escape(message)
    err_console.print(f"{prefix} {text}", **kwargs)


def success(message: str, *, markup: bool = True, **kwargs: Any) -> None:
    """Print a success line.

    Example:
        >>> success("Release configuration valid")
        ✓ Release configuration valid
    """
    _status("[green]✓[/green]", message, markup, **kwargs)


def error(message: str, *, markup: bool = True, **kwargs: Any) -> None:
    """Print an error line."""
    _status("[red]✗[/red]", message, markup, **kwargs)


def warning(message: str, *, markup: bool = True, **kwargs: Any) -> None:
    """Print a warning line."""
    _status("[yellow]⚠[/yellow]", message, markup, **kwargs)


def info(message: str, **kwargs: Any) -> None:
    err_console.print(message, **kwargs)


def print_json(data: dict[str, Any]) -> None:
    """Write JSON to stdout without Rich markup or highlighting."""
    console.file.write(json.dumps(data, indent=2, default=str) + "\n")


def set_no_color(no_color: bool) -> None:
    """Rebuild the module consoles with colors disabled or enabled."""
    global console, err_console
    console = create_console(no_color=no_color)
    err_console = create_console(no_color=no_color, stderr=True)
