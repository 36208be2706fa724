"""Rich Console factory and theme for coachctl output.

Creates Console instances that render to a StringIO buffer, preserving
the ``format_result() -> str`` contract. In non-TTY environments (tests,
pipes) Rich automatically disables color codes.
"""

from __future__ import annotations

from io import StringIO

from rich.console import Console
from rich.theme import Theme

COACH_THEME = Theme(
    {
        "coach.ok": "bold green",
        "coach.error": "bold red",
        "coach.warning": "bold yellow",
        "coach.op": "bold cyan",
        "coach.key": "dim",
        "coach.id": "bold blue",
        "coach.reply": "bold",
        "coach.gate.dispatch": "green",
        "coach.gate.no_event": "dim",
        "coach.gate.redirected": "yellow",
        "coach.gate.suppressed": "yellow",
        "coach.gate.blocked": "bold red",
    }
)


def create_console(*, no_color: bool = False, width: int | None = None) -> Console:
    """Create a Console that renders to a StringIO buffer.

    Args:
        no_color: Disable ANSI escape codes (used in tests).
        width: Override terminal width (useful for consistent test output).
    """
    return Console(
        file=StringIO(),
        theme=COACH_THEME,
        no_color=no_color,
        highlight=False,
        width=width or 120,
    )


def get_output(console: Console) -> str:
    """Extract rendered text from a StringIO-backed Console."""
    assert isinstance(console.file, StringIO)
    return console.file.getvalue()


def style_for_gate(status: str) -> str:
    """Return the Rich style name for a gate status."""
    return f"coach.gate.{status}" if status else ""
