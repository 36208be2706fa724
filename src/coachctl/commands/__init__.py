"""Subcommand modules for coachctl.

Provides register_commands() which uses deferred imports to keep
``coachctl --help`` fast.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import click


def register_commands(cli: click.Group) -> None:
    """Register all standalone commands on the root CLI group."""
    from coachctl.commands.ask import ask
    from coachctl.commands.audit import audit
    from coachctl.commands.chat import chat
    from coachctl.commands.doctrine import doctrine
    from coachctl.commands.parse import parse
    from coachctl.commands.prompt import prompt

    cli.add_command(ask)
    cli.add_command(chat)
    cli.add_command(prompt)
    cli.add_command(parse)
    cli.add_command(audit)
    cli.add_command(doctrine)
