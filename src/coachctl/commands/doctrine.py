"""Command: summary of the loaded doctrine spec."""

from __future__ import annotations

from typing import TYPE_CHECKING

import click

from coachctl.commands._base import CoachCommand

if TYPE_CHECKING:
    from coachctl.commands._context import AppContext


@click.command(
    cls=CoachCommand,
    examples="""\
  coachctl doctrine
  coachctl -v doctrine
  coachctl --json doctrine""",
)
@click.pass_obj
def doctrine(app: AppContext) -> None:
    """Show the doctrine spec, guardrails, event catalog and corpus size."""
    from coachctl.services.doctrine import DoctrineService

    app.emit(DoctrineService(app.workspace).summary())
