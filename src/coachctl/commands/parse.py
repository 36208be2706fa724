"""Command: parse raw model output and show the gate outcome."""

from __future__ import annotations

from typing import TYPE_CHECKING, TextIO

import click

from coachctl.commands._base import CoachCommand

if TYPE_CHECKING:
    from coachctl.commands._context import AppContext


@click.command(
    cls=CoachCommand,
    examples="""\
  coachctl parse reply.json
  coachctl parse reply.txt --message "I should go to the gym"
  echo '{"reply": "ok"}' | coachctl parse""",
)
@click.argument("source", type=click.File("r", encoding="utf-8"), default="-")
@click.option(
    "--message",
    default="",
    help="User utterance the reply answered (used by want re-verification).",
)
@click.pass_obj
def parse(app: AppContext, source: TextIO, message: str) -> None:
    """Parse raw model output from SOURCE (default: stdin). Nothing is dispatched."""
    app.emit(app.orchestrator().inspect(source.read(), message=message))
