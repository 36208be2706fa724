"""Command: run a single coaching turn."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import click

from coachctl.commands._base import CoachCommand, build_context, context_options

if TYPE_CHECKING:
    from coachctl.commands._context import AppContext


@click.command(
    cls=CoachCommand,
    examples="""\
  coachctl ask "I want to run a marathon by June"
  coachctl ask "Remind me to call Bob tomorrow" --contact c1
  coachctl --json ask "What should I focus on today?"
  coachctl ask "Log 7 hours of sleep" --want WANT-0001""",
)
@click.argument("message")
@context_options
@click.pass_obj
def ask(
    app: AppContext,
    message: str,
    contact_id: str | None,
    want_id: str | None,
    view_id: str | None,
) -> None:
    """Send MESSAGE to the coach and apply any resulting event."""
    orchestrator = app.orchestrator()
    context = build_context(contact_id=contact_id, want_id=want_id, view_id=view_id)
    app.emit(asyncio.run(orchestrator.run_turn(message, context=context)))
