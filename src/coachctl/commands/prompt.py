"""Command: show the assembled prompt without calling the model."""

from __future__ import annotations

from typing import TYPE_CHECKING

import click

from coachctl.commands._base import CoachCommand, build_context, context_options

if TYPE_CHECKING:
    from coachctl.commands._context import AppContext


@click.command(
    cls=CoachCommand,
    examples="""\
  coachctl prompt "How do I hold frame with my boss?"
  coachctl prompt "Track my sleep" --want WANT-0001
  coachctl --json prompt "apex frame" --contact c1""",
)
@click.argument("message")
@context_options
@click.pass_obj
def prompt(
    app: AppContext,
    message: str,
    contact_id: str | None,
    want_id: str | None,
    view_id: str | None,
) -> None:
    """Print the system prompt and user message MESSAGE would produce."""
    context = build_context(contact_id=contact_id, want_id=want_id, view_id=view_id)
    app.emit(app.orchestrator().preview(message, context=context))
