"""Command: interactive coaching session."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import click

from coachctl.commands._base import CoachCommand, build_context, context_options

if TYPE_CHECKING:
    from coachctl.commands._context import AppContext

EXIT_WORDS = frozenset({"/quit", "/exit"})


@click.command(
    cls=CoachCommand,
    examples="""\
  coachctl chat
  coachctl chat --contact c1
  coachctl chat --want WANT-0001 --view wants""",
)
@context_options
@click.pass_obj
def chat(
    app: AppContext,
    contact_id: str | None,
    want_id: str | None,
    view_id: str | None,
) -> None:
    """Start an interactive session. Type /quit to leave.

    A blocking guardrail pauses the session until the acknowledgment
    phrase is typed.
    """
    from coachctl.services.conversation import Conversation

    conversation = Conversation(
        app.orchestrator(),
        ack_phrase=app.settings.policy.ack_phrase,
        context=build_context(contact_id=contact_id, want_id=want_id, view_id=view_id),
    )

    while True:
        try:
            text = click.prompt("you", prompt_suffix="> ")
        except click.Abort:
            break
        if text.strip().lower() in EXIT_WORDS:
            break

        if conversation.gate_pending:
            if conversation.acknowledge(text):
                click.echo("Acknowledged.")
            else:
                click.echo(conversation.gate_message())
            continue

        result = asyncio.run(conversation.send(text))
        if result.ok:
            click.echo(app.render(result))
            for warning in result.warnings:
                click.echo(f"WARNING: {warning}", err=True)
        else:
            click.echo(app.render(result), err=True)
        if conversation.gate_pending:
            click.echo(conversation.gate_message())
