"""Custom Click base classes with --examples support.

Provides CoachCommand and CoachGroup that accept an ``examples`` parameter.
When ``--examples`` is passed, the command prints usage examples and exits.
This keeps ``--help`` concise while making examples available on demand.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, TypeVar

import click

from coachctl.domain.messages import ConversationContext

F = TypeVar("F", bound=Callable[..., Any])


def _add_examples_option(cmd: click.Command | click.Group, examples: str) -> None:
    """Attach an eager ``--examples`` flag to a Click command or group."""

    def show_examples(ctx: click.Context, _param: click.Parameter, value: bool) -> None:
        if not value:
            return
        click.echo(f"Examples for '{ctx.command_path}':\n")
        click.echo(examples)
        ctx.exit(0)

    cmd.params.append(
        click.Option(
            ["--examples"],
            is_flag=True,
            expose_value=False,
            is_eager=True,
            callback=show_examples,
            help="Show usage examples.",
        )
    )


class CoachCommand(click.Command):
    """Click Command subclass that supports an ``--examples`` flag."""

    def __init__(self, *args: Any, examples: str | None = None, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.examples = examples
        if examples:
            _add_examples_option(self, examples)


class CoachGroup(click.Group):
    """Click Group subclass that supports an ``--examples`` flag.

    Sets ``command_class = CoachCommand`` so all subcommands automatically
    accept the ``examples`` parameter without explicit ``cls=`` each time.
    """

    command_class = CoachCommand

    def __init__(self, *args: Any, examples: str | None = None, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.examples = examples
        if examples:
            _add_examples_option(self, examples)


def context_options(func: F) -> F:
    """Add ``--contact``, ``--want`` and ``--view`` situational-context options."""
    func = click.option("--view", "view_id", default=None, help="Current view id.")(func)
    func = click.option("--want", "want_id", default=None, help="Active want id.")(func)
    func = click.option("--contact", "contact_id", default=None, help="Selected contact id.")(
        func
    )
    return func


def build_context(
    *, contact_id: str | None, want_id: str | None, view_id: str | None
) -> ConversationContext | None:
    """Context from the CLI options, or None when none were given."""
    context = ConversationContext(
        view_id=view_id, selected_contact_id=contact_id, active_want_id=want_id
    )
    return None if context.is_empty() else context
