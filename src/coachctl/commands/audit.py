"""Command: list applied events from the audit trail."""

from __future__ import annotations

from typing import TYPE_CHECKING

import click

from coachctl.commands._base import CoachCommand

if TYPE_CHECKING:
    from coachctl.commands._context import AppContext


@click.command(
    cls=CoachCommand,
    examples="""\
  coachctl audit
  coachctl audit --limit 50
  coachctl audit --session 3f9a1c2b7d4e
  coachctl --json audit""",
)
@click.option("--session", "session_id", default=None, help="Only entries from this session.")
@click.option("--limit", type=int, default=20, show_default=True, help="Maximum entries.")
@click.pass_obj
def audit(app: AppContext, session_id: str | None, limit: int) -> None:
    """List audit entries, newest first."""
    from coachctl.services.audit import AuditService

    app.emit(AuditService(app.workspace).list(session_id=session_id, limit=limit))
