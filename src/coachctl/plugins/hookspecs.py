"""Pluggy hook specifications for coachctl turn events.

Hooks fire synchronously after the turn's own work is committed; a hook
can observe a turn but never change its outcome.
"""

from __future__ import annotations

import pluggy

hookspec = pluggy.HookspecMarker("coachctl")


class CoachctlHookSpec:
    """Hook specifications for the coachctl plugin system."""

    @hookspec
    def post_turn(
        self,
        session_id: str,
        status: str,
        event_type: str | None,
    ) -> None:
        """Called after every completed turn with its gate status."""

    @hookspec
    def post_dispatch(
        self,
        event_type: str,
        aggregate: str,
        target_id: str | None,
        audit_id: int | None,
    ) -> None:
        """Called after an event is applied to its store."""

    @hookspec
    def post_guardrail(
        self,
        session_id: str,
        kind: str,
        message: str,
    ) -> None:
        """Called when a blocking guardrail stops a turn."""
