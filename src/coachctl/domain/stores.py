"""Store collaborators the dispatcher mutates.

Protocols only: the dispatcher depends on these shapes, and the SQLite
repositories in ``infrastructure.repositories`` implement them. Tests
substitute in-memory fakes.

Every store method that addresses an existing record raises
:class:`TargetNotFoundError` when the record does not exist.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from contextlib import AbstractContextManager, nullcontext
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, Protocol

from coachctl.domain.assessments import DirectnessCheck

CONTACT_ZERO = "0"


class IterationSource(StrEnum):
    USER = "user"
    COACH = "coach"


class TargetNotFoundError(LookupError):
    """The record an event addresses does not exist."""

    def __init__(self, kind: str, target_id: str) -> None:
        super().__init__(f"{kind} not found: {target_id}")
        self.kind = kind
        self.target_id = target_id


def normalize_metric_name(name: str) -> str:
    """``"Jiu Jitsu  Rounds"`` -> ``"jiu_jitsu_rounds"``."""
    return "_".join(name.lower().split())


class TaskStore(Protocol):
    def create(self, *, title: str, contact_id: str, due_at: str | None = None) -> str: ...

    def update(
        self,
        task_id: str,
        *,
        title: str | None = None,
        status: str | None = None,
        due_at: str | None = None,
        contact_id: str | None = None,
    ) -> None: ...


class NoteStore(Protocol):
    def create(self, *, content: str, target_contact_id: str, author_contact_id: str) -> str: ...


class InteractionStore(Protocol):
    def create(
        self, *, contact_id: str, author_contact_id: str, kind: str, summary: str
    ) -> str: ...


class WantStore(Protocol):
    def create(
        self,
        *,
        title: str,
        reason: str,
        deadline: str | None = None,
        status: str = "not_started",
        primary_contact_id: str | None = None,
        metric_types: list[str] | None = None,
    ) -> str: ...

    def update(
        self,
        want_id: str,
        *,
        title: str | None = None,
        reason: str | None = None,
        deadline: str | None = None,
        status: str | None = None,
    ) -> None: ...

    def add_step(self, want_id: str, *, title: str, deadline: str | None = None) -> str: ...

    def add_metric_type(self, want_id: str, metric_name: str) -> bool:
        """Register a metric type; False when it was already registered."""
        ...

    def log_metric_value(self, want_id: str, date: str, metric_name: str, value: Any) -> None:
        """Set one metric value for a date, registering the type if new."""
        ...

    def log_metrics(self, want_id: str, date: str, values: Mapping[str, Any]) -> int:
        """Set several metric values for one date; returns how many were written."""
        ...

    def log_iteration(self, want_id: str, feedback: str, source: IterationSource) -> None: ...

    def attach_primary_contact(
        self, want_id: str, contact_id: str, directness: DirectnessCheck | None = None
    ) -> None: ...

    def detach_primary_contact(self, want_id: str) -> None:
        """Clear the primary contact and reset directness to direct."""
        ...

    def create_rejected_should(self, *, title: str, reason: str, rejection_reason: str) -> str: ...


class ScopeStore(Protocol):
    def create_for_want(self, want_id: str) -> None: ...

    def log_iteration_entry(
        self,
        want_id: str,
        *,
        action: str,
        feedback: str,
        consequence: str = "",
        source: IterationSource = IterationSource.COACH,
        related_step_id: str | None = None,
        related_metric_name: str | None = None,
    ) -> str: ...

    def add_doctrine_note(self, want_id: str, note: str) -> None: ...


class AuditTrail(Protocol):
    """Append-only record of applied events for one session."""

    @property
    def session_id(self) -> str: ...

    def record(
        self,
        *,
        event_type: str,
        aggregate: str,
        target_id: str | None,
        payload: Mapping[str, Any],
    ) -> int: ...


@dataclass
class StoreBundle:
    """The stores one dispatcher writes to, plus their unit of work.

    ``atomic`` wraps every applied event so that multi-call events (a want
    plus its scope, a multi-metric log) commit or roll back together.
    """

    tasks: TaskStore
    notes: NoteStore
    interactions: InteractionStore
    wants: WantStore
    scopes: ScopeStore
    atomic: Callable[[], AbstractContextManager[Any]] = field(default=nullcontext)
