"""Tasks, contact notes, and interactions."""

from __future__ import annotations

from typing import Any

from sqlalchemy import insert, select, update

from coachctl.domain.stores import TargetNotFoundError
from coachctl.infrastructure.database.counters import next_sequential_id
from coachctl.infrastructure.database.schema import contact_notes, interactions, tasks
from coachctl.infrastructure.database.unit_of_work import UnitOfWork
from coachctl.infrastructure.repositories._base import utc_now


class SqlTaskStore:
    """Task records keyed ``TASK-NNNN``."""

    def __init__(self, uow: UnitOfWork) -> None:
        self._uow = uow

    def create(self, *, title: str, contact_id: str, due_at: str | None = None) -> str:
        now = utc_now()
        with self._uow.begin() as conn:
            task_id = next_sequential_id(conn, "TASK-")
            conn.execute(
                insert(tasks).values(
                    id=task_id,
                    title=title,
                    contact_id=contact_id,
                    status="open",
                    due_at=due_at,
                    created=now,
                    modified=now,
                )
            )
        return task_id

    def update(
        self,
        task_id: str,
        *,
        title: str | None = None,
        status: str | None = None,
        due_at: str | None = None,
        contact_id: str | None = None,
    ) -> None:
        """Apply the given fields; ``None`` leaves a field unchanged."""
        changes: dict[str, Any] = {
            key: value
            for key, value in (
                ("title", title),
                ("status", status),
                ("due_at", due_at),
                ("contact_id", contact_id),
            )
            if value is not None
        }
        with self._uow.begin() as conn:
            result = conn.execute(
                update(tasks).where(tasks.c.id == task_id).values(modified=utc_now(), **changes)
            )
            if result.rowcount == 0:
                raise TargetNotFoundError("task", task_id)

    def get(self, task_id: str) -> dict[str, Any] | None:
        with self._uow.read() as conn:
            row = conn.execute(select(tasks).where(tasks.c.id == task_id)).mappings().first()
        return dict(row) if row is not None else None

    def list_for_contact(self, contact_id: str) -> list[dict[str, Any]]:
        stmt = select(tasks).where(tasks.c.contact_id == contact_id).order_by(tasks.c.id)
        with self._uow.read() as conn:
            return [dict(row) for row in conn.execute(stmt).mappings()]


class SqlNoteStore:
    """Contact notes keyed ``NOTE-NNNN``."""

    def __init__(self, uow: UnitOfWork) -> None:
        self._uow = uow

    def create(self, *, content: str, target_contact_id: str, author_contact_id: str) -> str:
        with self._uow.begin() as conn:
            note_id = next_sequential_id(conn, "NOTE-")
            conn.execute(
                insert(contact_notes).values(
                    id=note_id,
                    content=content,
                    target_contact_id=target_contact_id,
                    author_contact_id=author_contact_id,
                    created=utc_now(),
                )
            )
        return note_id

    def list_for_contact(self, contact_id: str) -> list[dict[str, Any]]:
        stmt = (
            select(contact_notes)
            .where(contact_notes.c.target_contact_id == contact_id)
            .order_by(contact_notes.c.id)
        )
        with self._uow.read() as conn:
            return [dict(row) for row in conn.execute(stmt).mappings()]


class SqlInteractionStore:
    """Logged interactions keyed ``INT-NNNN``."""

    def __init__(self, uow: UnitOfWork) -> None:
        self._uow = uow

    def create(self, *, contact_id: str, author_contact_id: str, kind: str, summary: str) -> str:
        with self._uow.begin() as conn:
            interaction_id = next_sequential_id(conn, "INT-")
            conn.execute(
                insert(interactions).values(
                    id=interaction_id,
                    contact_id=contact_id,
                    author_contact_id=author_contact_id,
                    kind=kind,
                    summary=summary,
                    created=utc_now(),
                )
            )
        return interaction_id

    def list_for_contact(self, contact_id: str) -> list[dict[str, Any]]:
        stmt = (
            select(interactions)
            .where(interactions.c.contact_id == contact_id)
            .order_by(interactions.c.id)
        )
        with self._uow.read() as conn:
            return [dict(row) for row in conn.execute(stmt).mappings()]
