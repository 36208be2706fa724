"""Want scopes: objective, doctrine notes, and iteration entries."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from sqlalchemy import delete, insert, select, update

from coachctl.domain.stores import IterationSource, TargetNotFoundError
from coachctl.infrastructure.database.counters import next_sequential_id
from coachctl.infrastructure.database.schema import (
    scope_doctrine_notes,
    scope_entries,
    scopes,
    wants,
)
from coachctl.infrastructure.database.unit_of_work import UnitOfWork
from coachctl.infrastructure.repositories._base import utc_now

if TYPE_CHECKING:
    from sqlalchemy import Connection


class SqlScopeStore:
    """One scope per want, created with the want or lazily on first write."""

    def __init__(self, uow: UnitOfWork) -> None:
        self._uow = uow

    def create_for_want(self, want_id: str) -> None:
        """(Re)create the scope for *want_id*, replacing any existing one."""
        with self._uow.begin() as conn:
            objective = self._objective_for(conn, want_id)
            conn.execute(delete(scope_entries).where(scope_entries.c.want_id == want_id))
            conn.execute(
                delete(scope_doctrine_notes).where(scope_doctrine_notes.c.want_id == want_id)
            )
            conn.execute(delete(scopes).where(scopes.c.want_id == want_id))
            self._insert_scope(conn, want_id, objective)

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
    ) -> str:
        """Append an entry and mark the scope active."""
        now = utc_now()
        with self._uow.begin() as conn:
            self._get_or_create(conn, want_id)
            entry_id = next_sequential_id(conn, "ITER-")
            conn.execute(
                insert(scope_entries).values(
                    id=entry_id,
                    want_id=want_id,
                    date=now,
                    action=action,
                    feedback=feedback,
                    consequence=consequence,
                    source=str(source),
                    related_step_id=related_step_id,
                    related_metric_name=related_metric_name,
                )
            )
            conn.execute(
                update(scopes)
                .where(scopes.c.want_id == want_id)
                .values(is_inert=0, last_activity=now, modified=now)
            )
        return entry_id

    def add_doctrine_note(self, want_id: str, note: str) -> None:
        now = utc_now()
        with self._uow.begin() as conn:
            self._get_or_create(conn, want_id)
            conn.execute(
                insert(scope_doctrine_notes).values(want_id=want_id, note=note, created=now)
            )
            conn.execute(update(scopes).where(scopes.c.want_id == want_id).values(modified=now))

    def get(self, want_id: str) -> dict[str, Any] | None:
        """Scope row plus ``doctrine_notes`` and ``entries`` (newest first)."""
        with self._uow.read() as conn:
            row = conn.execute(select(scopes).where(scopes.c.want_id == want_id)).mappings().first()
            if row is None:
                return None
            scope = dict(row)
            scope["doctrine_notes"] = list(
                conn.execute(
                    select(scope_doctrine_notes.c.note)
                    .where(scope_doctrine_notes.c.want_id == want_id)
                    .order_by(scope_doctrine_notes.c.id)
                ).scalars()
            )
            scope["entries"] = [
                dict(entry)
                for entry in conn.execute(
                    select(scope_entries)
                    .where(scope_entries.c.want_id == want_id)
                    .order_by(scope_entries.c.date.desc(), scope_entries.c.id.desc())
                ).mappings()
            ]
        return scope

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def _objective_for(conn: Connection, want_id: str) -> str:
        stmt = select(wants.c.title, wants.c.reason).where(wants.c.id == want_id)
        row = conn.execute(stmt).first()
        if row is None:
            raise TargetNotFoundError("want", want_id)
        return row.reason or row.title

    @staticmethod
    def _insert_scope(conn: Connection, want_id: str, objective: str) -> None:
        now = utc_now()
        conn.execute(
            insert(scopes).values(
                want_id=want_id,
                objective=objective,
                is_inert=1,
                last_activity=None,
                created=now,
                modified=now,
            )
        )

    def _get_or_create(self, conn: Connection, want_id: str) -> None:
        exists = conn.execute(select(scopes.c.want_id).where(scopes.c.want_id == want_id)).first()
        if exists is None:
            self._insert_scope(conn, want_id, self._objective_for(conn, want_id))
