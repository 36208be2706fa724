"""Audit log of applied events, one row per applied event."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from sqlalchemy import delete, insert, select

from coachctl.infrastructure.database.schema import audit_log
from coachctl.infrastructure.database.unit_of_work import UnitOfWork
from coachctl.infrastructure.repositories._base import dump_json, load_json, utc_now


def _row_to_entry(row: Mapping[str, Any]) -> dict[str, Any]:
    entry = dict(row)
    entry["payload"] = load_json(entry["payload"])
    return entry


class AuditLog:
    """Audit trail bound to one session id.

    ``record`` joins the caller's open transaction, so an audit row
    commits or rolls back together with the mutation it describes.
    """

    def __init__(self, uow: UnitOfWork, session_id: str) -> None:
        self._uow = uow
        self._session_id = session_id

    @property
    def session_id(self) -> str:
        return self._session_id

    def record(
        self,
        *,
        event_type: str,
        aggregate: str,
        target_id: str | None,
        payload: Mapping[str, Any],
    ) -> int:
        with self._uow.begin() as conn:
            result = conn.execute(
                insert(audit_log).values(
                    session_id=self._session_id,
                    timestamp=utc_now(),
                    event_type=event_type,
                    aggregate=aggregate,
                    target_id=target_id,
                    payload=dump_json(dict(payload)),
                )
            )
            return int(result.inserted_primary_key[0])

    def entries(self, *, limit: int | None = None) -> list[dict[str, Any]]:
        """This session's entries, oldest first."""
        return list_entries(self._uow, session_id=self._session_id, limit=limit, newest_first=False)

    def reset(self) -> int:
        """Delete this session's entries; returns how many were removed."""
        with self._uow.begin() as conn:
            stmt = delete(audit_log).where(audit_log.c.session_id == self._session_id)
            result = conn.execute(stmt)
            return int(result.rowcount)


def list_entries(
    uow: UnitOfWork,
    *,
    session_id: str | None = None,
    limit: int | None = None,
    newest_first: bool = True,
) -> list[dict[str, Any]]:
    """Audit entries across sessions (or for one *session_id*)."""
    stmt = select(audit_log)
    if session_id is not None:
        stmt = stmt.where(audit_log.c.session_id == session_id)
    stmt = stmt.order_by(audit_log.c.id.desc() if newest_first else audit_log.c.id)
    if limit is not None:
        stmt = stmt.limit(limit)
    with uow.read() as conn:
        return [_row_to_entry(row) for row in conn.execute(stmt).mappings()]
