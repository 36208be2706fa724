"""Wants: core record, steps, dynamic metrics, iterations, contact attachment."""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from sqlalchemy import func, insert, select, update

from coachctl.domain.assessments import DirectnessCheck
from coachctl.domain.stores import CONTACT_ZERO, IterationSource, TargetNotFoundError
from coachctl.infrastructure.database.counters import next_sequential_id
from coachctl.infrastructure.database.schema import (
    want_iterations,
    want_metric_types,
    want_metrics,
    want_steps,
    wants,
)
from coachctl.infrastructure.database.unit_of_work import UnitOfWork
from coachctl.infrastructure.repositories._base import dump_json, load_json, utc_now

if TYPE_CHECKING:
    from sqlalchemy import Connection


class SqlWantStore:
    """Want records keyed ``WANT-NNNN``; owned by Contact Zero.

    Metric names are stored exactly as given: normalization happens before
    the call.
    """

    def __init__(self, uow: UnitOfWork) -> None:
        self._uow = uow

    # ------------------------------------------------------------------
    # Core record
    # ------------------------------------------------------------------

    def create(
        self,
        *,
        title: str,
        reason: str,
        deadline: str | None = None,
        status: str = "not_started",
        primary_contact_id: str | None = None,
        metric_types: list[str] | None = None,
    ) -> str:
        with self._uow.begin() as conn:
            want_id = self._insert(
                conn,
                title=title,
                reason=reason,
                deadline=deadline,
                status=status,
                primary_contact_id=primary_contact_id,
                origin_type="want",
                validation_reason="Created directly",
            )
            for name in metric_types or []:
                self._register_metric_type(conn, want_id, name)
        return want_id

    def create_rejected_should(self, *, title: str, reason: str, rejection_reason: str) -> str:
        """Record a rejected should, kept for tracking and never pursued."""
        with self._uow.begin() as conn:
            return self._insert(
                conn,
                title=title,
                reason=reason,
                deadline=None,
                status="not_started",
                primary_contact_id=None,
                origin_type="should_rejected",
                is_valid_want=False,
                validation_reason=rejection_reason,
            )

    def update(
        self,
        want_id: str,
        *,
        title: str | None = None,
        reason: str | None = None,
        deadline: str | None = None,
        status: str | None = None,
    ) -> None:
        changes = {
            key: value
            for key, value in (
                ("title", title),
                ("reason", reason),
                ("deadline", deadline),
                ("status", status),
            )
            if value is not None
        }
        with self._uow.begin() as conn:
            self._touch(conn, want_id, **changes)

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def add_step(self, want_id: str, *, title: str, deadline: str | None = None) -> str:
        with self._uow.begin() as conn:
            self._touch(conn, want_id)
            position = conn.execute(
                select(func.count()).select_from(want_steps).where(want_steps.c.want_id == want_id)
            ).scalar_one()
            step_id = next_sequential_id(conn, "STEP-")
            conn.execute(
                insert(want_steps).values(
                    id=step_id,
                    want_id=want_id,
                    title=title,
                    deadline=deadline,
                    status="not_started",
                    position=position,
                    created=utc_now(),
                )
            )
        return step_id

    # ------------------------------------------------------------------
    # Metrics
    # ------------------------------------------------------------------

    def add_metric_type(self, want_id: str, metric_name: str) -> bool:
        with self._uow.begin() as conn:
            self._require(conn, want_id)
            added = self._register_metric_type(conn, want_id, metric_name)
            if added:
                self._touch(conn, want_id)
        return added

    def log_metric_value(self, want_id: str, date: str, metric_name: str, value: Any) -> None:
        with self._uow.begin() as conn:
            self._touch(conn, want_id)
            self._set_metric(conn, want_id, date, metric_name, value)

    def log_metrics(self, want_id: str, date: str, values: Mapping[str, Any]) -> int:
        with self._uow.begin() as conn:
            self._touch(conn, want_id)
            for name, value in values.items():
                self._set_metric(conn, want_id, date, name, value)
        return len(values)

    # ------------------------------------------------------------------
    # Iterations and contacts
    # ------------------------------------------------------------------

    def log_iteration(self, want_id: str, feedback: str, source: IterationSource) -> None:
        now = utc_now()
        with self._uow.begin() as conn:
            self._touch(conn, want_id)
            conn.execute(
                insert(want_iterations).values(
                    want_id=want_id, date=now, feedback=feedback, source=str(source)
                )
            )

    def attach_primary_contact(
        self, want_id: str, contact_id: str, directness: DirectnessCheck | None = None
    ) -> None:
        """Set the primary contact; a given directness check replaces the stored one."""
        changes: dict[str, Any] = {"primary_contact_id": contact_id}
        if directness is not None:
            changes["is_direct"] = int(directness.is_direct)
            changes["failing_reason"] = directness.failing_reason
        with self._uow.begin() as conn:
            self._touch(conn, want_id, **changes)

    def detach_primary_contact(self, want_id: str) -> None:
        with self._uow.begin() as conn:
            self._touch(
                conn, want_id, primary_contact_id=None, is_direct=1, failing_reason=None
            )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, want_id: str) -> dict[str, Any] | None:
        """Want row plus ``steps``, ``metric_types``, ``metrics`` and ``iterations``."""
        with self._uow.read() as conn:
            row = conn.execute(select(wants).where(wants.c.id == want_id)).mappings().first()
            if row is None:
                return None
            want = dict(row)
            want["steps"] = [
                dict(step)
                for step in conn.execute(
                    select(want_steps)
                    .where(want_steps.c.want_id == want_id)
                    .order_by(want_steps.c.position)
                ).mappings()
            ]
            want["metric_types"] = list(
                conn.execute(
                    select(want_metric_types.c.name)
                    .where(want_metric_types.c.want_id == want_id)
                    .order_by(want_metric_types.c.position)
                ).scalars()
            )
            metrics: dict[str, dict[str, Any]] = {}
            for metric in conn.execute(
                select(want_metrics)
                .where(want_metrics.c.want_id == want_id)
                .order_by(want_metrics.c.date.desc())
            ).mappings():
                metrics.setdefault(metric["date"], {})[metric["name"]] = load_json(metric["value"])
            want["metrics"] = metrics
            want["iterations"] = [
                dict(iteration)
                for iteration in conn.execute(
                    select(want_iterations)
                    .where(want_iterations.c.want_id == want_id)
                    .order_by(want_iterations.c.date.desc())
                ).mappings()
            ]
        return want

    def list_all(self) -> list[dict[str, Any]]:
        with self._uow.read() as conn:
            rows = conn.execute(select(wants).order_by(wants.c.id)).mappings()
            return [dict(row) for row in rows]

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def _insert(
        conn: Connection,
        *,
        title: str,
        reason: str,
        deadline: str | None,
        status: str,
        primary_contact_id: str | None,
        origin_type: str,
        validation_reason: str,
        is_valid_want: bool = True,
    ) -> str:
        now = utc_now()
        want_id = next_sequential_id(conn, "WANT-")
        conn.execute(
            insert(wants).values(
                id=want_id,
                contact_id=CONTACT_ZERO,
                title=title,
                reason=reason,
                deadline=deadline,
                status=status,
                origin_type=origin_type,
                is_valid_want=int(is_valid_want),
                validation_reason=validation_reason,
                is_direct=1,
                primary_contact_id=primary_contact_id,
                created=now,
                modified=now,
            )
        )
        return want_id

    @staticmethod
    def _require(conn: Connection, want_id: str) -> None:
        if conn.execute(select(wants.c.id).where(wants.c.id == want_id)).first() is None:
            raise TargetNotFoundError("want", want_id)

    @staticmethod
    def _touch(conn: Connection, want_id: str, **changes: Any) -> None:
        """Apply *changes* and bump ``modified``; raises if the want is missing."""
        result = conn.execute(
            update(wants).where(wants.c.id == want_id).values(modified=utc_now(), **changes)
        )
        if result.rowcount == 0:
            raise TargetNotFoundError("want", want_id)

    @staticmethod
    def _register_metric_type(conn: Connection, want_id: str, name: str) -> bool:
        existing = conn.execute(
            select(want_metric_types.c.name).where(
                want_metric_types.c.want_id == want_id,
                want_metric_types.c.name == name,
            )
        ).first()
        if existing is not None:
            return False
        position = conn.execute(
            select(func.count())
            .select_from(want_metric_types)
            .where(want_metric_types.c.want_id == want_id)
        ).scalar_one()
        conn.execute(
            insert(want_metric_types).values(want_id=want_id, name=name, position=position)
        )
        return True

    def _set_metric(
        self, conn: Connection, want_id: str, date: str, name: str, value: Any
    ) -> None:
        """Upsert one value and auto-register its metric type."""
        self._register_metric_type(conn, want_id, name)
        result = conn.execute(
            update(want_metrics)
            .where(
                want_metrics.c.want_id == want_id,
                want_metrics.c.date == date,
                want_metrics.c.name == name,
            )
            .values(value=dump_json(value))
        )
        if result.rowcount == 0:
            conn.execute(
                insert(want_metrics).values(
                    want_id=want_id, date=date, name=name, value=dump_json(value)
                )
            )
