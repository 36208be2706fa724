"""EventDispatcher: one domain event -> one store mutation + one audit entry.

The catalog is closed. Each applied event runs inside the bundle's atomic
unit, together with its audit record, so a failure leaves nothing
partially written. Unknown events are logged and ignored. Missing targets
are reported as ``skipped`` and store errors as ``failed``; neither is
retried and neither raises.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING, Any

import structlog

from coachctl.domain.events import (
    AddMetricTypeEvent,
    AttachContactEvent,
    ContactNoteEvent,
    DetachContactEvent,
    DoctrineNoteEvent,
    DomainEvent,
    InteractionLogEvent,
    LogIterationEvent,
    LogMetricsEvent,
    LogMetricValueEvent,
    RejectShouldEvent,
    ScopeLogEntryEvent,
    TaskCreateEvent,
    TaskUpdateEvent,
    UnknownEvent,
    WantAddStepEvent,
    WantCreateEvent,
    WantStatus,
    WantUpdateEvent,
    aggregate_for,
)
from coachctl.domain.messages import ConversationContext
from coachctl.domain.prompt import context_payload
from coachctl.domain.stores import (
    CONTACT_ZERO,
    AuditTrail,
    IterationSource,
    StoreBundle,
    TargetNotFoundError,
    normalize_metric_name,
)
from coachctl.services._helpers import date_key, today_iso
from coachctl.services.base import notify_plugins

if TYPE_CHECKING:
    from coachctl.plugins.manager import PluginManager

log = structlog.get_logger(__name__)

UNTITLED_TASK = "Untitled Task"
UNTITLED_WANT = "Untitled Want"
UNTITLED_STEP = "Untitled Step"
REJECTED_SHOULD = "Rejected Should"
INTERACTION_KIND = "other"


class DispatchStatus(StrEnum):
    APPLIED = "applied"
    IGNORED = "ignored"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True)
class DispatchRecord:
    event_type: str
    aggregate: str
    status: DispatchStatus
    target_id: str | None = None
    audit_id: int | None = None
    detail: str | None = None

    @property
    def applied(self) -> bool:
        return self.status is DispatchStatus.APPLIED

    def to_dict(self) -> dict[str, Any]:
        return {
            "event_type": self.event_type,
            "aggregate": self.aggregate,
            "status": str(self.status),
            "target_id": self.target_id,
            "audit_id": self.audit_id,
            "detail": self.detail,
        }


class DispatchSkipped(Exception):
    """Raised by a handler when the event is valid but has nothing to do."""


@dataclass
class _Applied:
    target_id: str | None
    values: dict[str, Any] = field(default_factory=dict)


Context = ConversationContext | dict[str, Any] | None
Handler = Callable[[Any, dict[str, Any]], _Applied]


class EventDispatcher:
    """Apply events to the store bundle and record them in the audit trail."""

    def __init__(
        self,
        stores: StoreBundle,
        audit: AuditTrail,
        *,
        default_contact_id: str = CONTACT_ZERO,
        plugins: PluginManager | None = None,
    ) -> None:
        self._stores = stores
        self._audit = audit
        self._default_contact_id = default_contact_id
        self._plugins = plugins
        self._handlers: dict[type[DomainEvent], Handler] = {
            TaskCreateEvent: self._task_create,
            TaskUpdateEvent: self._task_update,
            ContactNoteEvent: self._contact_note,
            InteractionLogEvent: self._interaction_log,
            WantCreateEvent: self._want_create,
            WantUpdateEvent: self._want_update,
            WantAddStepEvent: self._want_add_step,
            RejectShouldEvent: self._reject_should,
            AddMetricTypeEvent: self._add_metric_type,
            LogMetricValueEvent: self._log_metric_value,
            LogMetricsEvent: self._log_metrics,
            LogIterationEvent: self._log_iteration,
            AttachContactEvent: self._attach_contact,
            DetachContactEvent: self._detach_contact,
            ScopeLogEntryEvent: self._scope_log_entry,
            DoctrineNoteEvent: self._doctrine_note,
        }

    def dispatch(
        self,
        event: DomainEvent,
        *,
        context: Context = None,
        warnings: list[str] | None = None,
    ) -> DispatchRecord:
        """Apply *event*; problems are appended to *warnings*, never raised."""
        if warnings is None:
            warnings = []
        aggregate = str(aggregate_for(event.type))
        handler = None if isinstance(event, UnknownEvent) else self._handlers.get(type(event))

        if handler is None:
            log.info("dispatch.ignored", event_type=event.type)
            return DispatchRecord(
                event_type=event.type,
                aggregate=aggregate,
                status=DispatchStatus.IGNORED,
                detail=f"Unknown event type: {event.type}",
            )

        ctx = context_payload(context)
        try:
            with self._stores.atomic():
                applied = handler(event.payload, ctx)
                audit_id = self._audit.record(
                    event_type=event.type,
                    aggregate=aggregate,
                    target_id=applied.target_id,
                    payload=applied.values,
                )
        except (TargetNotFoundError, DispatchSkipped) as exc:
            warnings.append(f"{event.type} skipped: {exc}")
            log.warning("dispatch.skipped", event_type=event.type, reason=str(exc))
            return DispatchRecord(
                event_type=event.type,
                aggregate=aggregate,
                status=DispatchStatus.SKIPPED,
                target_id=getattr(exc, "target_id", None),
                detail=str(exc),
            )
        except Exception as exc:
            warnings.append(f"{event.type} failed: {exc}")
            log.exception("dispatch.failed", event_type=event.type)
            return DispatchRecord(
                event_type=event.type,
                aggregate=aggregate,
                status=DispatchStatus.FAILED,
                detail=str(exc),
            )

        log.info(
            "dispatch.applied",
            event_type=event.type,
            target_id=applied.target_id,
            audit_id=audit_id,
        )
        notify_plugins(
            self._plugins,
            "post_dispatch",
            warnings,
            event_type=event.type,
            aggregate=aggregate,
            target_id=applied.target_id,
            audit_id=audit_id,
        )
        return DispatchRecord(
            event_type=event.type,
            aggregate=aggregate,
            status=DispatchStatus.APPLIED,
            target_id=applied.target_id,
            audit_id=audit_id,
        )

    # ------------------------------------------------------------------
    # Defaults
    # ------------------------------------------------------------------

    def _contact_id(self, explicit: str | None, ctx: dict[str, Any]) -> str:
        selected = ctx.get("selectedContactId")
        if explicit:
            return explicit
        if isinstance(selected, str) and selected:
            return selected
        return self._default_contact_id

    @staticmethod
    def _metric_date(value: str | None) -> str:
        return date_key(value) if value else today_iso()

    # ------------------------------------------------------------------
    # task / note / interaction
    # ------------------------------------------------------------------

    def _task_create(self, payload: Any, ctx: dict[str, Any]) -> _Applied:
        values = {
            "title": payload.title or UNTITLED_TASK,
            "contact_id": self._contact_id(payload.contact_id, ctx),
            "due_at": payload.due_date,
        }
        return _Applied(self._stores.tasks.create(**values), values)

    def _task_update(self, payload: Any, ctx: dict[str, Any]) -> _Applied:
        changes = payload.changes.model_dump(
            include={"title", "status", "due_at", "contact_id"}, exclude_none=True
        )
        if "status" in changes:
            changes["status"] = str(changes["status"])
        if not changes:
            raise DispatchSkipped("no fields to update")
        self._stores.tasks.update(payload.task_id, **changes)
        return _Applied(payload.task_id, changes)

    def _contact_note(self, payload: Any, ctx: dict[str, Any]) -> _Applied:
        values = {
            "content": payload.note or "",
            "target_contact_id": self._contact_id(payload.contact_id, ctx),
            "author_contact_id": CONTACT_ZERO,
        }
        return _Applied(self._stores.notes.create(**values), values)

    def _interaction_log(self, payload: Any, ctx: dict[str, Any]) -> _Applied:
        values = {
            "contact_id": self._contact_id(payload.contact_id, ctx),
            "author_contact_id": CONTACT_ZERO,
            "kind": INTERACTION_KIND,
            "summary": payload.summary or "",
        }
        return _Applied(self._stores.interactions.create(**values), values)

    # ------------------------------------------------------------------
    # want core
    # ------------------------------------------------------------------

    def _want_create(self, payload: Any, ctx: dict[str, Any]) -> _Applied:
        values = {
            "title": payload.title or UNTITLED_WANT,
            "reason": payload.reason or "",
            "deadline": payload.deadline,
            "status": str(payload.status or WantStatus.NOT_STARTED),
            "primary_contact_id": payload.primary_contact_id,
            "metric_types": [normalize_metric_name(m) for m in payload.metric_types or []],
        }
        want_id = self._stores.wants.create(**values)
        self._stores.scopes.create_for_want(want_id)
        return _Applied(want_id, values)

    def _want_update(self, payload: Any, ctx: dict[str, Any]) -> _Applied:
        changes = payload.model_dump(
            include={"title", "reason", "deadline", "status"}, exclude_none=True
        )
        if "status" in changes:
            changes["status"] = str(changes["status"])
        if not changes:
            raise DispatchSkipped("no fields to update")
        self._stores.wants.update(payload.want_id, **changes)
        return _Applied(payload.want_id, changes)

    def _want_add_step(self, payload: Any, ctx: dict[str, Any]) -> _Applied:
        values = {"title": payload.title or UNTITLED_STEP, "deadline": payload.deadline}
        self._stores.wants.add_step(payload.want_id, **values)
        return _Applied(payload.want_id, values)

    def _reject_should(self, payload: Any, ctx: dict[str, Any]) -> _Applied:
        values = {
            "title": payload.title or REJECTED_SHOULD,
            "reason": payload.reason or "",
            "rejection_reason": payload.rejection_reason,
        }
        return _Applied(self._stores.wants.create_rejected_should(**values), values)

    # ------------------------------------------------------------------
    # want metrics and iterations
    # ------------------------------------------------------------------

    def _add_metric_type(self, payload: Any, ctx: dict[str, Any]) -> _Applied:
        name = normalize_metric_name(payload.metric_name)
        if not self._stores.wants.add_metric_type(payload.want_id, name):
            raise DispatchSkipped(f"metric type already registered: {name}")
        return _Applied(payload.want_id, {"metric_name": name})

    def _log_metric_value(self, payload: Any, ctx: dict[str, Any]) -> _Applied:
        values = {
            "date": self._metric_date(payload.date),
            "metric_name": normalize_metric_name(payload.metric_name),
            "value": payload.value,
        }
        self._stores.wants.log_metric_value(payload.want_id, **values)
        return _Applied(payload.want_id, values)

    def _log_metrics(self, payload: Any, ctx: dict[str, Any]) -> _Applied:
        metrics = payload.metric_values()
        if not metrics:
            raise DispatchSkipped("no metric values given")
        date = self._metric_date(payload.date)
        self._stores.wants.log_metrics(payload.want_id, date, metrics)
        return _Applied(payload.want_id, {"date": date, "values": metrics})

    def _log_iteration(self, payload: Any, ctx: dict[str, Any]) -> _Applied:
        self._stores.wants.log_iteration(payload.want_id, payload.feedback, IterationSource.USER)
        return _Applied(payload.want_id, {"feedback": payload.feedback})

    # ------------------------------------------------------------------
    # want contacts
    # ------------------------------------------------------------------

    def _attach_contact(self, payload: Any, ctx: dict[str, Any]) -> _Applied:
        check = payload.directness_check
        self._stores.wants.attach_primary_contact(
            payload.want_id, payload.primary_contact_id, check
        )
        values: dict[str, Any] = {"primary_contact_id": payload.primary_contact_id}
        if check is not None:
            values["directness_check"] = check.to_wire()
        return _Applied(payload.want_id, values)

    def _detach_contact(self, payload: Any, ctx: dict[str, Any]) -> _Applied:
        self._stores.wants.detach_primary_contact(payload.want_id)
        return _Applied(payload.want_id, {})

    # ------------------------------------------------------------------
    # scope
    # ------------------------------------------------------------------

    def _scope_log_entry(self, payload: Any, ctx: dict[str, Any]) -> _Applied:
        values = {
            "action": str(payload.action),
            "feedback": payload.feedback,
            "consequence": payload.consequence or "",
            "related_step_id": payload.related_step_id,
            "related_metric_name": payload.related_metric_name,
        }
        entry_id = self._stores.scopes.log_iteration_entry(
            payload.want_id, source=IterationSource.COACH, **values
        )
        return _Applied(payload.want_id, {**values, "entry_id": entry_id})

    def _doctrine_note(self, payload: Any, ctx: dict[str, Any]) -> _Applied:
        self._stores.scopes.add_doctrine_note(payload.want_id, payload.note)
        return _Applied(payload.want_id, {"note": payload.note})
