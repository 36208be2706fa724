"""Domain events: the closed catalog of state mutations the model may request.

Each event is ``{"type": <tag>, "payload": {...}}`` on the wire. Known tags
validate into one payload model per type via a pydantic discriminated
union; anything else becomes :class:`UnknownEvent` so the dispatcher can
log and ignore it.

Required identifiers (``wantId``, ``taskId``, ``metricName`` ...) are
non-empty strict strings, so an event missing its target never validates.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Annotated, Any, ClassVar, Literal

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StrictBool,
    StrictFloat,
    StrictInt,
    StrictStr,
    TypeAdapter,
)
from pydantic.alias_generators import to_camel

from coachctl.domain.assessments import DirectnessCheck

RequiredStr = Annotated[StrictStr, Field(min_length=1)]
Number = StrictInt | StrictFloat
MetricValue = StrictBool | StrictInt | StrictFloat | StrictStr | None


class Aggregate(StrEnum):
    """Downstream aggregate an event mutates."""

    TASK = "task"
    NOTE = "note"
    INTERACTION = "interaction"
    WANT_CORE = "want-core"
    WANT_METRIC = "want-metric"
    WANT_CONTACT = "want-contact"
    SCOPE = "scope"
    UNKNOWN = "unknown"


class TaskStatus(StrEnum):
    OPEN = "open"
    DONE = "done"
    BLOCKED = "blocked"


class WantStatus(StrEnum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    DONE = "done"


class IterationAction(StrEnum):
    """Kinds of scope iteration entries."""

    FEEDBACK = "feedback"
    REVISION = "revision"
    RESISTANCE = "resistance"
    EXTERNAL_FEEDBACK = "external_feedback"
    MILESTONE = "milestone"
    REFLECTION = "reflection"
    COURSE_CORRECTION = "course_correction"
    COVERT_CONTRACT_BLOCKED = "covert_contract_blocked"
    BAD_FRAME_CORRECTED = "bad_frame_corrected"


# ---------------------------------------------------------------------------
# Payloads
# ---------------------------------------------------------------------------


class Payload(BaseModel):
    """Base for event payloads: camelCase on the wire, extra keys kept."""

    model_config = ConfigDict(
        frozen=True,
        extra="allow",
        alias_generator=to_camel,
        populate_by_name=True,
    )


class TaskCreatePayload(Payload):
    title: StrictStr | None = None
    contact_id: StrictStr | None = None
    due_date: StrictStr | None = None


class TaskFields(Payload):
    title: StrictStr | None = None
    status: TaskStatus | None = None
    due_at: StrictStr | None = None
    contact_id: StrictStr | None = None


class TaskUpdatePayload(Payload):
    task_id: RequiredStr
    changes: TaskFields = Field(default_factory=TaskFields, alias="fields")


class ContactNotePayload(Payload):
    note: StrictStr | None = None
    contact_id: StrictStr | None = None


class InteractionLogPayload(Payload):
    summary: StrictStr | None = None
    contact_id: StrictStr | None = None


class WantCreatePayload(Payload):
    title: StrictStr | None = None
    reason: StrictStr | None = None
    deadline: StrictStr | None = None
    status: WantStatus | None = None
    primary_contact_id: StrictStr | None = None
    metric_types: list[StrictStr] | None = None


class WantUpdatePayload(Payload):
    want_id: RequiredStr
    title: StrictStr | None = None
    reason: StrictStr | None = None
    deadline: StrictStr | None = None
    status: WantStatus | None = None


class WantAddStepPayload(Payload):
    want_id: RequiredStr
    title: StrictStr | None = None
    deadline: StrictStr | None = None


class RejectShouldPayload(Payload):
    title: StrictStr | None = None
    reason: StrictStr | None = None
    rejection_reason: StrictStr = ""


class AddMetricTypePayload(Payload):
    want_id: RequiredStr
    metric_name: RequiredStr


class LogMetricValuePayload(Payload):
    want_id: RequiredStr
    metric_name: RequiredStr
    date: StrictStr | None = None
    value: MetricValue = None


class LogMetricsPayload(Payload):
    """Fixed-schema daily metrics, fanned out to named metric values."""

    want_id: RequiredStr
    date: StrictStr | None = None
    hours_worked: Number | None = None
    income: Number | None = None
    sleep: Number | None = None
    workout: StrictBool | None = None
    carbs: Number | None = None
    protein: Number | None = None
    fat: Number | None = None
    calories: Number | None = None
    calories_burned: Number | None = None
    deficit: Number | None = None
    weight: Number | None = None

    METRIC_FIELDS: ClassVar[tuple[str, ...]] = (
        "hours_worked",
        "income",
        "sleep",
        "workout",
        "carbs",
        "protein",
        "fat",
        "calories",
        "calories_burned",
        "deficit",
        "weight",
    )

    def metric_values(self) -> dict[str, Any]:
        """Non-null metrics keyed by stored (snake_case) name, in schema order."""
        values = {name: getattr(self, name) for name in self.METRIC_FIELDS}
        return {name: value for name, value in values.items() if value is not None}


class LogIterationPayload(Payload):
    want_id: RequiredStr
    feedback: RequiredStr


class AttachContactPayload(Payload):
    want_id: RequiredStr
    primary_contact_id: RequiredStr
    directness_check: DirectnessCheck | None = None


class DetachContactPayload(Payload):
    want_id: RequiredStr


class ScopeLogEntryPayload(Payload):
    want_id: RequiredStr
    action: IterationAction
    feedback: RequiredStr
    consequence: StrictStr | None = None
    related_step_id: StrictStr | None = None
    related_metric_name: StrictStr | None = None


class DoctrineNotePayload(Payload):
    want_id: RequiredStr
    note: RequiredStr


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------


class DomainEvent(BaseModel):
    """Base for all events. Subclasses pin ``type`` and ``payload``."""

    model_config = {"frozen": True}

    aggregate: ClassVar[Aggregate] = Aggregate.UNKNOWN

    type: str
    payload: Any

    def to_wire(self) -> dict[str, Any]:
        payload = self.payload
        if isinstance(payload, BaseModel):
            payload = payload.model_dump(mode="json", by_alias=True, exclude_unset=True)
        return {"type": self.type, "payload": payload}


class TaskCreateEvent(DomainEvent):
    aggregate: ClassVar[Aggregate] = Aggregate.TASK
    type: Literal["task.create"] = "task.create"
    payload: TaskCreatePayload = Field(default_factory=TaskCreatePayload)


class TaskUpdateEvent(DomainEvent):
    aggregate: ClassVar[Aggregate] = Aggregate.TASK
    type: Literal["task.update"] = "task.update"
    payload: TaskUpdatePayload


class ContactNoteEvent(DomainEvent):
    aggregate: ClassVar[Aggregate] = Aggregate.NOTE
    type: Literal["contact.note"] = "contact.note"
    payload: ContactNotePayload = Field(default_factory=ContactNotePayload)


class InteractionLogEvent(DomainEvent):
    aggregate: ClassVar[Aggregate] = Aggregate.INTERACTION
    type: Literal["interaction.log"] = "interaction.log"
    payload: InteractionLogPayload = Field(default_factory=InteractionLogPayload)


class WantCreateEvent(DomainEvent):
    aggregate: ClassVar[Aggregate] = Aggregate.WANT_CORE
    type: Literal["want.create"] = "want.create"
    payload: WantCreatePayload = Field(default_factory=WantCreatePayload)


class WantUpdateEvent(DomainEvent):
    aggregate: ClassVar[Aggregate] = Aggregate.WANT_CORE
    type: Literal["want.update"] = "want.update"
    payload: WantUpdatePayload


class WantAddStepEvent(DomainEvent):
    aggregate: ClassVar[Aggregate] = Aggregate.WANT_CORE
    type: Literal["want.addStep"] = "want.addStep"
    payload: WantAddStepPayload


class RejectShouldEvent(DomainEvent):
    """Internal: produced by the want-validity gate, never by the model."""

    aggregate: ClassVar[Aggregate] = Aggregate.WANT_CORE
    type: Literal["want.rejectShould"] = "want.rejectShould"
    payload: RejectShouldPayload = Field(default_factory=RejectShouldPayload)


class AddMetricTypeEvent(DomainEvent):
    aggregate: ClassVar[Aggregate] = Aggregate.WANT_METRIC
    type: Literal["want.addMetricType"] = "want.addMetricType"
    payload: AddMetricTypePayload


class LogMetricValueEvent(DomainEvent):
    aggregate: ClassVar[Aggregate] = Aggregate.WANT_METRIC
    type: Literal["want.logMetricValue"] = "want.logMetricValue"
    payload: LogMetricValuePayload


class LogMetricsEvent(DomainEvent):
    aggregate: ClassVar[Aggregate] = Aggregate.WANT_METRIC
    type: Literal["want.logMetrics"] = "want.logMetrics"
    payload: LogMetricsPayload


class LogIterationEvent(DomainEvent):
    aggregate: ClassVar[Aggregate] = Aggregate.WANT_METRIC
    type: Literal["want.logIteration"] = "want.logIteration"
    payload: LogIterationPayload


class AttachContactEvent(DomainEvent):
    aggregate: ClassVar[Aggregate] = Aggregate.WANT_CONTACT
    type: Literal["want.attachContact"] = "want.attachContact"
    payload: AttachContactPayload


class DetachContactEvent(DomainEvent):
    aggregate: ClassVar[Aggregate] = Aggregate.WANT_CONTACT
    type: Literal["want.detachContact"] = "want.detachContact"
    payload: DetachContactPayload


class ScopeLogEntryEvent(DomainEvent):
    aggregate: ClassVar[Aggregate] = Aggregate.SCOPE
    type: Literal["scope.logEntry"] = "scope.logEntry"
    payload: ScopeLogEntryPayload


class DoctrineNoteEvent(DomainEvent):
    aggregate: ClassVar[Aggregate] = Aggregate.SCOPE
    type: Literal["scope.addDoctrineNote"] = "scope.addDoctrineNote"
    payload: DoctrineNotePayload


class UnknownEvent(DomainEvent):
    """An event whose tag is not in the catalog. Never applied."""

    payload: dict[str, Any] = Field(default_factory=dict)


KnownEvent = Annotated[
    TaskCreateEvent
    | TaskUpdateEvent
    | ContactNoteEvent
    | InteractionLogEvent
    | WantCreateEvent
    | WantUpdateEvent
    | WantAddStepEvent
    | RejectShouldEvent
    | AddMetricTypeEvent
    | LogMetricValueEvent
    | LogMetricsEvent
    | LogIterationEvent
    | AttachContactEvent
    | DetachContactEvent
    | ScopeLogEntryEvent
    | DoctrineNoteEvent,
    Field(discriminator="type"),
]

KNOWN_EVENT_ADAPTER: TypeAdapter[KnownEvent] = TypeAdapter(KnownEvent)

EVENT_CLASSES: dict[str, type[DomainEvent]] = {
    cls.model_fields["type"].default: cls
    for cls in (
        TaskCreateEvent,
        TaskUpdateEvent,
        ContactNoteEvent,
        InteractionLogEvent,
        WantCreateEvent,
        WantUpdateEvent,
        WantAddStepEvent,
        RejectShouldEvent,
        AddMetricTypeEvent,
        LogMetricValueEvent,
        LogMetricsEvent,
        LogIterationEvent,
        AttachContactEvent,
        DetachContactEvent,
        ScopeLogEntryEvent,
        DoctrineNoteEvent,
    )
}

# Tags the model is allowed to emit; want.rejectShould is produced internally.
MODEL_EVENT_TYPES: frozenset[str] = frozenset(EVENT_CLASSES) - {"want.rejectShould"}


def aggregate_for(event_type: str) -> Aggregate:
    """Aggregate for an event tag (``UNKNOWN`` for tags outside the catalog)."""
    cls = EVENT_CLASSES.get(event_type)
    return cls.aggregate if cls is not None else Aggregate.UNKNOWN
