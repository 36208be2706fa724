"""Typed payload contracts for service and adapter boundaries.

These models validate operation payload shapes before they leave the
service layer so key regressions (for example ``dispatch`` vs ``record``)
fail fast in tests and during development.
"""

from __future__ import annotations

from typing import Any, Literal, TypeVar

from pydantic import BaseModel, ConfigDict, Field

T = TypeVar("T", bound=BaseModel)


def dump_validated(model_cls: type[T], data: dict[str, Any]) -> dict[str, Any]:
    """Validate *data* against *model_cls* and return a normalized payload dict."""
    model = model_cls.model_validate(data)
    return model.model_dump(mode="python")


class DispatchRecordData(BaseModel):
    """What the dispatcher did with one event."""

    event_type: str
    aggregate: str
    status: Literal["applied", "ignored", "skipped", "failed"]
    target_id: str | None = None
    audit_id: int | None = None
    detail: str | None = None


class GateOutcomeData(BaseModel):
    status: Literal["blocked", "redirected", "suppressed", "dispatch", "no_event"]
    gate: str | None = None
    reason: str | None = None
    event: dict[str, Any] | None = None


class GuardrailData(BaseModel):
    kind: str
    message: str
    blocked: bool


class TurnResultData(BaseModel):
    """Payload contract for ``ConversationOrchestrator.run_turn``.

    ``reply`` is always present, whatever happened downstream.
    """

    model_config = ConfigDict(extra="allow")

    reply: str
    gate: GateOutcomeData
    event_type: str | None = None
    dispatch: DispatchRecordData | None = None
    guardrail: GuardrailData | None = None
    ack_required: bool = False
    chunks: int = 0
    invocation_failed: bool = False


class PromptResultData(BaseModel):
    """Payload contract for ``ConversationOrchestrator.preview``."""

    system_prompt: str
    user_message: str
    chunks: list[str]


class ParseResultData(BaseModel):
    """Payload contract for ``ConversationOrchestrator.inspect``."""

    envelope: dict[str, Any]
    gate: GateOutcomeData


class AuditEntryItem(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: int
    session_id: str
    timestamp: str
    event_type: str
    aggregate: str
    target_id: str | None = None
    payload: dict[str, Any] = Field(default_factory=dict)


class AuditListResultData(BaseModel):
    """Payload contract for ``AuditService.list``."""

    count: int
    items: list[AuditEntryItem]


class DoctrineSummaryData(BaseModel):
    """Payload contract for ``DoctrineService.summary``."""

    name: str
    version: str
    model: str
    role: str
    tone: str
    guardrails: list[str]
    event_types: list[str]
    chunk_count: int
    retrieval_enabled: bool
    max_chunks: int
    protocol_notes: list[str] = Field(default_factory=list)
