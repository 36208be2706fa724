"""Validation pipeline: ordered, short-circuiting policy gates.

Gates run in a fixed order and the first one that decides wins:

1. :class:`GuardrailGate` (a blocking guardrail stops the turn)
2. :class:`WantValidityGate` (a should never becomes a want)
3. :class:`DirectnessGate` (indirect contact attachments are dropped)

If no gate decides, the event passes unchanged (``dispatch``) or there
was nothing to dispatch (``no_event``). Outcomes are values, never
exceptions.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from enum import StrEnum
from typing import Any, Protocol

import structlog

from coachctl.domain.envelope import ModelResponseEnvelope
from coachctl.domain.events import (
    AttachContactEvent,
    DomainEvent,
    RejectShouldEvent,
    RejectShouldPayload,
    WantCreateEvent,
)

log = structlog.get_logger(__name__)

# Phrases that mark an obligation rather than a desire.
OBLIGATION_MARKERS: tuple[str, ...] = (
    "i should",
    "i have to",
    "i ought to",
    "i'm supposed to",
    "i am supposed to",
)

DEFAULT_SHOULD_REASON = "Rejected as a should: it does not originate from your own will."
DEFAULT_INDIRECT_REASON = "The contact does not directly affect achieving this want."


class GateStatus(StrEnum):
    BLOCKED = "blocked"
    REDIRECTED = "redirected"
    SUPPRESSED = "suppressed"
    DISPATCH = "dispatch"
    NO_EVENT = "no_event"


@dataclass(frozen=True)
class GateOutcome:
    """Decision for one turn.

    ``event`` is what the dispatcher should apply: the original event for
    ``dispatch``, a rejection record for ``redirected``, None otherwise.
    """

    status: GateStatus
    event: DomainEvent | None = None
    gate: str | None = None
    reason: str | None = None

    @property
    def dispatchable(self) -> bool:
        return self.event is not None and self.status in (
            GateStatus.DISPATCH,
            GateStatus.REDIRECTED,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": str(self.status),
            "gate": self.gate,
            "reason": self.reason,
            "event": self.event.to_wire() if self.event is not None else None,
        }


class Gate(Protocol):
    name: str

    def evaluate(self, envelope: ModelResponseEnvelope, message: str) -> GateOutcome | None:
        """Return an outcome to stop the pipeline, or None to pass."""
        ...


# ---------------------------------------------------------------------------
# Gates
# ---------------------------------------------------------------------------


class GuardrailGate:
    name = "guardrail"

    def evaluate(self, envelope: ModelResponseEnvelope, message: str) -> GateOutcome | None:
        guardrail = envelope.guardrail
        if guardrail is None or not guardrail.blocked:
            return None
        reason = guardrail.kind
        if guardrail.message:
            reason = f"{reason}: {guardrail.message}"
        return GateOutcome(status=GateStatus.BLOCKED, gate=self.name, reason=reason)


class WantValidityGate:
    """Redirect a ``want.create`` for a should into a rejection record.

    The model's own ``isValidWant=false`` always wins. With *reverify* on,
    obligation language in the user's utterance also rejects the want;
    re-verification can tighten the model's verdict but never loosen it.
    """

    name = "want_validity"

    def __init__(self, *, reverify: bool = True) -> None:
        self._reverify = reverify

    def evaluate(self, envelope: ModelResponseEnvelope, message: str) -> GateOutcome | None:
        event = envelope.event
        if not isinstance(event, WantCreateEvent):
            return None

        reason: str | None = None
        validation = envelope.validation
        if validation is not None and not validation.is_valid_want:
            reason = validation.reason or DEFAULT_SHOULD_REASON
        elif self._reverify:
            marker = find_obligation_marker(message)
            if marker is not None:
                reason = f'Obligation language ("{marker}") marks this as a should, not a want.'
        if reason is None:
            return None

        rejection = RejectShouldEvent(
            payload=RejectShouldPayload(
                title=event.payload.title,
                reason=event.payload.reason,
                rejection_reason=reason,
            )
        )
        return GateOutcome(
            status=GateStatus.REDIRECTED, event=rejection, gate=self.name, reason=reason
        )


class DirectnessGate:
    """Drop a ``want.attachContact`` the model judged indirect."""

    name = "directness"

    def evaluate(self, envelope: ModelResponseEnvelope, message: str) -> GateOutcome | None:
        event = envelope.event
        if not isinstance(event, AttachContactEvent):
            return None

        for check in (envelope.directness_check, event.payload.directness_check):
            if check is not None and not check.is_direct:
                return GateOutcome(
                    status=GateStatus.SUPPRESSED,
                    gate=self.name,
                    reason=check.failing_reason or DEFAULT_INDIRECT_REASON,
                )
        return None


def find_obligation_marker(message: str) -> str | None:
    lowered = message.lower().replace("’", "'")
    for marker in OBLIGATION_MARKERS:
        if marker in lowered:
            return marker
    return None


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------


def default_gates(*, reverify_wants: bool = True) -> tuple[Gate, ...]:
    return (GuardrailGate(), WantValidityGate(reverify=reverify_wants), DirectnessGate())


class ValidationPipeline:
    """Run gates in order; the first decision short-circuits the rest."""

    def __init__(self, gates: Sequence[Gate] | None = None) -> None:
        self._gates: tuple[Gate, ...] = tuple(gates) if gates is not None else default_gates()

    @property
    def gates(self) -> tuple[Gate, ...]:
        return self._gates

    def run(self, envelope: ModelResponseEnvelope, *, message: str = "") -> GateOutcome:
        for gate in self._gates:
            outcome = gate.evaluate(envelope, message)
            if outcome is not None:
                log.info(
                    "gate.decided",
                    gate=gate.name,
                    status=str(outcome.status),
                    reason=outcome.reason,
                )
                return outcome

        if envelope.event is None:
            return GateOutcome(status=GateStatus.NO_EVENT)
        return GateOutcome(status=GateStatus.DISPATCH, event=envelope.event)
