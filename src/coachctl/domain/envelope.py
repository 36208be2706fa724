"""ModelResponseEnvelope: the structured reply contract.

Wire shape (exact)::

    {
      "reply": "...",
      "event": {"type": "...", "payload": {...}},
      "validation": {"isValidWant": bool, "reason": "..."},
      "directnessCheck": {"isDirect": bool, "failingReason": "..."},
      "guardrail": {"kind": "...", "message": "...", "blocked": bool}
    }

Only ``reply`` is always present; every other key may be absent or null.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel

from coachctl.domain.assessments import DirectnessCheck, GuardrailViolation, WantValidation
from coachctl.domain.events import DomainEvent


class ModelResponseEnvelope(BaseModel):
    """Parsed model reply. Built by ``domain.parser``, consumed by the gates."""

    model_config = {"frozen": True}

    reply: str
    event: DomainEvent | None = None
    validation: WantValidation | None = None
    directness_check: DirectnessCheck | None = None
    guardrail: GuardrailViolation | None = None

    @property
    def blocked(self) -> bool:
        return self.guardrail is not None and self.guardrail.blocked

    def to_wire(self) -> dict[str, Any]:
        """Re-serialize to the wire contract, omitting absent keys."""
        wire: dict[str, Any] = {"reply": self.reply}
        if self.event is not None:
            wire["event"] = self.event.to_wire()
        if self.validation is not None:
            wire["validation"] = self.validation.to_wire()
        if self.directness_check is not None:
            wire["directnessCheck"] = self.directness_check.to_wire()
        if self.guardrail is not None:
            wire["guardrail"] = self.guardrail.to_wire()
        return wire
