"""Model self-assessments carried alongside the reply.

Wire names are camelCase (``isValidWant``, ``isDirect``, ``failingReason``).
Strict scalar types: a ``"true"`` string is not a boolean here.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, StrictBool, StrictStr
from pydantic.alias_generators import to_camel

NO_GUARDRAIL = "none"
UNKNOWN_GUARDRAIL = "unspecified"


class _WireModel(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    def to_wire(self) -> dict[str, object]:
        return self.model_dump(mode="json", by_alias=True, exclude_unset=True)


class GuardrailViolation(_WireModel):
    """A guardrail the model flagged on the user's utterance."""

    kind: StrictStr
    message: StrictStr = ""
    blocked: StrictBool


class WantValidation(_WireModel):
    """Want-vs-should verdict for a ``want.create`` request."""

    is_valid_want: StrictBool
    reason: StrictStr = ""


class DirectnessCheck(_WireModel):
    """Whether the want is directly caused by the attached contact."""

    is_direct: StrictBool
    failing_reason: StrictStr | None = None
