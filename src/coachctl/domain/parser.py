"""Response contract parsing: raw model text -> ModelResponseEnvelope.

Recovery is an explicit ordered list of strategies:

1. :class:`DirectJsonStrategy` (the whole text is a JSON object)
2. :class:`EmbeddedObjectStrategy` (the first JSON object found inside
   prose or code fences)
3. :class:`PlainTextStrategy` (the text itself is the reply)

Object-producing strategies raise :class:`ContractParseError`, which the
parser always recovers from; callers never see it. Once an object is
accepted, every field is coerced independently so one malformed block
never costs the others.
"""

from __future__ import annotations

import json
from collections.abc import Sequence
from typing import Any, Protocol, TypeVar

import structlog
from pydantic import BaseModel, ValidationError

from coachctl.domain.assessments import (
    UNKNOWN_GUARDRAIL,
    DirectnessCheck,
    GuardrailViolation,
    WantValidation,
)
from coachctl.domain.envelope import ModelResponseEnvelope
from coachctl.domain.events import (
    KNOWN_EVENT_ADAPTER,
    MODEL_EVENT_TYPES,
    DomainEvent,
    UnknownEvent,
)

T = TypeVar("T", bound=BaseModel)

log = structlog.get_logger(__name__)

EMPTY_REPLY_FALLBACK = "I encountered an issue processing your request."


class ContractParseError(Exception):
    """Raised by a strategy that cannot extract an envelope object."""


# ---------------------------------------------------------------------------
# Field coercion
# ---------------------------------------------------------------------------


def _invalid_keys(exc: ValidationError, container: str | None = None) -> set[str]:
    """Top-level keys (optionally under *container*) that failed validation."""
    keys: set[str] = set()
    for error in exc.errors():
        loc = error["loc"]
        if container is not None:
            if container not in loc:
                continue
            loc = loc[loc.index(container) + 1 :]
        if loc and isinstance(loc[0], str):
            keys.add(loc[0])
    return keys


def coerce_event(value: Any) -> DomainEvent | None:
    """Validate a raw ``event`` block.

    Malformed payload fields are dropped and the event is validated again;
    a known tag that still fails (a missing target id, say) is discarded.
    Unknown tags are kept as :class:`UnknownEvent` so the dispatcher can
    log them.
    """
    if not isinstance(value, dict):
        return None
    tag = value.get("type")
    if not isinstance(tag, str) or not tag:
        return None
    if tag not in MODEL_EVENT_TYPES:
        payload = value.get("payload")
        return UnknownEvent(type=tag, payload=payload if isinstance(payload, dict) else {})

    try:
        return KNOWN_EVENT_ADAPTER.validate_python(value)
    except ValidationError as exc:
        payload = value.get("payload")
        bad = set()
        if isinstance(payload, dict):
            bad = _invalid_keys(exc, "payload") & set(payload)
        if bad:
            trimmed = {key: item for key, item in payload.items() if key not in bad}
            try:
                event = KNOWN_EVENT_ADAPTER.validate_python({**value, "payload": trimmed})
            except ValidationError:
                pass
            else:
                log.info("parser.event_fields_dropped", event_type=tag, fields=sorted(bad))
                return event
        log.info("parser.event_discarded", event_type=tag, errors=exc.error_count())
        return None


def _coerce_block(model_cls: type[T], value: Any) -> T | None:
    if not isinstance(value, dict):
        return None
    try:
        return model_cls.model_validate(value)
    except ValidationError as exc:
        bad = _invalid_keys(exc) & set(value)
        if bad:
            try:
                block = model_cls.model_validate(
                    {key: item for key, item in value.items() if key not in bad}
                )
            except ValidationError:
                pass
            else:
                log.info(
                    "parser.block_fields_dropped", block=model_cls.__name__, fields=sorted(bad)
                )
                return block
        log.info("parser.block_discarded", block=model_cls.__name__)
        return None


def coerce_guardrail(value: Any) -> GuardrailViolation | None:
    """Validate a ``guardrail`` block, failing closed.

    A block that says ``"blocked": true`` always yields a blocking
    violation, however malformed its other fields are.
    """
    guardrail = _coerce_block(GuardrailViolation, value)
    if guardrail is not None or not isinstance(value, dict) or value.get("blocked") is not True:
        return guardrail
    kind = value.get("kind")
    message = value.get("message")
    log.warning("parser.guardrail_fail_closed", kind=kind)
    return GuardrailViolation(
        kind=kind if isinstance(kind, str) and kind else UNKNOWN_GUARDRAIL,
        message=message if isinstance(message, str) else "",
        blocked=True,
    )


def envelope_from_object(obj: dict[str, Any], raw: str) -> ModelResponseEnvelope:
    """Build an envelope from an accepted JSON object."""
    reply = obj.get("reply")
    return ModelResponseEnvelope(
        reply=reply if isinstance(reply, str) else raw.strip(),
        event=coerce_event(obj.get("event")),
        validation=_coerce_block(WantValidation, obj.get("validation")),
        directness_check=_coerce_block(DirectnessCheck, obj.get("directnessCheck")),
        guardrail=coerce_guardrail(obj.get("guardrail")),
    )


def plain_text_envelope(raw: str) -> ModelResponseEnvelope:
    return ModelResponseEnvelope(reply=raw.strip() or EMPTY_REPLY_FALLBACK)


# ---------------------------------------------------------------------------
# Strategies
# ---------------------------------------------------------------------------


class ParseStrategy(Protocol):
    name: str

    def parse(self, raw: str) -> ModelResponseEnvelope: ...


class DirectJsonStrategy:
    """The entire text must decode to a JSON object."""

    name = "direct"

    def parse(self, raw: str) -> ModelResponseEnvelope:
        try:
            obj = json.loads(raw)
        except (json.JSONDecodeError, TypeError) as exc:
            raise ContractParseError(f"not JSON: {exc}") from exc
        if not isinstance(obj, dict):
            raise ContractParseError("top-level JSON value is not an object")
        return envelope_from_object(obj, raw)


class EmbeddedObjectStrategy:
    """Decode from each ``{`` left to right; the first object wins."""

    name = "embedded"

    def __init__(self) -> None:
        self._decoder = json.JSONDecoder()

    def parse(self, raw: str) -> ModelResponseEnvelope:
        start = raw.find("{")
        while start != -1:
            try:
                obj, _end = self._decoder.raw_decode(raw, start)
            except json.JSONDecodeError:
                obj = None
            if isinstance(obj, dict):
                return envelope_from_object(obj, raw)
            start = raw.find("{", start + 1)
        raise ContractParseError("no embedded JSON object")


class PlainTextStrategy:
    """Treat the whole text as the reply. Never fails."""

    name = "plain_text"

    def parse(self, raw: str) -> ModelResponseEnvelope:
        return plain_text_envelope(raw)


DEFAULT_STRATEGIES: tuple[ParseStrategy, ...] = (
    DirectJsonStrategy(),
    EmbeddedObjectStrategy(),
    PlainTextStrategy(),
)


class ResponseContractParser:
    """Run strategies in order; the first that produces an envelope wins."""

    def __init__(self, strategies: Sequence[ParseStrategy] = DEFAULT_STRATEGIES) -> None:
        self._strategies = tuple(strategies)

    @property
    def strategies(self) -> tuple[ParseStrategy, ...]:
        return self._strategies

    def parse(self, raw: str) -> ModelResponseEnvelope:
        for strategy in self._strategies:
            try:
                envelope = strategy.parse(raw)
            except ContractParseError as exc:
                log.debug("parser.strategy_failed", strategy=strategy.name, reason=str(exc))
                continue
            log.debug("parser.strategy_matched", strategy=strategy.name)
            return envelope
        return plain_text_envelope(raw)
