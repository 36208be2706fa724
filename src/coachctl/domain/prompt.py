"""Prompt assembly: doctrine spec + retrieved chunks -> system prompt.

Pure and deterministic: identical inputs produce an identical string.
The assembler holds no doctrine content of its own; every rule, catalog
entry and note comes from the :class:`DoctrineSpec`.
"""

from __future__ import annotations

import json
from typing import Any

from coachctl.domain.assessments import NO_GUARDRAIL
from coachctl.domain.doctrine import DoctrineSpec
from coachctl.domain.messages import ConversationContext

CHUNK_SEPARATOR = "\n\n---\n\n"

CLOSING_INSTRUCTION = (
    "Only emit an event when the user's message clearly implies an operational action. "
    "Default to null."
)

_OUTPUT_SCHEMA = """OUTPUT FORMAT:
You MUST respond with valid JSON only. No markdown fences, no extra text.

{{
  "reply": "your coaching response as a string",
  "event": null OR {{
    "type": "<event_type>",
    "payload": {{ ... }}
  }},
  "validation": null OR {{
    "isValidWant": boolean,
    "reason": "string explaining why valid or invalid"
  }},
  "directnessCheck": null OR {{
    "isDirect": boolean,
    "failingReason": "string explaining why not direct (if applicable)"
  }},
  "guardrail": null OR {{
    "kind": {kinds},
    "message": "explanation of what was detected",
    "blocked": true
  }}
}}"""


def _bullets(title: str, items: list[str]) -> str:
    return title + ":\n" + "\n".join(f"- {item}" for item in items)


def _optional(title: str, items: list[str]) -> str | None:
    return _bullets(title, items) if items else None


def _guardrail_definitions(spec: DoctrineSpec) -> str | None:
    guardrails = spec.doctrine.guardrails
    if not guardrails:
        return None
    entries = [
        f"- {kind.upper()}:\n"
        f"  Description: {definition.description}\n"
        f"  Triggers: {', '.join(definition.triggers)}\n"
        f'  Response: "{definition.response}"'
        for kind, definition in guardrails.items()
    ]
    return "GUARDRAIL DEFINITIONS:\n" + "\n".join(entries)


def _output_schema(spec: DoctrineSpec) -> str:
    kinds = [kind for kind in spec.guardrail_kinds if kind != NO_GUARDRAIL]
    rendered = " | ".join(f'"{kind}"' for kind in kinds) if kinds else '"<kind>"'
    return _OUTPUT_SCHEMA.format(kinds=rendered)


def _event_catalog(spec: DoctrineSpec) -> str | None:
    if not spec.event_protocol:
        return None
    lines = []
    for entry in spec.event_protocol.values():
        fields = ", ".join(f"{name}: {hint}" for name, hint in entry.payload.items())
        lines.append(f"- {entry.type}: {{ {fields} }}" if fields else f"- {entry.type}: {{}}")
    return "EVENT TYPES:\n" + "\n".join(lines)


def build_system_prompt(spec: DoctrineSpec, chunks: list[str]) -> str:
    """Assemble the system prompt in its fixed section order.

    Optional sections (doctrinal rules, the want/directness/guardrail rule
    sets, guardrail definitions, retrieved doctrine context, the event
    catalog and protocol notes) are omitted when empty.
    """
    identity = spec.identity
    rules = spec.reasoning_rules
    sections: list[str | None] = [
        f"You are {spec.name} v{spec.version}.",
        f"ROLE: {identity.role}\nTONE: {identity.tone}",
        _bullets("BEHAVIOR CONSTRAINTS", identity.behavior),
        _bullets("DOCTRINE APPLICATION", spec.doctrine.use),
        _bullets("OUTPUT RESTRICTIONS", spec.doctrine.no_output),
        _optional("DOCTRINAL RULES (MUST ENFORCE)", spec.doctrine.doctrinal_rules),
        _bullets("REASONING RULES (CORE)", rules.core),
        _optional("WANT VALIDATION RULES", rules.want_validation),
        _optional("DIRECTNESS VALIDATION RULES", rules.directness_validation),
        _optional("GUARDRAIL ENFORCEMENT (HIGHEST PRIORITY)", rules.guardrail_enforcement),
        _guardrail_definitions(spec),
        _bullets("CONTEXT USAGE", rules.context_use),
        _bullets("EVENT GENERATION", rules.payload_generation),
        _bullets("FORBIDDEN TOPICS", spec.safety.forbidden),
        _bullets("ALLOWED SCOPE", spec.safety.allowed),
    ]
    if chunks:
        sections.append(
            "DOCTRINE CONTEXT (use to inform your response):\n" + CHUNK_SEPARATOR.join(chunks)
        )
    sections.append(_output_schema(spec))
    sections.append(_event_catalog(spec))
    sections.extend(_bullets(title, lines) for title, lines in spec.protocol_notes.items())
    sections.append(CLOSING_INSTRUCTION)
    return "\n\n".join(section for section in sections if section)


def context_payload(context: ConversationContext | dict[str, Any] | None) -> dict[str, Any]:
    """Normalize a context into its wire dict (empty when absent)."""
    if context is None:
        return {}
    if isinstance(context, ConversationContext):
        return context.to_payload()
    return {key: value for key, value in context.items() if value is not None}


def build_user_message(
    message: str, context: ConversationContext | dict[str, Any] | None = None
) -> str:
    """``USER MESSAGE: <message>`` plus the JSON context block when non-empty."""
    payload = context_payload(context)
    if not payload:
        return f"USER MESSAGE: {message}"
    rendered = json.dumps(payload, indent=2, sort_keys=True, ensure_ascii=False)
    return f"USER MESSAGE: {message}\n\nCONTEXT:\n{rendered}"
