"""DoctrineSpec: the versioned document that defines the coach.

The spec carries persona, doctrine-use rules, reasoning rule sets, the
closed guardrail catalog, the event protocol, and safety lists. It is
loaded once per process and never mutated by the pipeline.

Documents are YAML (a JSON document is valid YAML, so both load through
the same path).
"""

from __future__ import annotations

from importlib import resources
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field
from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

DEFAULT_DOCTRINE_RESOURCE = "doctrine.yaml"
DEFAULT_CORPUS_RESOURCE = "corpus.txt"


class RetrievalSpec(BaseModel):
    """corpus.retrieval block."""

    model_config = {"frozen": True}

    enabled: bool = True
    mode: str = "keyword"
    max_chunks: int = 5


class CorpusSpec(BaseModel):
    """corpus block: where the doctrine corpus lives and how it is chunked."""

    model_config = {"frozen": True}

    path: str = ""
    format: str = "text"
    delimiter: str = "---"
    retrieval: RetrievalSpec = Field(default_factory=RetrievalSpec)


class IdentitySpec(BaseModel):
    """identity block."""

    model_config = {"frozen": True}

    role: str
    tone: str
    behavior: list[str] = Field(default_factory=list)


class GuardrailDefinition(BaseModel):
    """One entry in the closed guardrail catalog."""

    model_config = {"frozen": True}

    description: str
    triggers: list[str] = Field(default_factory=list)
    response: str = ""
    blocked: bool = True


class DoctrineRules(BaseModel):
    """doctrine block."""

    model_config = {"frozen": True}

    source: str = ""
    use: list[str] = Field(default_factory=list)
    no_output: list[str] = Field(default_factory=list)
    doctrinal_rules: list[str] = Field(default_factory=list)
    guardrails: dict[str, GuardrailDefinition] = Field(default_factory=dict)


class EventProtocolEntry(BaseModel):
    """One event type in the catalog with its payload field hints."""

    model_config = {"frozen": True}

    type: str
    payload: dict[str, str] = Field(default_factory=dict)


class ReasoningRules(BaseModel):
    """reasoning_rules block."""

    model_config = {"frozen": True}

    core: list[str] = Field(default_factory=list)
    context_use: list[str] = Field(default_factory=list)
    payload_generation: list[str] = Field(default_factory=list)
    want_validation: list[str] = Field(default_factory=list)
    directness_validation: list[str] = Field(default_factory=list)
    guardrail_enforcement: list[str] = Field(default_factory=list)


class SafetySpec(BaseModel):
    """safety block."""

    model_config = {"frozen": True}

    forbidden: list[str] = Field(default_factory=list)
    allowed: list[str] = Field(default_factory=list)


class DoctrineSpec(BaseModel):
    """Root doctrine document.

    Attributes:
        name: Display name of the coach.
        version: Document version, echoed into the system prompt.
        model: Preferred model identifier.
        event_protocol: Keyed catalog of event types the model may emit.
            Insertion order is preserved and drives prompt ordering.
        protocol_notes: Titled free-form instruction blocks appended after
            the event catalog.
    """

    model_config = {"frozen": True}

    name: str
    version: str
    model: str = "gpt-4o-mini"
    corpus: CorpusSpec = Field(default_factory=CorpusSpec)
    identity: IdentitySpec
    doctrine: DoctrineRules = Field(default_factory=DoctrineRules)
    event_protocol: dict[str, EventProtocolEntry] = Field(default_factory=dict)
    reasoning_rules: ReasoningRules = Field(default_factory=ReasoningRules)
    safety: SafetySpec = Field(default_factory=SafetySpec)
    protocol_notes: dict[str, list[str]] = Field(default_factory=dict)

    @property
    def guardrail_kinds(self) -> list[str]:
        """Guardrail kinds in catalog order."""
        return list(self.doctrine.guardrails)

    @property
    def event_types(self) -> list[str]:
        """Event type tags in catalog order."""
        return [entry.type for entry in self.event_protocol.values()]

    def guardrail(self, kind: str) -> GuardrailDefinition | None:
        """Look up a guardrail definition by kind."""
        return self.doctrine.guardrails.get(kind)


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------


def _to_plain(node: Any) -> Any:
    """Convert ruamel containers into plain dicts/lists for pydantic."""
    if isinstance(node, dict):
        return {str(k): _to_plain(v) for k, v in node.items()}
    if isinstance(node, list):
        return [_to_plain(v) for v in node]
    return node


def parse_doctrine(text: str) -> DoctrineSpec:
    """Parse a YAML/JSON doctrine document."""
    try:
        data = YAML(typ="safe").load(text) or {}
    except YAMLError as exc:
        raise ValueError(f"Invalid doctrine document: {exc}") from exc
    return DoctrineSpec.model_validate(_to_plain(data))


def load_doctrine(path: Path | None = None) -> DoctrineSpec:
    """Load a doctrine spec from *path*, or the packaged sample if None."""
    if path is None:
        text = resources.files("coachctl.data").joinpath(DEFAULT_DOCTRINE_RESOURCE).read_text(
            encoding="utf-8"
        )
    else:
        text = path.read_text(encoding="utf-8")
    return parse_doctrine(text)


def load_corpus(path: Path | None = None) -> str:
    """Load the doctrine corpus text, or the packaged sample if None."""
    if path is None:
        return (
            resources.files("coachctl.data")
            .joinpath(DEFAULT_CORPUS_RESOURCE)
            .read_text(encoding="utf-8")
        )
    return path.read_text(encoding="utf-8")
