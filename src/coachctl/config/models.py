"""Pydantic configuration models with code-baked defaults.

Sparse TOML contract: defaults baked here, coachctl.toml only contains
overrides. A fresh workspace needs no config file at all; the packaged
sample doctrine and corpus are used.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

# --- coachctl.toml sections ---


class DoctrineConfig(BaseModel):
    """[doctrine] section. Empty paths select the packaged sample."""

    model_config = {"frozen": True}

    spec_path: str = ""
    corpus_path: str = ""


class RetrievalConfig(BaseModel):
    """[retrieval] section. ``None`` defers to the doctrine spec's own value."""

    model_config = {"frozen": True}

    enabled: bool | None = None
    max_chunks: int | None = None
    min_chunk_length: int = 50


class ModelConfig(BaseModel):
    """[model] section: the OpenAI-compatible chat backend."""

    model_config = {"frozen": True}

    base_url: str = "https://api.openai.com/v1"
    model: str = "gpt-4o-mini"
    temperature: float = 0.1
    timeout_seconds: float = 60.0
    api_key_env: str = "OPENAI_API_KEY"


class PolicyConfig(BaseModel):
    """[policy] section."""

    model_config = {"frozen": True}

    reverify_wants: bool = True
    ack_phrase: str = "AGREE"
    default_contact_id: str = "0"


class PluginsConfig(BaseModel):
    """[plugins] section."""

    model_config = {"frozen": True}

    enabled: bool = True
    local_dir: str = ".coachctl/plugins"


class CoachConfig(BaseModel):
    """Root configuration composing all sections."""

    model_config = {"frozen": True}

    doctrine: DoctrineConfig = Field(default_factory=DoctrineConfig)
    retrieval: RetrievalConfig = Field(default_factory=RetrievalConfig)
    model: ModelConfig = Field(default_factory=ModelConfig)
    policy: PolicyConfig = Field(default_factory=PolicyConfig)
    plugins: PluginsConfig = Field(default_factory=PluginsConfig)
