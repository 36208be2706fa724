"""Conversation messages and situational context.

Pure types, no infrastructure dependencies. History is append-only and
owned by the caller (see ``services.conversation.Conversation``).
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class Role(StrEnum):
    """Roles a model-facing chat message may carry."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


class ChatMessage(BaseModel):
    """One message in the list sent to the model backend."""

    model_config = {"frozen": True}

    role: Role
    content: str


class ConversationMessage(BaseModel):
    """One entry of conversation history (user or assistant only)."""

    model_config = {"frozen": True}

    role: Literal[Role.USER, Role.ASSISTANT]
    content: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))


class ConversationContext(BaseModel):
    """Situational context attached to the first user message of a session.

    Field names serialize camelCase; unknown keys pass through untouched so
    callers can attach whatever their view exposes.
    """

    model_config = ConfigDict(
        frozen=True,
        extra="allow",
        alias_generator=to_camel,
        populate_by_name=True,
    )

    view_id: str | None = None
    selected_contact_id: str | None = None
    editor_content: str | None = None
    active_want_id: str | None = None
    recent_tasks: list[dict[str, Any]] | None = None
    recent_notes: list[dict[str, Any]] | None = None
    want_creation: dict[str, Any] | None = None

    def to_payload(self) -> dict[str, Any]:
        """Wire form: camelCase keys, nulls omitted."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    def is_empty(self) -> bool:
        return not self.to_payload()
