"""Turn orchestration and the caller-held conversation session.

:class:`ConversationOrchestrator` runs one turn end to end::

    retrieve -> assemble -> invoke -> parse -> validate -> dispatch

The model call is the only ``await``. Every path ends in a reply: an
invocation failure becomes a generic reply with no event, and parse, gate
and dispatch problems surface as structured data and warnings.

:class:`Conversation` owns the append-only history, the single in-flight
turn, and the acknowledgment gate a blocking guardrail opens.
"""

from __future__ import annotations

import uuid
from collections.abc import Sequence
from typing import TYPE_CHECKING, Any

import structlog

from coachctl.domain.doctrine import DoctrineSpec
from coachctl.domain.messages import (
    ChatMessage,
    ConversationContext,
    ConversationMessage,
    Role,
)
from coachctl.domain.parser import ResponseContractParser
from coachctl.domain.prompt import build_system_prompt, build_user_message
from coachctl.domain.retrieval import CorpusRetriever
from coachctl.services.base import notify_plugins
from coachctl.services.contracts import (
    ParseResultData,
    PromptResultData,
    TurnResultData,
    dump_validated,
)
from coachctl.services.dispatch import EventDispatcher
from coachctl.services.result import ServiceError, ServiceResult
from coachctl.services.telemetry import trace_span, traced
from coachctl.services.validation import (
    GateOutcome,
    GateStatus,
    ValidationPipeline,
    default_gates,
)

if TYPE_CHECKING:
    from coachctl.infrastructure.llm import ModelInvoker
    from coachctl.infrastructure.workspace import Workspace
    from coachctl.plugins.manager import PluginManager

log = structlog.get_logger(__name__)

INVOCATION_FAILURE_REPLY = "I encountered an error processing your request. Please try again."
DEFAULT_GUARDRAIL_RESPONSE = "That request crosses a boundary this coach holds."
ACK_GATE = "acknowledgment"

Context = ConversationContext | dict[str, Any] | None


def new_session_id() -> str:
    return uuid.uuid4().hex[:12]


class ConversationOrchestrator:
    """Compose retriever, assembler, invoker, parser, gates and dispatcher."""

    def __init__(
        self,
        *,
        doctrine: DoctrineSpec,
        retriever: CorpusRetriever,
        invoker: ModelInvoker,
        dispatcher: EventDispatcher,
        pipeline: ValidationPipeline | None = None,
        parser: ResponseContractParser | None = None,
        plugins: PluginManager | None = None,
        session_id: str | None = None,
    ) -> None:
        self._doctrine = doctrine
        self._retriever = retriever
        self._invoker = invoker
        self._dispatcher = dispatcher
        self._pipeline = pipeline or ValidationPipeline()
        self._parser = parser or ResponseContractParser()
        self._plugins = plugins
        self._session_id = session_id or new_session_id()

    @classmethod
    def from_workspace(
        cls,
        workspace: Workspace,
        invoker: ModelInvoker | None = None,
        *,
        session_id: str | None = None,
    ) -> ConversationOrchestrator:
        """Wire an orchestrator from workspace settings, stores and plugins."""
        from coachctl.infrastructure.llm import OpenAIChatInvoker

        settings = workspace.settings
        session_id = session_id or new_session_id()
        retriever = CorpusRetriever.from_spec(
            workspace.doctrine,
            workspace.corpus,
            max_chunks=settings.retrieval.max_chunks,
            min_chunk_length=settings.retrieval.min_chunk_length,
            enabled=settings.retrieval.enabled,
        )
        dispatcher = EventDispatcher(
            workspace.stores(),
            workspace.audit_log(session_id),
            default_contact_id=settings.policy.default_contact_id,
            plugins=workspace.plugin_manager,
        )
        return cls(
            doctrine=workspace.doctrine,
            retriever=retriever,
            invoker=invoker or OpenAIChatInvoker.from_config(settings.model),
            dispatcher=dispatcher,
            pipeline=ValidationPipeline(
                default_gates(reverify_wants=settings.policy.reverify_wants)
            ),
            plugins=workspace.plugin_manager,
            session_id=session_id,
        )

    @property
    def session_id(self) -> str:
        return self._session_id

    @property
    def doctrine(self) -> DoctrineSpec:
        return self._doctrine

    # ------------------------------------------------------------------
    # Assembly
    # ------------------------------------------------------------------

    def build_messages(
        self,
        message: str,
        *,
        history: Sequence[ConversationMessage] = (),
        context: Context = None,
        chunks: list[str] | None = None,
    ) -> list[ChatMessage]:
        """System prompt, history, then the current message.

        Only the first user message carries the context payload; later
        messages are plain text.
        """
        if chunks is None:
            chunks = self._retriever.retrieve(message)
        system_prompt = build_system_prompt(self._doctrine, chunks)
        messages = [ChatMessage(role=Role.SYSTEM, content=system_prompt)]

        context_sent = False
        for entry in history:
            content = entry.content
            if entry.role == Role.USER and not context_sent:
                content = build_user_message(content, context)
                context_sent = True
            messages.append(ChatMessage(role=entry.role, content=content))

        current = message if context_sent else build_user_message(message, context)
        messages.append(ChatMessage(role=Role.USER, content=current))
        return messages

    def preview(self, message: str, *, context: Context = None) -> ServiceResult:
        """Assemble the prompt for *message* without calling the model."""
        chunks = self._retriever.retrieve(message)
        data = {
            "system_prompt": build_system_prompt(self._doctrine, chunks),
            "user_message": build_user_message(message, context),
            "chunks": chunks,
        }
        return ServiceResult(ok=True, op="prompt", data=dump_validated(PromptResultData, data))

    def inspect(self, raw: str, *, message: str = "") -> ServiceResult:
        """Parse raw model output and run the gates, without dispatching."""
        envelope = self._parser.parse(raw)
        outcome = self._pipeline.run(envelope, message=message)
        data = {"envelope": envelope.to_wire(), "gate": outcome.to_dict()}
        return ServiceResult(ok=True, op="parse", data=dump_validated(ParseResultData, data))

    # ------------------------------------------------------------------
    # Turn
    # ------------------------------------------------------------------

    @traced
    async def run_turn(
        self,
        message: str,
        *,
        history: Sequence[ConversationMessage] = (),
        context: Context = None,
    ) -> ServiceResult:
        """Run one turn. Never raises for invocation, parse, gate or dispatch failures.

        ``asyncio.CancelledError`` from the invoker propagates untouched,
        so a cancelled turn dispatches nothing.
        """
        warnings: list[str] = []

        with trace_span("retrieve") as span:
            chunks = self._retriever.retrieve(message)
            if span:
                span.annotate("chunks", len(chunks))

        with trace_span("assemble"):
            messages = self.build_messages(message, history=history, context=context, chunks=chunks)

        with trace_span("invoke"):
            try:
                raw = await self._invoker.invoke(messages)
            except Exception as exc:
                log.warning("turn.invocation_failed", session_id=self._session_id, error=str(exc))
                warnings.append(f"Model invocation failed: {exc}")
                return self._result(
                    reply=INVOCATION_FAILURE_REPLY,
                    outcome=GateOutcome(status=GateStatus.NO_EVENT),
                    chunks=len(chunks),
                    warnings=warnings,
                    invocation_failed=True,
                )

        with trace_span("parse"):
            envelope = self._parser.parse(raw)

        with trace_span("validate") as span:
            outcome = self._pipeline.run(envelope, message=message)
            if span:
                span.annotate("status", str(outcome.status))

        record = None
        if outcome.dispatchable and outcome.event is not None:
            with trace_span("dispatch"):
                record = self._dispatcher.dispatch(
                    outcome.event, context=context, warnings=warnings
                )

        guardrail = envelope.guardrail
        if outcome.status is GateStatus.BLOCKED and guardrail is not None:
            notify_plugins(
                self._plugins,
                "post_guardrail",
                warnings,
                session_id=self._session_id,
                kind=guardrail.kind,
                message=guardrail.message,
            )

        return self._result(
            reply=envelope.reply,
            outcome=outcome,
            event_type=envelope.event.type if envelope.event is not None else None,
            dispatch=record.to_dict() if record is not None else None,
            guardrail=guardrail.model_dump() if guardrail is not None else None,
            ack_required=outcome.status is GateStatus.BLOCKED,
            chunks=len(chunks),
            warnings=warnings,
        )

    def _result(
        self,
        *,
        reply: str,
        outcome: GateOutcome,
        chunks: int,
        warnings: list[str],
        **extra: Any,
    ) -> ServiceResult:
        notify_plugins(
            self._plugins,
            "post_turn",
            warnings,
            session_id=self._session_id,
            status=str(outcome.status),
            event_type=extra.get("event_type"),
        )
        data = {
            "reply": reply,
            "gate": outcome.to_dict(),
            "chunks": chunks,
            "session_id": self._session_id,
            **extra,
        }
        return ServiceResult(
            ok=True,
            op="turn",
            data=dump_validated(TurnResultData, data),
            warnings=warnings,
        )


class Conversation:
    """Caller-held session: history, in-flight guard, acknowledgment gate.

    Usage::

        conversation = Conversation(orchestrator)
        result = await conversation.send("I want to train for a marathon")
        if conversation.gate_pending:
            conversation.acknowledge("AGREE")

    The gate is session-scoped and dismiss-only: it clears only through
    :meth:`acknowledge` and is never persisted.
    """

    def __init__(
        self,
        orchestrator: ConversationOrchestrator,
        *,
        ack_phrase: str = "AGREE",
        context: Context = None,
    ) -> None:
        self._orchestrator = orchestrator
        self._ack_phrase = ack_phrase
        self._context = context
        self._history: list[ConversationMessage] = []
        self._pending: dict[str, Any] | None = None
        self._in_flight = False

    @property
    def history(self) -> tuple[ConversationMessage, ...]:
        return tuple(self._history)

    @property
    def session_id(self) -> str:
        return self._orchestrator.session_id

    @property
    def ack_phrase(self) -> str:
        return self._ack_phrase

    @property
    def gate_pending(self) -> bool:
        return self._pending is not None

    @property
    def pending_guardrail(self) -> dict[str, Any] | None:
        return dict(self._pending) if self._pending is not None else None

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    def acknowledge(self, text: str) -> bool:
        """Clear the gate if *text* is the acknowledgment phrase (case-insensitive).

        Returns True when no gate remains pending.
        """
        if self._pending is None:
            return True
        if text.strip().upper() != self._ack_phrase.strip().upper():
            return False
        log.info("conversation.acknowledged", session_id=self.session_id)
        self._pending = None
        return True

    def gate_message(self) -> str:
        """Canned guardrail response plus the acknowledgment instruction."""
        if self._pending is None:
            return ""
        definition = self._orchestrator.doctrine.guardrail(self._pending["kind"])
        if definition is not None:
            response = definition.response
        else:
            response = self._pending["message"] or DEFAULT_GUARDRAIL_RESPONSE
        return f'{response}\n\nType "{self._ack_phrase}" to continue.'

    async def send(self, message: str, *, context: Context = None) -> ServiceResult:
        if self._in_flight:
            return ServiceResult(
                ok=False,
                op="turn",
                error=ServiceError(
                    code="TURN_IN_FLIGHT",
                    message="A turn is already in flight for this conversation",
                ),
            )

        if self._pending is not None:
            data = {
                "reply": self.gate_message(),
                "gate": {"status": "blocked", "gate": ACK_GATE, "reason": self._pending["kind"]},
                "guardrail": self._pending,
                "ack_required": True,
                "session_id": self.session_id,
            }
            return ServiceResult(ok=True, op="turn", data=dump_validated(TurnResultData, data))

        self._in_flight = True
        try:
            result = await self._orchestrator.run_turn(
                message,
                history=self.history,
                context=context if context is not None else self._context,
            )
        finally:
            self._in_flight = False

        self._history.append(ConversationMessage(role=Role.USER, content=message))
        self._history.append(ConversationMessage(role=Role.ASSISTANT, content=result.data["reply"]))
        if result.data.get("ack_required"):
            self._pending = result.data.get("guardrail")
        return result
