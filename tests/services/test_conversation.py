"""Tests for turn orchestration and the conversation session."""

from __future__ import annotations

import asyncio
import json
from collections.abc import Callable, Sequence
from typing import Any

import pluggy
import pytest

from coachctl.domain.messages import ChatMessage, Role
from coachctl.infrastructure.workspace import Workspace
from coachctl.plugins.manager import PluginManager
from coachctl.services.conversation import (
    INVOCATION_FAILURE_REPLY,
    Conversation,
    ConversationOrchestrator,
)
from coachctl.services.telemetry import disable_telemetry, enable_telemetry

hookimpl = pluggy.HookimplMarker("coachctl")

CALL_BOB = json.dumps(
    {
        "reply": "Added a task to call Bob.",
        "event": {"type": "task.create", "payload": {"contactId": "c1", "title": "Call Bob"}},
    }
)
DISRESPECT = json.dumps(
    {
        "reply": "Watch your tone.",
        "event": {"type": "task.create", "payload": {"title": "Should not exist"}},
        "guardrail": {"kind": "disrespect", "message": "Insult toward the coach", "blocked": True},
    }
)
PLAIN = json.dumps({"reply": "Noted.", "event": None})

MakeOrchestrator = Callable[..., ConversationOrchestrator]


class _BlockingInvoker:
    """Invoker that waits until released (or cancelled)."""

    def __init__(self) -> None:
        self.release = asyncio.Event()

    async def invoke(self, messages: Sequence[ChatMessage]) -> str:
        await self.release.wait()
        return PLAIN


class _Recorder:
    def __init__(self) -> None:
        self.calls: list[tuple[str, dict[str, Any]]] = []

    @hookimpl
    def post_turn(self, session_id: str, status: str, event_type: str | None) -> None:
        self.calls.append(("post_turn", {"status": status, "event_type": event_type}))

    @hookimpl
    def post_dispatch(
        self, event_type: str, aggregate: str, target_id: str | None, audit_id: int | None
    ) -> None:
        self.calls.append(("post_dispatch", {"event_type": event_type, "target_id": target_id}))

    @hookimpl
    def post_guardrail(self, session_id: str, kind: str, message: str) -> None:
        self.calls.append(("post_guardrail", {"kind": kind}))


class TestRunTurn:
    def test_task_is_created(
        self, workspace: Workspace, make_orchestrator: MakeOrchestrator
    ) -> None:
        orchestrator = make_orchestrator(CALL_BOB)
        result = asyncio.run(
            orchestrator.run_turn("Remind me to call Bob", context={"selectedContactId": "c1"})
        )

        assert result.ok
        assert result.op == "turn"
        assert result.data["reply"] == "Added a task to call Bob."
        assert result.data["gate"]["status"] == "dispatch"
        assert result.data["event_type"] == "task.create"
        assert result.data["dispatch"]["status"] == "applied"
        assert result.data["dispatch"]["target_id"] == "TASK-0001"
        assert result.data["session_id"] == orchestrator.session_id
        assert not result.data["ack_required"]
        assert [t["title"] for t in workspace.stores().tasks.list_for_contact("c1")] == [
            "Call Bob"
        ]

    def test_messages_sent_to_model(
        self, make_invoker: Callable[..., Any], make_orchestrator: MakeOrchestrator
    ) -> None:
        invoker = make_invoker(PLAIN)
        orchestrator = make_orchestrator(invoker=invoker)
        asyncio.run(orchestrator.run_turn("apex frame", context={"viewId": "crm"}))

        (messages,) = invoker.calls
        assert [m.role for m in messages] == [Role.SYSTEM, Role.USER]
        assert messages[0].content.startswith("You are Little Lord v2.0.")
        assert "DOCTRINE CONTEXT" in messages[0].content
        assert messages[1].content.startswith("USER MESSAGE: apex frame\n\nCONTEXT:\n")

    def test_invocation_failure_still_replies(self, make_orchestrator: MakeOrchestrator) -> None:
        orchestrator = make_orchestrator(RuntimeError("connection reset"))
        result = asyncio.run(orchestrator.run_turn("hello"))

        assert result.ok
        assert result.data["reply"] == INVOCATION_FAILURE_REPLY
        assert result.data["invocation_failed"] is True
        assert result.data["gate"]["status"] == "no_event"
        assert result.warnings == ["Model invocation failed: connection reset"]

    def test_plain_text_reply(self, make_orchestrator: MakeOrchestrator) -> None:
        result = asyncio.run(make_orchestrator("Just hold your frame.").run_turn("hi"))
        assert result.data["reply"] == "Just hold your frame."
        assert result.data["dispatch"] is None

    def test_blocked_guardrail_dispatches_nothing(
        self, workspace: Workspace, make_orchestrator: MakeOrchestrator
    ) -> None:
        result = asyncio.run(make_orchestrator(DISRESPECT).run_turn("you are useless"))

        assert result.data["gate"]["status"] == "blocked"
        assert result.data["dispatch"] is None
        assert result.data["ack_required"] is True
        assert result.data["guardrail"]["kind"] == "disrespect"
        assert workspace.stores().tasks.list_for_contact("0") == []

    def test_guardrail_without_message_vetoes_event(
        self, workspace: Workspace, make_orchestrator: MakeOrchestrator
    ) -> None:
        raw = json.dumps(
            {
                "reply": "x",
                "event": {"type": "task.create", "payload": {"title": "Leak", "contactId": "c1"}},
                "guardrail": {"kind": "disrespect", "blocked": True},
            }
        )
        result = asyncio.run(make_orchestrator(raw).run_turn("you are useless"))

        assert result.data["gate"]["status"] == "blocked"
        assert result.data["dispatch"] is None
        assert result.data["ack_required"] is True
        assert workspace.stores().tasks.list_for_contact("c1") == []

    def test_reasonless_rejection_records_should(
        self, workspace: Workspace, make_orchestrator: MakeOrchestrator
    ) -> None:
        raw = json.dumps(
            {
                "reply": "That is a should.",
                "event": {"type": "want.create", "payload": {"title": "Gym"}},
                "validation": {"isValidWant": False},
            }
        )
        result = asyncio.run(make_orchestrator(raw).run_turn("add a gym want"))

        assert result.data["gate"]["status"] == "redirected"
        (want,) = workspace.stores().wants.list_all()
        assert want["origin_type"] == "should_rejected"
        assert want["title"] == "Gym"

    def test_rejection_with_malformed_title_uses_default(
        self, workspace: Workspace, make_orchestrator: MakeOrchestrator
    ) -> None:
        raw = json.dumps(
            {
                "reply": "That is a should.",
                "event": {"type": "want.create", "payload": {"title": 5}},
                "validation": {"isValidWant": False, "reason": "Imported obligation"},
            }
        )
        result = asyncio.run(make_orchestrator(raw).run_turn("add a gym want"))

        assert result.data["dispatch"]["event_type"] == "want.rejectShould"
        (want,) = workspace.stores().wants.list_all()
        assert want["origin_type"] == "should_rejected"
        assert want["title"] == "Rejected Should"
        assert want["reason"] == ""

    def test_indirect_attachment_keeps_primary_contact(
        self, workspace: Workspace, make_orchestrator: MakeOrchestrator
    ) -> None:
        wants = workspace.stores().wants
        want_id = wants.create(title="Sign the client", reason="I want the deal")
        wants.attach_primary_contact(want_id, "contact-a")
        raw = json.dumps(
            {
                "reply": "Your mentor does not sign the contract.",
                "event": {
                    "type": "want.attachContact",
                    "payload": {"wantId": want_id, "primaryContactId": "contact-b"},
                },
                "directnessCheck": {"isDirect": False, "failingReason": "Only inspires"},
            }
        )
        result = asyncio.run(make_orchestrator(raw).run_turn("attach my mentor"))

        assert result.data["gate"]["status"] == "suppressed"
        assert result.data["dispatch"] is None
        want = wants.get(want_id)
        assert want is not None
        assert want["primary_contact_id"] == "contact-a"

    def test_should_is_recorded_as_rejection(
        self, workspace: Workspace, make_orchestrator: MakeOrchestrator
    ) -> None:
        raw = json.dumps(
            {
                "reply": "Added your want.",
                "event": {"type": "want.create", "payload": {"title": "Go to the gym"}},
                "validation": {"isValidWant": True, "reason": "ok"},
            }
        )
        result = asyncio.run(make_orchestrator(raw).run_turn("I should go to the gym"))

        assert result.data["gate"]["status"] == "redirected"
        assert result.data["dispatch"]["event_type"] == "want.rejectShould"
        (want,) = workspace.stores().wants.list_all()
        assert want["origin_type"] == "should_rejected"

    def test_unknown_event_is_ignored(self, make_orchestrator: MakeOrchestrator) -> None:
        raw = json.dumps({"reply": "ok", "event": {"type": "calendar.book", "payload": {}}})
        result = asyncio.run(make_orchestrator(raw).run_turn("book it"))
        assert result.data["dispatch"]["status"] == "ignored"

    def test_plugin_hooks_fire(
        self, workspace: Workspace, make_invoker: Callable[..., Any]
    ) -> None:
        recorder = _Recorder()
        workspace._plugin_manager = PluginManager()
        workspace._plugin_manager.register_plugin(recorder)
        orchestrator = ConversationOrchestrator.from_workspace(workspace, make_invoker(CALL_BOB))

        asyncio.run(orchestrator.run_turn("call bob"))

        assert recorder.calls == [
            ("post_dispatch", {"event_type": "task.create", "target_id": "TASK-0001"}),
            ("post_turn", {"status": "dispatch", "event_type": "task.create"}),
        ]

    def test_guardrail_hook(self, workspace: Workspace, make_invoker: Callable[..., Any]) -> None:
        recorder = _Recorder()
        workspace._plugin_manager = PluginManager()
        workspace._plugin_manager.register_plugin(recorder)
        orchestrator = ConversationOrchestrator.from_workspace(workspace, make_invoker(DISRESPECT))

        asyncio.run(orchestrator.run_turn("you are useless"))

        assert [name for name, _ in recorder.calls] == ["post_guardrail", "post_turn"]

    def test_telemetry_spans(self, make_orchestrator: MakeOrchestrator) -> None:
        enable_telemetry()
        try:
            result = asyncio.run(make_orchestrator(CALL_BOB).run_turn("call bob"))
        finally:
            disable_telemetry()

        assert result.meta is not None
        span = result.meta["telemetry"]
        assert span["name"] == "ConversationOrchestrator.run_turn"
        assert [child["name"] for child in span["children"]] == [
            "retrieve",
            "assemble",
            "invoke",
            "parse",
            "validate",
            "dispatch",
        ]


class TestPreviewAndInspect:
    def test_preview(self, make_orchestrator: MakeOrchestrator) -> None:
        result = make_orchestrator().preview("apex frame", context={"selectedContactId": "c1"})
        assert result.op == "prompt"
        assert result.data["chunks"][0].startswith("APEX FRAME")
        assert "selectedContactId" in result.data["user_message"]

    def test_inspect_does_not_dispatch(
        self, workspace: Workspace, make_orchestrator: MakeOrchestrator
    ) -> None:
        result = make_orchestrator().inspect(CALL_BOB)
        assert result.op == "parse"
        assert result.data["gate"]["status"] == "dispatch"
        assert result.data["envelope"]["event"]["type"] == "task.create"
        assert workspace.stores().tasks.list_for_contact("c1") == []


class TestConversation:
    def test_history_and_context_only_on_first_message(
        self, make_invoker: Callable[..., Any], make_orchestrator: MakeOrchestrator
    ) -> None:
        invoker = make_invoker(PLAIN)
        conversation = Conversation(
            make_orchestrator(invoker=invoker), context={"selectedContactId": "c1"}
        )

        asyncio.run(conversation.send("first"))
        asyncio.run(conversation.send("second"))

        assert [(m.role, m.content) for m in conversation.history] == [
            (Role.USER, "first"),
            (Role.ASSISTANT, "Noted."),
            (Role.USER, "second"),
            (Role.ASSISTANT, "Noted."),
        ]
        second_call = invoker.calls[1]
        assert second_call[1].content.startswith("USER MESSAGE: first\n\nCONTEXT:")
        assert second_call[2].content == "Noted."
        assert second_call[3].content == "second"

    def test_guardrail_gate_requires_acknowledgment(
        self, make_invoker: Callable[..., Any], make_orchestrator: MakeOrchestrator
    ) -> None:
        invoker = make_invoker(DISRESPECT, PLAIN)
        conversation = Conversation(make_orchestrator(invoker=invoker))

        asyncio.run(conversation.send("you are useless"))
        assert conversation.gate_pending
        assert conversation.pending_guardrail == {
            "kind": "disrespect",
            "message": "Insult toward the coach",
            "blocked": True,
        }

        gated = asyncio.run(conversation.send("anyway, call bob"))
        assert len(invoker.calls) == 1
        assert gated.data["ack_required"] is True
        assert gated.data["gate"] == {
            "status": "blocked",
            "gate": "acknowledgment",
            "reason": "disrespect",
            "event": None,
        }
        assert gated.data["reply"].startswith("Respect is the price of admission.")
        assert gated.data["reply"].endswith('Type "AGREE" to continue.')
        assert len(conversation.history) == 2

        assert conversation.acknowledge("sure") is False
        assert conversation.gate_pending
        assert conversation.acknowledge(" agree ") is True
        assert not conversation.gate_pending
        assert conversation.gate_message() == ""

        asyncio.run(conversation.send("ok, sorry"))
        assert len(invoker.calls) == 2

    def test_acknowledge_without_gate(self, make_orchestrator: MakeOrchestrator) -> None:
        assert Conversation(make_orchestrator()).acknowledge("anything") is True

    def test_custom_ack_phrase(self, make_orchestrator: MakeOrchestrator) -> None:
        conversation = Conversation(make_orchestrator(DISRESPECT), ack_phrase="I RESPECT")
        asyncio.run(conversation.send("bad words"))
        assert conversation.gate_message().endswith('Type "I RESPECT" to continue.')
        assert conversation.acknowledge("i respect")

    def test_second_turn_while_in_flight_is_rejected(
        self, make_orchestrator: MakeOrchestrator
    ) -> None:
        invoker = _BlockingInvoker()
        conversation = Conversation(make_orchestrator(invoker=invoker))

        async def scenario() -> tuple[Any, Any]:
            first = asyncio.create_task(conversation.send("one"))
            await asyncio.sleep(0)
            assert conversation.in_flight
            second = await conversation.send("two")
            invoker.release.set()
            return await first, second

        first, second = asyncio.run(scenario())

        assert first.ok
        assert not second.ok
        assert second.error is not None
        assert second.error.code == "TURN_IN_FLIGHT"
        assert [m.content for m in conversation.history] == ["one", "Noted."]

    def test_cancelled_turn_leaves_no_trace(
        self, workspace: Workspace, make_orchestrator: MakeOrchestrator
    ) -> None:
        invoker = _BlockingInvoker()
        conversation = Conversation(make_orchestrator(invoker=invoker))

        async def scenario() -> None:
            task = asyncio.create_task(conversation.send("call bob"))
            await asyncio.sleep(0)
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task

        asyncio.run(scenario())

        assert conversation.history == ()
        assert not conversation.in_flight
        assert workspace.audit_log(conversation.session_id).entries() == []
