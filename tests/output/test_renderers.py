"""Tests for the Rich renderers and output formatting modes."""

from __future__ import annotations

import json

from coachctl.output.console import create_console, get_output, style_for_gate
from coachctl.output.formatters import OutputSettings, format_result
from coachctl.output.renderers import render_quiet, render_result
from coachctl.services.result import ServiceError, ServiceResult


def _turn(**overrides: object) -> ServiceResult:
    data: dict[str, object] = {
        "reply": "Added a task to call Bob.",
        "gate": {"status": "dispatch", "gate": None, "reason": None, "event": None},
        "event_type": "task.create",
        "dispatch": {
            "event_type": "task.create",
            "aggregate": "task",
            "status": "applied",
            "target_id": "TASK-0001",
            "audit_id": 1,
            "detail": None,
        },
        "ack_required": False,
        "chunks": 2,
        "session_id": "abc123",
    }
    data.update(overrides)
    return ServiceResult(ok=True, op="turn", data=data)


class TestRenderTurn:
    def test_reply_and_dispatch(self) -> None:
        output = render_result(_turn())
        assert "Added a task to call Bob." in output
        assert "gate: dispatch" in output
        assert "task.create applied -> TASK-0001" in output
        assert "session_id" not in output

    def test_blocked_turn(self) -> None:
        output = render_result(
            _turn(
                reply="Watch your tone.",
                gate={"status": "blocked", "gate": "guardrail", "reason": "disrespect: rude"},
                dispatch=None,
                ack_required=True,
            )
        )
        assert "gate: blocked (guardrail)" in output
        assert "reason: disrespect: rude" in output
        assert "acknowledgment required" in output

    def test_verbose_shows_telemetry(self) -> None:
        result = _turn().model_copy(
            update={
                "meta": {
                    "telemetry": {
                        "name": "ConversationOrchestrator.run_turn",
                        "duration_ms": 12.5,
                        "children": [
                            {
                                "name": "invoke",
                                "duration_ms": 10.0,
                                "annotations": {"model": "m"},
                            },
                        ],
                    }
                }
            }
        )
        output = render_result(result, verbose=True)
        assert "session_id: abc123" in output
        assert "ConversationOrchestrator.run_turn" in output
        assert "invoke  (model=m)" in output


class TestOtherRenderers:
    def test_prompt(self) -> None:
        result = ServiceResult(
            ok=True,
            op="prompt",
            data={"system_prompt": "You are X.", "user_message": "USER MESSAGE: hi", "chunks": []},
        )
        output = render_result(result)
        assert "You are X." in output
        assert "USER MESSAGE: hi" in output
        assert "chunks: 0" in output

    def test_parse(self) -> None:
        result = ServiceResult(
            ok=True,
            op="parse",
            data={
                "envelope": {
                    "reply": "ok",
                    "guardrail": {"kind": "spying", "message": "m", "blocked": True},
                },
                "gate": {"status": "blocked", "gate": "guardrail", "reason": "spying: m"},
            },
        )
        output = render_result(result)
        assert "OK  parse" in output
        assert '"kind":"spying"' in output
        assert "gate: blocked" in output

    def test_audit_table(self) -> None:
        item = {
            "id": 7,
            "session_id": "s1",
            "timestamp": "2026-03-01T00:00:00+00:00",
            "event_type": "task.create",
            "aggregate": "task",
            "target_id": "TASK-0001",
            "payload": {"title": "Call Bob"},
        }
        result = ServiceResult(ok=True, op="audit", data={"count": 1, "items": [item]})
        output = render_result(result, verbose=True)
        assert "task.create" in output
        assert "TASK-0001" in output
        assert '"title":"Call Bob"' in output

    def test_empty_audit(self) -> None:
        result = ServiceResult(ok=True, op="audit", data={"count": 0, "items": []})
        assert render_result(result) == "No audit entries."

    def test_generic_fallback(self) -> None:
        result = ServiceResult(ok=True, op="other", data={"n": 1, "tags": ["a"]})
        output = render_result(result)
        assert "OK  other" in output
        assert "n: 1" in output
        assert 'tags: ["a"]' in output

    def test_error(self) -> None:
        result = ServiceResult(
            ok=False,
            op="audit",
            error=ServiceError(code="INVALID_LIMIT", message="bad limit", detail={"limit": 0}),
        )
        assert render_result(result) == "ERROR  audit: bad limit"
        assert "limit: 0" in render_result(result, verbose=True)


class TestQuietAndJson:
    def test_quiet_turn_is_reply_only(self) -> None:
        assert render_quiet(_turn()) == "Added a task to call Bob."

    def test_quiet_items(self) -> None:
        result = ServiceResult(ok=True, op="audit", data={"items": [{"id": 2}, {"id": 1}]})
        assert render_quiet(result) == "2\n1"

    def test_quiet_error(self) -> None:
        result = ServiceResult(ok=False, op="doctrine", error=ServiceError(code="X", message="m"))
        assert render_quiet(result) == "ERROR: doctrine: m"

    def test_quiet_fallback(self) -> None:
        assert render_quiet(ServiceResult(ok=True, op="doctrine")) == "OK: doctrine"

    def test_json_wins(self) -> None:
        output = format_result(_turn(), settings=OutputSettings(json_output=True, quiet=True))
        assert json.loads(output)["data"]["dispatch"]["target_id"] == "TASK-0001"

    def test_default_is_rich(self) -> None:
        assert "gate: dispatch" in format_result(_turn())


class TestConsole:
    def test_console_buffer(self) -> None:
        console = create_console(no_color=True, width=40)
        console.print("hello")
        assert get_output(console) == "hello\n"

    def test_gate_style(self) -> None:
        assert style_for_gate("blocked") == "coach.gate.blocked"
        assert style_for_gate("") == ""
