"""Tests for BaseService, contracts, telemetry, and the read services."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pydantic
import pytest

from coachctl.config.settings import CoachSettings
from coachctl.infrastructure.workspace import Workspace
from coachctl.services.audit import AuditService
from coachctl.services.base import BaseService, notify_plugins
from coachctl.services.contracts import DispatchRecordData, TurnResultData, dump_validated
from coachctl.services.doctrine import DoctrineService
from coachctl.services.result import ServiceError, ServiceResult
from coachctl.services.telemetry import (
    Span,
    enable_telemetry,
    get_current_span,
    trace_span,
    traced,
)


class _Plugins:
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.calls: list[tuple[str, dict[str, Any]]] = []

    def call(self, hook_name: str, **kwargs: Any) -> None:
        if self.fail:
            raise RuntimeError("plugin exploded")
        self.calls.append((hook_name, kwargs))


class TestNotifyPlugins:
    def test_no_manager_is_noop(self) -> None:
        warnings: list[str] = []
        notify_plugins(None, "post_turn", warnings, status="dispatch")
        assert warnings == []

    def test_calls_hook(self) -> None:
        plugins = _Plugins()
        warnings: list[str] = []
        notify_plugins(plugins, "post_turn", warnings, status="dispatch")  # type: ignore[arg-type]
        assert plugins.calls == [("post_turn", {"status": "dispatch"})]
        assert warnings == []

    def test_failure_becomes_warning(self) -> None:
        warnings: list[str] = []
        notify_plugins(_Plugins(fail=True), "post_turn", warnings)  # type: ignore[arg-type]
        assert warnings == ["Plugin hook failed for post_turn"]

    def test_base_service_uses_workspace_plugins(self, workspace: Workspace) -> None:
        plugins = _Plugins()
        workspace._plugin_manager = plugins  # type: ignore[assignment]
        warnings: list[str] = []
        BaseService(workspace)._notify("post_guardrail", warnings, kind="spying")
        assert plugins.calls == [("post_guardrail", {"kind": "spying"})]


class TestResultAndContracts:
    def test_result_defaults(self) -> None:
        result = ServiceResult(ok=True, op="turn")
        assert result.data == {}
        assert result.warnings == []
        assert result.error is None
        assert result.meta is None

    def test_result_is_frozen(self) -> None:
        result = ServiceResult(ok=False, op="audit", error=ServiceError(code="X", message="m"))
        with pytest.raises(pydantic.ValidationError):
            result.ok = True  # type: ignore[misc]

    def test_turn_contract_requires_gate(self) -> None:
        with pytest.raises(pydantic.ValidationError):
            dump_validated(TurnResultData, {"reply": "hi"})

    def test_turn_contract_keeps_extra_keys(self) -> None:
        data = dump_validated(
            TurnResultData,
            {"reply": "hi", "gate": {"status": "no_event"}, "session_id": "abc"},
        )
        assert data["session_id"] == "abc"
        assert data["dispatch"] is None
        assert data["invocation_failed"] is False

    def test_dispatch_contract_rejects_unknown_status(self) -> None:
        with pytest.raises(pydantic.ValidationError):
            DispatchRecordData.model_validate(
                {"event_type": "x", "aggregate": "task", "status": "done"}
            )


class TestTelemetry:
    def test_disabled_is_passthrough(self) -> None:
        @traced
        def op() -> ServiceResult:
            with trace_span("child") as span:
                assert span is None
            return ServiceResult(ok=True, op="x")

        assert op().meta is None
        assert get_current_span() is None

    def test_enabled_injects_span_tree(self) -> None:
        enable_telemetry()

        @traced
        def op() -> ServiceResult:
            with trace_span("child") as span:
                assert span is not None
                span.annotate("rows", 3)
            return ServiceResult(ok=True, op="x", meta={"keep": 1})

        meta = op().meta
        assert meta is not None
        assert meta["keep"] == 1
        tree = meta["telemetry"]
        assert tree["children"][0]["name"] == "child"
        assert tree["children"][0]["annotations"] == {"rows": 3}

    def test_non_result_return_untouched(self) -> None:
        enable_telemetry()

        @traced
        def op() -> int:
            return 42

        assert op() == 42

    def test_span_duration(self) -> None:
        span = Span(name="s")
        assert span.duration_ms == 0.0
        span.end()
        assert span.duration_ms >= 0.0
        assert span.to_dict()["name"] == "s"


class TestAuditService:
    def test_lists_newest_first(self, workspace: Workspace) -> None:
        log = workspace.audit_log("s1")
        with workspace.transaction():
            log.record(
                event_type="task.create",
                aggregate="task",
                target_id="TASK-0001",
                payload={"title": "a"},
            )
        workspace.audit_log("s2").record(
            event_type="contact.note", aggregate="note", target_id="NOTE-0001", payload={}
        )

        result = AuditService(workspace).list()
        assert result.ok
        assert result.data["count"] == 2
        assert [item["session_id"] for item in result.data["items"]] == ["s2", "s1"]

        only_s1 = AuditService(workspace).list(session_id="s1")
        assert only_s1.data["items"][0]["payload"] == {"title": "a"}

    def test_limit(self, workspace: Workspace) -> None:
        log = workspace.audit_log("s1")
        for i in range(3):
            log.record(event_type="task.create", aggregate="task", target_id=f"T{i}", payload={})
        result = AuditService(workspace).list(limit=2)
        assert [item["target_id"] for item in result.data["items"]] == ["T2", "T1"]

    def test_invalid_limit(self, workspace: Workspace) -> None:
        result = AuditService(workspace).list(limit=0)
        assert not result.ok
        assert result.error is not None
        assert result.error.code == "INVALID_LIMIT"


class TestDoctrineService:
    def test_summary(self, workspace: Workspace) -> None:
        result = DoctrineService(workspace).summary()
        assert result.ok
        assert result.op == "doctrine"
        assert result.data["name"] == "Little Lord"
        assert result.data["chunk_count"] == 7
        assert result.data["max_chunks"] == 5
        assert "disrespect" in result.data["guardrails"]
        assert len(result.data["event_types"]) == 15

    def test_settings_override_retrieval(self, workspace_root: Path) -> None:
        settings = CoachSettings.from_cli(
            workspace_root=workspace_root, retrieval={"max_chunks": 2, "enabled": False}
        )
        ws = Workspace(settings)
        try:
            result = DoctrineService(ws).summary()
        finally:
            ws.close()
        assert result.data["max_chunks"] == 2
        assert result.data["retrieval_enabled"] is False

    def test_broken_doctrine(self, workspace_root: Path) -> None:
        (workspace_root / "broken.yaml").write_text("name: [oops", encoding="utf-8")
        settings = CoachSettings.from_cli(
            workspace_root=workspace_root, doctrine={"spec_path": "broken.yaml"}
        )
        ws = Workspace(settings)
        try:
            result = DoctrineService(ws).summary()
        finally:
            ws.close()
        assert not result.ok
        assert result.error is not None
        assert result.error.code == "DOCTRINE_LOAD_FAILED"

    def test_missing_corpus_file(self, workspace_root: Path) -> None:
        settings = CoachSettings.from_cli(
            workspace_root=workspace_root, doctrine={"corpus_path": "nope.txt"}
        )
        ws = Workspace(settings)
        try:
            result = DoctrineService(ws).summary()
        finally:
            ws.close()
        assert result.error is not None
        assert result.error.code == "DOCTRINE_LOAD_FAILED"
