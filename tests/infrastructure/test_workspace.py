"""Tests for the Workspace container."""

from __future__ import annotations

from pathlib import Path

import pytest

from coachctl.config.settings import CoachSettings
from coachctl.infrastructure.workspace import Workspace


def _workspace(root: Path, **overrides: object) -> Workspace:
    return Workspace(CoachSettings.from_cli(workspace_root=root, **overrides))


class TestWorkspace:
    def test_layout(self, workspace: Workspace, workspace_root: Path) -> None:
        assert workspace.root == workspace_root
        assert workspace.data_dir == workspace_root / ".coachctl"
        assert (workspace.data_dir / "coachctl.db").is_file()

    def test_packaged_doctrine_by_default(self, workspace: Workspace) -> None:
        assert workspace.doctrine.name == "Little Lord"
        assert "APEX FRAME" in workspace.corpus

    def test_custom_doctrine_and_corpus(self, workspace_root: Path) -> None:
        (workspace_root / "coach.yaml").write_text(
            "name: Custom\nversion: '9'\nidentity: {role: r, tone: t}\n"
            "corpus: {path: notes.txt}\n",
            encoding="utf-8",
        )
        (workspace_root / "notes.txt").write_text("custom corpus", encoding="utf-8")
        ws = _workspace(workspace_root, doctrine={"spec_path": "coach.yaml"})
        try:
            assert ws.doctrine.name == "Custom"
            assert ws.corpus == "custom corpus"
        finally:
            ws.close()

    def test_configured_corpus_path_wins(self, workspace_root: Path) -> None:
        (workspace_root / "other.txt").write_text("other corpus", encoding="utf-8")
        ws = _workspace(workspace_root, doctrine={"corpus_path": "other.txt"})
        try:
            assert ws.corpus == "other corpus"
        finally:
            ws.close()

    def test_stores_share_unit_of_work(self, workspace: Workspace) -> None:
        stores = workspace.stores()
        with pytest.raises(RuntimeError), stores.atomic():
            stores.tasks.create(title="a", contact_id="c1")
            raise RuntimeError("abort")
        assert stores.tasks.list_for_contact("c1") == []

    def test_audit_log_bound_to_session(self, workspace: Workspace) -> None:
        assert workspace.audit_log("abc").session_id == "abc"

    def test_plugins_disabled(self, workspace_root: Path) -> None:
        ws = _workspace(workspace_root, plugins={"enabled": False})
        try:
            ws.init_plugins()
            assert ws.plugin_manager is None
        finally:
            ws.close()

    def test_init_plugins(self, workspace: Workspace) -> None:
        assert workspace.plugin_manager is None
        workspace.init_plugins()
        assert workspace.plugin_manager is not None
        assert workspace.plugin_manager.is_loaded
