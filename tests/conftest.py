"""Shared pytest fixtures and test helpers for coachctl tests."""

from __future__ import annotations

import logging
from collections.abc import Callable, Generator, Sequence
from pathlib import Path
from typing import Any

import pytest
import structlog
from click.testing import CliRunner
from sqlalchemy.engine import Engine

from coachctl.config.settings import CoachSettings
from coachctl.domain.doctrine import DoctrineSpec, load_doctrine
from coachctl.domain.messages import ChatMessage
from coachctl.infrastructure.database.engine import init_database
from coachctl.infrastructure.database.unit_of_work import UnitOfWork
from coachctl.infrastructure.workspace import Workspace


class FakeInvoker:
    """Scripted ModelInvoker: returns (or raises) replies in order.

    The last reply repeats once the script runs out.
    """

    def __init__(self, *replies: str | BaseException) -> None:
        self._replies = list(replies) or [""]
        self.calls: list[list[ChatMessage]] = []

    async def invoke(self, messages: Sequence[ChatMessage]) -> str:
        self.calls.append(list(messages))
        reply = self._replies.pop(0) if len(self._replies) > 1 else self._replies[0]
        if isinstance(reply, BaseException):
            raise reply
        return reply


@pytest.fixture
def cli_runner() -> CliRunner:
    """Provide a Click CLI test runner."""
    return CliRunner()


@pytest.fixture
def db_engine(tmp_path: Path) -> Generator[Engine]:
    """Initialized SQLite engine with all tables created."""
    engine = init_database(tmp_path)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture
def uow(db_engine: Engine) -> UnitOfWork:
    return UnitOfWork(db_engine)


@pytest.fixture
def doctrine() -> DoctrineSpec:
    """The packaged sample doctrine."""
    return load_doctrine()


@pytest.fixture
def workspace_root(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Temporary workspace directory, isolated from any ambient config."""
    monkeypatch.delenv("COACHCTL_CONFIG", raising=False)
    return tmp_path


@pytest.fixture
def workspace(workspace_root: Path) -> Generator[Workspace]:
    """Fully initialized workspace on a temp directory."""
    settings = CoachSettings.from_cli(workspace_root=workspace_root)
    ws = Workspace(settings)
    try:
        yield ws
    finally:
        ws.close()


@pytest.fixture
def make_invoker() -> Callable[..., FakeInvoker]:
    """Factory for scripted fake model invokers."""
    return FakeInvoker


@pytest.fixture
def make_orchestrator(workspace: Workspace) -> Callable[..., Any]:
    """Build an orchestrator on the test workspace around a fake invoker."""
    from coachctl.services.conversation import ConversationOrchestrator

    def _make(*replies: str | BaseException, **kwargs: Any) -> ConversationOrchestrator:
        invoker = kwargs.pop("invoker", None) or FakeInvoker(*replies)
        return ConversationOrchestrator.from_workspace(workspace, invoker, **kwargs)

    return _make


@pytest.fixture
def _isolated_workspace(workspace_root: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Change CWD to a temp workspace root so the CLI creates an isolated workspace.

    Use via ``@pytest.mark.usefixtures("_isolated_workspace")`` on command
    test classes.
    """
    monkeypatch.chdir(workspace_root)
    monkeypatch.setenv("OPENAI_API_KEY", "test-key")


@pytest.fixture
def stub_model(monkeypatch: pytest.MonkeyPatch) -> list[str]:
    """Replace the HTTP model call with scripted replies.

    Append raw model outputs to the returned list; each CLI turn pops one.
    """
    from coachctl.infrastructure.llm import OpenAIChatInvoker

    replies: list[str] = []

    async def fake_invoke(self: OpenAIChatInvoker, messages: Sequence[ChatMessage]) -> str:
        return replies.pop(0)

    monkeypatch.setattr(OpenAIChatInvoker, "invoke", fake_invoke)
    return replies


@pytest.fixture(autouse=True)
def _reset_process_state() -> Generator[None]:
    """Undo what the CLI root group configures process-wide.

    ``AppContext`` replaces the root log handlers (bound to the CliRunner's
    stderr) and ``-v`` switches telemetry on.
    """
    from coachctl.services.telemetry import disable_telemetry

    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    disable_telemetry()
    root.handlers[:] = handlers
    root.setLevel(level)
    logging.getLogger("coachctl").setLevel(logging.NOTSET)
    structlog.reset_defaults()
