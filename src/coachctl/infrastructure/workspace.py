"""Workspace: the single dependency injected into every service.

The Workspace owns the database engine and its unit of work, the loaded
doctrine spec and corpus, and the plugin manager. It is constructed once
per CLI invocation from :class:`CoachSettings`.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from functools import cached_property
from pathlib import Path
from typing import TYPE_CHECKING

from coachctl.domain.doctrine import DoctrineSpec, load_corpus, load_doctrine
from coachctl.domain.stores import StoreBundle
from coachctl.infrastructure.database.engine import DATA_DIRNAME, init_database
from coachctl.infrastructure.database.unit_of_work import UnitOfWork
from coachctl.infrastructure.repositories import (
    AuditLog,
    SqlInteractionStore,
    SqlNoteStore,
    SqlScopeStore,
    SqlTaskStore,
    SqlWantStore,
)

if TYPE_CHECKING:
    from sqlalchemy import Connection
    from sqlalchemy.engine import Engine

    from coachctl.config.settings import CoachSettings
    from coachctl.plugins.manager import PluginManager

logger = logging.getLogger(__name__)


class Workspace:
    """Repository root: database, doctrine, and plugins for one invocation."""

    def __init__(self, settings: CoachSettings) -> None:
        self._settings = settings
        self._engine: Engine = init_database(self.root)
        self._uow = UnitOfWork(self._engine)
        self._plugin_manager: PluginManager | None = None

    @property
    def root(self) -> Path:
        return self._settings.workspace_root

    @property
    def data_dir(self) -> Path:
        return self.root / DATA_DIRNAME

    @property
    def settings(self) -> CoachSettings:
        return self._settings

    @property
    def engine(self) -> Engine:
        return self._engine

    @property
    def uow(self) -> UnitOfWork:
        return self._uow

    @property
    def plugin_manager(self) -> PluginManager | None:
        """The plugin manager (None until :meth:`init_plugins` runs)."""
        return self._plugin_manager

    # ------------------------------------------------------------------
    # Doctrine
    # ------------------------------------------------------------------

    @cached_property
    def doctrine(self) -> DoctrineSpec:
        """Doctrine spec from ``[doctrine] spec_path``, or the packaged sample."""
        path = self._settings.resolve_path(self._settings.doctrine.spec_path)
        spec = load_doctrine(path)
        logger.debug("Loaded doctrine %s v%s", spec.name, spec.version)
        return spec

    @cached_property
    def corpus(self) -> str:
        """Corpus text from ``[doctrine] corpus_path``, the spec's own path, or the sample."""
        path = self._settings.resolve_path(self._settings.doctrine.corpus_path)
        if path is None:
            path = self._settings.resolve_path(self.doctrine.corpus.path)
        return load_corpus(path)

    # ------------------------------------------------------------------
    # Stores
    # ------------------------------------------------------------------

    def stores(self) -> StoreBundle:
        """SQLite-backed stores sharing this workspace's unit of work."""
        return StoreBundle(
            tasks=SqlTaskStore(self._uow),
            notes=SqlNoteStore(self._uow),
            interactions=SqlInteractionStore(self._uow),
            wants=SqlWantStore(self._uow),
            scopes=SqlScopeStore(self._uow),
            atomic=self._uow.begin,
        )

    def audit_log(self, session_id: str) -> AuditLog:
        return AuditLog(self._uow, session_id)

    @contextmanager
    def transaction(self) -> Iterator[Connection]:
        """Open (or join) the workspace transaction.

        Usage::

            with workspace.transaction() as conn:
                conn.execute(insert(tasks).values(...))
        """
        with self._uow.begin() as conn:
            yield conn

    # ------------------------------------------------------------------
    # Plugins and lifecycle
    # ------------------------------------------------------------------

    def init_plugins(self) -> None:
        """Discover entry-point and local plugins. No-op when disabled."""
        from coachctl.plugins.manager import PluginManager

        if not self._settings.plugins.enabled:
            return
        pm = PluginManager()
        local_dir = self._settings.resolve_path(self._settings.plugins.local_dir)
        names = pm.discover_and_load(local_dir=local_dir)
        logger.debug("Loaded plugins: %s", names)
        self._plugin_manager = pm

    def close(self) -> None:
        self._engine.dispose()
