"""BaseService: foundation for workspace-backed services.

Every service receives a :class:`Workspace` at construction time. The
Workspace provides transactional access to the database, the loaded
doctrine, and the plugin manager.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from coachctl.infrastructure.workspace import Workspace
    from coachctl.plugins.manager import PluginManager

logger = logging.getLogger(__name__)


def notify_plugins(
    plugins: PluginManager | None,
    hook_name: str,
    warnings: list[str],
    **kwargs: Any,
) -> None:
    """Fire a plugin hook. No-op when no plugin manager is loaded.

    INVARIANT: Plugin failures are warnings, never errors.
    """
    if plugins is None:
        return
    try:
        plugins.call(hook_name, **kwargs)
    except Exception:
        logger.debug("Plugin hook %s failed", hook_name, exc_info=True)
        warnings.append(f"Plugin hook failed for {hook_name}")


class BaseService:
    """Abstract base for workspace-backed service classes.

    Usage::

        class AuditService(BaseService):
            def list(self, ...) -> ServiceResult:
                entries = list_entries(self._workspace.uow, ...)
                ...
    """

    def __init__(self, workspace: Workspace) -> None:
        self._workspace = workspace

    def _notify(self, hook_name: str, warnings: list[str], **kwargs: Any) -> None:
        notify_plugins(self._workspace.plugin_manager, hook_name, warnings, **kwargs)
