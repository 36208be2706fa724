"""SQLite implementations of the dispatcher's store protocols."""

from coachctl.infrastructure.repositories.audit import AuditLog
from coachctl.infrastructure.repositories.crm import (
    SqlInteractionStore,
    SqlNoteStore,
    SqlTaskStore,
)
from coachctl.infrastructure.repositories.scopes import SqlScopeStore
from coachctl.infrastructure.repositories.wants import SqlWantStore

__all__ = [
    "AuditLog",
    "SqlInteractionStore",
    "SqlNoteStore",
    "SqlScopeStore",
    "SqlTaskStore",
    "SqlWantStore",
]
