"""AuditService: read access to the audit trail of applied events."""

from __future__ import annotations

from coachctl.infrastructure.repositories.audit import list_entries
from coachctl.services.base import BaseService
from coachctl.services.contracts import AuditListResultData, dump_validated
from coachctl.services.result import ServiceError, ServiceResult
from coachctl.services.telemetry import traced


class AuditService(BaseService):
    """List audit entries, newest first."""

    @traced
    def list(self, *, session_id: str | None = None, limit: int | None = 20) -> ServiceResult:
        if limit is not None and limit < 1:
            return ServiceResult(
                ok=False,
                op="audit",
                error=ServiceError(
                    code="INVALID_LIMIT",
                    message=f"Limit must be positive, got {limit}",
                    detail={"limit": limit},
                ),
            )
        items = list_entries(self._workspace.uow, session_id=session_id, limit=limit)
        return ServiceResult(
            ok=True,
            op="audit",
            data=dump_validated(AuditListResultData, {"count": len(items), "items": items}),
        )
