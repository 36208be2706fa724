"""DoctrineService: summary of the loaded doctrine spec and corpus."""

from __future__ import annotations

from coachctl.domain.retrieval import CorpusRetriever
from coachctl.services.base import BaseService
from coachctl.services.contracts import DoctrineSummaryData, dump_validated
from coachctl.services.result import ServiceError, ServiceResult
from coachctl.services.telemetry import traced


class DoctrineService(BaseService):
    @traced
    def summary(self) -> ServiceResult:
        settings = self._workspace.settings
        try:
            spec = self._workspace.doctrine
            corpus = self._workspace.corpus
        except (OSError, ValueError) as exc:
            return ServiceResult(
                ok=False,
                op="doctrine",
                error=ServiceError(code="DOCTRINE_LOAD_FAILED", message=str(exc)),
            )

        retriever = CorpusRetriever.from_spec(
            spec,
            corpus,
            max_chunks=settings.retrieval.max_chunks,
            min_chunk_length=settings.retrieval.min_chunk_length,
            enabled=settings.retrieval.enabled,
        )
        data = {
            "name": spec.name,
            "version": spec.version,
            "model": spec.model,
            "role": spec.identity.role,
            "tone": spec.identity.tone,
            "guardrails": spec.guardrail_kinds,
            "event_types": spec.event_types,
            "chunk_count": len(retriever.chunks()),
            "retrieval_enabled": retriever.enabled,
            "max_chunks": retriever.max_chunks,
            "protocol_notes": list(spec.protocol_notes),
        }
        return ServiceResult(ok=True, op="doctrine", data=dump_validated(DoctrineSummaryData, data))
