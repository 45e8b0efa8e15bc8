"""Threat analysis pipeline.

One invocation walks::

    RECEIVED -> VALIDATED -> CONTEXT_BUILT -> MODEL_CALLED -> PARSED [-> REPAIRED]
             -> PERSISTED -> [ALERTED] -> DONE

Only two exits are errors: invalid input (``ValidationError``, before any
upstream call) and a failed reasoning call (``UpstreamError``, before any
write). An unparseable reply is mapped to a conservative fallback
assessment, and storage failures are logged without failing the run.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any, Protocol

from perimeter_ai.config import Settings
from perimeter_ai.errors import PersistenceError
from perimeter_ai.logging import get_logger
from perimeter_ai.threats.models import (
    SecurityAlert,
    SecurityEvent,
    ThreatAnalysis,
    build_analysis_context,
)
from perimeter_ai.threats.parser import (
    ParsedAnalysis,
    ParseFailure,
    parse_threat_analysis,
    resolve_analysis,
)
from perimeter_ai.threats.prompt import SYSTEM_PROMPT, build_threat_prompt
from perimeter_ai.threats.reasoning import ReasoningClient
from perimeter_ai.validation.schema import require_valid
from perimeter_ai.validation.schemas import THREAT_DETECTION_SCHEMA

log = get_logger("perimeter_ai.threats.pipeline")

DEFAULT_EVENT_LIMIT = 50
DEFAULT_TIME_WINDOW = "24 hours"
DEFAULT_MAX_OUTPUT_TOKENS = 2000
DEFAULT_ANALYSIS_TYPE = "batch"


class PipelineStage(StrEnum):
    RECEIVED = "received"
    VALIDATED = "validated"
    CONTEXT_BUILT = "context_built"
    MODEL_CALLED = "model_called"
    PARSED = "parsed"
    REPAIRED = "repaired"
    PERSISTED = "persisted"
    ALERTED = "alerted"
    DONE = "done"


class ThreatRepository(Protocol):
    """Storage the pipeline reads events from and appends results to."""

    async def fetch_recent_events(self, limit: int) -> list[SecurityEvent]: ...

    async def insert_analysis(
        self,
        analysis: ThreatAnalysis,
        *,
        analysis_type: str,
        events_analyzed: int,
        requested_by: str | None = None,
    ) -> str: ...

    async def insert_alert(self, alert: SecurityAlert) -> str: ...


@dataclass
class AnalysisReport:
    """Outcome of one pipeline run."""

    analysis: ThreatAnalysis
    analysis_type: str
    events_analyzed: int
    timestamp: datetime
    parse_failed: bool = False
    persisted: bool = False
    alert_created: bool = False
    stages: list[PipelineStage] = field(default_factory=list)

    def to_response(self) -> dict[str, Any]:
        """JSON body returned to the caller."""
        return {
            "success": True,
            "analysis": self.analysis.to_payload(),
            "eventsAnalyzed": self.events_analyzed,
            "aiPowered": True,
            "timestamp": self.timestamp.isoformat(),
            "persisted": self.persisted,
            "alertCreated": self.alert_created,
        }


class ThreatAnalysisPipeline:
    """Turn security events into a persisted, optionally alerted assessment."""

    def __init__(
        self,
        reasoning: ReasoningClient,
        store: ThreatRepository | None = None,
        *,
        event_limit: int = DEFAULT_EVENT_LIMIT,
        time_window: str = DEFAULT_TIME_WINDOW,
        max_output_tokens: int = DEFAULT_MAX_OUTPUT_TOKENS,
        clock: Callable[[], datetime] = lambda: datetime.now(UTC),
    ) -> None:
        self._reasoning = reasoning
        self._store = store
        self._event_limit = event_limit
        self._time_window = time_window
        self._max_output_tokens = max_output_tokens
        self._clock = clock

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        reasoning: ReasoningClient,
        store: ThreatRepository | None = None,
    ) -> ThreatAnalysisPipeline:
        return cls(
            reasoning,
            store,
            event_limit=settings.threat_event_limit,
            time_window=settings.threat_time_window,
            max_output_tokens=settings.threat_max_output_tokens,
        )

    async def run(
        self,
        body: Mapping[str, Any] | None = None,
        *,
        requested_by: str | None = None,
    ) -> AnalysisReport:
        """Run one analysis.

        Args:
            body: Request body with optional ``events`` and ``analysisType``.
            requested_by: Caller id recorded alongside the stored analysis.

        Raises:
            ValidationError: ``body`` violates the threat detection schema.
            UpstreamError: The reasoning service call failed.
        """
        stages: list[PipelineStage] = []
        self._advance(stages, PipelineStage.RECEIVED)

        payload = require_valid(THREAT_DETECTION_SCHEMA, {} if body is None else body)
        analysis_type: str = payload.get("analysisType") or DEFAULT_ANALYSIS_TYPE
        self._advance(stages, PipelineStage.VALIDATED, analysis_type=analysis_type)

        events = payload.get("events")
        if events is None:
            events = await self._recent_events()
        now = self._clock()
        context = build_analysis_context(events, timestamp=now, time_window=self._time_window)
        self._advance(stages, PipelineStage.CONTEXT_BUILT, event_count=len(events))

        result = await self._reasoning.complete(
            build_threat_prompt(context),
            system_prompt=SYSTEM_PROMPT,
            max_tokens=self._max_output_tokens,
        )
        self._advance(
            stages,
            PipelineStage.MODEL_CALLED,
            provider=result.provider,
            model=result.model,
            latency_ms=round(result.latency_ms, 1),
        )

        parsed = parse_threat_analysis(result.content)
        match parsed:
            case ParseFailure(reason=reason):
                log.warning("threat_analysis_parse_failed", reason=reason)
                parse_failed, repaired = True, False
            case ParsedAnalysis(repaired=repaired):
                parse_failed = False
        analysis = resolve_analysis(parsed)
        self._advance(stages, PipelineStage.PARSED, fallback=parse_failed)
        if repaired:
            self._advance(stages, PipelineStage.REPAIRED)

        report = AnalysisReport(
            analysis=analysis,
            analysis_type=analysis_type,
            events_analyzed=len(events),
            timestamp=now,
            parse_failed=parse_failed,
            stages=stages,
        )

        report.persisted = await self._persist(report, requested_by)
        if report.persisted:
            self._advance(stages, PipelineStage.PERSISTED)

        if analysis.threat_level.raises_alert:
            report.alert_created = await self._raise_alert(analysis)
            if report.alert_created:
                self._advance(stages, PipelineStage.ALERTED)

        self._advance(
            stages,
            PipelineStage.DONE,
            threat_level=analysis.threat_level.value,
            confidence=analysis.confidence,
        )
        return report

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    async def _recent_events(self) -> Sequence[SecurityEvent]:
        if self._store is None:
            return []
        try:
            return await self._store.fetch_recent_events(self._event_limit)
        except PersistenceError as exc:
            log.error("security_events_fetch_failed", error=str(exc))
            return []

    async def _persist(self, report: AnalysisReport, requested_by: str | None) -> bool:
        if self._store is None:
            return False
        try:
            await self._store.insert_analysis(
                report.analysis,
                analysis_type=report.analysis_type,
                events_analyzed=report.events_analyzed,
                requested_by=requested_by,
            )
        except PersistenceError as exc:
            log.error("threat_analysis_store_failed", error=str(exc))
            return False
        return True

    async def _raise_alert(self, analysis: ThreatAnalysis) -> bool:
        if self._store is None:
            return False
        try:
            await self._store.insert_alert(SecurityAlert.from_analysis(analysis))
        except PersistenceError as exc:
            log.error("security_alert_create_failed", error=str(exc))
            return False
        return True

    @staticmethod
    def _advance(stages: list[PipelineStage], stage: PipelineStage, **context: Any) -> None:
        stages.append(stage)
        log.debug("threat_pipeline_stage", stage=stage.value, **context)
