"""Periodic threat analysis.

Runs the pipeline with ``analysisType="scheduled"`` on a fixed interval so
monitoring coverage does not depend on an operator hitting the endpoint.
"""

from __future__ import annotations

import asyncio
import contextlib
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from perimeter_ai.errors import BoundaryError
from perimeter_ai.logging import get_logger
from perimeter_ai.threats.pipeline import AnalysisReport, ThreatAnalysisPipeline

log = get_logger("perimeter_ai.threats.scheduler")


@dataclass
class SchedulerStats:
    """Statistics about scheduled runs."""

    total_runs: int = 0
    failed_runs: int = 0
    alerts_raised: int = 0
    last_run: datetime | None = None
    last_error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "total_runs": self.total_runs,
            "failed_runs": self.failed_runs,
            "alerts_raised": self.alerts_raised,
            "last_run": self.last_run.isoformat() if self.last_run else None,
            "last_error": self.last_error,
        }


class ThreatAnalysisScheduler:
    """Async loop that analyses recent events every ``interval_seconds``."""

    def __init__(self, pipeline: ThreatAnalysisPipeline, interval_seconds: int = 3600) -> None:
        self._pipeline = pipeline
        self._interval = interval_seconds
        self._stats = SchedulerStats()
        self._running = False
        self._task: asyncio.Task[None] | None = None

        log.info("threat_scheduler_initialized", interval=interval_seconds)

    @property
    def stats(self) -> SchedulerStats:
        return self._stats

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Start the scheduler loop."""
        if self._running:
            log.warning("threat_scheduler_already_running")
            return

        self._running = True
        self._task = asyncio.create_task(self._run_loop())
        log.info("threat_scheduler_started")

    async def stop(self) -> None:
        """Stop the scheduler loop."""
        self._running = False
        task = self._task
        if task is not None:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
            self._task = None
        log.info("threat_scheduler_stopped")

    async def run_once(self) -> AnalysisReport | None:
        """Run a single scheduled analysis.

        Boundary errors (e.g. a failed reasoning call) are recorded in the
        stats and logged; the next interval simply tries again.
        """
        self._stats.total_runs += 1
        self._stats.last_run = datetime.now(UTC)
        try:
            report = await self._pipeline.run({"analysisType": "scheduled"})
        except BoundaryError as exc:
            self._stats.failed_runs += 1
            self._stats.last_error = exc.code
            log.error("scheduled_analysis_failed", code=exc.code)
            return None

        if report.alert_created:
            self._stats.alerts_raised += 1
        log.info(
            "scheduled_analysis_complete",
            threat_level=report.analysis.threat_level.value,
            events_analyzed=report.events_analyzed,
        )
        return report

    async def _run_loop(self) -> None:
        while self._running:
            try:
                await self.run_once()
            except Exception as e:
                log.error("threat_scheduler_error", error=str(e))
                self._stats.failed_runs += 1
                self._stats.last_error = str(e)

            await asyncio.sleep(self._interval)
