"""Threat analysis: security events in, structured assessments and alerts out."""

from perimeter_ai.threats.models import (
    FALLBACK_ANALYSIS,
    SecurityAlert,
    SecurityEvent,
    ThreatAnalysis,
    ThreatLevel,
)
from perimeter_ai.threats.pipeline import AnalysisReport, PipelineStage, ThreatAnalysisPipeline
from perimeter_ai.threats.scheduler import ThreatAnalysisScheduler

__all__ = [
    "FALLBACK_ANALYSIS",
    "AnalysisReport",
    "PipelineStage",
    "SecurityAlert",
    "SecurityEvent",
    "ThreatAnalysis",
    "ThreatAnalysisPipeline",
    "ThreatAnalysisScheduler",
    "ThreatLevel",
]
