"""Data models for security telemetry and threat assessments."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from datetime import datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ThreatLevel(StrEnum):
    """Severity bands of a threat assessment."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def raises_alert(self) -> bool:
        """Only high and critical assessments spawn a security alert."""
        return self in (ThreatLevel.HIGH, ThreatLevel.CRITICAL)


class SecurityEvent(BaseModel):
    """A single row of security telemetry. Read-only to this service."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    id: str
    user_id: str | None = None
    event_type: str
    severity: str
    details: Any = None
    created_at: datetime | str
    ip_address: str | None = None
    user_agent: str | None = None


class SpecificFindings(BaseModel):
    """Optional nested findings a model may attach to its assessment."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    suspicious_ips: list[Any] = Field(default_factory=list, alias="suspiciousIPs")
    compromised_accounts: list[Any] = Field(default_factory=list, alias="compromisedAccounts")
    anomalous_activities: list[Any] = Field(default_factory=list, alias="anomalousActivities")
    behavioral_changes: list[Any] = Field(default_factory=list, alias="behavioralChanges")


class ThreatAnalysis(BaseModel):
    """Structured threat assessment returned by the reasoning service."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    threat_level: ThreatLevel = Field(alias="threatLevel")
    threat_type: str = Field(alias="threatType", min_length=1, max_length=200)
    confidence: int = Field(ge=0, le=100)
    reasoning: str
    recommended_actions: list[str] = Field(default_factory=list, alias="recommendedActions")
    patterns: list[str] = Field(default_factory=list)
    risk_score: int = Field(alias="riskScore", ge=0, le=100)
    specific_findings: SpecificFindings | None = Field(default=None, alias="specificFindings")
    timeline_analysis: str | None = Field(default=None, alias="timelineAnalysis")
    compliance_impact: str | None = Field(default=None, alias="complianceImpact")

    def to_payload(self) -> dict[str, Any]:
        """Serialise with the camelCase wire names."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


FALLBACK_ANALYSIS = ThreatAnalysis(
    threatLevel=ThreatLevel.MEDIUM,
    threatType="analysis_error",
    confidence=30,
    reasoning="AI analysis parsing failed, manual review required",
    recommendedActions=["Review security events manually", "Check AI system status"],
    patterns=["system_error"],
    riskScore=50,
)


def project_event(event: Mapping[str, Any] | SecurityEvent) -> dict[str, Any]:
    """Normalise one event into the shape embedded in the analysis context."""
    if isinstance(event, SecurityEvent):
        event = event.model_dump(mode="json")
    created_at = event.get("created_at")
    if isinstance(created_at, datetime):
        created_at = created_at.isoformat()
    return {
        "type": event.get("event_type"),
        "severity": event.get("severity"),
        "timestamp": created_at,
        "details": event.get("details"),
        "user_id": event.get("user_id"),
        "ip_address": event.get("ip_address"),
    }


def build_analysis_context(
    events: Sequence[Mapping[str, Any] | SecurityEvent],
    *,
    timestamp: datetime,
    time_window: str = "24 hours",
) -> dict[str, Any]:
    """Build the context object handed to the reasoning service."""
    return {
        "timestamp": timestamp.isoformat(),
        "eventCount": len(events),
        "timeWindow": time_window,
        "events": [project_event(event) for event in events],
    }


def alert_title(threat_type: str) -> str:
    """Human-readable alert title, e.g. ``AI Detected CREDENTIAL STUFFING Threat``."""
    return f"AI Detected {threat_type.replace('_', ' ').upper()} Threat"


class SecurityAlert(BaseModel):
    """Insert-only alert raised for high and critical assessments."""

    model_config = ConfigDict(frozen=True)

    alert_type: str
    severity: ThreatLevel
    title: str
    description: str
    metadata: dict[str, Any]
    is_resolved: bool = False

    @classmethod
    def from_analysis(cls, analysis: ThreatAnalysis) -> SecurityAlert:
        return cls(
            alert_type=f"ai_detected_{analysis.threat_type}",
            severity=analysis.threat_level,
            title=alert_title(analysis.threat_type),
            description=analysis.reasoning,
            metadata={
                "confidence": analysis.confidence,
                "riskScore": analysis.risk_score,
                "patterns": list(analysis.patterns),
                "actions": list(analysis.recommended_actions),
                "aiGenerated": True,
            },
        )
