"""Prompt construction for threat analysis."""

from __future__ import annotations

import json
from typing import Any

SYSTEM_PROMPT = (
    "You are a cybersecurity expert specializing in threat detection and analysis. "
    "Always respond with valid JSON and provide actionable security insights."
)

_RESPONSE_FORMAT = """\
{
  "threatLevel": "low|medium|high|critical",
  "threatType": "specific threat classification",
  "confidence": 85,
  "reasoning": "Detailed analysis of why this threat level was assigned",
  "recommendedActions": ["action1", "action2", "action3"],
  "patterns": ["pattern1", "pattern2"],
  "riskScore": 75,
  "specificFindings": {
    "suspiciousIPs": [],
    "compromisedAccounts": [],
    "anomalousActivities": [],
    "behavioralChanges": []
  },
  "timelineAnalysis": "Analysis of event timing and patterns",
  "complianceImpact": "GDPR, SOC2, or other compliance implications"
}"""

_CRITICAL_FACTORS = (
    "Failed login patterns and frequency",
    "Administrative action patterns",
    "Data access anomalies",
    "Geographic inconsistencies",
    "Time-based behavioral changes",
    "Privilege escalation attempts",
    "Bulk data access patterns",
    "Account compromise indicators",
)


def build_threat_prompt(context: dict[str, Any]) -> str:
    """Embed the analysis context in the structured analysis request."""
    factors = "\n".join(f"- {factor}" for factor in _CRITICAL_FACTORS)
    return f"""\
You are an elite cybersecurity analyst with expertise in threat detection and \
behavioral analysis. Analyze the following security events and provide a \
comprehensive threat assessment.

SECURITY EVENTS DATA:
{json.dumps(context, indent=2, default=str)}

ANALYSIS REQUIREMENTS:
1. Threat Level Assessment (low/medium/high/critical)
2. Threat Type Classification (insider threat, external attack, credential stuffing, \
data breach, etc.)
3. Confidence Score (0-100)
4. Detailed Reasoning
5. Recommended Actions
6. Pattern Recognition
7. Risk Score (0-100)

CRITICAL FACTORS TO CONSIDER:
{factors}

RESPONSE FORMAT (JSON only, no prose):
{_RESPONSE_FORMAT}

Provide actionable, specific insights that can help secure this platform.
"""
