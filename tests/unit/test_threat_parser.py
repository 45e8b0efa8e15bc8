"""Tests for parsing the reasoning service's reply."""

from __future__ import annotations

import json

import pytest

from perimeter_ai.threats.models import FALLBACK_ANALYSIS, ThreatLevel
from perimeter_ai.threats.parser import (
    ParsedAnalysis,
    ParseFailure,
    parse_threat_analysis,
    resolve_analysis,
)


class TestParseThreatAnalysis:
    def test_plain_json(self, analysis_payload):
        result = parse_threat_analysis(json.dumps(analysis_payload()))
        assert isinstance(result, ParsedAnalysis)
        assert result.repaired is False
        assert result.analysis.threat_level is ThreatLevel.LOW
        assert result.analysis.confidence == 85
        assert result.analysis.recommended_actions == ["Continue monitoring"]

    def test_code_fenced_json(self, analysis_payload):
        text = "```json\n" + json.dumps(analysis_payload()) + "\n```"
        result = parse_threat_analysis(text)
        assert isinstance(result, ParsedAnalysis)
        assert result.repaired is True

    def test_json_embedded_in_prose(self, analysis_payload):
        text = "Here is my assessment:\n" + json.dumps(analysis_payload()) + "\nStay safe."
        result = parse_threat_analysis(text)
        assert isinstance(result, ParsedAnalysis)
        assert result.analysis.threat_type == "routine_activity"

    def test_optional_fields(self, analysis_payload):
        payload = analysis_payload(
            specificFindings={"suspiciousIPs": ["203.0.113.7"], "compromisedAccounts": []},
            timelineAnalysis="Burst at 02:00 UTC",
        )
        result = parse_threat_analysis(json.dumps(payload))
        assert isinstance(result, ParsedAnalysis)
        assert result.analysis.specific_findings.suspicious_ips == ["203.0.113.7"]
        assert result.analysis.to_payload()["timelineAnalysis"] == "Burst at 02:00 UTC"

    def test_repairs_level_case_and_score_types(self, analysis_payload):
        payload = analysis_payload(threatLevel="HIGH", confidence="72.6", riskScore=140)
        result = parse_threat_analysis(json.dumps(payload))
        assert isinstance(result, ParsedAnalysis)
        assert result.repaired is True
        assert result.analysis.threat_level is ThreatLevel.HIGH
        assert result.analysis.confidence == 73
        assert result.analysis.risk_score == 100

    @pytest.mark.parametrize("text", [None, "", "   "])
    def test_empty(self, text):
        assert parse_threat_analysis(text) == ParseFailure("empty response")

    @pytest.mark.parametrize("text", ["I cannot help with that.", "[1, 2, 3]", "{not json}"])
    def test_not_an_object(self, text):
        assert parse_threat_analysis(text) == ParseFailure("response is not a JSON object")

    def test_unknown_threat_level(self, analysis_payload):
        result = parse_threat_analysis(json.dumps(analysis_payload(threatLevel="severe")))
        assert isinstance(result, ParseFailure)
        assert result.reason.startswith("schema mismatch")

    @pytest.mark.parametrize(
        "score", [float("nan"), float("inf"), float("-inf"), "nan", "Infinity", "inf%"]
    )
    @pytest.mark.parametrize("field", ["confidence", "riskScore"])
    def test_non_finite_score_is_a_failure(self, analysis_payload, field, score):
        """JSON NaN/Infinity literals and their string forms never raise."""
        text = json.dumps(analysis_payload(**{field: score}))
        result = parse_threat_analysis(text)
        assert isinstance(result, ParseFailure)
        assert result.reason.startswith("schema mismatch")

    def test_raw_nan_literal_in_reply(self):
        text = (
            '{"threatLevel": "low", "threatType": "x", "confidence": NaN, '
            '"reasoning": "r", "recommendedActions": [], "patterns": [], "riskScore": Infinity}'
        )
        assert isinstance(parse_threat_analysis(text), ParseFailure)

    def test_missing_required_field(self, analysis_payload):
        payload = analysis_payload()
        del payload["reasoning"]
        assert isinstance(parse_threat_analysis(json.dumps(payload)), ParseFailure)


class TestResolveAnalysis:
    def test_parsed(self, analysis_payload):
        parsed = parse_threat_analysis(json.dumps(analysis_payload()))
        assert resolve_analysis(parsed) is parsed.analysis

    def test_failure_maps_to_fallback(self):
        analysis = resolve_analysis(ParseFailure("empty response"))
        assert analysis is FALLBACK_ANALYSIS
        assert analysis.threat_level is ThreatLevel.MEDIUM
        assert analysis.threat_type == "analysis_error"
        assert analysis.confidence <= 30
        assert analysis.patterns == ["system_error"]
