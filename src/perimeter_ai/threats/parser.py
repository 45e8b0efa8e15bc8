"""Parsing and repair of the reasoning service's reply.

Parsing never raises: the caller receives either a :class:`ParsedAnalysis`
or a :class:`ParseFailure` and decides what to do with it.
"""

from __future__ import annotations

import json
import math
import re
from dataclasses import dataclass
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from perimeter_ai.threats.models import FALLBACK_ANALYSIS, ThreatAnalysis

_FENCE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL | re.IGNORECASE)
_SCORE_FIELDS = ("confidence", "riskScore")


@dataclass(frozen=True)
class ParsedAnalysis:
    analysis: ThreatAnalysis
    repaired: bool = False


@dataclass(frozen=True)
class ParseFailure:
    reason: str


ParseResult = ParsedAnalysis | ParseFailure


def _extract_object(text: str) -> tuple[dict[str, Any] | None, bool]:
    """Load a JSON object from ``text``; second item is True if text was trimmed."""
    stripped = text.strip()
    try:
        loaded = json.loads(stripped)
        return (loaded if isinstance(loaded, dict) else None), False
    except json.JSONDecodeError:
        pass

    fenced = _FENCE.match(stripped)
    if fenced:
        candidate = fenced.group(1)
    else:
        start, end = stripped.find("{"), stripped.rfind("}")
        if start == -1 or end <= start:
            return None, True
        candidate = stripped[start : end + 1]

    try:
        loaded = json.loads(candidate)
    except json.JSONDecodeError:
        return None, True
    return (loaded if isinstance(loaded, dict) else None), True


def _coerce_score(value: Any) -> Any:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        try:
            value = float(value.strip().rstrip("%"))
        except ValueError:
            return value
    if isinstance(value, float) and not math.isfinite(value):
        # Left as-is so model validation rejects it
        return value
    if isinstance(value, int | float):
        return max(0, min(100, round(value)))
    return value


def _repair_fields(data: dict[str, Any]) -> bool:
    """Normalise near-miss values in place. Returns True if anything changed."""
    changed = False
    level = data.get("threatLevel")
    if isinstance(level, str) and level != level.strip().lower():
        data["threatLevel"] = level.strip().lower()
        changed = True
    for name in _SCORE_FIELDS:
        if name in data:
            coerced = _coerce_score(data[name])
            if coerced != data[name] or type(coerced) is not type(data[name]):
                data[name] = coerced
                changed = True
    return changed


def parse_threat_analysis(text: str | None) -> ParseResult:
    """Parse a model reply into a :class:`ThreatAnalysis`."""
    if not text or not text.strip():
        return ParseFailure("empty response")

    data, trimmed = _extract_object(text)
    if data is None:
        return ParseFailure("response is not a JSON object")

    repaired = _repair_fields(data) or trimmed
    try:
        analysis = ThreatAnalysis.model_validate(data)
    except PydanticValidationError as exc:
        return ParseFailure(f"schema mismatch: {exc.error_count()} error(s)")
    return ParsedAnalysis(analysis=analysis, repaired=repaired)


def resolve_analysis(result: ParseResult) -> ThreatAnalysis:
    """Map a parse failure to the conservative fallback assessment."""
    match result:
        case ParsedAnalysis(analysis=analysis):
            return analysis
        case ParseFailure():
            return FALLBACK_ANALYSIS
