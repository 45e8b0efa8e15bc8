"""Threat analysis endpoint.

Boundary order: bearer credential with a privileged role, body schema,
per-caller rate limit, then the pipeline.
"""

from __future__ import annotations

from aiohttp import web

from perimeter_ai.api.guards import enforce_rate_limit, read_json_body, require_privileged_caller
from perimeter_ai.logging import get_logger
from perimeter_ai.threats.pipeline import ThreatAnalysisPipeline
from perimeter_ai.validation.schema import require_valid
from perimeter_ai.validation.schemas import THREAT_DETECTION_SCHEMA

log = get_logger("perimeter_ai.api.routes.threats")

RATE_SCOPE = "threat_analysis"


async def handle_threat_analysis(request: web.Request) -> web.Response:
    """POST /api/v1/threat-analysis: analyse supplied or recent security events."""
    caller = require_privileged_caller(request)

    body = await read_json_body(request, optional=True)
    payload = require_valid(THREAT_DETECTION_SCHEMA, {} if body is None else body)

    enforce_rate_limit(request, RATE_SCOPE, caller.user_id)

    pipeline: ThreatAnalysisPipeline = request.app["pipeline"]
    report = await pipeline.run(payload, requested_by=caller.user_id)

    log.info(
        "threat_analysis_served",
        user_id=caller.user_id,
        threat_level=report.analysis.threat_level.value,
        confidence=report.analysis.confidence,
        events_analyzed=report.events_analyzed,
        persisted=report.persisted,
        fallback=report.parse_failed,
    )
    return web.json_response(report.to_response())
