"""Boundary API server.

Hosts the guarded endpoints in front of the threat analysis pipeline:
origin gateway outermost, JSON error rendering inside it, and per-handler
authorization, validation and rate limiting.
"""

from __future__ import annotations

import asyncio

from aiohttp import web

from perimeter_ai.api.auth import DEFAULT_PRIVILEGED_ROLES
from perimeter_ai.api.guards import RatePolicy
from perimeter_ai.api.middleware import create_error_middleware, create_origin_middleware
from perimeter_ai.api.origin import OriginGateway
from perimeter_ai.api.ratelimit import RateLimiter
from perimeter_ai.api.routes import threats, uploads
from perimeter_ai.api.routes.health import handle_health
from perimeter_ai.config import Settings
from perimeter_ai.logging import get_logger
from perimeter_ai.threats.pipeline import ThreatAnalysisPipeline
from perimeter_ai.threats.scheduler import ThreatAnalysisScheduler
from perimeter_ai.validation.files import DEFAULT_MAX_UPLOAD_BYTES

log = get_logger("perimeter_ai.api.server")

DEFAULT_RATE_POLICIES: dict[str, RatePolicy] = {
    threats.RATE_SCOPE: RatePolicy(max_attempts=10, window_ms=60_000),
    uploads.RATE_SCOPE: RatePolicy(max_attempts=5, window_ms=60_000),
}


class BoundaryAPIServer:
    """REST server exposing the guarded endpoints."""

    def __init__(
        self,
        pipeline: ThreatAnalysisPipeline,
        jwt_secret: str,
        *,
        origin_gateway: OriginGateway | None = None,
        host: str = "0.0.0.0",  # nosec B104 - Intentional for Docker container
        port: int = 8443,
        privileged_roles: frozenset[str] = DEFAULT_PRIVILEGED_ROLES,
        rate_limiter: RateLimiter | None = None,
        rate_policies: dict[str, RatePolicy] | None = None,
        max_upload_bytes: int = DEFAULT_MAX_UPLOAD_BYTES,
        scheduler: ThreatAnalysisScheduler | None = None,
    ) -> None:
        self._pipeline = pipeline
        self._jwt_secret = jwt_secret
        self._origin_gateway = origin_gateway or OriginGateway(())
        self._host = host
        self._port = port
        self._privileged_roles = privileged_roles
        self._rate_limiter = rate_limiter or RateLimiter()
        self._rate_policies = {**DEFAULT_RATE_POLICIES, **(rate_policies or {})}
        self._max_upload_bytes = max_upload_bytes
        self._scheduler = scheduler
        self._app: web.Application | None = None
        self._runner: web.AppRunner | None = None

        log.info("boundary_api_initialized", host=host, port=port)

    def create_app(self) -> web.Application:
        """Create and configure the aiohttp application."""
        app = web.Application(
            middlewares=[
                # Origin gateway (outermost) so error responses get the header set too
                create_origin_middleware(self._origin_gateway),
                create_error_middleware(),
            ]
        )

        # Shared state for handlers
        app["pipeline"] = self._pipeline
        app["jwt_secret"] = self._jwt_secret
        app["privileged_roles"] = self._privileged_roles
        app["rate_limiter"] = self._rate_limiter
        app["rate_policies"] = self._rate_policies
        app["max_upload_bytes"] = self._max_upload_bytes

        app.router.add_get("/api/v1/health", handle_health)
        app.router.add_post("/api/v1/threat-analysis", threats.handle_threat_analysis)
        app.router.add_post("/api/v1/uploads/validate", uploads.handle_validate_upload)

        self._app = app
        return app

    async def start(self) -> None:
        """Start the server (and the scheduler, if configured)."""
        if self._app is None:
            self.create_app()

        if self._app is None:  # pragma: no cover
            raise RuntimeError("create_app() must be called first")

        self._runner = web.AppRunner(self._app)
        await self._runner.setup()

        site = web.TCPSite(self._runner, self._host, self._port)
        await site.start()

        if self._scheduler is not None:
            await self._scheduler.start()

        log.info("boundary_api_started", host=self._host, port=self._port)

    async def stop(self) -> None:
        """Stop the server."""
        if self._scheduler is not None:
            await self._scheduler.stop()
        if self._runner:
            await self._runner.cleanup()
            self._runner = None
            log.info("boundary_api_stopped")


def build_server(
    settings: Settings,
    pipeline: ThreatAnalysisPipeline,
    scheduler: ThreatAnalysisScheduler | None = None,
) -> BoundaryAPIServer:
    """Wire a server from settings."""
    if settings.jwt_secret is None:
        raise ValueError("JWT_SECRET is required")
    return BoundaryAPIServer(
        pipeline,
        settings.jwt_secret.get_secret_value(),
        origin_gateway=OriginGateway.from_settings(settings),
        host=settings.api_host,
        port=settings.api_port,
        privileged_roles=settings.privileged_roles,
        rate_policies={
            threats.RATE_SCOPE: RatePolicy(
                settings.threat_rate_limit_max, settings.threat_rate_limit_window_ms
            ),
            uploads.RATE_SCOPE: RatePolicy(
                settings.upload_rate_limit_max, settings.upload_rate_limit_window_ms
            ),
        },
        max_upload_bytes=settings.max_upload_bytes,
        scheduler=scheduler,
    )


async def run_server(server: BoundaryAPIServer) -> None:
    """Run until cancelled."""
    await server.start()

    try:
        while True:
            await asyncio.sleep(3600)
    except asyncio.CancelledError:
        pass
    finally:
        await server.stop()


def main() -> None:
    """Main entry point for the boundary API service."""
    from perimeter_ai.config import get_settings
    from perimeter_ai.logging import setup_logging
    from perimeter_ai.threats.reasoning import create_reasoning_client
    from perimeter_ai.threats.store import ThreatStore

    settings = get_settings()
    setup_logging(settings)

    if settings.jwt_secret is None:
        log.error("JWT_SECRET is required")
        raise SystemExit(1)

    try:
        reasoning = create_reasoning_client(settings)
    except RuntimeError as exc:
        log.error("reasoning_client_unavailable", error=str(exc))
        raise SystemExit(1) from exc

    store = ThreatStore(dsn=settings.postgres_dsn)

    async def init_and_run() -> None:
        await store.initialize()
        pipeline = ThreatAnalysisPipeline.from_settings(settings, reasoning, store)
        scheduler = None
        if settings.scheduled_analysis_enabled:
            scheduler = ThreatAnalysisScheduler(
                pipeline, interval_seconds=settings.scheduled_analysis_interval_seconds
            )
        try:
            await run_server(build_server(settings, pipeline, scheduler))
        finally:
            await store.close()

    try:
        asyncio.run(init_and_run())
    except KeyboardInterrupt:
        log.info("boundary_api_shutdown")


if __name__ == "__main__":
    main()
