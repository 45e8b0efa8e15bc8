"""Health check endpoint."""

from aiohttp import web

from perimeter_ai import __version__


async def handle_health(request: web.Request) -> web.Response:
    """GET /api/v1/health: no auth required."""
    return web.json_response({"status": "healthy", "version": __version__})
