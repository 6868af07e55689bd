"""aiohttp application serving ``POST /functions/v1/scan-album``."""

from __future__ import annotations

import logging

from aiohttp import web
from openai import AsyncOpenAI

from namjukes.core.config.models import GatewayConfig
from namjukes.core.gateway.scanner import AlbumScanner, GatewayError

logger = logging.getLogger(__name__)

SCAN_ALBUM_ROUTE = "/functions/v1/scan-album"
SCANNER_KEY: web.AppKey[AlbumScanner] = web.AppKey("scanner", AlbumScanner)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "authorization, x-client-info, apikey, content-type",
    "Access-Control-Allow-Methods": "POST, OPTIONS",
}

# Phone photos as base64 data URIs
_MAX_BODY_BYTES = 25 * 1024 * 1024


def _error(message: str, status: int) -> web.Response:
    return web.json_response({"error": message}, status=status, headers=CORS_HEADERS)


async def _preflight(request: web.Request) -> web.Response:
    return web.Response(headers=CORS_HEADERS)


async def _scan_album(request: web.Request) -> web.Response:
    try:
        payload = await request.json()
    except ValueError:
        return _error("Request body must be JSON", 400)
    if not isinstance(payload, dict):
        return _error("Request body must be a JSON object", 400)

    image = payload.get("imageBase64")
    if not isinstance(image, str) or not image:
        return _error("No image provided", 400)

    scanner = request.app[SCANNER_KEY]
    try:
        body = await scanner.scan(image, extract_metadata=bool(payload.get("extractMetadata")))
    except GatewayError as e:
        return _error(e.message, e.status)
    return web.json_response(body, headers=CORS_HEADERS)


def create_app(scanner: AlbumScanner) -> web.Application:
    """Build the gateway application around a scanner."""
    app = web.Application(client_max_size=_MAX_BODY_BYTES)
    app[SCANNER_KEY] = scanner
    app.router.add_route("OPTIONS", SCAN_ALBUM_ROUTE, _preflight)
    app.router.add_post(SCAN_ALBUM_ROUTE, _scan_album)
    return app


def build_scanner(config: GatewayConfig) -> AlbumScanner:
    """Scanner for the configured upstream.

    Raises:
        ValueError: If no upstream API key is configured
    """
    if not config.api_key:
        raise ValueError("Gateway API key is not configured (set LOVABLE_API_KEY)")
    client = AsyncOpenAI(
        base_url=config.base_url,
        api_key=config.api_key,
        timeout=config.timeout_s,
        max_retries=0,
    )
    return AlbumScanner(client, model=config.model)


def run_gateway(config: GatewayConfig) -> None:
    """Serve the gateway until interrupted."""
    app = create_app(build_scanner(config))
    logger.info("Serving scan-album on http://%s:%d%s", config.host, config.port, SCAN_ALBUM_ROUTE)
    web.run_app(app, host=config.host, port=config.port, print=None)
