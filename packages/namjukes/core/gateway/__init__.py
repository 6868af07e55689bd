"""Local scan-album extraction service."""

from namjukes.core.gateway.app import create_app, run_gateway
from namjukes.core.gateway.scanner import AlbumScanner, GatewayError

__all__ = ["AlbumScanner", "GatewayError", "create_app", "run_gateway"]
