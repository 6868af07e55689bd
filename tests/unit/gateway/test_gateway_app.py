"""Tests for the scan-album aiohttp application."""

from __future__ import annotations

from typing import Any

import pytest
from aiohttp import test_utils

from namjukes.core.config.models import GatewayConfig
from namjukes.core.gateway.app import SCAN_ALBUM_ROUTE, build_scanner, create_app
from namjukes.core.gateway.scanner import AlbumScanner, GatewayError


class StubScanner(AlbumScanner):
    """Scanner that answers from a fixed outcome without calling a model."""

    def __init__(self, outcome: dict[str, Any] | GatewayError) -> None:
        self.outcome = outcome
        self.calls: list[tuple[str, bool]] = []

    async def scan(self, image_data_uri: str, *, extract_metadata: bool = False) -> dict:
        self.calls.append((image_data_uri, extract_metadata))
        if isinstance(self.outcome, GatewayError):
            raise self.outcome
        return self.outcome


async def _post(scanner: AlbumScanner, **kwargs: Any) -> tuple[int, Any, dict[str, str]]:
    async with test_utils.TestClient(test_utils.TestServer(create_app(scanner))) as client:
        resp = await client.post(SCAN_ALBUM_ROUTE, **kwargs)
        return resp.status, await resp.json(), dict(resp.headers)


@pytest.mark.asyncio
async def test_scan_album_success() -> None:
    scanner = StubScanner({"songs": [{"track_number": 1, "title": "A"}]})

    status, body, headers = await _post(
        scanner, json={"imageBase64": "data:image/jpeg;base64,eA==", "extractMetadata": True}
    )

    assert status == 200
    assert body == {"songs": [{"track_number": 1, "title": "A"}]}
    assert headers["Access-Control-Allow-Origin"] == "*"
    assert scanner.calls == [("data:image/jpeg;base64,eA==", True)]


@pytest.mark.asyncio
async def test_missing_image_is_400() -> None:
    scanner = StubScanner({"songs": []})
    status, body, _ = await _post(scanner, json={})
    assert status == 400
    assert body == {"error": "No image provided"}
    assert scanner.calls == []


@pytest.mark.asyncio
async def test_non_json_body_is_400() -> None:
    status, body, _ = await _post(StubScanner({"songs": []}), data=b"not json")
    assert status == 400
    assert "error" in body


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("status_code", "message"),
    [
        (429, "Rate limit exceeded. Please try again later."),
        (402, "AI credits depleted. Please add credits to continue."),
        (500, "Failed to parse song list from image"),
    ],
)
async def test_scanner_errors_keep_status_and_message(status_code: int, message: str) -> None:
    status, body, headers = await _post(
        StubScanner(GatewayError(message, status=status_code)), json={"imageBase64": "x"}
    )
    assert status == status_code
    assert body == {"error": message}
    assert headers["Access-Control-Allow-Origin"] == "*"


@pytest.mark.asyncio
async def test_preflight_returns_cors_headers() -> None:
    app = create_app(StubScanner({"songs": []}))
    async with test_utils.TestClient(test_utils.TestServer(app)) as client:
        resp = await client.options(SCAN_ALBUM_ROUTE)
        assert resp.status == 200
        assert "apikey" in resp.headers["Access-Control-Allow-Headers"]
        assert "POST" in resp.headers["Access-Control-Allow-Methods"]


def test_build_scanner_requires_api_key() -> None:
    with pytest.raises(ValueError, match="LOVABLE_API_KEY"):
        build_scanner(GatewayConfig(api_key=None))


def test_build_scanner_uses_configured_model() -> None:
    scanner = build_scanner(GatewayConfig(api_key="k", model="vision-model"))
    assert scanner.model == "vision-model"
    assert scanner.client.max_retries == 0
