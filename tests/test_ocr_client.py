from __future__ import annotations

import base64
import hashlib
import hmac
import json

import httpx
import pytest

from warranty_activation.modules.extraction.ocr import (
    OcrServiceError,
    OcrTimeoutError,
    VeryfiClient,
)


def _client(handler) -> VeryfiClient:
    return VeryfiClient(
        client_id="cid",
        client_secret="shh",
        username="acme",
        api_key="key-123",
        base_url="https://ocr.test/api/v8/",
        timeout_seconds=3,
        transport=httpx.MockTransport(handler),
    )


def test_process_document_posts_signed_base64_payload():
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"date": "2025-04-28 00:00:00", "total": 99.5})

    data = _client(handler).process_document(filename="inv.pdf", body=b"%PDF-1.4 body")

    assert data["date"] == "2025-04-28 00:00:00"
    request = seen[0]
    assert request.method == "POST"
    assert str(request.url) == "https://ocr.test/api/v8/partner/documents/"
    assert request.headers["Client-Id"] == "cid"
    assert request.headers["Authorization"] == "apikey acme:key-123"

    payload = json.loads(request.content)
    assert payload["file_name"] == "inv.pdf"
    assert base64.b64decode(payload["file_data"]) == b"%PDF-1.4 body"

    timestamp = request.headers["X-Veryfi-Request-Timestamp"]
    message = f"timestamp:{timestamp}" + "".join(f",{k}:{v}" for k, v in payload.items())
    expected = base64.b64encode(
        hmac.new(b"shh", msg=message.encode("utf-8"), digestmod=hashlib.sha256).digest()
    ).decode("utf-8")
    assert request.headers["X-Veryfi-Request-Signature"] == expected


def test_process_document_maps_timeout():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("slow", request=request)

    with pytest.raises(OcrTimeoutError):
        _client(handler).process_document(filename="inv.pdf", body=b"x")


@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(500, json={"error": "boom"}),
        httpx.Response(401, json={"error": "bad key"}),
        httpx.Response(200, content=b"<html>not json</html>"),
        httpx.Response(200, json=["not", "an", "object"]),
    ],
)
def test_process_document_maps_service_failures(response):
    with pytest.raises(OcrServiceError):
        _client(lambda request: response).process_document(filename="inv.pdf", body=b"x")


def test_process_document_maps_connection_errors():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(OcrServiceError):
        _client(handler).process_document(filename="inv.pdf", body=b"x")
