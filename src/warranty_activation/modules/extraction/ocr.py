from __future__ import annotations

import base64
import hashlib
import hmac
import time
from typing import Any

import httpx

from warranty_activation.core.config import Settings, settings


class OcrError(RuntimeError):
    pass


class OcrServiceError(OcrError):
    pass


class OcrTimeoutError(OcrError):
    pass


class OcrClient:
    """Remote invoice data-extraction service.

    Returns the provider's free-form document payload; the pipeline only
    reads its ``date`` field.
    """

    def process_document(self, *, filename: str, body: bytes) -> dict[str, Any]:  # pragma: no cover
        raise NotImplementedError


class VeryfiClient(OcrClient):
    def __init__(
        self,
        *,
        client_id: str,
        client_secret: str,
        username: str,
        api_key: str,
        base_url: str = "https://api.veryfi.com/api/v8",
        timeout_seconds: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._client_id = client_id
        self._client_secret = client_secret
        self._username = username
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._timeout = float(timeout_seconds)
        self._transport = transport

    @classmethod
    def from_settings(
        cls, source: Settings | None = None, *, timeout_seconds: float | None = None
    ) -> VeryfiClient:
        source = source or settings
        return cls(
            client_id=source.veryfi_client_id,
            client_secret=source.veryfi_client_secret,
            username=source.veryfi_username,
            api_key=source.veryfi_api_key,
            base_url=source.veryfi_base_url,
            timeout_seconds=timeout_seconds or source.ocr_timeout_seconds,
        )

    def _signature(self, payload: dict[str, Any], timestamp: int) -> str:
        message = f"timestamp:{timestamp}"
        for key, value in payload.items():
            message = f"{message},{key}:{value}"
        digest = hmac.new(
            self._client_secret.encode("utf-8"),
            msg=message.encode("utf-8"),
            digestmod=hashlib.sha256,
        ).digest()
        return base64.b64encode(digest).decode("utf-8").strip()

    def _headers(self, payload: dict[str, Any]) -> dict[str, str]:
        timestamp = int(time.time() * 1000)
        return {
            "Accept": "application/json",
            "Content-Type": "application/json",
            "Client-Id": self._client_id,
            "Authorization": f"apikey {self._username}:{self._api_key}",
            "X-Veryfi-Request-Timestamp": str(timestamp),
            "X-Veryfi-Request-Signature": self._signature(payload, timestamp),
        }

    def process_document(self, *, filename: str, body: bytes) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "file_name": filename,
            "file_data": base64.b64encode(body).decode("ascii"),
            "auto_delete": True,
        }
        url = f"{self._base_url}/partner/documents/"
        try:
            with httpx.Client(timeout=self._timeout, transport=self._transport) as client:
                resp = client.post(url, json=payload, headers=self._headers(payload))
                resp.raise_for_status()
        except httpx.TimeoutException as e:
            raise OcrTimeoutError(f"OCR request timed out after {self._timeout}s") from e
        except httpx.HTTPStatusError as e:
            raise OcrServiceError(
                f"OCR service returned HTTP {e.response.status_code}"
            ) from e
        except httpx.HTTPError as e:
            raise OcrServiceError(f"OCR request failed: {type(e).__name__}") from e

        try:
            data = resp.json()
        except ValueError as e:
            raise OcrServiceError("OCR response is not JSON") from e
        if not isinstance(data, dict):
            raise OcrServiceError("OCR response is not a JSON object")
        return data
