from __future__ import annotations

import logging
import time
from datetime import date
from typing import Any

from warranty_activation.core.logging import get_logger, log_event, log_exception, monotonic_ms
from warranty_activation.core.pipeline import PipelineConfig
from warranty_activation.core.storage import DocumentStorage, StorageError, get_storage
from warranty_activation.modules.classification.service import to_calendar_date
from warranty_activation.modules.extraction.ocr import (
    OcrClient,
    OcrError,
    OcrTimeoutError,
    VeryfiClient,
)

logger = get_logger(__name__)


def parse_invoice_date(value: Any) -> date | None:
    """Calendar date from the OCR ``date`` field, or None when unusable."""
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        return to_calendar_date(value)
    except ValueError:
        return None


class InvoiceDateExtractor:
    """Best-effort invoice date extraction.

    ``extract`` never raises: a missing file, a failed or slow OCR call and a
    malformed response all come back as None. The distinct cause only shows
    up in the ``extraction.*`` log events.
    """

    def __init__(
        self,
        config: PipelineConfig,
        *,
        storage: DocumentStorage | None = None,
        ocr_client: OcrClient | None = None,
    ) -> None:
        self._config = config
        self._storage = storage or get_storage()
        self._ocr = ocr_client or VeryfiClient.from_settings(
            timeout_seconds=config.ocr_timeout_seconds
        )

    def extract(self, location: str) -> date | None:
        start = time.monotonic()
        try:
            body = self._storage.get(key=location)
        except StorageError as e:
            log_event(
                logger,
                "extraction.file_missing",
                level=logging.WARNING,
                storage_key=location,
                error=str(e),
            )
            return None

        try:
            response = self._ocr.process_document(filename=location, body=body)
        except OcrTimeoutError as e:
            log_event(
                logger,
                "extraction.ocr_timeout",
                level=logging.WARNING,
                storage_key=location,
                timeout_s=self._config.ocr_timeout_seconds,
                error=str(e),
                duration_ms=monotonic_ms(start),
            )
            return None
        except OcrError as e:
            log_event(
                logger,
                "extraction.ocr_error",
                level=logging.WARNING,
                storage_key=location,
                error=str(e),
                duration_ms=monotonic_ms(start),
            )
            return None
        except Exception:  # noqa: BLE001
            log_exception(
                logger,
                "extraction.unexpected_error",
                storage_key=location,
                duration_ms=monotonic_ms(start),
            )
            return None

        if not isinstance(response, dict):
            log_event(
                logger,
                "extraction.malformed_response",
                level=logging.WARNING,
                storage_key=location,
                response_type=type(response).__name__,
            )
            return None

        raw_date = response.get("date")
        if raw_date in (None, ""):
            log_event(logger, "extraction.no_date", storage_key=location)
            return None

        invoice_date = parse_invoice_date(raw_date)
        if invoice_date is None:
            log_event(
                logger,
                "extraction.unparseable_date",
                level=logging.WARNING,
                storage_key=location,
                raw_date=str(raw_date)[:64],
            )
            return None

        log_event(
            logger,
            "extraction.success",
            storage_key=location,
            invoice_date=invoice_date.isoformat(),
            duration_ms=monotonic_ms(start),
        )
        return invoice_date
