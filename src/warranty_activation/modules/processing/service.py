from __future__ import annotations

import logging
import time
import uuid
from datetime import date, datetime

from warranty_activation.core.logging import get_logger, log_event, log_exception, monotonic_ms
from warranty_activation.core.pipeline import PipelineConfig
from warranty_activation.modules.classification.service import (
    ClassificationResult,
    classify_invoice,
)
from warranty_activation.modules.extraction.service import InvoiceDateExtractor
from warranty_activation.modules.warranties.models import WarrantyStatus
from warranty_activation.modules.warranties.store import WarrantyStore

logger = get_logger(__name__)

MANUAL_REVIEW_RESULT = ClassificationResult(invoice_date=None, status=WarrantyStatus.MANUAL_REVIEW)


class InvoiceProcessor:
    """Extract -> classify -> persist for a single warranty claim."""

    def __init__(
        self,
        config: PipelineConfig,
        *,
        store: WarrantyStore,
        extractor: InvoiceDateExtractor,
    ) -> None:
        self._config = config
        self._store = store
        self._extractor = extractor

    def classify_and_persist(
        self,
        warranty_id: uuid.UUID,
        document_location: str,
        installation_date: date | datetime | str,
    ) -> ClassificationResult:
        """Run the pipeline for one claim. Unexpected errors propagate."""
        invoice_date = self._extractor.extract(document_location)
        result = classify_invoice(installation_date, invoice_date, self._config.window_days)

        fields: dict = {"status": result.status}
        # A missing date never clears one found by an earlier run.
        if result.invoice_date is not None:
            fields["invoice_date"] = result.invoice_date
        if not self._store.update(warranty_id, **fields):
            log_event(
                logger,
                "invoice.process.claim_missing",
                level=logging.WARNING,
                warranty_id=str(warranty_id),
            )
        return result

    def mark_manual_review(self, warranty_id: uuid.UUID) -> bool:
        """Force the fallback terminal state. Returns False if even that failed."""
        try:
            self._store.update(warranty_id, status=WarrantyStatus.MANUAL_REVIEW)
        except Exception:  # noqa: BLE001
            log_exception(
                logger,
                "invoice.process.fallback_failed",
                warranty_id=str(warranty_id),
            )
            return False
        log_event(
            logger,
            "invoice.process.manual_review_forced",
            warranty_id=str(warranty_id),
        )
        return True

    def process(
        self,
        warranty_id: uuid.UUID,
        document_location: str,
        installation_date: date | datetime | str,
    ) -> ClassificationResult:
        """Submission-time entry point; always leaves the claim out of ``pending``."""
        start = time.monotonic()
        log_event(
            logger,
            "invoice.process.start",
            warranty_id=str(warranty_id),
            storage_key=document_location,
        )
        try:
            result = self.classify_and_persist(warranty_id, document_location, installation_date)
        except Exception:  # noqa: BLE001
            log_exception(
                logger,
                "invoice.process.error",
                warranty_id=str(warranty_id),
                storage_key=document_location,
                duration_ms=monotonic_ms(start),
            )
            self.mark_manual_review(warranty_id)
            return MANUAL_REVIEW_RESULT

        log_event(
            logger,
            "invoice.process.finish",
            warranty_id=str(warranty_id),
            storage_key=document_location,
            invoice_date=result.invoice_date.isoformat() if result.invoice_date else None,
            status=result.status.value,
            duration_ms=monotonic_ms(start),
        )
        return result


def build_invoice_processor(config: PipelineConfig | None = None) -> InvoiceProcessor:
    config = config or PipelineConfig.from_settings()
    return InvoiceProcessor(
        config,
        store=WarrantyStore(),
        extractor=InvoiceDateExtractor(config),
    )


def process_invoice(
    warranty_id: uuid.UUID | str,
    document_location: str,
    installation_date: date | datetime | str,
) -> ClassificationResult:
    if isinstance(warranty_id, str):
        warranty_id = uuid.UUID(warranty_id)
    try:
        processor = build_invoice_processor()
    except Exception:  # noqa: BLE001
        log_exception(logger, "invoice.process.setup_failed", warranty_id=str(warranty_id))
        store = WarrantyStore()
        try:
            store.update(warranty_id, status=WarrantyStatus.MANUAL_REVIEW)
        except Exception:  # noqa: BLE001
            log_exception(logger, "invoice.process.fallback_failed", warranty_id=str(warranty_id))
        return MANUAL_REVIEW_RESULT
    return processor.process(warranty_id, document_location, installation_date)
