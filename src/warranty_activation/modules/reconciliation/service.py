from __future__ import annotations

import logging
import time
import uuid
from collections.abc import Iterable
from dataclasses import asdict, dataclass, field

from warranty_activation.core.logging import (
    get_logger,
    log_event,
    log_exception,
    monotonic_ms,
    reset_run_context,
    set_run_context,
)
from warranty_activation.core.pipeline import PipelineConfig
from warranty_activation.core.storage import DocumentStorage, StorageError, get_storage
from warranty_activation.modules.extraction.service import InvoiceDateExtractor
from warranty_activation.modules.processing.service import InvoiceProcessor
from warranty_activation.modules.warranties.models import Warranty, WarrantyStatus
from warranty_activation.modules.warranties.store import WarrantyStore

logger = get_logger(__name__)

# Cap on filenames echoed into a single log record.
_ORPHAN_LOG_LIMIT = 50


@dataclass
class ReconciliationSummary:
    pending_found: int = 0
    processed: int = 0
    skipped: int = 0
    failed: int = 0
    orphans_found: int = 0
    orphans_with_date: int = 0
    fatal_errors: list[str] = field(default_factory=list)

    @property
    def completed(self) -> bool:
        return not self.fatal_errors


def find_orphans(stored: Iterable[str], referenced: Iterable[str]) -> list[str]:
    """Stored filenames that no claim points at."""
    return sorted(set(stored) - set(referenced))


class ReconciliationWorker:
    """Scheduled safety net for the submission-time processor.

    A run re-drives every ``pending`` claim whose invoice file is present and
    then reports upload files that no claim references. Orphans are only
    inspected and logged; they are never linked, changed or deleted.
    """

    def __init__(
        self,
        config: PipelineConfig,
        *,
        store: WarrantyStore,
        storage: DocumentStorage,
        extractor: InvoiceDateExtractor,
        processor: InvoiceProcessor | None = None,
    ) -> None:
        self._config = config
        self._store = store
        self._storage = storage
        self._extractor = extractor
        self._processor = processor or InvoiceProcessor(
            config, store=store, extractor=extractor
        )

    def run(self) -> ReconciliationSummary:
        run_id = uuid.uuid4().hex
        token = set_run_context(run_id)
        start = time.monotonic()
        summary = ReconciliationSummary()
        log_event(logger, "reconcile.start", window_days=self._config.window_days)
        try:
            self.sweep_pending(summary)
            self.scan_orphans(summary)
        except Exception:  # noqa: BLE001
            summary.fatal_errors.append("run")
            log_exception(logger, "reconcile.fatal")
        finally:
            log_event(
                logger,
                "reconcile.finish",
                level=logging.INFO if summary.completed else logging.ERROR,
                duration_ms=monotonic_ms(start),
                **asdict(summary),
            )
            reset_run_context(token)
        return summary

    def sweep_pending(self, summary: ReconciliationSummary) -> None:
        try:
            pending = self._store.find_all_by_status(WarrantyStatus.PENDING)
        except Exception:  # noqa: BLE001
            summary.fatal_errors.append("pending_query")
            log_exception(logger, "reconcile.pending.fatal")
            return

        summary.pending_found = len(pending)
        log_event(logger, "reconcile.pending.found", count=len(pending))
        for warranty in pending:
            self._reconcile_claim(warranty, summary)

    def _reconcile_claim(self, warranty: Warranty, summary: ReconciliationSummary) -> None:
        warranty_id = warranty.id
        location = warranty.invoice_location
        try:
            present = self._storage.exists(key=location)
        except StorageError as e:
            summary.skipped += 1
            log_event(
                logger,
                "reconcile.claim.storage_error",
                level=logging.WARNING,
                warranty_id=str(warranty_id),
                storage_key=location,
                error=str(e),
            )
            return
        if not present:
            # The file may show up later; leave the claim pending for the next run.
            summary.skipped += 1
            log_event(
                logger,
                "reconcile.claim.file_missing",
                level=logging.WARNING,
                warranty_id=str(warranty_id),
                storage_key=location,
            )
            return

        start = time.monotonic()
        try:
            result = self._processor.classify_and_persist(
                warranty_id, location, warranty.installation_date
            )
        except Exception:  # noqa: BLE001
            summary.failed += 1
            log_exception(
                logger,
                "reconcile.claim.error",
                warranty_id=str(warranty_id),
                storage_key=location,
                duration_ms=monotonic_ms(start),
            )
            self._processor.mark_manual_review(warranty_id)
            return

        summary.processed += 1
        log_event(
            logger,
            "reconcile.claim.processed",
            warranty_id=str(warranty_id),
            storage_key=location,
            installation_date=warranty.installation_date.isoformat(),
            invoice_date=result.invoice_date.isoformat() if result.invoice_date else None,
            status=result.status.value,
            duration_ms=monotonic_ms(start),
        )

    def scan_orphans(self, summary: ReconciliationSummary) -> None:
        try:
            stored = self._storage.list_all()
            referenced = self._store.referenced_locations()
        except Exception:  # noqa: BLE001
            summary.fatal_errors.append("orphan_scan")
            log_exception(logger, "reconcile.orphans.fatal")
            return

        orphans = find_orphans(stored, referenced)
        summary.orphans_found = len(orphans)
        log_event(
            logger,
            "reconcile.orphans.found",
            stored_count=len(stored),
            referenced_count=len(referenced),
            count=len(orphans),
            files=orphans[:_ORPHAN_LOG_LIMIT] or None,
        )
        for name in orphans:
            try:
                invoice_date = self._extractor.extract(name)
            except Exception:  # noqa: BLE001
                log_exception(logger, "reconcile.orphan.error", storage_key=name)
                continue
            if invoice_date is not None:
                summary.orphans_with_date += 1
            log_event(
                logger,
                "reconcile.orphan.inspected",
                storage_key=name,
                invoice_date=invoice_date.isoformat() if invoice_date else None,
            )


def build_reconciliation_worker(config: PipelineConfig | None = None) -> ReconciliationWorker:
    config = config or PipelineConfig.from_settings()
    storage = get_storage()
    extractor = InvoiceDateExtractor(config, storage=storage)
    return ReconciliationWorker(
        config,
        store=WarrantyStore(),
        storage=storage,
        extractor=extractor,
    )


def run_reconciliation() -> ReconciliationSummary:
    """Scheduler entry point. Never raises."""
    try:
        worker = build_reconciliation_worker()
    except Exception:  # noqa: BLE001
        log_exception(logger, "reconcile.setup.fatal")
        return ReconciliationSummary(fatal_errors=["setup"])
    return worker.run()
