from __future__ import annotations

# Ensure all models are registered before any task runs
# isort: off
import warranty_activation.models  # noqa: F401
# isort: on

import time
import uuid
from datetime import date

from warranty_activation.core.logging import (
    get_logger,
    log_event,
    log_exception,
    monotonic_ms,
    reset_task_context,
    set_task_context,
)
from warranty_activation.worker.celery_app import celery_app

logger = get_logger(__name__)


@celery_app.task(name="process_invoice", bind=True)
def process_invoice_task(
    self, warranty_id: str, document_location: str, installation_date: str
) -> str | None:
    from warranty_activation.modules.processing.service import process_invoice

    task_id = getattr(self.request, "id", None)
    token = set_task_context(task_id)
    start = time.monotonic()
    log_event(
        logger,
        "celery.task.start",
        task_name="process_invoice",
        warranty_id=warranty_id,
    )
    try:
        result = process_invoice(warranty_id, document_location, installation_date)
        log_event(
            logger,
            "celery.task.finish",
            task_name="process_invoice",
            warranty_id=warranty_id,
            status=result.status.value,
            duration_ms=monotonic_ms(start),
        )
        return result.status.value
    except Exception:  # noqa: BLE001
        # Nobody awaits this task; the reconciliation sweep picks the claim up.
        log_exception(
            logger,
            "celery.task.error",
            task_name="process_invoice",
            warranty_id=warranty_id,
            duration_ms=monotonic_ms(start),
        )
        return None
    finally:
        reset_task_context(token)


@celery_app.task(name="reconcile_invoices", bind=True)
def reconcile_invoices_task(self) -> dict:
    from warranty_activation.modules.reconciliation.service import run_reconciliation

    task_id = getattr(self.request, "id", None)
    token = set_task_context(task_id)
    start = time.monotonic()
    log_event(logger, "celery.task.start", task_name="reconcile_invoices")
    try:
        summary = run_reconciliation()
        log_event(
            logger,
            "celery.task.finish",
            task_name="reconcile_invoices",
            processed=summary.processed,
            failed=summary.failed,
            duration_ms=monotonic_ms(start),
        )
        return {
            "processed": summary.processed,
            "failed": summary.failed,
            "skipped": summary.skipped,
            "orphans_found": summary.orphans_found,
        }
    finally:
        reset_task_context(token)


def dispatch_invoice_processing(
    warranty_id: uuid.UUID, document_location: str, installation_date: date
) -> str | None:
    """Fire-and-forget enqueue from the submission path.

    Returns the Celery task id, or None when the broker refused the job. An
    enqueue failure never reaches the submitter.
    """
    try:
        async_result = process_invoice_task.delay(
            str(warranty_id), document_location, installation_date.isoformat()
        )
    except Exception:  # noqa: BLE001
        log_exception(
            logger,
            "celery.task.enqueue_failed",
            task_name="process_invoice",
            warranty_id=str(warranty_id),
        )
        return None
    log_event(
        logger,
        "celery.task.enqueued",
        task_name="process_invoice",
        celery_task_id=async_result.id,
        warranty_id=str(warranty_id),
    )
    return async_result.id
