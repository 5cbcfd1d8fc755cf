from __future__ import annotations

import uuid
from datetime import date

from conftest import FakeOcrClient, make_pending_warranty

from warranty_activation.core.pipeline import PipelineConfig
from warranty_activation.modules.extraction.service import InvoiceDateExtractor
from warranty_activation.modules.processing import service as processing_service
from warranty_activation.modules.processing.service import InvoiceProcessor
from warranty_activation.modules.reconciliation import service as reconciliation_service
from warranty_activation.modules.warranties.models import WarrantyStatus
from warranty_activation.modules.warranties.store import WarrantyStore
from warranty_activation.worker import reconcile, tasks


def test_dispatch_swallows_broker_failure(monkeypatch):
    def _refuse(*args, **kwargs):
        raise ConnectionError("broker unreachable")

    monkeypatch.setattr(tasks.process_invoice_task, "delay", _refuse)

    assert tasks.dispatch_invoice_processing(uuid.uuid4(), "x.pdf", date(2025, 5, 8)) is None


def test_dispatch_runs_task_eagerly_in_tests(storage, owner, monkeypatch):
    warranty = make_pending_warranty(storage, owner, installation_date=date(2025, 5, 8))
    ocr = FakeOcrClient({warranty.invoice_location: "2025-04-28"})
    config = PipelineConfig()
    monkeypatch.setattr(
        processing_service,
        "build_invoice_processor",
        lambda *_: InvoiceProcessor(
            config,
            store=WarrantyStore(),
            extractor=InvoiceDateExtractor(config, storage=storage, ocr_client=ocr),
        ),
    )

    task_id = tasks.dispatch_invoice_processing(
        warranty.id, warranty.invoice_location, warranty.installation_date
    )

    assert task_id is not None
    stored = WarrantyStore().find_by_id(warranty.id)
    assert stored.status == WarrantyStatus.APPROVED
    assert stored.invoice_date == date(2025, 4, 28)


def test_process_invoice_task_never_raises(monkeypatch):
    def _boom(*args, **kwargs):
        raise RuntimeError("unexpected")

    monkeypatch.setattr(processing_service, "process_invoice", _boom)

    result = tasks.process_invoice_task.apply(
        args=(str(uuid.uuid4()), "x.pdf", "2025-05-08")
    ).get()

    assert result is None


def test_reconcile_task_reports_counts(monkeypatch):
    monkeypatch.setattr(
        reconciliation_service,
        "run_reconciliation",
        lambda: reconciliation_service.ReconciliationSummary(processed=3, skipped=1),
    )

    result = tasks.reconcile_invoices_task.apply().get()

    assert result == {"processed": 3, "failed": 0, "skipped": 1, "orphans_found": 0}


def test_reconcile_cli_exits_zero_even_when_setup_fails(monkeypatch):
    def _boom(config=None):
        raise RuntimeError("missing credentials")

    monkeypatch.setattr(reconciliation_service, "build_reconciliation_worker", _boom)

    assert reconcile.main() == 0
