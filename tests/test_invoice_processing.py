from __future__ import annotations

from datetime import date

from conftest import FakeOcrClient, make_pending_warranty

from warranty_activation.core.pipeline import PipelineConfig
from warranty_activation.modules.extraction.service import InvoiceDateExtractor
from warranty_activation.modules.processing import service as processing_service
from warranty_activation.modules.processing.service import InvoiceProcessor
from warranty_activation.modules.warranties.models import WarrantyStatus
from warranty_activation.modules.warranties.store import WarrantyStore


def _processor(storage, ocr, store=None) -> InvoiceProcessor:
    config = PipelineConfig(window_days=21)
    return InvoiceProcessor(
        config,
        store=store or WarrantyStore(),
        extractor=InvoiceDateExtractor(config, storage=storage, ocr_client=ocr),
    )


def test_submission_processing_approves_invoice_inside_window(storage, owner):
    warranty = make_pending_warranty(storage, owner, installation_date=date(2025, 5, 8))
    ocr = FakeOcrClient({warranty.invoice_location: "2025-04-28"})

    result = _processor(storage, ocr).process(
        warranty.id, warranty.invoice_location, "2025-05-08T11:44:36.075Z"
    )

    assert result.status == WarrantyStatus.APPROVED
    stored = WarrantyStore().find_by_id(warranty.id)
    assert stored.status == WarrantyStatus.APPROVED
    assert stored.invoice_date == date(2025, 4, 28)


def test_submission_processing_rejects_invoice_outside_window(storage, owner):
    warranty = make_pending_warranty(storage, owner, installation_date=date(2025, 5, 1))
    ocr = FakeOcrClient({warranty.invoice_location: "2025-04-09"})

    _processor(storage, ocr).process(warranty.id, warranty.invoice_location, date(2025, 5, 1))

    stored = WarrantyStore().find_by_id(warranty.id)
    assert stored.status == WarrantyStatus.REJECTED
    assert stored.invoice_date == date(2025, 4, 9)


def test_no_extractable_date_goes_to_manual_review(storage, owner):
    warranty = make_pending_warranty(storage, owner, installation_date=date(2025, 5, 1))
    ocr = FakeOcrClient({warranty.invoice_location: {"vendor": "ACME"}})

    _processor(storage, ocr).process(warranty.id, warranty.invoice_location, date(2025, 5, 1))

    stored = WarrantyStore().find_by_id(warranty.id)
    assert stored.status == WarrantyStatus.MANUAL_REVIEW
    assert stored.invoice_date is None


def test_processing_twice_yields_the_same_result(storage, owner):
    warranty = make_pending_warranty(storage, owner, installation_date=date(2025, 5, 8))
    ocr = FakeOcrClient({warranty.invoice_location: "2025-04-28"})
    processor = _processor(storage, ocr)

    first = processor.process(warranty.id, warranty.invoice_location, date(2025, 5, 8))
    after_first = WarrantyStore().find_by_id(warranty.id)
    second = processor.process(warranty.id, warranty.invoice_location, date(2025, 5, 8))
    after_second = WarrantyStore().find_by_id(warranty.id)

    assert first == second
    assert (after_first.status, after_first.invoice_date) == (
        after_second.status,
        after_second.invoice_date,
    )


def test_unexpected_extractor_failure_forces_manual_review(storage, owner):
    warranty = make_pending_warranty(storage, owner, installation_date=date(2025, 5, 8))

    class _BrokenExtractor:
        def extract(self, location):
            raise RuntimeError("decoder exploded")

    processor = InvoiceProcessor(
        PipelineConfig(), store=WarrantyStore(), extractor=_BrokenExtractor()
    )
    result = processor.process(warranty.id, warranty.invoice_location, date(2025, 5, 8))

    assert result.status == WarrantyStatus.MANUAL_REVIEW
    assert WarrantyStore().find_by_id(warranty.id).status == WarrantyStatus.MANUAL_REVIEW


def test_persistence_failure_falls_back_to_manual_review(storage, owner):
    warranty = make_pending_warranty(storage, owner, installation_date=date(2025, 5, 8))
    ocr = FakeOcrClient({warranty.invoice_location: "2025-04-28"})

    class _FlakyStore(WarrantyStore):
        def update(self, warranty_id, **fields):
            if "invoice_date" in fields:
                raise RuntimeError("database went away")
            return super().update(warranty_id, **fields)

    result = _processor(storage, ocr, store=_FlakyStore()).process(
        warranty.id, warranty.invoice_location, date(2025, 5, 8)
    )

    assert result.status == WarrantyStatus.MANUAL_REVIEW
    stored = WarrantyStore().find_by_id(warranty.id)
    assert stored.status == WarrantyStatus.MANUAL_REVIEW
    assert stored.invoice_date is None


def test_process_never_raises_when_fallback_also_fails(storage, owner):
    warranty = make_pending_warranty(storage, owner, installation_date=date(2025, 5, 8))

    class _DeadStore(WarrantyStore):
        def update(self, warranty_id, **fields):
            raise RuntimeError("database went away")

    result = _processor(storage, FakeOcrClient(), store=_DeadStore()).process(
        warranty.id, warranty.invoice_location, date(2025, 5, 8)
    )

    assert result.status == WarrantyStatus.MANUAL_REVIEW
    assert WarrantyStore().find_by_id(warranty.id).status == WarrantyStatus.PENDING


def test_process_invoice_trigger_accepts_string_ids(storage, owner, monkeypatch):
    warranty = make_pending_warranty(storage, owner, installation_date=date(2025, 5, 8))
    ocr = FakeOcrClient({warranty.invoice_location: "2025-05-20"})
    monkeypatch.setattr(
        processing_service,
        "build_invoice_processor",
        lambda config=None: _processor(storage, ocr),
    )

    result = processing_service.process_invoice(
        str(warranty.id), warranty.invoice_location, "2025-05-08"
    )

    assert result.status == WarrantyStatus.APPROVED
    assert WarrantyStore().find_by_id(warranty.id).invoice_date == date(2025, 5, 20)


def test_process_invoice_trigger_handles_setup_failure(storage, owner, monkeypatch):
    warranty = make_pending_warranty(storage, owner, installation_date=date(2025, 5, 8))

    def _boom(config=None):
        raise RuntimeError("no OCR credentials")

    monkeypatch.setattr(processing_service, "build_invoice_processor", _boom)

    result = processing_service.process_invoice(
        warranty.id, warranty.invoice_location, "2025-05-08"
    )

    assert result.status == WarrantyStatus.MANUAL_REVIEW
    assert WarrantyStore().find_by_id(warranty.id).status == WarrantyStatus.MANUAL_REVIEW
