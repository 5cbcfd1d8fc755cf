from __future__ import annotations

import os
import shutil
from pathlib import Path

import pytest

# Set env before any warranty_activation imports (settings/engine are created at import time).
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DATABASE_URL", "sqlite:///./.warranty_test.db")
os.environ.setdefault("STORAGE_BACKEND", "local")
os.environ.setdefault("LOCAL_STORAGE_PATH", ".tmp_uploads_test")
os.environ.setdefault("WARRANTY_DATE_WINDOW", "21")


@pytest.fixture(autouse=True)
def _reset_db_and_storage() -> None:
    import warranty_activation.models  # noqa: F401
    import warranty_activation.core.storage as storage_mod
    from warranty_activation.core.db import engine
    from warranty_activation.core.models import Base

    storage_mod._storage = None

    storage_path = Path(os.environ["LOCAL_STORAGE_PATH"])
    if storage_path.exists():
        shutil.rmtree(storage_path)

    Base.metadata.drop_all(engine)
    Base.metadata.create_all(engine)

    yield


@pytest.fixture
def storage():
    from warranty_activation.core.storage import get_storage

    return get_storage()


@pytest.fixture
def owner():
    from warranty_activation.core.db import SessionLocal
    from warranty_activation.modules.identity.service import create_user

    with SessionLocal() as session:
        user = create_user(session, username="installer", password="secret-pw")
        session.expunge(user)
    return user


class FakeOcrClient:
    """Serves canned OCR responses keyed by filename."""

    def __init__(self, responses: dict | None = None, default=None) -> None:
        self.responses = responses or {}
        self.default = default
        self.calls: list[str] = []

    def process_document(self, *, filename: str, body: bytes):
        self.calls.append(filename)
        outcome = self.responses.get(filename, self.default)
        if isinstance(outcome, Exception):
            raise outcome
        if outcome is None:
            return {}
        if isinstance(outcome, dict):
            return outcome
        return {"date": outcome}


@pytest.fixture
def fake_ocr():
    return FakeOcrClient()


def make_pending_warranty(storage, owner, *, installation_date, filename=None, body=b"%PDF-1.4"):
    from warranty_activation.modules.warranties.store import WarrantyStore

    key = filename or f"{os.urandom(6).hex()}.pdf"
    storage.put(key=key, body=body)
    return WarrantyStore().create_pending(
        owner_id=owner.id,
        customer_name="Jane Customer",
        customer_phone="+15550100",
        product_name="Heat pump",
        installation_date=installation_date,
        invoice_location=key,
        invoice_filename="invoice.pdf",
        invoice_content_type="application/pdf",
    )
