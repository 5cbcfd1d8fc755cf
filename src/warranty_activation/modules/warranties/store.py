from __future__ import annotations

import uuid
from typing import Any

from sqlalchemy import select, update

from warranty_activation.core.db import SessionFactory, SessionLocal, session_scope
from warranty_activation.modules.warranties.models import Warranty, WarrantyStatus

# Columns the pipeline (and the admin override) may overwrite after creation.
_MUTABLE_FIELDS = frozenset({"status", "invoice_date"})


class WarrantyStore:
    """Claim record store used by the classification pipeline.

    Every method opens its own short session so background jobs never hold a
    connection across an OCR call. Rows are returned detached; callers read
    attributes but never write through them.
    """

    def __init__(self, session_factory: SessionFactory = SessionLocal) -> None:
        self._session_factory = session_factory

    def create_pending(self, **data: Any) -> Warranty:
        data.pop("status", None)
        data.pop("invoice_date", None)
        with session_scope(self._session_factory) as session:
            warranty = Warranty(status=WarrantyStatus.PENDING, invoice_date=None, **data)
            session.add(warranty)
            session.flush()
            session.refresh(warranty)
            session.expunge(warranty)
        return warranty

    def find_by_id(self, warranty_id: uuid.UUID) -> Warranty | None:
        with session_scope(self._session_factory) as session:
            warranty = session.get(Warranty, warranty_id)
            if warranty is not None:
                session.expunge(warranty)
            return warranty

    def find_all_by_status(self, status: WarrantyStatus) -> list[Warranty]:
        with session_scope(self._session_factory) as session:
            rows = list(
                session.scalars(
                    select(Warranty)
                    .where(Warranty.status == status)
                    .order_by(Warranty.created_at.asc())
                )
            )
            session.expunge_all()
            return rows

    def referenced_locations(self) -> set[str]:
        with session_scope(self._session_factory) as session:
            return {loc for loc in session.scalars(select(Warranty.invoice_location)) if loc}

    def update(self, warranty_id: uuid.UUID, **fields: Any) -> bool:
        """Overwrite ``fields`` on one claim. Safe to repeat with the same values."""
        unknown = set(fields) - _MUTABLE_FIELDS
        if unknown:
            raise ValueError(f"Immutable or unknown warranty fields: {sorted(unknown)}")
        if not fields:
            return False
        with session_scope(self._session_factory) as session:
            result = session.execute(
                update(Warranty).where(Warranty.id == warranty_id).values(**fields)
            )
            return bool(result.rowcount)
