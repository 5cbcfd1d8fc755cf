from __future__ import annotations

import uuid
from datetime import date, datetime

from pydantic import BaseModel

from warranty_activation.modules.warranties.models import Warranty, WarrantyStatus


class InvoiceDocumentOut(BaseModel):
    location: str
    filename: str
    content_type: str | None


class WarrantyOut(BaseModel):
    id: uuid.UUID
    owner_id: uuid.UUID
    customer_name: str
    customer_phone: str
    product_name: str
    installation_date: date
    invoice_date: date | None
    invoice: InvoiceDocumentOut
    invoice_url: str
    status: WarrantyStatus
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_model(cls, warranty: Warranty) -> WarrantyOut:
        return cls(
            id=warranty.id,
            owner_id=warranty.owner_id,
            customer_name=warranty.customer_name,
            customer_phone=warranty.customer_phone,
            product_name=warranty.product_name,
            installation_date=warranty.installation_date,
            invoice_date=warranty.invoice_date,
            invoice=InvoiceDocumentOut(
                location=warranty.invoice_location,
                filename=warranty.invoice_filename,
                content_type=warranty.invoice_content_type,
            ),
            invoice_url=f"/api/warranties/{warranty.id}/invoice",
            status=warranty.status,
            created_at=warranty.created_at,
            updated_at=warranty.updated_at,
        )


class WarrantyPage(BaseModel):
    warranties: list[WarrantyOut]
    page: int
    total_pages: int
    total_items: int


class WarrantyStatusUpdate(BaseModel):
    status: WarrantyStatus


class WarrantyStatusOut(BaseModel):
    id: uuid.UUID
    status: WarrantyStatus
    message: str = "Warranty status updated successfully."
