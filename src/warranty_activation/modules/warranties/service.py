from __future__ import annotations

import math
import re
import time
import uuid
from datetime import date
from pathlib import PurePath

from fastapi import HTTPException, status
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from warranty_activation.core.config import settings
from warranty_activation.core.logging import get_logger, log_event
from warranty_activation.core.storage import DocumentStorage, StorageError
from warranty_activation.modules.classification.service import to_calendar_date
from warranty_activation.modules.identity.models import User
from warranty_activation.modules.warranties.models import Warranty, WarrantyStatus
from warranty_activation.modules.warranties.store import WarrantyStore

logger = get_logger(__name__)

ALLOWED_CONTENT_TYPES = frozenset({"image/jpeg", "image/jpg", "image/png", "application/pdf"})


def _storage_key(filename: str) -> str:
    suffix = PurePath(filename or "").suffix.lower()
    if not re.fullmatch(r"\.[a-z0-9]{1,8}", suffix):
        suffix = ""
    return f"{int(time.time() * 1000)}-{uuid.uuid4().hex}{suffix}"


def _required(value: str | None, name: str) -> str:
    cleaned = (value or "").strip()
    if not cleaned:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail=f"{name} is required"
        )
    return cleaned


def parse_installation_date(raw: str | date) -> date:
    try:
        return to_calendar_date(raw)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Valid installation date is required",
        ) from e


def submit_warranty(
    *,
    store: WarrantyStore,
    storage: DocumentStorage,
    owner: User,
    customer_name: str,
    customer_phone: str,
    product_name: str,
    installation_date: str | date,
    filename: str,
    content_type: str | None,
    body: bytes,
) -> Warranty:
    """Store the invoice and create the claim at ``pending``.

    Classification is not started here; the caller dispatches it once this
    returns.
    """
    customer_name = _required(customer_name, "Customer name")
    customer_phone = _required(customer_phone, "Customer phone")
    product_name = _required(product_name, "Product name")
    installed = parse_installation_date(installation_date)

    if (content_type or "").lower() not in ALLOWED_CONTENT_TYPES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=(
                "Invalid file type. Only JPEG, JPG, PNG and PDF files are allowed. "
                f"Received: {content_type}"
            ),
        )
    if not body:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Invoice file is required"
        )
    if len(body) > settings.max_upload_bytes:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail="Invoice file is too large",
        )

    stored = storage.put(key=_storage_key(filename), body=body)
    warranty = store.create_pending(
        owner_id=owner.id,
        customer_name=customer_name,
        customer_phone=customer_phone,
        product_name=product_name,
        installation_date=installed,
        invoice_location=stored.key,
        invoice_filename=filename or stored.key,
        invoice_content_type=content_type,
    )
    log_event(
        logger,
        "warranty.created",
        warranty_id=str(warranty.id),
        owner_id=str(owner.id),
        storage_key=stored.key,
        byte_size=stored.byte_size,
        installation_date=installed.isoformat(),
    )
    return warranty


def list_warranties_for_user(
    session: Session,
    *,
    user: User,
    page: int,
    limit: int,
    status_filter: WarrantyStatus | None = None,
    owner_id: uuid.UUID | None = None,
) -> tuple[list[Warranty], int, int]:
    query = select(Warranty)
    if not user.is_admin:
        query = query.where(Warranty.owner_id == user.id)
    elif owner_id is not None:
        query = query.where(Warranty.owner_id == owner_id)
    if status_filter is not None:
        query = query.where(Warranty.status == status_filter)

    total = session.scalar(select(func.count()).select_from(query.subquery())) or 0
    rows = list(
        session.scalars(
            query.order_by(Warranty.created_at.desc()).offset((page - 1) * limit).limit(limit)
        )
    )
    return rows, total, math.ceil(total / limit) if limit else 0


def list_warranties_for_owner(session: Session, *, owner_id: uuid.UUID) -> list[Warranty]:
    return list(
        session.scalars(
            select(Warranty)
            .where(Warranty.owner_id == owner_id)
            .order_by(Warranty.created_at.desc())
        )
    )


def get_warranty_for_user(session: Session, *, warranty_id: uuid.UUID, user: User) -> Warranty:
    warranty = session.scalar(select(Warranty).where(Warranty.id == warranty_id))
    if not warranty:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Warranty not found")
    if user.is_admin or warranty.owner_id == user.id:
        return warranty
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not allowed")


def override_status(
    *, store: WarrantyStore, warranty_id: uuid.UUID, new_status: WarrantyStatus, admin: User
) -> None:
    if not store.update(warranty_id, status=new_status):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Warranty not found")
    log_event(
        logger,
        "warranty.status.overridden",
        warranty_id=str(warranty_id),
        to_status=new_status.value,
        admin_id=str(admin.id),
    )


def read_invoice(*, storage: DocumentStorage, warranty: Warranty) -> bytes:
    try:
        return storage.get(key=warranty.invoice_location)
    except StorageError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Invoice file not found"
        ) from e
