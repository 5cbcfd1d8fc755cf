from __future__ import annotations

import uuid

from fastapi import APIRouter, BackgroundTasks, Depends, File, Form, Query, UploadFile, status
from fastapi.responses import Response
from sqlalchemy.orm import Session

from warranty_activation.api.deps import get_current_user, require_admin
from warranty_activation.core.db import db_session
from warranty_activation.core.logging import get_logger, log_event
from warranty_activation.core.storage import DocumentStorage, get_storage
from warranty_activation.modules.identity.models import User
from warranty_activation.modules.warranties.models import WarrantyStatus
from warranty_activation.modules.warranties.schemas import (
    WarrantyOut,
    WarrantyPage,
    WarrantyStatusOut,
    WarrantyStatusUpdate,
)
from warranty_activation.modules.warranties.service import (
    get_warranty_for_user,
    list_warranties_for_user,
    override_status,
    read_invoice,
    submit_warranty,
)
from warranty_activation.modules.warranties.store import WarrantyStore
from warranty_activation.worker.tasks import dispatch_invoice_processing

router = APIRouter(tags=["warranties"])
logger = get_logger(__name__)


def get_warranty_store() -> WarrantyStore:
    return WarrantyStore()


def get_document_storage() -> DocumentStorage:
    return get_storage()


@router.post("/warranties", response_model=WarrantyOut, status_code=status.HTTP_201_CREATED)
async def create_warranty_endpoint(
    background_tasks: BackgroundTasks,
    customer_name: str = Form(...),
    customer_phone: str = Form(...),
    product_name: str = Form(...),
    installation_date: str = Form(...),
    invoice: UploadFile = File(...),
    store: WarrantyStore = Depends(get_warranty_store),
    storage: DocumentStorage = Depends(get_document_storage),
    user: User = Depends(get_current_user),
) -> WarrantyOut:
    body = await invoice.read()
    log_event(
        logger,
        "upload.received",
        filename=invoice.filename or "invoice.bin",
        content_type=invoice.content_type,
        byte_size=len(body),
    )
    warranty = submit_warranty(
        store=store,
        storage=storage,
        owner=user,
        customer_name=customer_name,
        customer_phone=customer_phone,
        product_name=product_name,
        installation_date=installation_date,
        filename=invoice.filename or "invoice.bin",
        content_type=invoice.content_type,
        body=body,
    )
    # Runs after the response is sent, in the threadpool.
    background_tasks.add_task(
        dispatch_invoice_processing,
        warranty.id,
        warranty.invoice_location,
        warranty.installation_date,
    )
    return WarrantyOut.from_model(warranty)


@router.get("/warranties", response_model=WarrantyPage)
def list_warranties_endpoint(
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    status_filter: WarrantyStatus | None = Query(None, alias="status"),
    user_id: uuid.UUID | None = None,
    session: Session = Depends(db_session),
    user: User = Depends(get_current_user),
) -> WarrantyPage:
    rows, total, pages = list_warranties_for_user(
        session,
        user=user,
        page=page,
        limit=limit,
        status_filter=status_filter,
        owner_id=user_id,
    )
    return WarrantyPage(
        warranties=[WarrantyOut.from_model(w) for w in rows],
        page=page,
        total_pages=pages,
        total_items=total,
    )


@router.get("/warranties/{warranty_id}", response_model=WarrantyOut)
def get_warranty_endpoint(
    warranty_id: uuid.UUID,
    session: Session = Depends(db_session),
    user: User = Depends(get_current_user),
) -> WarrantyOut:
    warranty = get_warranty_for_user(session, warranty_id=warranty_id, user=user)
    return WarrantyOut.from_model(warranty)


@router.patch("/warranties/{warranty_id}", response_model=WarrantyStatusOut)
def update_warranty_status_endpoint(
    warranty_id: uuid.UUID,
    payload: WarrantyStatusUpdate,
    store: WarrantyStore = Depends(get_warranty_store),
    admin_user: User = Depends(require_admin),
) -> WarrantyStatusOut:
    override_status(
        store=store, warranty_id=warranty_id, new_status=payload.status, admin=admin_user
    )
    return WarrantyStatusOut(id=warranty_id, status=payload.status)


@router.get("/warranties/{warranty_id}/invoice")
def download_invoice_endpoint(
    warranty_id: uuid.UUID,
    session: Session = Depends(db_session),
    storage: DocumentStorage = Depends(get_document_storage),
    user: User = Depends(get_current_user),
) -> Response:
    warranty = get_warranty_for_user(session, warranty_id=warranty_id, user=user)
    body = read_invoice(storage=storage, warranty=warranty)
    return Response(
        content=body,
        media_type=warranty.invoice_content_type or "application/octet-stream",
        headers={"Content-Disposition": f'inline; filename="{warranty.invoice_location}"'},
    )
