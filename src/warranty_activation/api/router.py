from __future__ import annotations

from fastapi import APIRouter

from warranty_activation.modules.identity.api import router as identity_router
from warranty_activation.modules.warranties.api import router as warranties_router

router = APIRouter()

router.include_router(identity_router, prefix="/api")
router.include_router(warranties_router, prefix="/api")


@router.get("/healthz")
def healthz() -> dict[str, str]:
    return {"status": "ok"}
