from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query, status
from fastapi.security import OAuth2PasswordRequestForm
from pydantic import BaseModel
from sqlalchemy.orm import Session

from warranty_activation.api.deps import get_current_user, require_admin
from warranty_activation.core.db import db_session
from warranty_activation.core.security import create_access_token
from warranty_activation.modules.identity.models import User
from warranty_activation.modules.identity.schemas import TokenOut, UserCreate, UserOut, UserPage
from warranty_activation.modules.identity.service import (
    authenticate_user,
    create_user,
    get_user,
    list_users,
)
from warranty_activation.modules.warranties.schemas import WarrantyOut
from warranty_activation.modules.warranties.service import list_warranties_for_owner

router = APIRouter(tags=["identity"])


class UserWithWarranties(BaseModel):
    user: UserOut
    warranties: list[WarrantyOut]


def _token_for(user: User) -> TokenOut:
    token = create_access_token(subject=str(user.id), is_admin=user.is_admin)
    return TokenOut(access_token=token, user=UserOut.model_validate(user, from_attributes=True))


@router.post("/auth/register", response_model=TokenOut, status_code=status.HTTP_201_CREATED)
def register(payload: UserCreate, session: Session = Depends(db_session)) -> TokenOut:
    user = create_user(session, username=payload.username, password=payload.password)
    return _token_for(user)


@router.post("/auth/token", response_model=TokenOut)
def login(
    form_data: OAuth2PasswordRequestForm = Depends(),
    session: Session = Depends(db_session),
) -> TokenOut:
    user = authenticate_user(session, username=form_data.username, password=form_data.password)
    return _token_for(user)


@router.get("/auth/me", response_model=UserOut)
def me(user: User = Depends(get_current_user)) -> UserOut:
    return UserOut.model_validate(user, from_attributes=True)


@router.get("/users", response_model=UserPage)
def list_users_endpoint(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=200),
    session: Session = Depends(db_session),
    _: User = Depends(require_admin),
) -> UserPage:
    users, total, pages = list_users(session, page=page, limit=limit)
    return UserPage(
        users=[UserOut.model_validate(u, from_attributes=True) for u in users],
        page=page,
        total_pages=pages,
        total_items=total,
    )


@router.get("/users/{user_id}", response_model=UserWithWarranties)
def get_user_endpoint(
    user_id: uuid.UUID,
    session: Session = Depends(db_session),
    _: User = Depends(require_admin),
) -> UserWithWarranties:
    user = get_user(session, user_id=user_id)
    warranties = list_warranties_for_owner(session, owner_id=user.id)
    return UserWithWarranties(
        user=UserOut.model_validate(user, from_attributes=True),
        warranties=[WarrantyOut.from_model(w) for w in warranties],
    )
