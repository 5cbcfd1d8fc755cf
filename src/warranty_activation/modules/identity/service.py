from __future__ import annotations

import math
import uuid

from fastapi import HTTPException, status
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from warranty_activation.core.security import hash_password, verify_password
from warranty_activation.modules.identity.models import User


def get_user_by_username(session: Session, *, username: str) -> User | None:
    return session.scalar(select(User).where(User.username == username))


def get_user(session: Session, *, user_id: uuid.UUID) -> User:
    user = session.scalar(select(User).where(User.id == user_id))
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user


def create_user(
    session: Session,
    *,
    username: str,
    password: str,
    is_admin: bool = False,
) -> User:
    username = username.strip()
    existing = get_user_by_username(session, username=username)
    if existing:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="User already exists with this username",
        )

    user = User(
        username=username,
        password_hash=hash_password(password),
        is_admin=is_admin,
        is_active=True,
    )
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


def authenticate_user(session: Session, *, username: str, password: str) -> User:
    user = get_user_by_username(session, username=username.strip())
    if not user or not user.is_active or not verify_password(password, user.password_hash):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")
    return user


def list_users(session: Session, *, page: int, limit: int) -> tuple[list[User], int, int]:
    total = session.scalar(select(func.count()).select_from(User)) or 0
    users = list(
        session.scalars(
            select(User)
            .order_by(User.created_at.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
    )
    return users, total, math.ceil(total / limit) if limit else 0
