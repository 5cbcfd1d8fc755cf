from __future__ import annotations

import uuid

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from warranty_activation.core.db import db_session
from warranty_activation.core.logging import set_user_context
from warranty_activation.core.security import decode_access_token
from warranty_activation.modules.identity.models import User

bearer_scheme = HTTPBearer(auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def _subject_id(token: str) -> uuid.UUID:
    subject = decode_access_token(token)
    try:
        return uuid.UUID(subject or "")
    except ValueError as e:
        raise _unauthorized("Invalid token") from e


def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    session: Session = Depends(db_session),
) -> User:
    if credentials is None or not credentials.credentials:
        raise _unauthorized("Not authenticated")

    user = session.get(User, _subject_id(credentials.credentials))
    if user is None or not user.is_active:
        raise _unauthorized("Invalid user")
    set_user_context(str(user.id))
    return user


def require_admin(user: User = Depends(get_current_user)) -> User:
    # Admin rights come from the stored row, not the token claim.
    if not user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN, detail="Admin privileges required"
        )
    return user
