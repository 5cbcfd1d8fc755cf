from __future__ import annotations

from sqlalchemy import select

import warranty_activation.models  # noqa: F401
from warranty_activation.core.config import settings
from warranty_activation.core.db import SessionLocal, engine
from warranty_activation.core.logging import get_logger, log_event
from warranty_activation.core.models import Base
from warranty_activation.core.security import hash_password
from warranty_activation.core.storage import get_storage
from warranty_activation.modules.identity.models import User

logger = get_logger(__name__)


def bootstrap() -> None:
    if settings.environment in {"dev", "test"} and str(settings.database_url).startswith("sqlite"):
        Base.metadata.create_all(engine)

    # Creates the local upload directory up front.
    get_storage()

    if not settings.init_admin_username or not settings.init_admin_password:
        return

    usernames = [u.strip() for u in settings.init_admin_username.split(",") if u.strip()]
    with SessionLocal() as session:
        for username in usernames:
            existing = session.scalar(select(User).where(User.username == username))
            if existing:
                if not existing.is_admin:
                    existing.is_admin = True
                    session.add(existing)
                continue
            session.add(
                User(
                    username=username,
                    password_hash=hash_password(settings.init_admin_password),
                    is_admin=True,
                    is_active=True,
                )
            )
            log_event(logger, "bootstrap.admin.created", username=username)
        session.commit()
