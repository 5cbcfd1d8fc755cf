"""
Alembic model import hook.

Importing this module ensures all SQLAlchemy models are registered on Base.metadata.
"""

from __future__ import annotations

# Import User first - warranties reference identity_user
from warranty_activation.modules.identity.models import User  # noqa: F401

from warranty_activation.modules.warranties.models import Warranty  # noqa: F401
