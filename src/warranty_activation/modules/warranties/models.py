from __future__ import annotations

import enum
import uuid
from datetime import date

from sqlalchemy import Date, Enum, ForeignKey, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from warranty_activation.core.models import Base, Timestamped, UUIDPrimaryKey


class WarrantyStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    MANUAL_REVIEW = "manual_review"


class Warranty(UUIDPrimaryKey, Timestamped, Base):
    __tablename__ = "warranties_warranty"

    owner_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("identity_user.id"), index=True
    )

    customer_name: Mapped[str] = mapped_column(String(200))
    customer_phone: Mapped[str] = mapped_column(String(50))
    product_name: Mapped[str] = mapped_column(String(200))

    installation_date: Mapped[date] = mapped_column(Date)
    # Written only by the classification pipeline.
    invoice_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    invoice_location: Mapped[str] = mapped_column(String(1024), unique=True)
    invoice_filename: Mapped[str] = mapped_column(String(512))
    invoice_content_type: Mapped[str | None] = mapped_column(String(200), nullable=True)

    status: Mapped[WarrantyStatus] = mapped_column(
        Enum(
            WarrantyStatus,
            native_enum=False,
            values_callable=lambda e: [m.value for m in e],
        ),
        index=True,
        default=WarrantyStatus.PENDING,
    )

    owner = relationship("User")
