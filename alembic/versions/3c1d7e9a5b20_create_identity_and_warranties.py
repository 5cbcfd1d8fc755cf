"""create identity and warranties tables

Revision ID: 3c1d7e9a5b20
Revises:
Create Date: 2025-05-08

"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "3c1d7e9a5b20"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

WARRANTY_STATUSES = ("pending", "approved", "rejected", "manual_review")


def upgrade() -> None:
    op.create_table(
        "identity_user",
        sa.Column("id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("username", sa.String(length=150), nullable=False),
        sa.Column("password_hash", sa.String(length=200), nullable=False),
        sa.Column("is_admin", sa.Boolean(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_identity_user"),
    )
    op.create_index("ix_identity_user_username", "identity_user", ["username"], unique=True)
    op.create_index("ix_identity_user_is_admin", "identity_user", ["is_admin"])

    op.create_table(
        "warranties_warranty",
        sa.Column("id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("owner_id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("customer_name", sa.String(length=200), nullable=False),
        sa.Column("customer_phone", sa.String(length=50), nullable=False),
        sa.Column("product_name", sa.String(length=200), nullable=False),
        sa.Column("installation_date", sa.Date(), nullable=False),
        sa.Column("invoice_date", sa.Date(), nullable=True),
        sa.Column("invoice_location", sa.String(length=1024), nullable=False),
        sa.Column("invoice_filename", sa.String(length=512), nullable=False),
        sa.Column("invoice_content_type", sa.String(length=200), nullable=True),
        sa.Column(
            "status",
            sa.Enum(*WARRANTY_STATUSES, name="warrantystatus", native_enum=False),
            nullable=False,
        ),
        sa.ForeignKeyConstraint(
            ["owner_id"],
            ["identity_user.id"],
            name="fk_warranties_warranty_owner_id_identity_user",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_warranties_warranty"),
        sa.UniqueConstraint("invoice_location", name="uq_warranties_warranty_invoice_location"),
    )
    op.create_index("ix_warranties_warranty_owner_id", "warranties_warranty", ["owner_id"])
    op.create_index("ix_warranties_warranty_status", "warranties_warranty", ["status"])


def downgrade() -> None:
    op.drop_index("ix_warranties_warranty_status", table_name="warranties_warranty")
    op.drop_index("ix_warranties_warranty_owner_id", table_name="warranties_warranty")
    op.drop_table("warranties_warranty")
    op.drop_index("ix_identity_user_is_admin", table_name="identity_user")
    op.drop_index("ix_identity_user_username", table_name="identity_user")
    op.drop_table("identity_user")
