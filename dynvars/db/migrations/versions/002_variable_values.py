"""Create variable_values table.

Revision ID: 002
Revises: 001
Create Date: 2026-09-14

Polymorphic fact table: one value per
(tenant, class scope, category, owner, variable key).
"""

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects.postgresql import JSONB, UUID

revision = "002"
down_revision = "001"
branch_labels = None
depends_on = None


def upgrade() -> None:
    """Create variable_values table."""
    op.create_table(
        "variable_values",
        sa.Column("id", UUID, primary_key=True),
        sa.Column("tenant_id", UUID, nullable=False),
        sa.Column("class_scope_id", UUID, nullable=True),
        sa.Column("category", sa.String(32), nullable=False),
        sa.Column("owner_id", UUID, nullable=False),
        sa.Column("variable_key", sa.String(64), nullable=False),
        sa.Column("value", JSONB, nullable=False),
        sa.Column("created_by", sa.String(255), nullable=True),
        sa.Column("updated_by", sa.String(255), nullable=True),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), server_default=sa.text("NOW()")),
        sa.Column("updated_at", sa.TIMESTAMP(timezone=True), server_default=sa.text("NOW()")),
        sa.UniqueConstraint(
            "tenant_id",
            "class_scope_id",
            "category",
            "owner_id",
            "variable_key",
            name="uq_variable_value_fact",
            postgresql_nulls_not_distinct=True,
        ),
    )

    op.create_index(
        "idx_variable_values_owner",
        "variable_values",
        ["category", "owner_id"],
    )
    op.create_index(
        "idx_variable_values_scope_key",
        "variable_values",
        ["tenant_id", "category", "class_scope_id", "variable_key"],
    )


def downgrade() -> None:
    """Drop variable_values table."""
    op.drop_table("variable_values")
