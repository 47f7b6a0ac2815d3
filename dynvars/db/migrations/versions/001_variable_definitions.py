"""Create variable_definitions table.

Revision ID: 001
Revises:
Create Date: 2026-09-14

Typed field schemas defined by operators at runtime, one row per
(tenant, category, class scope, key). Inactive rows are soft-deleted.
"""

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects.postgresql import JSONB, UUID

revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    """Create variable_definitions table."""
    op.create_table(
        "variable_definitions",
        # Identity and scope
        sa.Column("id", UUID, primary_key=True),
        sa.Column("tenant_id", UUID, nullable=False),
        sa.Column("category", sa.String(32), nullable=False),
        sa.Column("class_scope_id", UUID, nullable=True),
        # Definition
        sa.Column("key", sa.String(64), nullable=False),
        sa.Column("label", sa.String(255), nullable=False),
        sa.Column("description", sa.Text, server_default="", nullable=False),
        # Shape
        sa.Column("data_type", sa.String(16), nullable=False),
        sa.Column("input_type", sa.String(32), nullable=False),
        sa.Column("options", JSONB, server_default="[]", nullable=False),
        sa.Column("default_value", JSONB, nullable=True),
        sa.Column("min", sa.Float, nullable=True),
        sa.Column("max", sa.Float, nullable=True),
        sa.Column("required", sa.Boolean, server_default="false", nullable=False),
        sa.Column("affects_calculation", sa.Boolean, server_default="true", nullable=False),
        # Admin
        sa.Column("is_active", sa.Boolean, server_default="true", nullable=False),
        sa.Column("created_by", sa.String(255), nullable=True),
        sa.Column("updated_by", sa.String(255), nullable=True),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), server_default=sa.text("NOW()")),
        sa.Column("updated_at", sa.TIMESTAMP(timezone=True), server_default=sa.text("NOW()")),
        # Constraints
        sa.UniqueConstraint(
            "tenant_id",
            "category",
            "class_scope_id",
            "key",
            name="uq_variable_definition_scope_key",
            postgresql_nulls_not_distinct=True,
        ),
        sa.CheckConstraint(
            "data_type IN ('number', 'string', 'boolean', 'select')",
            name="chk_variable_definition_data_type",
        ),
        sa.CheckConstraint(
            "(category = 'storeType') = (class_scope_id IS NULL)",
            name="chk_variable_definition_scope",
        ),
    )

    op.create_index(
        "idx_variable_definitions_scope_active",
        "variable_definitions",
        ["tenant_id", "category", "class_scope_id", "is_active"],
    )


def downgrade() -> None:
    """Drop variable_definitions table."""
    op.drop_table("variable_definitions")
