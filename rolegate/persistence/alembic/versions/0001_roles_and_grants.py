"""roles, table permissions and entity action grants

Revision ID: 0001_roles_and_grants
Revises:
Create Date: 2026-10-05
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


revision = "0001_roles_and_grants"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "roles",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("display_name", sa.String(length=100), nullable=False, unique=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    # One row per (table, operation); grants attach roles to these rows.
    op.create_table(
        "permissions",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("table_name", sa.String(length=128), nullable=False),
        sa.Column("permission", sa.String(length=16), nullable=False),
        sa.UniqueConstraint("table_name", "permission", name="uq_permissions_table_permission"),
        sa.CheckConstraint(
            "permission IN ('create', 'read', 'update', 'delete')",
            name="ck_permissions_permission",
        ),
    )
    op.create_index("ix_permissions_table_name", "permissions", ["table_name"])

    op.create_table(
        "permission_roles",
        sa.Column(
            "permission_id",
            sa.Integer(),
            sa.ForeignKey("permissions.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("role_id", sa.Integer(), sa.ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_permission_roles_role_id", "permission_roles", ["role_id"])

    op.create_table(
        "entity_actions",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("table_name", sa.String(length=128), nullable=False),
        sa.Column("action_name", sa.String(length=100), nullable=False),
        sa.Column("display_name", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("icon", sa.String(length=50), nullable=True),
        sa.Column("button_style", sa.String(length=20), nullable=False, server_default="primary"),
        sa.Column("sort_order", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("rpc_function", sa.String(length=128), nullable=False),
        sa.Column("requires_confirmation", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("confirmation_message", sa.Text(), nullable=True),
        sa.Column("visibility_condition", postgresql.JSONB(), nullable=True),
        sa.Column("enabled_condition", postgresql.JSONB(), nullable=True),
        sa.Column("disabled_tooltip", sa.Text(), nullable=True),
        sa.Column("default_success_message", sa.Text(), nullable=True),
        sa.Column("default_navigate_to", sa.Text(), nullable=True),
        sa.Column("refresh_after_action", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("show_on_detail", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("table_name", "action_name", name="uq_entity_actions_table_action"),
        sa.CheckConstraint(
            "button_style IN ('primary', 'secondary', 'accent', 'success', 'warning', 'error', 'ghost')",
            name="ck_entity_actions_button_style",
        ),
        sa.CheckConstraint(
            "NOT requires_confirmation OR confirmation_message IS NOT NULL",
            name="ck_entity_actions_confirmation_message",
        ),
    )
    op.create_index("ix_entity_actions_table_name", "entity_actions", ["table_name"])
    op.create_index("ix_entity_actions_table_sort", "entity_actions", ["table_name", "sort_order"])

    op.create_table(
        "entity_action_roles",
        sa.Column(
            "entity_action_id",
            sa.Integer(),
            sa.ForeignKey("entity_actions.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("role_id", sa.Integer(), sa.ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_entity_action_roles_role_id", "entity_action_roles", ["role_id"])

    # The admin role is the bypass role for every permission check.
    op.execute(
        "INSERT INTO roles (display_name, description) "
        "VALUES ('admin', 'Full access; bypasses table and action grants')"
    )


def downgrade() -> None:
    op.drop_index("ix_entity_action_roles_role_id", table_name="entity_action_roles")
    op.drop_table("entity_action_roles")
    op.drop_index("ix_entity_actions_table_sort", table_name="entity_actions")
    op.drop_index("ix_entity_actions_table_name", table_name="entity_actions")
    op.drop_table("entity_actions")
    op.drop_index("ix_permission_roles_role_id", table_name="permission_roles")
    op.drop_table("permission_roles")
    op.drop_index("ix_permissions_table_name", table_name="permissions")
    op.drop_table("permissions")
    op.drop_table("roles")
