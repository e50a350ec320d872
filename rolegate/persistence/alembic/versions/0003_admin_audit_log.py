"""append-only admin audit log

Revision ID: 0003_admin_audit_log
Revises: 0002_status_registry
Create Date: 2026-10-07
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


revision = "0003_admin_audit_log"
down_revision = "0002_status_registry"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "admin_audit_log",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("real_user_id", sa.String(), nullable=False),
        sa.Column("real_user_email", sa.String(), nullable=True),
        sa.Column("event_type", sa.String(), nullable=False),
        sa.Column("event_data", postgresql.JSONB(), nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_admin_audit_log_real_user_id", "admin_audit_log", ["real_user_id"])
    op.create_index("ix_admin_audit_log_event_type", "admin_audit_log", ["event_type"])
    op.create_index("ix_admin_audit_log_created_at", "admin_audit_log", ["created_at"])
    op.create_index("ix_admin_audit_log_event_created", "admin_audit_log", ["event_type", "created_at"])

    # Entries are immutable once written, even for direct SQL callers.
    op.execute(
        """
        CREATE OR REPLACE FUNCTION reject_admin_audit_log_change()
        RETURNS TRIGGER
        LANGUAGE plpgsql
        AS $$
        BEGIN
          RAISE EXCEPTION 'admin_audit_log is append-only' USING ERRCODE = 'insufficient_privilege';
        END;
        $$;
        """
    )
    op.execute(
        "CREATE TRIGGER admin_audit_log_append_only BEFORE UPDATE OR DELETE ON admin_audit_log "
        "FOR EACH ROW EXECUTE FUNCTION reject_admin_audit_log_change()"
    )


def downgrade() -> None:
    op.execute("DROP TRIGGER IF EXISTS admin_audit_log_append_only ON admin_audit_log")
    op.execute("DROP FUNCTION IF EXISTS reject_admin_audit_log_change()")
    op.drop_index("ix_admin_audit_log_event_created", table_name="admin_audit_log")
    op.drop_index("ix_admin_audit_log_created_at", table_name="admin_audit_log")
    op.drop_index("ix_admin_audit_log_event_type", table_name="admin_audit_log")
    op.drop_index("ix_admin_audit_log_real_user_id", table_name="admin_audit_log")
    op.drop_table("admin_audit_log")
