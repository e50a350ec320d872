"""status domains, status values and status column mappings

Revision ID: 0002_status_registry
Revises: 0001_roles_and_grants
Create Date: 2026-10-06
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa


revision = "0002_status_registry"
down_revision = "0001_roles_and_grants"
branch_labels = None
depends_on = None


# Row trigger equivalent of the ORM flush guard, for writes that bypass the ORM.
# Tables opt in with:
#   CREATE TRIGGER validate_<table>_status BEFORE INSERT OR UPDATE ON <table>
#     FOR EACH ROW EXECUTE FUNCTION validate_status_entity_type();
_VALIDATE_FUNCTION = """
CREATE OR REPLACE FUNCTION validate_status_entity_type()
RETURNS TRIGGER
LANGUAGE plpgsql
AS $$
DECLARE
  col RECORD;
  status_val INT;
  actual_type TEXT;
BEGIN
  FOR col IN
    SELECT column_name, status_entity_type
    FROM property_metadata
    WHERE table_name = TG_TABLE_NAME
      AND status_entity_type IS NOT NULL
  LOOP
    EXECUTE format('SELECT ($1).%I', col.column_name) INTO status_val USING NEW;
    IF status_val IS NOT NULL THEN
      SELECT entity_type INTO actual_type FROM statuses WHERE id = status_val;
      IF actual_type IS DISTINCT FROM col.status_entity_type THEN
        RAISE EXCEPTION 'Invalid status for column %: expected entity_type %, got %',
          col.column_name, col.status_entity_type, COALESCE(actual_type, 'NULL (status not found)')
          USING ERRCODE = 'check_violation';
      END IF;
    END IF;
  END LOOP;
  RETURN NEW;
END;
$$;
"""


# Raw SQL inserts may omit status_key; derive it from display_name the same way the ORM does.
_SET_KEY_FUNCTION = r"""
CREATE OR REPLACE FUNCTION set_status_key()
RETURNS TRIGGER
LANGUAGE plpgsql
AS $$
BEGIN
  IF NEW.status_key IS NULL OR TRIM(NEW.status_key) = '' THEN
    NEW.status_key := LOWER(REGEXP_REPLACE(TRIM(NEW.display_name), '\s+', '_', 'g'));
  END IF;
  RETURN NEW;
END;
$$;
"""

_SET_KEY_TRIGGER = """
CREATE TRIGGER trg_statuses_set_key
  BEFORE INSERT ON statuses
  FOR EACH ROW EXECUTE FUNCTION set_status_key();
"""


def upgrade() -> None:
    op.create_table(
        "status_types",
        sa.Column("entity_type", sa.String(length=128), primary_key=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    op.create_table(
        "statuses",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "entity_type",
            sa.String(length=128),
            sa.ForeignKey("status_types.entity_type", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("status_key", sa.String(length=50), nullable=False),
        sa.Column("display_name", sa.String(length=50), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("color", sa.String(length=7), nullable=True, server_default="#3B82F6"),
        sa.Column("sort_order", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_initial", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_terminal", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("entity_type", "display_name", name="uq_statuses_entity_display_name"),
        sa.UniqueConstraint("entity_type", "status_key", name="uq_statuses_entity_status_key"),
        sa.CheckConstraint("color IS NULL OR color ~ '^#[0-9A-Fa-f]{6}$'", name="ck_statuses_color_hex"),
    )
    op.create_index("ix_statuses_entity_type", "statuses", ["entity_type"])
    op.create_index("ix_statuses_entity_sort", "statuses", ["entity_type", "sort_order"])
    # At most one initial value per domain, enforced even under concurrent writers.
    op.create_index(
        "ix_statuses_single_initial",
        "statuses",
        ["entity_type"],
        unique=True,
        postgresql_where=sa.text("is_initial"),
    )

    op.create_table(
        "property_metadata",
        sa.Column("table_name", sa.String(length=128), primary_key=True),
        sa.Column("column_name", sa.String(length=128), primary_key=True),
        sa.Column("status_entity_type", sa.String(length=128), nullable=True),
    )

    op.execute(_SET_KEY_FUNCTION)
    op.execute(_SET_KEY_TRIGGER)
    op.execute(_VALIDATE_FUNCTION)


def downgrade() -> None:
    op.execute("DROP FUNCTION IF EXISTS validate_status_entity_type()")
    op.execute("DROP TRIGGER IF EXISTS trg_statuses_set_key ON statuses")
    op.execute("DROP FUNCTION IF EXISTS set_status_key()")
    op.drop_table("property_metadata")
    op.drop_index("ix_statuses_single_initial", table_name="statuses")
    op.drop_index("ix_statuses_entity_sort", table_name="statuses")
    op.drop_index("ix_statuses_entity_type", table_name="statuses")
    op.drop_table("statuses")
    op.drop_table("status_types")
