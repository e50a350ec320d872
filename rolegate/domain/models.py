from __future__ import annotations

from datetime import datetime
import re
from typing import Any

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    event,
    func,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


# JSONB on Postgres, plain JSON elsewhere (the test suite runs on SQLite).
JSONType = JSON().with_variant(JSONB(), "postgresql")
# SQLite only auto-increments INTEGER PRIMARY KEY columns.
BigIntId = BigInteger().with_variant(Integer(), "sqlite")

CRUD_OPERATIONS = ("create", "read", "update", "delete")
BUTTON_STYLES = ("primary", "secondary", "accent", "success", "warning", "error", "ghost")

_WHITESPACE_RUN = re.compile(r"\s+")


def derive_status_key(display_name: str) -> str:
    # "  Needs   Review " -> "needs_review"
    return _WHITESPACE_RUN.sub("_", display_name.strip()).lower()


class Base(DeclarativeBase):
    pass


class Role(Base):
    __tablename__ = "roles"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    # Grants match effective role names against display_name.
    display_name: Mapped[str] = mapped_column(String(100), unique=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class Permission(Base):
    __tablename__ = "permissions"
    __table_args__ = (
        UniqueConstraint("table_name", "permission", name="uq_permissions_table_permission"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    table_name: Mapped[str] = mapped_column(String(128), index=True)
    # One of CRUD_OPERATIONS.
    permission: Mapped[str] = mapped_column(String(16))


class PermissionRole(Base):
    __tablename__ = "permission_roles"

    permission_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("permissions.id", ondelete="CASCADE"), primary_key=True
    )
    role_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True, index=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class EntityAction(Base):
    __tablename__ = "entity_actions"
    __table_args__ = (
        UniqueConstraint("table_name", "action_name", name="uq_entity_actions_table_action"),
        Index("ix_entity_actions_table_sort", "table_name", "sort_order"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    # (table_name, action_name) is the action identity and is never edited after creation.
    table_name: Mapped[str] = mapped_column(String(128), index=True)
    action_name: Mapped[str] = mapped_column(String(100))
    display_name: Mapped[str] = mapped_column(Text)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    icon: Mapped[str | None] = mapped_column(String(50), nullable=True)
    button_style: Mapped[str] = mapped_column(String(20), default="primary", nullable=False)
    sort_order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    rpc_function: Mapped[str] = mapped_column(String(128))
    requires_confirmation: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    confirmation_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    # Conditions are evaluated client-side against record data; stored opaque here.
    visibility_condition: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)
    enabled_condition: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)
    disabled_tooltip: Mapped[str | None] = mapped_column(Text, nullable=True)
    default_success_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    default_navigate_to: Mapped[str | None] = mapped_column(Text, nullable=True)
    refresh_after_action: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    show_on_detail: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )


class EntityActionRole(Base):
    __tablename__ = "entity_action_roles"

    entity_action_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("entity_actions.id", ondelete="CASCADE"), primary_key=True
    )
    role_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True, index=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class StatusType(Base):
    __tablename__ = "status_types"

    # Convention: tablename_columnname (e.g. issues_status).
    entity_type: Mapped[str] = mapped_column(String(128), primary_key=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class Status(Base):
    __tablename__ = "statuses"
    __table_args__ = (
        UniqueConstraint("entity_type", "display_name", name="uq_statuses_entity_display_name"),
        UniqueConstraint("entity_type", "status_key", name="uq_statuses_entity_status_key"),
        # At most one initial value per domain; a plain unique index would block the first one.
        Index(
            "ix_statuses_single_initial",
            "entity_type",
            unique=True,
            postgresql_where=text("is_initial"),
            sqlite_where=text("is_initial = 1"),
        ),
        Index("ix_statuses_entity_sort", "entity_type", "sort_order"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    entity_type: Mapped[str] = mapped_column(
        String(128), ForeignKey("status_types.entity_type", ondelete="CASCADE"), index=True
    )
    # Stable snake_case identifier; derived from display_name when omitted.
    status_key: Mapped[str] = mapped_column(String(50))
    display_name: Mapped[str] = mapped_column(String(50))
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    color: Mapped[str | None] = mapped_column(String(7), default="#3B82F6", nullable=True)
    sort_order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    is_initial: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_terminal: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )


@event.listens_for(Status, "before_insert")
def _fill_status_key(_mapper, _connection, target: Status) -> None:
    if not target.status_key or not target.status_key.strip():
        target.status_key = derive_status_key(target.display_name)


class PropertyMetadata(Base):
    __tablename__ = "property_metadata"

    # Column-metadata registry rows; only the status domain mapping is consumed here.
    table_name: Mapped[str] = mapped_column(String(128), primary_key=True)
    column_name: Mapped[str] = mapped_column(String(128), primary_key=True)
    # No FK: deleting a domain leaves the mapping in place so writes keep failing closed.
    status_entity_type: Mapped[str | None] = mapped_column(String(128), nullable=True)


class AdminAuditLog(Base):
    __tablename__ = "admin_audit_log"
    __table_args__ = (
        Index("ix_admin_audit_log_event_created", "event_type", "created_at"),
    )

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)
    # Always the real (pre-impersonation) identity.
    real_user_id: Mapped[str] = mapped_column(String, index=True)
    real_user_email: Mapped[str | None] = mapped_column(String, nullable=True)
    # Open tag (impersonation_start, permission_change, ...), not a closed enum.
    event_type: Mapped[str] = mapped_column(String, index=True)
    event_data: Mapped[dict[str, Any]] = mapped_column(JSONType, default=dict, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), index=True)
