from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import event, inspect, select
from sqlalchemy.orm import ORMExecuteState, Session
from sqlalchemy.sql.elements import BindParameter, ClauseElement, Null

from rolegate.core.errors import StatusDomainError, StatusDomainUnverifiableError
from rolegate.domain.models import PropertyMetadata, Status


logger = logging.getLogger(__name__)

# Tables that define the registry itself; their rows are never status-checked.
_REGISTRY_TABLES = frozenset({Status.__tablename__, PropertyMetadata.__tablename__})

_UNRESOLVED = object()


class StatusGuardedSession(Session):
    # Session class used by every SessionLocal session; flushes and bulk DML run the status domain guard.
    pass


def _status_columns(session: Session, table_name: str, cache: dict[str, list[tuple[str, str]]]) -> list[tuple[str, str]]:
    # Load (column_name, expected_entity_type) pairs once per table per check.
    if table_name not in cache:
        rows = session.execute(
            select(PropertyMetadata.column_name, PropertyMetadata.status_entity_type).where(
                PropertyMetadata.table_name == table_name,
                PropertyMetadata.status_entity_type.is_not(None),
            )
        ).all()
        cache[table_name] = [(row[0], row[1]) for row in rows]
    return cache[table_name]


def _column_value(instance: Any, column_name: str) -> Any:
    # Resolve a column name to its mapped attribute; unmapped columns read as null.
    mapper = inspect(instance).mapper
    for prop in mapper.column_attrs:
        if any(getattr(col, "name", None) == column_name for col in prop.columns):
            return getattr(instance, prop.key)
    return None


def _check_status(session: Session, *, table_name: str, column_name: str, expected: str, value: Any) -> None:
    if value is _UNRESOLVED:
        logger.warning(
            "status_domain_unverifiable table=%s column=%s expected=%s",
            table_name,
            column_name,
            expected,
        )
        raise StatusDomainUnverifiableError(table_name=table_name, column_name=column_name, expected=expected)
    if value is None:
        return
    actual = session.execute(select(Status.entity_type).where(Status.id == value)).scalar_one_or_none()
    if actual != expected:
        logger.warning(
            "status_domain_rejected table=%s column=%s expected=%s actual=%s",
            table_name,
            column_name,
            expected,
            actual,
        )
        raise StatusDomainError(
            table_name=table_name,
            column_name=column_name,
            expected=expected,
            actual=actual,
        )


def validate_status_columns(session: Session, instances: list[Any]) -> None:
    """Reject rows whose status-referencing columns point outside their domain.

    Every column registered in ``property_metadata`` with a ``status_entity_type``
    is checked independently; a table with three status columns runs three checks.
    Null values are skipped since nullability belongs to the column's own constraint.
    """
    cache: dict[str, list[tuple[str, str]]] = {}
    with session.no_autoflush:
        for instance in instances:
            table = getattr(instance, "__table__", None)
            if table is None or table.name in _REGISTRY_TABLES:
                continue
            for column_name, expected in _status_columns(session, table.name, cache):
                _check_status(
                    session,
                    table_name=table.name,
                    column_name=column_name,
                    expected=expected,
                    value=_column_value(instance, column_name),
                )


def _key_to_column_name(key: Any, mapper: Any) -> str | None:
    # ORM statements key values by Column; Core statements and bulk parameter sets use strings.
    if isinstance(key, str):
        if mapper is not None and key in mapper.column_attrs:
            return mapper.column_attrs[key].columns[0].name
        return key
    return getattr(key, "name", None)


def _assigned_value(value: Any, params: dict[str, Any]) -> Any:
    if isinstance(value, BindParameter):
        if value.key in params:
            return params[value.key]
        return value.effective_value
    if isinstance(value, Null):
        return None
    if isinstance(value, ClauseElement):
        # Subqueries and column arithmetic are only known to the database.
        return _UNRESOLVED
    return value


def _statement_rows(statement: Any) -> list[dict[Any, Any]]:
    # One mapping of column key -> assigned value per VALUES row of an INSERT or UPDATE.
    rows: list[dict[Any, Any]] = []
    if statement._values:
        rows.append(dict(statement._values))
    for batch in getattr(statement, "_multi_values", ()):
        for row in batch:
            if isinstance(row, dict):
                rows.append(row)
            else:
                rows.append(dict(zip(statement.table.c, row)))
    if getattr(statement, "select", None) is not None:
        rows.append({name: statement.select for name in statement._select_names})
    return rows or [{}]


def validate_statement_values(
    session: Session,
    statement: Any,
    parameters: dict[str, Any] | list[dict[str, Any]] | None,
    *,
    mapper: Any = None,
) -> None:
    """Apply the status domain check to an INSERT or UPDATE executed as a statement.

    Values come from ``.values()`` on the statement and from the parameter sets
    passed to ``Session.execute``; each row is checked on its own. A status column
    assigned a SQL expression cannot be evaluated ahead of the write and is rejected.
    """
    table_name = getattr(statement.table, "name", None)
    if table_name is None or table_name in _REGISTRY_TABLES:
        return
    cache: dict[str, list[tuple[str, str]]] = {}
    with session.no_autoflush:
        mapped = _status_columns(session, table_name, cache)
        if not mapped:
            return
        if isinstance(parameters, list):
            param_sets = parameters or [{}]
        else:
            param_sets = [dict(parameters or {})]
        for params in param_sets:
            for row in _statement_rows(statement):
                assigned = {_key_to_column_name(key, mapper): _assigned_value(value, params) for key, value in row.items()}
                for key, value in params.items():
                    assigned.setdefault(_key_to_column_name(key, mapper), value)
                for column_name, expected in mapped:
                    if column_name not in assigned:
                        continue
                    _check_status(
                        session,
                        table_name=table_name,
                        column_name=column_name,
                        expected=expected,
                        value=assigned[column_name],
                    )


@event.listens_for(StatusGuardedSession, "before_flush")
def _guard_status_columns(session: Session, _flush_context, _instances) -> None:
    # Runs for every insert and update flushed through a guarded session.
    pending = list(session.new)
    pending.extend(obj for obj in session.dirty if session.is_modified(obj, include_collections=False))
    if pending:
        validate_status_columns(session, pending)


@event.listens_for(StatusGuardedSession, "do_orm_execute")
def _guard_status_statements(orm_execute_state: ORMExecuteState) -> None:
    # Bulk insert() and update() statements never reach the flush.
    if not (orm_execute_state.is_insert or orm_execute_state.is_update):
        return
    statement = orm_execute_state.statement
    if orm_execute_state.is_from_statement:
        statement = statement.element
    validate_statement_values(
        orm_execute_state.session,
        statement,
        orm_execute_state.parameters,
        mapper=orm_execute_state.bind_mapper,
    )
