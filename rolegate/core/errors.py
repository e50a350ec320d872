from __future__ import annotations


class RolegateError(Exception):
    """Base error for rolegate."""


class NotFoundError(RolegateError):
    """Referenced record does not exist."""


class AdminAccessRequiredError(RolegateError):
    """Caller lacks the administrator role required for this operation."""


class StatusConflictError(RolegateError):
    """Status registry write would break a uniqueness rule."""


class StatusDomainError(RolegateError):
    """A status-referencing column points outside its configured domain."""

    def __init__(
        self,
        *,
        table_name: str,
        column_name: str,
        expected: str,
        actual: str | None,
        message: str | None = None,
    ) -> None:
        self.table_name = table_name
        self.column_name = column_name
        self.expected = expected
        self.actual = actual
        super().__init__(
            message
            or f"Invalid status for column {column_name}: expected entity_type {expected}, "
            f"got {actual if actual is not None else 'NULL (status not found)'}"
        )

    @property
    def not_found(self) -> bool:
        return self.actual is None


class EntityActionInvalidError(RolegateError):
    """Entity action definition breaks a structural rule."""


class EntityActionConflictError(RolegateError):
    """An action with the same (table_name, action_name) already exists."""


class StatusDomainUnverifiableError(StatusDomainError):
    """A status column is assigned a SQL expression whose value is unknown before the write."""

    def __init__(self, *, table_name: str, column_name: str, expected: str) -> None:
        super().__init__(
            table_name=table_name,
            column_name=column_name,
            expected=expected,
            actual=None,
            message=(
                f"Invalid status for column {column_name}: expected entity_type {expected}, "
                "got a SQL expression that cannot be verified"
            ),
        )

    @property
    def not_found(self) -> bool:
        return False
