"""
Platform-wide exception hierarchy.

Services raise these types; blueprints register handlers against them once
and get consistent HTTP status codes everywhere.

Usage:
    from solarhub.core.exceptions import NotFoundError, ValidationError

    raise NotFoundError(resource="projects", resource_id=42)
    raise ValidationError("A delete reason is required", details={"reason": "required"})
"""


class NotFoundError(Exception):
    """Raised when a requested resource does not exist.

    Args:
        resource: Table or entity name (e.g. "projects", "AuditLog").
        resource_id: The PK that was looked up.
    """

    def __init__(self, resource: str, resource_id: int | str | None = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" id={resource_id}"
        msg += " not found"
        super().__init__(msg)


class ValidationError(Exception):
    """Raised when input is well-formed but violates a business rule
    (missing delete reason, mismatched confirmation text, unknown stage).

    Maps to HTTP 422 in blueprint error handlers.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown. Keys are field names.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class ConflictError(Exception):
    """Raised when an operation would duplicate a unique value.

    Maps to HTTP 409.
    """

    def __init__(self, resource: str, field: str, value: str | None = None) -> None:
        self.resource = resource
        self.field = field
        self.value = value
        msg = f"{resource} with {field}={value!r} already exists"
        super().__init__(msg)


class PolicyViolationError(Exception):
    """Raised when the table's deletion policy forbids the requested operation
    (archiving a non-archivable table, purging without permission, …).

    Maps to HTTP 409.
    """

    def __init__(self, message: str, table: str | None = None) -> None:
        self.table = table
        super().__init__(message)


class PermissionDeniedError(Exception):
    """Raised when the acting user lacks the role an operation needs.

    Maps to HTTP 403.
    """


class CooldownError(Exception):
    """Raised when a guarded system operation is repeated too soon.

    Maps to HTTP 429.
    """

    def __init__(self, message: str, remaining_minutes: int) -> None:
        self.remaining_minutes = remaining_minutes
        super().__init__(message)
