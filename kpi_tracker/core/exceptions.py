"""
Application exception hierarchy.

Services raise these types; ``kpi_tracker.utils.errors.register_error_handlers``
maps each of them to one HTTP status and JSON body, so blueprints never
translate errors by hand.

Usage:
    from kpi_tracker.core.exceptions import NotFoundError, ValidationError

    raise NotFoundError(resource="Project", resource_id=42)
    raise ValidationError("year is required", details={"year": "missing"})
"""


class NotFoundError(Exception):
    """Raised when a requested resource does not exist within the given scope.

    Used for both genuinely missing records and rows that live in another
    tenant's scope: a 403 would confirm the resource exists, a 404 does not.

    Args:
        resource: Human-readable entity name (e.g. "Project", "KpiDefinition").
        resource_id: The key that was looked up.
        tenant_id: Optional scope that was enforced. For debug logging only.
    """

    def __init__(
        self,
        resource: str,
        resource_id: int | str | None = None,
        tenant_id: int | None = None,
        message: str | None = None,
    ) -> None:
        self.resource = resource
        self.resource_id = resource_id
        self.tenant_id = tenant_id
        if message is None:
            message = f"{resource}"
            if resource_id is not None:
                message += f" id={resource_id}"
            message += " not found"
        super().__init__(message)


class ValidationError(Exception):
    """Raised when input is malformed or violates a field rule.

    Maps to HTTP 400.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown, keyed by field name.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class ConflictError(Exception):
    """Raised on a duplicate unique key or an invalid state transition.

    Maps to HTTP 409.

    Args:
        resource: Model name.
        field: The unique field that would be duplicated, if any.
        value: The conflicting value.
        message: Explicit message for state conflicts.
    """

    def __init__(
        self,
        resource: str,
        field: str | None = None,
        value: str | None = None,
        message: str | None = None,
    ) -> None:
        self.resource = resource
        self.field = field
        self.value = value
        if message is None:
            message = f"{resource} with {field}={value!r} already exists"
        super().__init__(message)


class DuplicateIdError(ConflictError):
    """A KPI definition id is already taken in its scope."""

    def __init__(self, kpi_id: str) -> None:
        super().__init__("KpiDefinition", "id", kpi_id, message="KPI ID already exists")


class HasChildrenError(ConflictError):
    """A KPI definition cannot be removed while other definitions reference it."""

    def __init__(self, kpi_id: str) -> None:
        self.kpi_id = kpi_id
        super().__init__("KpiDefinition", message="Cannot delete a KPI that has child KPIs")


class ForbiddenError(Exception):
    """Authenticated, but the role or ownership is insufficient. Maps to 403."""

    def __init__(self, message: str = "Permission denied") -> None:
        super().__init__(message)


class AuthenticationError(Exception):
    """Missing, invalid or expired credentials. Maps to 401."""

    def __init__(self, message: str = "Authentication required") -> None:
        super().__init__(message)
