"""Audit exceptions.

Every failure that originates inside the audit pipeline is an
AuditException. Audited calls never let these escape directly:
they are logged and replaced by AuditFailedError, which carries only
a correlation id. The HTTP handlers convert them to RFC 7807
Problem Details responses.
"""

from typing import Any


class AuditException(Exception):
    """Base exception for all audit errors.

    Attributes:
        message: Human-readable error message
        error_code: Machine-readable error code for clients
        status_code: HTTP status code for the response
        details: Additional error details
    """

    message: str = "An unexpected audit error occurred"
    error_code: str = "audit_error"
    status_code: int = 500

    def __init__(
        self,
        message: str | None = None,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.message = message or self.message
        self.error_code = error_code or self.error_code
        self.details = details or {}
        super().__init__(self.message)


class ValidationError(AuditException):
    """Raised when a declaration or a record fails validation.

    Example:
        raise ValidationError("Audit user must not be null", field="acting_user")
    """

    message = "Audit validation error"
    error_code = "validation_error"
    status_code = 422

    def __init__(
        self,
        message: str | None = None,
        field: str | None = None,
        **kwargs: Any,
    ) -> None:
        details = kwargs.pop("details", {})
        if field:
            details["field"] = field
        super().__init__(message=message, details=details, **kwargs)


class MissingCapability(ValidationError):
    """Raised when an operation declares no identifier or no acting user.

    Example:
        raise MissingCapability(
            "The method is missing an AuditId parameter or auditable argument",
            capability="id",
            operation="UserRepository.delete",
        )
    """

    message = "Missing audit capability"
    error_code = "missing_capability"

    def __init__(
        self,
        message: str | None = None,
        capability: str | None = None,
        operation: str | None = None,
        **kwargs: Any,
    ) -> None:
        details = kwargs.pop("details", {})
        if capability:
            details["capability"] = capability
        if operation:
            details["operation"] = operation
        super().__init__(message=message, details=details, **kwargs)


class EntityLookupError(AuditException):
    """Raised when the lookup-by-id operation is missing or fails.

    Example:
        raise EntityLookupError(
            "No suitable lookup method found", method="find_by_id"
        )
    """

    message = "Entity lookup failed"
    error_code = "lookup_error"
    status_code = 500

    def __init__(
        self,
        message: str | None = None,
        method: str | None = None,
        **kwargs: Any,
    ) -> None:
        details = kwargs.pop("details", {})
        if method:
            details["method"] = method
        super().__init__(message=message, details=details, **kwargs)


class InstantiationError(AuditException):
    """Raised when a blank instance of an entity type cannot be built."""

    message = "Failed to create a new instance"
    error_code = "instantiation_error"


class InvalidResultError(AuditException):
    """Raised when a create operation returns None."""

    message = "The result of the creation must be an id or the created entity"
    error_code = "invalid_result"


class DiffError(AuditException):
    """Raised when a diff strategy fails unexpectedly."""

    message = "Diff strategy failed"
    error_code = "diff_error"


class AuditStoreError(AuditException):
    """Raised when the audit store cannot persist or read records.

    Losing an audit record is as severe as losing the business write,
    so this is never swallowed.
    """

    message = "Audit store failure"
    error_code = "audit_store_error"
    status_code = 503


class AuditFailedError(AuditException):
    """Generic signal raised to callers of an audited operation.

    Only the correlation id is exposed; the underlying failure is in
    the logs under the same id.

    Example:
        raise AuditFailedError(correlation_id=uuid4().hex)
    """

    message = "An unexpected error occurred during the audit process"
    error_code = "audit_failed"
    status_code = 500

    def __init__(self, correlation_id: str) -> None:
        self.correlation_id = correlation_id
        super().__init__(
            message=f"{self.message}. Error id ({correlation_id})",
            details={"correlation_id": correlation_id},
        )
