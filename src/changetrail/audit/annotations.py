"""Declarative audit metadata.

Entities and repository methods describe how they are audited with
plain decorators and ``typing.Annotated`` metadata:

    @auditable("users")
    @dataclass
    class User:
        id: Annotated[int | None, AuditId] = None
        name: str | None = None
        password: Annotated[str | None, AuditProperty(ignore=True)] = None
        modified_by: Annotated[str | None, AuditUser] = None

    class UserRepository:
        def find_by_id(self, user_id: int) -> User | None: ...

        @audit_update()
        def update(self, user: User) -> None: ...

        @audit_delete(table_name="users")
        def delete(
            self,
            user_id: Annotated[int, AuditId],
            actor: Annotated[str, AuditUser],
        ) -> None: ...

Nothing here does any work at call time; the metadata is read once by
the resolver in changetrail.audit.descriptors.
"""

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, TypeVar

from changetrail.audit.schemas import Action
from changetrail.core.constants import DEFAULT_DIFF_STRATEGY
from changetrail.core.errors import ValidationError


T = TypeVar("T")
F = TypeVar("F", bound=Callable[..., Any])

AUDITABLE_ATTR = "__auditable__"
OPERATION_ATTR = "__audit_operation__"


class AuditMarker:
    """Marker placed in Annotated metadata of a field or parameter."""

    def __init__(self, name: str) -> None:
        self.name = name

    def __repr__(self) -> str:
        return self.name


#: Marks the entity identifier (entity field or operation parameter).
AuditId = AuditMarker("AuditId")

#: Marks the acting user (entity field or operation parameter).
AuditUser = AuditMarker("AuditUser")


@dataclass(frozen=True)
class AuditProperty:
    """Per-field overrides.

    Attributes:
        label: Display label; derived from the field name when empty
        ignore: Leave the field out of the audit entirely
        ignore_if_empty: Leave the field out when None, zero, blank or empty
        diff: Id of the diff strategy used for this field
    """

    label: str = ""
    ignore: bool = False
    ignore_if_empty: bool = False
    diff: str = DEFAULT_DIFF_STRATEGY


@dataclass(frozen=True)
class AuditFieldMapping:
    """One sub-field extracted from a nested composite."""

    field: str
    label: str = ""
    ignore_if_empty: bool = False


@dataclass(frozen=True)
class AuditProperties:
    """Restricts the sub-fields extracted from a nested composite.

    For a list of composites the mappings apply to every element.

    Example:
        address: Annotated[
            Address,
            AuditProperties(
                mappings=(AuditFieldMapping("city"), AuditFieldMapping("zip", "POSTAL")),
            ),
        ]
    """

    mappings: tuple[AuditFieldMapping, ...] = ()
    diff: str = DEFAULT_DIFF_STRATEGY
    label: str = ""


@dataclass(frozen=True)
class AuditableInfo:
    """Type-level metadata attached by @auditable."""

    table_name: str


@dataclass(frozen=True)
class AuditOperation:
    """Method-level metadata attached by the audit_* decorators."""

    action: Action
    find_by_id: str | None = None
    table_name: str | None = None


def auditable(table_name: str) -> Callable[[type[T]], type[T]]:
    """Mark a class as an auditable entity stored in ``table_name``.

    Raises:
        ValidationError: If table_name is empty
    """
    if not table_name or not table_name.strip():
        raise ValidationError("Auditable table name must not be empty", field="table_name")

    def decorator(cls: type[T]) -> type[T]:
        setattr(cls, AUDITABLE_ATTR, AuditableInfo(table_name=table_name))
        return cls

    return decorator


def auditable_info(cls: Any) -> AuditableInfo | None:
    """Return the @auditable metadata of a type, or None."""
    if not isinstance(cls, type):
        return None
    info = getattr(cls, AUDITABLE_ATTR, None)
    return info if isinstance(info, AuditableInfo) else None


def _mark(operation: AuditOperation) -> Callable[[F], F]:
    def decorator(func: F) -> F:
        setattr(func, OPERATION_ATTR, operation)
        return func

    return decorator


def audit_create(find_by_id: str | None = None) -> Callable[[F], F]:
    """Audit a create operation.

    The method must take an auditable entity argument and return either
    the created entity or its generated id; an id is dereferenced with
    the ``find_by_id`` method (the configured default when None).
    """
    return _mark(AuditOperation(action=Action.CREATE, find_by_id=find_by_id))


def audit_update(find_by_id: str | None = None) -> Callable[[F], F]:
    """Audit an update operation.

    The previous state is loaded with ``find_by_id`` before the call; the
    auditable entity argument is taken as the new state.
    """
    return _mark(AuditOperation(action=Action.UPDATE, find_by_id=find_by_id))


def audit_delete(
    table_name: str | None = None,
    find_by_id: str | None = None,
) -> Callable[[F], F]:
    """Audit a delete operation.

    ``table_name`` is needed when the method takes only an id, since
    there is no auditable argument to read it from.
    """
    return _mark(
        AuditOperation(action=Action.DELETE, find_by_id=find_by_id, table_name=table_name)
    )


def audit_operation(func: Any) -> AuditOperation | None:
    """Return the audit metadata of a function, or None."""
    operation = getattr(func, OPERATION_ATTR, None)
    return operation if isinstance(operation, AuditOperation) else None
