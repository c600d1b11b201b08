"""Metadata resolver.

Turns the declarations from changetrail.audit.annotations into
immutable descriptors: one EntityDescriptor per entity type and one
OperationDescriptor per audited method. Both are resolved once and
cached for the lifetime of the process. Resolution is pure, so two
threads racing on a first resolution only duplicate work.
"""

import dataclasses
import inspect
import types
from collections.abc import Mapping
from dataclasses import dataclass
from functools import lru_cache
from typing import Annotated, Any, ClassVar, Union, get_args, get_origin, get_type_hints

import structlog
from pydantic import BaseModel

from changetrail.audit.annotations import (
    AuditId,
    AuditMarker,
    AuditProperties,
    AuditProperty,
    AuditUser,
    audit_operation,
    auditable_info,
)
from changetrail.audit.diff import get_diff_strategy
from changetrail.audit.schemas import Action
from changetrail.config import get_settings
from changetrail.core.constants import DEFAULT_DIFF_STRATEGY
from changetrail.core.errors import MissingCapability, ValidationError
from changetrail.core.utils.text import to_label


log = structlog.get_logger()


@dataclass(frozen=True)
class FieldDescriptor:
    """Resolved audit configuration of one field."""

    key: str
    label: str
    ignore: bool = False
    ignore_if_empty: bool = False
    diff: str = DEFAULT_DIFF_STRATEGY
    sub_fields: tuple["FieldDescriptor", ...] | None = None
    is_id: bool = False
    is_user: bool = False


@dataclass(frozen=True)
class EntityDescriptor:
    """Resolved audit configuration of one entity type.

    ``fields`` is empty for types that declare no fields; their public
    instance attributes are used instead.
    """

    entity_type: type
    table_name: str | None
    fields: tuple[FieldDescriptor, ...]

    @property
    def is_auditable(self) -> bool:
        return self.table_name is not None

    @property
    def id_field(self) -> FieldDescriptor | None:
        return next((f for f in self.fields if f.is_id), None)

    @property
    def user_field(self) -> FieldDescriptor | None:
        return next((f for f in self.fields if f.is_user), None)

    @property
    def audited_fields(self) -> tuple[FieldDescriptor, ...]:
        """Fields that make up the root canonical tree."""
        return tuple(
            f for f in self.fields if not (f.ignore or f.is_id or f.is_user)
        )

    @property
    def strategies(self) -> dict[str, str]:
        """Label to diff strategy id for the root fields."""
        return {f.label: f.diff for f in self.audited_fields}


@dataclass(frozen=True)
class ArgumentSource:
    """Where an operation reads a value from.

    Either the parameter itself, or ``field`` of the parameter's value.
    """

    parameter: str
    position: int
    field: str | None = None

    def read(self, arguments: Mapping[str, Any]) -> Any:
        value = arguments.get(self.parameter)
        if self.field is None or value is None:
            return value
        return read_field(value, self.field)


@dataclass(frozen=True)
class OperationDescriptor:
    """Resolved audit configuration of one repository method."""

    name: str
    action: Action
    signature: inspect.Signature
    id_source: ArgumentSource
    user_source: ArgumentSource
    table_name: str
    lookup_method: str | None
    entity_parameter: str | None = None
    entity_type: type | None = None

    def bind(self, target: Any, args: tuple[Any, ...], kwargs: dict[str, Any]) -> dict[str, Any]:
        """Bind call arguments (with ``target`` as self) by parameter name."""
        bound = self.signature.bind(target, *args, **kwargs)
        bound.apply_defaults()
        return dict(bound.arguments)


def read_field(value: Any, name: str) -> Any:
    """Read a declared field from an object or mapping.

    Raises:
        ValidationError: If the field does not exist on the value
    """
    if isinstance(value, Mapping):
        try:
            return value[name]
        except KeyError:
            raise ValidationError(
                f"Failed to get value from field: {name}", field=name
            ) from None
    try:
        return getattr(value, name)
    except AttributeError:
        raise ValidationError(
            f"Failed to get value from field: {name}", field=name
        ) from None


def _type_hints(obj: Any) -> dict[str, Any]:
    try:
        return get_type_hints(obj, include_extras=True)
    except (NameError, TypeError):
        # Unresolvable forward references: fall back to raw annotations
        hints: dict[str, Any] = {}
        for klass in reversed(getattr(obj, "__mro__", (obj,))):
            hints.update(getattr(klass, "__annotations__", {}))
        return hints


def _metadata(hint: Any) -> tuple[Any, ...]:
    if get_origin(hint) is Annotated:
        return tuple(hint.__metadata__)
    return ()


def _strip(hint: Any) -> Any:
    """Remove Annotated and Optional wrappers from a type hint."""
    if get_origin(hint) is Annotated:
        hint = get_args(hint)[0]
    if get_origin(hint) in (Union, types.UnionType):
        args = [a for a in get_args(hint) if a is not type(None)]
        if len(args) == 1:
            return _strip(args[0])
    return hint


def _declared_field_names(cls: type, hints: Mapping[str, Any]) -> list[str]:
    if dataclasses.is_dataclass(cls):
        return [f.name for f in dataclasses.fields(cls)]
    if issubclass(cls, BaseModel):
        return list(cls.model_fields)
    return [
        name
        for name, hint in hints.items()
        if not name.startswith("_") and get_origin(hint) is not ClassVar
    ]


def _mapping_descriptors(properties: AuditProperties) -> tuple[FieldDescriptor, ...]:
    return tuple(
        FieldDescriptor(
            key=mapping.field,
            label=mapping.label or to_label(mapping.field),
            ignore_if_empty=mapping.ignore_if_empty,
        )
        for mapping in properties.mappings
    )


def build_field_descriptor(name: str, hint: Any = None) -> FieldDescriptor:
    """Resolve the descriptor of one field from its type hint metadata.

    Raises:
        ValidationError: If the field references an unknown diff strategy
    """
    metadata = _metadata(hint)
    prop = next((m for m in metadata if isinstance(m, AuditProperty)), AuditProperty())
    props = next((m for m in metadata if isinstance(m, AuditProperties)), None)

    diff = prop.diff
    label = prop.label
    sub_fields = None
    if props is not None:
        if props.diff != DEFAULT_DIFF_STRATEGY:
            diff = props.diff
        label = label or props.label
        if props.mappings:
            sub_fields = _mapping_descriptors(props)

    get_diff_strategy(diff)

    return FieldDescriptor(
        key=name,
        label=label or to_label(name),
        ignore=prop.ignore,
        ignore_if_empty=prop.ignore_if_empty,
        diff=diff,
        sub_fields=sub_fields,
        is_id=any(m is AuditId for m in metadata),
        is_user=any(m is AuditUser for m in metadata),
    )


@lru_cache(maxsize=None)
def resolve_entity(entity_type: type) -> EntityDescriptor:
    """Resolve and cache the descriptor of an entity type.

    Raises:
        ValidationError: If declarations are inconsistent
    """
    hints = _type_hints(entity_type)
    fields = tuple(
        build_field_descriptor(name, hints.get(name))
        for name in _declared_field_names(entity_type, hints)
    )

    for flag in ("is_id", "is_user"):
        marked = [f.key for f in fields if getattr(f, flag)]
        if len(marked) > 1:
            raise ValidationError(
                f"{entity_type.__qualname__} marks more than one field with "
                f"{'AuditId' if flag == 'is_id' else 'AuditUser'}",
                details={"fields": marked},
            )

    info = auditable_info(entity_type)
    descriptor = EntityDescriptor(
        entity_type=entity_type,
        table_name=info.table_name if info else None,
        fields=fields,
    )
    log.debug(
        "entity_descriptor_resolved",
        entity_type=entity_type.__qualname__,
        table_name=descriptor.table_name,
        field_count=len(fields),
    )
    return descriptor


def _marked_parameter(
    parameters: list[inspect.Parameter],
    hints: Mapping[str, Any],
    marker: AuditMarker,
) -> ArgumentSource | None:
    for position, parameter in enumerate(parameters):
        if any(m is marker for m in _metadata(hints.get(parameter.name))):
            return ArgumentSource(parameter=parameter.name, position=position)
    return None


@lru_cache(maxsize=None)
def resolve_operation(func: Any) -> OperationDescriptor:
    """Resolve and cache the descriptor of an audited method.

    Raises:
        ValidationError: If the function is not decorated, is a coroutine,
            lacks the auditable argument its action needs, or has no table
        MissingCapability: If no identifier or acting user source resolves
    """
    operation = audit_operation(func)
    name = getattr(func, "__qualname__", repr(func))
    if operation is None:
        raise ValidationError(f"{name} is not an audited operation")
    if inspect.iscoroutinefunction(func):
        raise ValidationError(f"{name}: coroutine functions cannot be audited")

    signature = inspect.signature(func)
    parameters = list(signature.parameters.values())
    hints = _type_hints(func)

    entity_parameter: str | None = None
    entity_position = -1
    entity_type: type | None = None
    for position, parameter in enumerate(parameters):
        candidate = _strip(hints.get(parameter.name))
        if auditable_info(candidate) is not None:
            entity_parameter, entity_position, entity_type = parameter.name, position, candidate
            break

    if operation.action in (Action.CREATE, Action.UPDATE) and entity_type is None:
        raise ValidationError(
            f"{name}: the method does not have a parameter annotated with an auditable type"
        )

    entity = resolve_entity(entity_type) if entity_type is not None else None

    id_source = _marked_parameter(parameters, hints, AuditId)
    if id_source is None and entity is not None and entity.id_field is not None:
        id_source = ArgumentSource(entity_parameter, entity_position, entity.id_field.key)  # type: ignore[arg-type]
    if id_source is None:
        raise MissingCapability(
            f"{name}: the method is missing an AuditId parameter or an auditable "
            "argument with an AuditId field",
            capability="id",
            operation=name,
        )

    user_source = _marked_parameter(parameters, hints, AuditUser)
    if user_source is None and entity is not None and entity.user_field is not None:
        user_source = ArgumentSource(entity_parameter, entity_position, entity.user_field.key)  # type: ignore[arg-type]
    if user_source is None:
        raise MissingCapability(
            f"{name}: the method is missing an AuditUser parameter or an auditable "
            "argument with an AuditUser field",
            capability="user",
            operation=name,
        )

    if operation.action is Action.CREATE and (entity is None or entity.id_field is None):
        raise MissingCapability(
            f"{name}: the created entity type must mark its identifier with AuditId",
            capability="id",
            operation=name,
        )

    table_name = entity.table_name if entity is not None else operation.table_name
    if not table_name:
        raise ValidationError(
            f"{name}: no table name; pass table_name to audit_delete or take an "
            "auditable argument"
        )

    descriptor = OperationDescriptor(
        name=name,
        action=operation.action,
        signature=signature,
        id_source=id_source,
        user_source=user_source,
        table_name=table_name,
        lookup_method=operation.find_by_id or get_settings().default_lookup_method,
        entity_parameter=entity_parameter,
        entity_type=entity_type,
    )
    log.debug(
        "operation_descriptor_resolved",
        operation=name,
        action=descriptor.action.value,
        table_name=table_name,
    )
    return descriptor


@lru_cache(maxsize=None)
def resolve_operations(cls: type) -> Mapping[str, OperationDescriptor]:
    """Resolve every audited method defined on a class (including bases)."""
    operations: dict[str, OperationDescriptor] = {}
    for attr_name in dir(cls):
        member = inspect.getattr_static(cls, attr_name, None)
        if isinstance(member, staticmethod | classmethod):
            continue
        if inspect.isfunction(member) and audit_operation(member) is not None:
            operations[attr_name] = resolve_operation(member)
    return types.MappingProxyType(operations)
