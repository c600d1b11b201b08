"""Canonical trees.

An entity is captured as a tree of Scalar, ListNode and Composite
nodes. Two captures of the same state compare equal, so a tree can be
diffed field by field without knowing the entity's type.
"""

import json
import numbers
from collections.abc import Mapping, Sized
from dataclasses import dataclass, field
from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from typing import Any, Union
from uuid import UUID

from changetrail.audit.descriptors import FieldDescriptor, read_field, resolve_entity
from changetrail.core.errors import ValidationError
from changetrail.core.utils.text import to_label


SCALAR_TYPES = (type(None), bool, str, bytes, numbers.Number, datetime, date, time, UUID, Decimal)
SEQUENCE_TYPES = (list, tuple, set, frozenset)


@dataclass(frozen=True)
class Scalar:
    value: Any


@dataclass(frozen=True)
class ListNode:
    items: tuple["CanonicalNode", ...] = ()


@dataclass(frozen=True)
class Composite:
    """Ordered mapping of label to node."""

    fields: dict[str, "CanonicalNode"] = field(default_factory=dict)

    def get(self, label: str) -> "CanonicalNode | None":
        return self.fields.get(label)


CanonicalNode = Union[Scalar, ListNode, Composite]


def is_scalar(value: Any) -> bool:
    """True for values captured verbatim (enums included)."""
    return isinstance(value, Enum) or isinstance(value, SCALAR_TYPES)


def is_empty(value: Any) -> bool:
    """True when an ignore-if-empty field should be dropped.

    >>> [is_empty(v) for v in (None, 0, 0.0, "  ", [], {}, False, "x", 1)]
    [True, True, True, True, True, True, False, False, False]
    """
    if value is None:
        return True
    if isinstance(value, bool):
        return False
    if isinstance(value, numbers.Number):
        return value == 0
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, Sized):
        return len(value) == 0
    return False


def canonicalize(entity: Any) -> Composite:
    """Capture an auditable entity as a Composite.

    The identifier and acting-user fields are left out of the root.

    Raises:
        ValidationError: If the entity is not auditable or a declared
            field cannot be read
    """
    descriptor = resolve_entity(type(entity))
    if not descriptor.is_auditable:
        raise ValidationError(
            f"{type(entity).__qualname__} is not an auditable entity",
            details={"type": type(entity).__qualname__},
        )
    return _composite(entity, descriptor.audited_fields)


def to_node(value: Any, sub_fields: tuple[FieldDescriptor, ...] | None = None) -> CanonicalNode:
    """Capture any value as a canonical node.

    Args:
        value: The value to capture
        sub_fields: Restricted sub-field set for a nested composite, or
            for each element of a list of composites

    Returns:
        The canonical node
    """
    if isinstance(value, Enum):
        return Scalar(value.name)
    if isinstance(value, SCALAR_TYPES):
        return Scalar(value)
    if isinstance(value, SEQUENCE_TYPES):
        return _list_node(value, sub_fields)
    if sub_fields is not None:
        return _composite(value, sub_fields)
    if isinstance(value, Mapping):
        return Composite({str(key): to_node(item) for key, item in value.items()})
    return _object_node(value)


def _list_node(value: Any, sub_fields: tuple[FieldDescriptor, ...] | None) -> ListNode:
    items = sorted(value, key=repr) if isinstance(value, set | frozenset) else list(value)
    first = next((item for item in items if item is not None), None)
    if first is None or is_scalar(first):
        # Scalar lists compare as one unit
        return ListNode(tuple(to_node(item) for item in items))
    return ListNode(tuple(to_node(item, sub_fields) for item in items))


def _object_node(value: Any) -> CanonicalNode:
    descriptor = resolve_entity(type(value))
    if descriptor.fields:
        return _composite(value, tuple(f for f in descriptor.fields if not f.ignore))
    if not hasattr(value, "__dict__"):
        return Scalar(str(value))
    return _composite(
        value,
        tuple(
            FieldDescriptor(key=name, label=to_label(name))
            for name in vars(value)
            if not name.startswith("_")
        ),
    )


def _composite(value: Any, fields: tuple[FieldDescriptor, ...]) -> Composite:
    nodes: dict[str, CanonicalNode] = {}
    for descriptor in fields:
        raw = read_field(value, descriptor.key)
        if descriptor.ignore_if_empty and is_empty(raw):
            continue
        nodes[descriptor.label] = to_node(raw, descriptor.sub_fields)
    return Composite(nodes)


def _plain(value: Any) -> Any:
    if isinstance(value, datetime | date | time):
        return value.isoformat()
    if isinstance(value, UUID | Decimal):
        return str(value)
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    if isinstance(value, numbers.Number) and not isinstance(value, int | float):
        return str(value)
    return value


def to_python(node: CanonicalNode | None) -> Any:
    """Convert a node to JSON-compatible Python values.

    This is the form diff strategies receive.
    """
    if node is None:
        return None
    if isinstance(node, Scalar):
        return _plain(node.value)
    if isinstance(node, ListNode):
        return [to_python(item) for item in node.items]
    return {label: to_python(child) for label, child in node.fields.items()}


def serialize_value(value: Any) -> str | None:
    """Serialize a diff result for storage.

    Composites and lists become compact JSON, booleans their JSON
    literal, other scalars ``str()``. None stays None.

    >>> serialize_value({"CITY": "Lyon"}), serialize_value(42), serialize_value(None)
    ('{"CITY":"Lyon"}', '42', None)
    """
    if value is None:
        return None
    if isinstance(value, dict | list):
        return json.dumps(value, separators=(",", ":"), ensure_ascii=False, default=str)
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)
