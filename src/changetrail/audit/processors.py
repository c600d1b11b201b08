"""Action processors.

Every audited call runs the same stages:

    CAPTURE_OLD -> INVOKE -> CAPTURE_NEW -> DIFF -> DONE

What "old" and "new" mean depends on the action, so each Action maps
to an ActionPipeline holding its two capture functions. All of them
work on one shared AuditCall.

Failure policy: the business call's own result or exception always
passes through. Anything failing inside an audit stage is logged with
a correlation id and replaced by AuditFailedError. A CAPTURE_OLD
failure therefore stops the call before the business call runs.
"""

import inspect
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any
from uuid import uuid4

import structlog

from changetrail.audit.annotations import auditable_info
from changetrail.audit.canonical import Composite, canonicalize, is_scalar
from changetrail.audit.changes import assemble_changes
from changetrail.audit.descriptors import OperationDescriptor, read_field, resolve_entity
from changetrail.audit.schemas import Action, AuditRecord, utc_now
from changetrail.core.errors import (
    AuditException,
    AuditFailedError,
    EntityLookupError,
    InstantiationError,
    InvalidResultError,
)

if TYPE_CHECKING:
    from changetrail.audit.service import AuditLogService


log = structlog.get_logger()


class PipelineStage(str, Enum):
    """Stages of an audited call."""

    CAPTURE_OLD = "capture_old"
    INVOKE = "invoke"
    CAPTURE_NEW = "capture_new"
    DIFF = "diff"
    DONE = "done"


@dataclass
class AuditCall:
    """State of one audited call, shared by all stages."""

    descriptor: OperationDescriptor
    target: Any
    arguments: dict[str, Any]
    invoke: Callable[[], Any]
    stage: PipelineStage = PipelineStage.CAPTURE_OLD
    result: Any = None
    old_state: Any = None
    new_state: Any = None
    old_tree: Composite | None = None

    @property
    def id_value(self) -> Any:
        return self.descriptor.id_source.read(self.arguments)

    @property
    def acting_user(self) -> Any:
        return self.descriptor.user_source.read(self.arguments)

    @property
    def entity_argument(self) -> Any:
        if self.descriptor.entity_parameter is None:
            return None
        return self.arguments.get(self.descriptor.entity_parameter)

    def lookup(self, identifier: Any) -> Any:
        """Load an entity by id with the operation's lookup method.

        The method is called on the unwrapped target, so lookups are
        never audited themselves.

        Raises:
            EntityLookupError: If the method is missing, cannot take the
                identifier as its single argument, or raises
        """
        method_name = self.descriptor.lookup_method
        method = getattr(self.target, method_name, None) if method_name else None
        if method is None or not callable(method):
            raise EntityLookupError(
                f"No lookup method '{method_name}' on {type(self.target).__qualname__}",
                method=method_name,
            )
        try:
            inspect.signature(method).bind(identifier)
        except TypeError:
            raise EntityLookupError(
                f"Lookup method '{method_name}' does not accept a single identifier",
                method=method_name,
            ) from None
        except ValueError:
            # No introspectable signature (builtins); let the call decide
            pass

        try:
            return method(identifier)
        except AuditException:
            raise
        except Exception as exc:
            raise EntityLookupError(
                f"Lookup method '{method_name}' failed", method=method_name
            ) from exc


def blank_instance(entity_type: type) -> Any:
    """Build an all-default instance of an entity type.

    Raises:
        InstantiationError: If the type cannot be built without arguments
    """
    try:
        return entity_type()
    except Exception as exc:
        raise InstantiationError(
            f"Failed to create a new instance of {entity_type.__qualname__}",
            details={"type": entity_type.__qualname__},
        ) from exc


def _lookup_old(call: AuditCall) -> Any:
    identifier = call.id_value
    if identifier is None:
        return None
    return call.lookup(identifier)


def _create_old(call: AuditCall) -> Any:
    return blank_instance(call.descriptor.entity_type)  # type: ignore[arg-type]


def _create_new(call: AuditCall) -> Any:
    result = call.result
    if result is None:
        raise InvalidResultError()
    if auditable_info(type(result)) is None and is_scalar(result):
        return call.lookup(result)
    return result


def _update_new(call: AuditCall) -> Any:
    return call.entity_argument


def _delete_new(call: AuditCall) -> Any:
    return blank_instance(type(call.old_state))


@dataclass(frozen=True)
class ActionPipeline:
    capture_old: Callable[[AuditCall], Any]
    capture_new: Callable[[AuditCall], Any]


PIPELINES: dict[Action, ActionPipeline] = {
    Action.CREATE: ActionPipeline(capture_old=_create_old, capture_new=_create_new),
    Action.UPDATE: ActionPipeline(capture_old=_lookup_old, capture_new=_update_new),
    Action.DELETE: ActionPipeline(capture_old=_lookup_old, capture_new=_delete_new),
}


@contextmanager
def _audit_stage(call: AuditCall, stage: PipelineStage) -> Iterator[None]:
    call.stage = stage
    try:
        yield
    except AuditFailedError:
        raise
    except Exception as exc:
        correlation_id = uuid4().hex
        log.error(
            "audit_failed",
            correlation_id=correlation_id,
            operation=call.descriptor.name,
            action=call.descriptor.action.value,
            stage=stage.value,
            error_code=getattr(exc, "error_code", type(exc).__name__),
            error=str(exc),
            exc_info=True,
        )
        raise AuditFailedError(correlation_id) from None


def _entity_id(call: AuditCall) -> Any:
    if call.descriptor.action is Action.CREATE:
        id_field = resolve_entity(type(call.new_state)).id_field
        if id_field is not None:
            return read_field(call.new_state, id_field.key)
    return call.id_value


def _as_text(value: Any) -> str | None:
    return None if value is None else str(value)


def build_record(call: AuditCall) -> AuditRecord:
    """Diff the captured states of a call into an AuditRecord."""
    new_tree = canonicalize(call.new_state)
    old_tree = call.old_tree if call.old_tree is not None else canonicalize(call.old_state)
    strategies = resolve_entity(type(call.new_state)).strategies

    return AuditRecord(
        action=call.descriptor.action,
        table_name=call.descriptor.table_name,
        entity_id=_as_text(_entity_id(call)),
        acting_user=_as_text(call.acting_user),
        timestamp=utc_now(),
        changes=assemble_changes(new_tree, old_tree, strategies),
    )


def run_pipeline(call: AuditCall, service: "AuditLogService") -> Any:
    """Run an audited call through its action's pipeline.

    Returns:
        The business call's result

    Raises:
        AuditFailedError: If any audit stage fails
    """
    pipeline = PIPELINES[call.descriptor.action]

    with _audit_stage(call, PipelineStage.CAPTURE_OLD):
        call.old_state = pipeline.capture_old(call)
        if call.old_state is not None:
            # Lookups may hand back a live instance the call mutates
            call.old_tree = canonicalize(call.old_state)

    call.stage = PipelineStage.INVOKE
    call.result = call.invoke()

    if call.old_state is None:
        return _skip(call, "old_state_missing")

    with _audit_stage(call, PipelineStage.CAPTURE_NEW):
        call.new_state = pipeline.capture_new(call)

    if call.new_state is None:
        return _skip(call, "new_state_missing")

    with _audit_stage(call, PipelineStage.DIFF):
        record = build_record(call)
        service.audit(record)

    call.stage = PipelineStage.DONE
    return call.result


def _skip(call: AuditCall, reason: str) -> Any:
    log.info(
        "audit_skipped",
        operation=call.descriptor.name,
        action=call.descriptor.action.value,
        reason=reason,
    )
    call.stage = PipelineStage.DONE
    return call.result
