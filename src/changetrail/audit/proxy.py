"""Operation interceptor.

    proxy = AuditProxy(service)
    users = proxy.wrap(UserRepository(session))
    users.update(user)  # audited

Audited methods are resolved (and validated) when the object is
wrapped, so a bad declaration fails at startup rather than on the
first call.
"""

import functools
from collections.abc import Callable, Mapping
from typing import Any, TypeVar

import structlog

from changetrail.audit.descriptors import OperationDescriptor, resolve_operations
from changetrail.audit.processors import AuditCall, run_pipeline
from changetrail.audit.service import AuditLogService


log = structlog.get_logger()

T = TypeVar("T")


class AuditedObject:
    """Wraps an object so its audited methods run the audit pipeline.

    Every other attribute is read from the wrapped object.
    """

    def __init__(
        self,
        target: Any,
        operations: Mapping[str, OperationDescriptor],
        service: AuditLogService,
    ) -> None:
        self._target = target
        self._operations = operations
        self._service = service

    @property
    def wrapped(self) -> Any:
        """The unwrapped object."""
        return self._target

    def __getattr__(self, name: str) -> Any:
        attr = getattr(self._target, name)
        descriptor = self._operations.get(name)
        if descriptor is None:
            return attr
        return self._audited(descriptor, attr)

    def _audited(self, descriptor: OperationDescriptor, method: Callable[..., Any]) -> Callable[..., Any]:
        @functools.wraps(method)
        def audited(*args: Any, **kwargs: Any) -> Any:
            try:
                arguments = descriptor.bind(self._target, args, kwargs)
            except TypeError:
                # Bad arguments: let the real method raise its own error
                return method(*args, **kwargs)

            call = AuditCall(
                descriptor=descriptor,
                target=self._target,
                arguments=arguments,
                invoke=lambda: method(*args, **kwargs),
            )
            return run_pipeline(call, self._service)

        return audited

    def __repr__(self) -> str:
        return f"<AuditedObject({self._target!r})>"


class AuditProxy:
    """Builds audited wrappers around repositories."""

    def __init__(self, service: AuditLogService) -> None:
        self.service = service

    def wrap(self, target: T) -> T:
        """Wrap ``target`` so its audited methods are recorded.

        An object with no audited methods is returned unchanged.

        Raises:
            ValidationError: If an audited method is declared incorrectly
        """
        operations = resolve_operations(type(target))
        if not operations:
            return target
        log.debug(
            "audit_proxy_created",
            target=type(target).__qualname__,
            operations=sorted(operations),
        )
        return AuditedObject(target, operations, self.service)  # type: ignore[return-value]
