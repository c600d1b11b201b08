"""Diff strategies.

A strategy is a callable ``diff(first, second) -> result`` over plain
JSON-compatible values (the canonical form of a field). It returns
None when ``first`` holds nothing worth reporting relative to
``second``, otherwise the part of ``first`` to report. The change
assembler calls it in both directions: (new, old) for the reported new
value and (old, new) for the reported old value.

Strategies are registered by id and referenced by that id from field
declarations.
"""

from collections.abc import Callable
from typing import Any

import structlog

from changetrail.core.constants import DEFAULT_DIFF_STRATEGY, LIST_DIFF_STRATEGY
from changetrail.core.errors import ValidationError


log = structlog.get_logger()

DiffStrategy = Callable[[Any, Any], Any]

_MISSING = object()

_strategies: dict[str, DiffStrategy] = {}


def _tagged(value: Any) -> Any:
    if isinstance(value, bool):
        return (bool, value)
    if isinstance(value, dict):
        return {key: _tagged(item) for key, item in value.items()}
    if isinstance(value, list | tuple):
        return [_tagged(item) for item in value]
    return value


def same_value(first: Any, second: Any) -> bool:
    """Structural equality that keeps booleans apart from numbers.

    >>> same_value(1, True), same_value({"A": [0]}, {"A": [False]}), same_value(2, 2.0)
    (False, False, True)
    """
    return _tagged(first) == _tagged(second)


def default_diff(first: Any, second: Any) -> Any:
    """Structural equality, then pass-through of ``first``."""
    if first is None or same_value(first, second):
        return None
    return first


def list_diff(first: Any, second: Any) -> Any:
    """Element-wise diff for lists of composites.

    Returns ``first`` whole when ``second`` is empty or the lengths
    differ; otherwise only the changed sub-fields of each changed
    element, or None when nothing changed.
    """
    if not second:
        return first
    if first is None or same_value(first, second):
        return None
    if not isinstance(first, list) or not isinstance(second, list):
        return default_diff(first, second)
    if len(first) != len(second):
        return first

    changed: list[Any] = []
    for first_item, second_item in zip(first, second, strict=True):
        if isinstance(first_item, dict) and isinstance(second_item, dict):
            delta = {
                key: value
                for key, value in first_item.items()
                if not same_value(second_item.get(key, _MISSING), value)
            }
            if delta:
                changed.append(delta)
        elif not same_value(first_item, second_item):
            changed.append(first_item)

    return changed or None


def register_diff_strategy(
    strategy_id: str,
    strategy: DiffStrategy,
    *,
    replace: bool = False,
) -> None:
    """Register a diff strategy under ``strategy_id``.

    Args:
        strategy_id: Id referenced from AuditProperty(diff=...)
        strategy: The diff callable
        replace: Allow overriding an existing registration

    Raises:
        ValidationError: If the id is taken and replace is False
    """
    if not strategy_id:
        raise ValidationError("Diff strategy id must not be empty", field="strategy_id")
    if strategy_id in _strategies and not replace:
        raise ValidationError(
            f"Diff strategy '{strategy_id}' is already registered",
            field="strategy_id",
        )
    _strategies[strategy_id] = strategy
    log.debug("diff_strategy_registered", strategy_id=strategy_id)


def get_diff_strategy(strategy_id: str) -> DiffStrategy:
    """Look up a registered strategy.

    Raises:
        ValidationError: If no strategy is registered under the id
    """
    try:
        return _strategies[strategy_id]
    except KeyError:
        raise ValidationError(
            f"Unknown diff strategy '{strategy_id}'",
            details={"available": sorted(_strategies)},
        ) from None


def registered_strategies() -> list[str]:
    """Ids of all registered strategies."""
    return sorted(_strategies)


register_diff_strategy(DEFAULT_DIFF_STRATEGY, default_diff)
register_diff_strategy(LIST_DIFF_STRATEGY, list_diff)
