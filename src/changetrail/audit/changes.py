"""Change assembler: compares two canonical trees field by field."""

from collections.abc import Mapping

import structlog

from changetrail.audit.canonical import Composite, serialize_value, to_python
from changetrail.audit.diff import get_diff_strategy, same_value
from changetrail.audit.schemas import FieldChange
from changetrail.core.constants import DEFAULT_DIFF_STRATEGY
from changetrail.core.errors import AuditException, DiffError


log = structlog.get_logger()


def assemble_changes(
    new_tree: Composite,
    old_tree: Composite,
    strategies: Mapping[str, str] | None = None,
) -> list[FieldChange]:
    """Build the ordered field changes between two captures.

    Only labels present in the new tree are considered; a label that
    exists only in the old tree is not reported.

    Args:
        new_tree: Capture of the new state
        old_tree: Capture of the old state
        strategies: Diff strategy id per label (default strategy otherwise)

    Returns:
        FieldChange list in the new tree's field order

    Raises:
        DiffError: If a diff strategy raises
    """
    strategies = strategies or {}
    changes: list[FieldChange] = []

    for label, new_node in new_tree.fields.items():
        old_node = old_tree.get(label)
        new_value = to_python(new_node)
        old_value = to_python(old_node)

        if new_value is None and old_value is None:
            continue
        if same_value(new_value, old_value):
            continue

        strategy_id = strategies.get(label, DEFAULT_DIFF_STRATEGY)
        strategy = get_diff_strategy(strategy_id)
        try:
            new_result = strategy(new_value, old_value)
            old_result = strategy(old_value, new_value)
        except AuditException:
            raise
        except Exception as exc:
            raise DiffError(
                f"Diff strategy '{strategy_id}' failed on field {label}",
                details={"field": label, "strategy": strategy_id},
            ) from exc

        if new_result is None and old_result is None:
            continue

        changes.append(
            FieldChange(
                field_name=label,
                old_value=serialize_value(old_result),
                new_value=serialize_value(new_result),
            )
        )

    log.debug("changes_assembled", change_count=len(changes))
    return changes
