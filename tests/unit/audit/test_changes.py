"""Tests for the change assembler."""

from dataclasses import dataclass
from typing import Annotated

import pytest

from changetrail.audit import AuditId, AuditUser, auditable
from changetrail.audit.canonical import (
    Composite,
    ListNode,
    Scalar,
    canonicalize,
    serialize_value,
)
from changetrail.audit.changes import assemble_changes
from changetrail.audit.descriptors import resolve_entity
from changetrail.audit.diff import register_diff_strategy
from changetrail.core.errors import DiffError
from sample_domain import Account, Address, Phone, User


def _failing(first: object, second: object) -> object:
    raise RuntimeError("boom")


register_diff_strategy("test-failing", _failing, replace=True)


@auditable("switches")
@dataclass
class Switch:
    id: Annotated[int | None, AuditId] = None
    enabled: object = None
    modified_by: Annotated[str | None, AuditUser] = None


class TestAssembleChanges:
    """Tests for assemble_changes."""

    def test_equal_trees_have_no_changes(self) -> None:
        """Verify structurally equal states produce no changes."""
        account = Account(id=1, name="Bob", status="ACTIVE")

        assert assemble_changes(canonicalize(account), canonicalize(account)) == []

    def test_single_status_change(self) -> None:
        """Verify a single changed field yields exactly one change."""
        old = canonicalize(Account(id=1, name="Bob", status="PENDING"))
        new = canonicalize(Account(id=1, name="Bob", status="ACTIVE"))

        changes = assemble_changes(new, old)

        assert len(changes) == 1
        assert changes[0].field_name == "STATUS"
        assert changes[0].old_value == "PENDING"
        assert changes[0].new_value == "ACTIVE"

    def test_order_follows_new_tree(self) -> None:
        """Verify changes come out in the new tree's field order."""
        old = Composite({"B": Scalar(1), "A": Scalar(1)})
        new = Composite({"A": Scalar(2), "B": Scalar(2)})

        assert [c.field_name for c in assemble_changes(new, old)] == ["A", "B"]

    def test_old_only_labels_are_not_reported(self) -> None:
        """Verify a label missing from the new tree is never reported."""
        old = Composite({"A": Scalar(1), "REMOVED": Scalar("x")})
        new = Composite({"A": Scalar(1)})

        assert assemble_changes(new, old) == []

    @pytest.mark.parametrize(("old", "new"), [(1, True), (0, False), (True, 1)])
    def test_boolean_against_number_is_a_change(self, old: object, new: object) -> None:
        """Verify a flag moving between a number and a boolean is reported."""
        changes = assemble_changes(
            canonicalize(Switch(id=1, enabled=new, modified_by="u")),
            canonicalize(Switch(id=1, enabled=old, modified_by="u")),
        )

        assert [(c.field_name, c.old_value, c.new_value) for c in changes] == [
            ("ENABLED", serialize_value(old), serialize_value(new))
        ]

    def test_nested_boolean_against_number_is_a_change(self) -> None:
        """Verify the check also applies inside composite values."""
        old = Composite({"FLAGS": Composite({"ON": Scalar(0)})})
        new = Composite({"FLAGS": Composite({"ON": Scalar(False)})})

        [change] = assemble_changes(new, old)

        assert (change.old_value, change.new_value) == ('{"ON":0}', '{"ON":false}')

    def test_both_none_skipped(self) -> None:
        """Verify fields absent on both sides are skipped."""
        old = Composite({"A": Scalar(None)})
        new = Composite({"A": Scalar(None), "B": Scalar(None)})

        assert assemble_changes(new, old) == []

    def test_new_only_label(self) -> None:
        """Verify a label only in the new tree reports a None old value."""
        changes = assemble_changes(Composite({"A": Scalar(5)}), Composite({}))

        assert [(c.field_name, c.old_value, c.new_value) for c in changes] == [("A", None, "5")]

    def test_composite_values_are_json(self) -> None:
        """Verify nested composites serialize to compact JSON."""
        old = canonicalize(User(address=Address(city="Paris", zip_code="75001")))
        new = canonicalize(User(address=Address(city="Lyon", zip_code="69001")))

        changes = assemble_changes(new, old)

        assert len(changes) == 1
        assert changes[0].field_name == "ADDRESS"
        assert changes[0].old_value == '{"CITY":"Paris","POSTAL_CODE":"75001"}'
        assert changes[0].new_value == '{"CITY":"Lyon","POSTAL_CODE":"69001"}'

    def test_list_strategy(self) -> None:
        """Verify the list strategy reports only changed sub-fields."""
        old = canonicalize(User(phones=[Phone(kind="home", number="1")]))
        new = canonicalize(User(phones=[Phone(kind="home", number="2")]))

        changes = assemble_changes(new, old, resolve_entity(User).strategies)

        assert len(changes) == 1
        assert changes[0].field_name == "PHONES"
        assert changes[0].old_value == '[{"NUMBER":"1"}]'
        assert changes[0].new_value == '[{"NUMBER":"2"}]'

    def test_scalar_list_is_one_unit(self) -> None:
        """Verify scalar lists are reported whole."""
        old = Composite({"TAGS": ListNode((Scalar("a"),))})
        new = Composite({"TAGS": ListNode((Scalar("a"), Scalar("b")))})

        changes = assemble_changes(new, old)

        assert changes[0].old_value == '["a"]'
        assert changes[0].new_value == '["a","b"]'

    def test_strategy_failure_is_diff_error(self) -> None:
        """Verify strategy exceptions become DiffError."""
        old = Composite({"A": Scalar(1)})
        new = Composite({"A": Scalar(2)})

        with pytest.raises(DiffError) as exc_info:
            assemble_changes(new, old, {"A": "test-failing"})

        assert exc_info.value.details == {"field": "A", "strategy": "test-failing"}
        assert isinstance(exc_info.value.__cause__, RuntimeError)
