"""Tests for the action pipelines."""

from unittest.mock import MagicMock

import pytest

from changetrail.audit.descriptors import resolve_operation
from changetrail.audit.processors import (
    PIPELINES,
    AuditCall,
    PipelineStage,
    blank_instance,
    build_record,
    run_pipeline,
)
from changetrail.audit.schemas import Action
from changetrail.core.errors import EntityLookupError, InstantiationError
from sample_domain import Account, AccountRepository


def _call(repo: AccountRepository, method: str, *args: object, **kwargs: object) -> AuditCall:
    descriptor = resolve_operation(getattr(AccountRepository, method))
    bound = getattr(repo, method)
    return AuditCall(
        descriptor=descriptor,
        target=repo,
        arguments=descriptor.bind(repo, args, kwargs),
        invoke=lambda: bound(*args, **kwargs),
    )


class TestPipelines:
    """Tests for the pipeline table."""

    def test_every_action_has_a_pipeline(self) -> None:
        """Verify each action maps to a pipeline."""
        assert set(PIPELINES) == set(Action)

    def test_update_runs_to_done(self, repo: AccountRepository) -> None:
        """Verify a successful call ends in DONE with states captured."""
        service = MagicMock()
        account = Account(id=7, name="Alice", status="ACTIVE", modified_by="bob")
        call = _call(repo, "update", account)

        result = run_pipeline(call, service)

        assert result is account
        assert call.stage is PipelineStage.DONE
        assert call.old_state.status == "PENDING"
        assert call.old_tree.get("STATUS").value == "PENDING"
        assert call.new_state is account
        service.audit.assert_called_once()

    def test_missing_old_state_skips(self, repo: AccountRepository) -> None:
        """Verify a missing old state ends the pipeline without a record."""
        service = MagicMock()
        call = _call(repo, "delete", 99, "admin")

        assert run_pipeline(call, service) is False
        assert call.stage is PipelineStage.DONE
        service.audit.assert_not_called()

    def test_delete_new_state_is_blank(self, repo: AccountRepository) -> None:
        """Verify the new state of a delete is a blank instance of the old type."""
        call = _call(repo, "delete", 7, "admin")

        run_pipeline(call, MagicMock())

        assert call.new_state == Account()

    def test_build_record(self, repo: AccountRepository) -> None:
        """Verify the record carries action, table, id and user."""
        call = _call(repo, "update", Account(id=7, name="Alice", status="ACTIVE", modified_by="bob"))
        call.old_state = repo.find_by_id(7)
        call.new_state = call.entity_argument

        record = build_record(call)

        assert record.action is Action.UPDATE
        assert record.table_name == "accounts"
        assert record.entity_id == "7"
        assert record.acting_user == "bob"
        assert len(record.changes) == 1


class TestLookup:
    """Tests for AuditCall.lookup."""

    def test_lookup_rejects_wrong_arity(self, repo: AccountRepository) -> None:
        """Verify the lookup method must take a single identifier."""
        repo.find_by_id = lambda: None  # type: ignore[method-assign]
        call = _call(repo, "delete", 7, "admin")

        with pytest.raises(EntityLookupError, match="single identifier"):
            call.lookup(7)

    def test_lookup_missing_method(self) -> None:
        """Verify a missing lookup method is reported."""
        call = _call(AccountRepository(), "delete", 7, "admin")
        call.target = object()

        with pytest.raises(EntityLookupError, match="No lookup method"):
            call.lookup(7)

    def test_lookup_wraps_errors(self, repo: AccountRepository) -> None:
        """Verify lookup exceptions are wrapped with their cause."""
        repo.find_by_id = MagicMock(side_effect=RuntimeError("db down"))  # type: ignore[method-assign]
        call = _call(repo, "delete", 7, "admin")

        with pytest.raises(EntityLookupError) as exc_info:
            call.lookup(7)

        assert isinstance(exc_info.value.__cause__, RuntimeError)


class TestBlankInstance:
    """Tests for blank_instance."""

    def test_builds_default_instance(self) -> None:
        """Verify a default instance is built."""
        assert blank_instance(Account) == Account()

    def test_requires_no_arg_constructor(self) -> None:
        """Verify types needing arguments fail with InstantiationError."""

        class NeedsArgs:
            def __init__(self, value: int) -> None:
                self.value = value

        with pytest.raises(InstantiationError):
            blank_instance(NeedsArgs)
