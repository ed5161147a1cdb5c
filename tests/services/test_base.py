"""Tests for BaseService and the service decorators."""

from __future__ import annotations

from pathlib import Path

from folio.domain.issues import error
from folio.errors import AmbiguousIDError, NotFoundError, ValidationError
from folio.infrastructure.lock import LOCK_FILENAME
from folio.infrastructure.workspace import Workspace
from folio.services.base import BaseService, error_detail, failure, service_op, write_locked
from folio.services.result import ServiceResult


class _Sample(BaseService):
    @service_op("sample")
    def succeed(self) -> ServiceResult:
        return ServiceResult(ok=True, op="sample", data={"root": str(self.workspace.root)})

    @service_op("sample")
    def missing(self) -> ServiceResult:
        raise NotFoundError("nothing here")

    @service_op("sample")
    @write_locked
    def locked(self) -> ServiceResult:
        marker = self._workspace.root / LOCK_FILENAME
        return ServiceResult(ok=True, op="sample", data={"marker": marker.exists()})

    @service_op("sample")
    @write_locked
    def nested(self) -> ServiceResult:
        return self.locked()

    @service_op("sample")
    @write_locked
    def crash(self) -> ServiceResult:
        raise AmbiguousIDError("two", candidates=["a.md", "b.md"])


class TestBaseService:
    def test_workspace_stored(self, workspace: Workspace) -> None:
        assert _Sample(workspace).workspace is workspace

    def test_success_passes_through(self, workspace: Workspace) -> None:
        result = _Sample(workspace).succeed()
        assert result.ok
        assert result.data["root"] == str(workspace.root)


class TestServiceOp:
    def test_folio_error_becomes_failure(self, workspace: Workspace) -> None:
        result = _Sample(workspace).missing()
        assert not result.ok
        assert result.op == "sample"
        assert result.error is not None
        assert (result.error.code, result.error.message) == ("NOT_FOUND", "nothing here")

    def test_candidates_in_detail(self, workspace: Workspace) -> None:
        result = _Sample(workspace).crash()
        assert result.error is not None
        assert result.error.detail == {"candidates": ["a.md", "b.md"]}

    def test_lock_released_after_failure(self, workspace: Workspace) -> None:
        _Sample(workspace).crash()
        assert not (workspace.root / LOCK_FILENAME).exists()
        assert not workspace.lock.is_held


class TestWriteLocked:
    def test_held_during_body(self, workspace: Workspace) -> None:
        assert _Sample(workspace).locked().data == {"marker": True}
        assert not (Path(workspace.root) / LOCK_FILENAME).exists()

    def test_reentrant(self, workspace: Workspace) -> None:
        result = _Sample(workspace).nested()
        assert result.ok
        assert not workspace.lock.is_held


class TestFailureHelpers:
    def test_validation_detail(self) -> None:
        exc = ValidationError([error("c/a.md", "field.required", "missing required field 'x'")])
        detail = error_detail(exc)
        assert detail["issues"][0]["code"] == "field.required"
        assert str(exc) == "field.required: missing required field 'x'"

    def test_failure_carries_data(self) -> None:
        result = failure("check", NotFoundError("gone"), fixed=2)
        assert result.data == {"fixed": 2}
        assert result.error is not None
        assert result.error.code == "NOT_FOUND"
