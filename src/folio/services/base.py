"""BaseService: foundation for every folio service.

Every service receives a :class:`Workspace` at construction time. Public
methods are wrapped with :func:`service_op`, which turns any
:class:`~folio.errors.FolioError` into a failed :class:`ServiceResult`, and
mutating methods additionally with :func:`write_locked`, which runs the
body under the repository write lock.

Usage::

    class DocumentService(BaseService):
        @service_op("delete")
        @write_locked
        def delete(self, id_input: str) -> ServiceResult:
            ...
"""

from __future__ import annotations

import functools
import logging
from collections.abc import Callable
from typing import TYPE_CHECKING, Any, Concatenate, ParamSpec, TypeVar

from folio.errors import AmbiguousIDError, FolioError, ValidationError
from folio.services.result import ServiceError, ServiceResult

if TYPE_CHECKING:
    from folio.infrastructure.workspace import Workspace

logger = logging.getLogger(__name__)

_P = ParamSpec("_P")
_S = TypeVar("_S", bound="BaseService")


class BaseService:
    """Abstract base for service-layer classes."""

    def __init__(self, workspace: Workspace) -> None:
        self._workspace = workspace

    @property
    def workspace(self) -> Workspace:
        return self._workspace


def error_detail(exc: FolioError) -> dict[str, Any]:
    """Structured extras for a ServiceError, when the exception carries any."""
    if isinstance(exc, ValidationError):
        return {"issues": [issue.as_dict() for issue in exc.issues]}
    if isinstance(exc, AmbiguousIDError):
        return {"candidates": list(exc.candidates)}
    return {}


def failure(op: str, exc: FolioError, **data: Any) -> ServiceResult:
    return ServiceResult(
        ok=False,
        op=op,
        data=data,
        error=ServiceError(code=exc.code, message=str(exc), detail=error_detail(exc)),
    )


def service_op(
    op: str,
) -> Callable[
    [Callable[Concatenate[_S, _P], ServiceResult]], Callable[Concatenate[_S, _P], ServiceResult]
]:
    """Decorator: convert FolioError raised by the method into a failed result."""

    def decorate(
        func: Callable[Concatenate[_S, _P], ServiceResult],
    ) -> Callable[Concatenate[_S, _P], ServiceResult]:
        @functools.wraps(func)
        def wrapper(self: _S, *args: _P.args, **kwargs: _P.kwargs) -> ServiceResult:
            try:
                return func(self, *args, **kwargs)
            except FolioError as exc:
                logger.debug("%s failed: %s", op, exc)
                return failure(op, exc)

        return wrapper

    return decorate


def write_locked(
    func: Callable[Concatenate[_S, _P], ServiceResult],
) -> Callable[Concatenate[_S, _P], ServiceResult]:
    """Decorator: run the method while holding the repository write lock."""

    @functools.wraps(func)
    def wrapper(self: _S, *args: _P.args, **kwargs: _P.kwargs) -> ServiceResult:
        with self._workspace.lock.held():
            return func(self, *args, **kwargs)

    return wrapper
