"""Error taxonomy for folio.

Domain and infrastructure layers raise these; the service layer converts
them into :class:`~folio.services.result.ServiceError` payloads using the
``code`` attribute, so the CLI never has to know about exception types.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from folio.domain.issues import ValidationIssue


class FolioError(Exception):
    """Base class for every failure folio raises on purpose."""

    code = "FOLIO_ERROR"


class NotFoundError(FolioError):
    """No document (or collection, template, attachment) matched."""

    code = "NOT_FOUND"


class AmbiguousIDError(FolioError):
    """An id needle matched more than one document."""

    code = "AMBIGUOUS"

    def __init__(self, message: str, candidates: list[str] | None = None) -> None:
        super().__init__(message)
        self.candidates = candidates or []


class SchemaError(FolioError):
    """Unknown collection, bad alias, reserved field name, or bad schema file."""

    code = "SCHEMA_ERROR"


class ValidationError(FolioError):
    """One or more error-severity issues block a create/update.

    The message joins every issue as ``code: message`` so a single line is
    enough for the CLI; the structured issues stay available on ``issues``.
    """

    code = "VALIDATION_FAILED"

    def __init__(self, issues: list[ValidationIssue]) -> None:
        self.issues = list(issues)
        joined = "; ".join(f"{i.code}: {i.message}" for i in self.issues)
        super().__init__(joined or "validation failed")


class StorageError(FolioError):
    """Filesystem failure, surfaced with the underlying message intact."""

    code = "STORAGE_ERROR"


class PathError(StorageError):
    """A relative path was empty, absolute, or escaped the root."""

    code = "INVALID_PATH"


class TemplateError(FolioError):
    """A slug or body template failed to render."""

    code = "TEMPLATE_ERROR"


class LockTimeoutError(FolioError):
    """The repository write lock could not be acquired in time."""

    code = "LOCK_TIMEOUT"
