"""Validation issue type shared by the check engine and create/update gates."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel

SEVERITY_ERROR = "error"
SEVERITY_WARNING = "warning"

Severity = Literal["error", "warning"]


class ValidationIssue(BaseModel):
    """One problem found with a document (or candidate document body)."""

    model_config = {"frozen": True}

    severity: Severity
    path: str
    code: str
    message: str

    @property
    def is_error(self) -> bool:
        return self.severity == SEVERITY_ERROR

    def as_dict(self) -> dict[str, Any]:
        return self.model_dump()


def error(path: str, code: str, message: str) -> ValidationIssue:
    return ValidationIssue(severity=SEVERITY_ERROR, path=path, code=code, message=message)


def warning(path: str, code: str, message: str) -> ValidationIssue:
    return ValidationIssue(severity=SEVERITY_WARNING, path=path, code=code, message=message)
