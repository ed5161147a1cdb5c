"""ServiceResult and ServiceError: the contract every service method honours.

INVARIANT: Public service methods return a ServiceResult; they never raise
for an expected failure. The CLI (and any other caller) reads ``ok`` and
either ``data`` or ``error``.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class ServiceError(BaseModel):
    """Structured failure inside a ServiceResult."""

    model_config = {"frozen": True}

    code: str
    message: str
    detail: dict[str, Any] = Field(default_factory=dict)


class ServiceResult(BaseModel):
    """Outcome of one service operation.

    Attributes:
        ok: Whether the operation succeeded.
        op: Operation name (e.g. ``"create"``, ``"check"``).
        data: Operation-specific payload.
        warnings: Non-fatal notes for the caller.
        error: Set when ``ok`` is False.
        meta: Optional extras such as timing or counts.
    """

    model_config = {"frozen": True}

    ok: bool
    op: str
    data: dict[str, Any] = Field(default_factory=dict)
    warnings: list[str] = Field(default_factory=list)
    error: ServiceError | None = None
    meta: dict[str, Any] | None = None
