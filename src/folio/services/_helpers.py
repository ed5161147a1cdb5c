"""Shared service-layer helper functions."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from folio.domain.content import Document
from folio.domain.fields import normalize_value
from folio.domain.paths import canonical_path
from folio.infrastructure.filesystem import FileInfo, basename_of
from folio.infrastructure.repository import DocumentRecord

if TYPE_CHECKING:
    from folio.config.models import CollectionSchema
    from folio.infrastructure.workspace import Workspace


def now_iso() -> str:
    """Current UTC time, millisecond precision, ``Z`` suffix."""
    return datetime.now(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def document_payload(document: Document, *, include_content: bool = True) -> dict[str, Any]:
    """JSON-friendly view of a document for ServiceResult.data."""
    payload: dict[str, Any] = {
        "id": document.id,
        "path": document.path,
        "collection": document.collection,
        "is_folder": document.is_folder,
        "metadata": dict(document.metadata),
    }
    if include_content:
        payload["content"] = document.content
    return payload


def record_payload(record: DocumentRecord, *, include_content: bool = True) -> dict[str, Any]:
    payload = document_payload(record.document, include_content=include_content)
    payload["path"] = record.path
    payload["modified_at"] = record.info.modified_at.isoformat()
    return payload


def reconcile_path(workspace: Workspace, path: str) -> str:
    """Move the document at *path* onto its canonical path.

    Reads the document fresh from disk. Returns the canonical path, which
    is *path* itself (with no filesystem mutation) when already correct.

    Raises:
        NotFoundError: Nothing at *path*.
        SchemaError: The document is not in a known collection.
        TemplateError, PathError: The canonical path cannot be computed.
        StorageError: The rename failed (e.g. destination exists).
    """
    repo = workspace.repository
    record = repo.load_by_path(path)
    collection, schema = workspace.require_schema(record.collection)
    target = canonical_path(record.document, schema, collection, today=workspace.today())
    if target == record.path:
        return record.path
    repo.rename(record.path, target)
    return target


def unsaved_record(document: Document, *, size: int = 0) -> DocumentRecord:
    """Wrap a document that is not on disk (yet) for validation."""
    info = FileInfo(
        name=basename_of(document.path),
        path=document.path,
        is_dir=document.is_folder,
        is_file=not document.is_folder,
        size=size,
        modified_at=datetime.now(UTC),
    )
    return DocumentRecord(document=document, path=document.path, info=info)


def normalize_fields(fields: dict[str, Any], schema: CollectionSchema) -> dict[str, Any]:
    """Convert user input into stored form for the fields the schema declares."""
    normalized: dict[str, Any] = {}
    for name, value in fields.items():
        definition = schema.fields.get(name)
        normalized[name] = normalize_value(value, definition) if definition else value
    return normalized


def inject_defaults(metadata: dict[str, Any], schema: CollectionSchema) -> None:
    for name, definition in schema.fields.items():
        if metadata.get(name) is None and definition.default is not None:
            metadata[name] = definition.default_value()
