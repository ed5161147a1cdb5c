"""DocumentService: create, read, update, delete, list, attach.

Every write follows the same pipeline:

    RESOLVE -> NORMALIZE -> BUILD -> VALIDATE -> WRITE -> RENAME -> RESPOND

Mutating methods run under the repository write lock, so the read of the
current state, the write and the rename onto the canonical path form one
uninterrupted section.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from folio.config.models import CollectionSchema
from folio.domain.content import (
    FIELD_CREATED_AT,
    FIELD_ID,
    Document,
    check_reserved_fields,
    extract_title,
    render_document,
)
from folio.domain.ids import new_id
from folio.domain.links import attachment_link
from folio.domain.paths import DERIVED_SLUG_FIELDS, canonical_path, slug_fields, template_values
from folio.domain.slug import strip_md
from folio.errors import NotFoundError, StorageError
from folio.infrastructure.filesystem import normalize_path
from folio.infrastructure.repository import DocumentRecord, Filter, by_collection, by_field
from folio.infrastructure.templates import render_template
from folio.services._helpers import (
    document_payload,
    inject_defaults,
    normalize_fields,
    now_iso,
    reconcile_path,
    record_payload,
)
from folio.services.base import BaseService, service_op, write_locked
from folio.services.check import ensure_valid
from folio.services.result import ServiceResult
from folio.services.templates import select_template

logger = logging.getLogger(__name__)

TITLE_PLACEHOLDER = "_title"


class DocumentService(BaseService):
    """Document lifecycle operations."""

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    @service_op("create")
    @write_locked
    def create(
        self,
        collection: str,
        fields: dict[str, Any] | None = None,
        *,
        content: str = "",
        template: str | None = None,
        overwrite: bool = False,
        skip_validation: bool = False,
    ) -> ServiceResult:
        """Create a document and write it at its canonical path.

        Args:
            collection: Collection name or alias.
            fields: User metadata. Names starting with ``_`` are rejected.
            content: Body text, ignored when *template* is given.
            template: Name of a template for this collection whose body is
                rendered against the new document's values.
            overwrite: Replace a file already at the computed path.
            skip_validation: Write even if the document has errors.
        """
        ws = self._workspace
        name, schema = ws.require_schema(collection)
        document = self._build_new(name, schema, fields or {}, content=content, template=template)

        if ws.fs.exists(document.path) and not overwrite:
            msg = f"document already exists: {document.path}"
            raise StorageError(msg)

        warnings: list[str] = []
        if not skip_validation:
            warnings = [i.message for i in ensure_valid(ws, document, name)]

        ws.repository.save(document)
        logger.info("Created %s", document.path)
        record = ws.repository.load_by_path(document.path)
        return ServiceResult(ok=True, op="create", data=record_payload(record), warnings=warnings)

    def _build_new(
        self,
        collection: str,
        schema: CollectionSchema,
        fields: dict[str, Any],
        *,
        content: str = "",
        template: str | None = None,
    ) -> Document:
        check_reserved_fields(fields, action="create")
        metadata = normalize_fields(fields, schema)
        inject_defaults(metadata, schema)
        metadata[FIELD_ID] = new_id()
        metadata[FIELD_CREATED_AT] = now_iso()

        document = Document(path="", metadata=metadata, content=content)
        if template is not None:
            source = select_template(self._workspace, collection, template).content
            values = template_values(document, schema, today=self._workspace.today())
            document.content = render_template(source, values)

        document.path = canonical_path(document, schema, collection, today=self._workspace.today())
        return document

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    @service_op("read")
    def read(self, id_input: str) -> ServiceResult:
        record = self._workspace.repository.find_by_id(id_input)
        return ServiceResult(ok=True, op="read", data=record_payload(record))

    @service_op("read_raw")
    def read_raw(self, id_input: str) -> ServiceResult:
        """The document's file content exactly as stored."""
        repo = self._workspace.repository
        record = repo.find_by_id(id_input)
        index_file = repo.index_file(record.collection)
        target = f"{record.path}/{index_file}" if record.document.is_folder else record.path
        raw = self._workspace.fs.read_text(target)
        return ServiceResult(
            ok=True,
            op="read_raw",
            data={"id": record.document.id, "path": record.path, "raw": raw},
        )

    @service_op("list")
    def list_documents(
        self,
        collection: str | None = None,
        *,
        where: dict[str, Any] | None = None,
        filters: tuple[Filter, ...] = (),
        limit: int | None = None,
    ) -> ServiceResult:
        """Documents matching every filter, sorted by path.

        Args:
            collection: Restrict to one collection (name or alias).
            where: Field equality filters (list fields match on membership).
            filters: Additional predicates.
            limit: Keep at most this many.
        """
        active: list[Filter] = list(filters)
        if collection:
            name, _ = self._workspace.require_schema(collection)
            active.append(by_collection(name))
        for key, value in (where or {}).items():
            active.append(by_field(key, value))

        records = self._workspace.repository.collect_all(*active)
        if limit is not None:
            records = records[: max(0, limit)]
        return ServiceResult(
            ok=True,
            op="list",
            data={
                "items": [record_payload(r, include_content=False) for r in records],
                "count": len(records),
            },
        )

    # ------------------------------------------------------------------
    # Update / delete
    # ------------------------------------------------------------------

    @service_op("update")
    @write_locked
    def update(
        self,
        id_input: str,
        fields: dict[str, Any] | None = None,
        *,
        unset: list[str] | None = None,
        content: str | None = None,
        skip_validation: bool = False,
    ) -> ServiceResult:
        """Merge *fields*, drop *unset*, optionally replace the body, then re-derive the path."""
        ws = self._workspace
        repo = ws.repository
        record = repo.find_by_id(id_input)
        name, schema = ws.require_schema(record.collection)

        changes = dict(fields or {})
        check_reserved_fields(changes, action="update")
        check_reserved_fields(unset or [], action="unset")

        document = record.document
        document.metadata.update(normalize_fields(changes, schema))
        for key in unset or []:
            document.metadata.pop(key, None)
        if content is not None:
            document.content = content

        warnings: list[str] = []
        if not skip_validation:
            # The rename below fixes a stale path; any other error blocks.
            found = ensure_valid(ws, document, name, ignore=frozenset({"filename.mismatch"}))
            warnings = [i.message for i in found]

        repo.save(document)
        new_path = reconcile_path(ws, record.path)
        data = record_payload(repo.load_by_path(new_path))
        if new_path != record.path:
            logger.info("Renamed %s -> %s", record.path, new_path)
            data["renamed_from"] = record.path
        return ServiceResult(ok=True, op="update", data=data, warnings=warnings)

    @service_op("delete")
    @write_locked
    def delete(self, id_input: str) -> ServiceResult:
        record = self._workspace.repository.find_by_id(id_input)
        self._workspace.repository.remove_document(record.document)
        logger.info("Deleted %s", record.path)
        return ServiceResult(
            ok=True, op="delete", data={"id": record.document.id, "path": record.path}
        )

    # ------------------------------------------------------------------
    # Attachments
    # ------------------------------------------------------------------

    @service_op("attach_file")
    @write_locked
    def attach_file(
        self,
        id_input: str,
        source: Path,
        *,
        add_reference: bool = True,
        force: bool = False,
    ) -> ServiceResult:
        """Copy *source* next to the document, turning a flat document into a folder.

        Raises (as a failed result):
            NotFoundError: Unknown document or missing source file.
            StorageError: The attachment exists (without *force*), or its
                name is the collection's index file.
        """
        ws = self._workspace
        repo = ws.repository
        record = repo.find_by_id(id_input)
        _, schema = ws.require_schema(record.collection)

        source = Path(source)
        if not source.is_file():
            msg = f"attachment source not found: {source}"
            raise NotFoundError(msg)
        filename = source.name
        if filename == schema.index_file:
            msg = f"attachment name conflicts with index file: {filename}"
            raise StorageError(msg)

        folder = record.path
        if not record.document.is_folder:
            folder = strip_md(record.path)
            ws.fs.mkdir_all(folder)
            ws.fs.rename(record.path, f"{folder}/{schema.index_file}")
            logger.info("Converted %s to folder document %s", record.path, folder)

        dest = f"{folder}/{filename}"
        if ws.fs.exists(dest) and not force:
            msg = f"attachment already exists: {dest}"
            raise StorageError(msg)
        try:
            payload = source.read_bytes()
        except OSError as exc:
            msg = f"read {source}: {exc.strerror or exc}"
            raise StorageError(msg) from exc
        ws.fs.write_bytes(dest, payload)

        if add_reference:
            loaded = repo.load_by_path(folder)
            body = loaded.document.content
            link = attachment_link(filename)
            if not body:
                loaded.document.content = f"{link}\n"
            else:
                separator = "" if body.endswith("\n") else "\n"
                loaded.document.content = f"{body}{separator}\n{link}\n"
            repo.save(loaded.document)

        return ServiceResult(
            ok=True,
            op="attach_file",
            data={"id": record.document.id, "path": folder, "attachment": dest},
        )

    # ------------------------------------------------------------------
    # Paths
    # ------------------------------------------------------------------

    @service_op("auto_rename_path")
    @write_locked
    def auto_rename_path(self, path: str) -> ServiceResult:
        """Move the document at *path* onto its canonical path; idempotent."""
        current = normalize_path(path)
        target = reconcile_path(self._workspace, current)
        return ServiceResult(
            ok=True,
            op="auto_rename_path",
            data={"path": target, "previous": current, "renamed": target != current},
        )

    @service_op("plan_by_slug")
    def plan_by_slug(
        self,
        collection: str,
        args: list[str],
        *,
        template: str | None = None,
    ) -> ServiceResult:
        """Map positional *args* onto the slug's placeholders.

        Returns the existing document whose values match, or an unsaved
        draft (``planned=True``) built the way :meth:`create` would build
        it. Nothing is written.
        """
        ws = self._workspace
        name, schema = ws.require_schema(collection)
        variables = [v for v in slug_fields(schema) if v not in DERIVED_SLUG_FIELDS]
        mapped: dict[str, Any] = dict(zip(variables, args, strict=False))
        title = mapped.pop(TITLE_PLACEHOLDER, None)
        fields = {k: v for k, v in mapped.items() if not k.startswith("_")}
        wanted = normalize_fields(fields, schema)

        existing = self._find_matching(name, wanted, title)
        if existing is not None:
            return ServiceResult(
                ok=True,
                op="plan_by_slug",
                data={"planned": False, "document": record_payload(existing)},
            )

        content = f"# {title}\n" if title else ""
        draft = self._build_new(name, schema, fields, content=content, template=template)
        return ServiceResult(
            ok=True,
            op="plan_by_slug",
            data={
                "planned": True,
                "document": document_payload(draft),
                "raw": render_document(draft),
            },
        )

    def _find_matching(
        self, collection: str, wanted: dict[str, Any], title: str | None
    ) -> DocumentRecord | None:
        for record in self._workspace.repository.collect_all(by_collection(collection)):
            metadata = record.document.metadata
            if any(metadata.get(k) != v for k, v in wanted.items()):
                continue
            if title is not None and extract_title(record.document.content) != title:
                continue
            return record
        return None
