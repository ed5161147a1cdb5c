"""CheckService: consistency validation and deterministic auto-fix.

Check never fails because of what it finds. Per-document problems come
back as :class:`ValidationIssue` entries; only a problem that stops the
run itself (unknown collection filter, lock timeout, a failing fix)
produces ``ok=False``.

Fix mode re-reads the latest state before acting on each document, in
path order:

1. move the document onto its canonical path;
2. upper-case currency/country codes;
3. rewrite stale wiki-link titles;
4. delete unreferenced attachments (only when asked);
5. collapse a folder document whose index file is all that remains.

Issues are reported from the scan taken before fixing. A rename made for
one document can change what a later document's links resolve to, so the
reported list is not guaranteed to still hold after the fix pass.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import TYPE_CHECKING, Any

from folio.config.models import CollectionSchema
from folio.domain.content import Document, display_name, parse_document
from folio.domain.fields import CODE_KINDS, FieldKind, has_value, upper_codes, validate_value
from folio.domain.issues import ValidationIssue, error, warning
from folio.domain.links import (
    WikiLink,
    extract_attachment_references,
    extract_wikilinks,
    rewrite_wikilink_titles,
)
from folio.domain.paths import canonical_path, slug_fields
from folio.errors import (
    AmbiguousIDError,
    FolioError,
    NotFoundError,
    PathError,
    SchemaError,
    TemplateError,
    ValidationError,
)
from folio.infrastructure.filesystem import FileInfo
from folio.infrastructure.repository import (
    TEMPLATES_COLLECTION,
    DocumentRecord,
    Filter,
    by_collection,
    find_in_records,
)
from folio.services._helpers import reconcile_path, unsaved_record
from folio.services.base import BaseService, failure, service_op
from folio.services.result import ServiceResult

if TYPE_CHECKING:
    from folio.infrastructure.workspace import Workspace

logger = logging.getLogger(__name__)

# Issue codes that only say the file is not where its metadata puts it.
FILENAME_CODES = frozenset({"filename.mismatch", "filename.invalid"})


class DocumentValidator:
    """Validate documents against their schema and the rest of the repository.

    Args:
        workspace: Source of schemas, aliases and the filesystem.
        records: Every document currently in the repository; references
            and wiki links resolve against these.
    """

    def __init__(self, workspace: Workspace, records: Iterable[DocumentRecord]) -> None:
        self._ws = workspace
        self._records = list(records)

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def resolve(self, id_input: str) -> DocumentRecord:
        return find_in_records(
            self._records, id_input, resolve_collection=self._ws.resolve_collection
        )

    def display_name_for(self, record: DocumentRecord) -> str:
        schema = self._ws.schemas.get(record.collection)
        if schema is None:
            return display_name(record.document)
        return display_name(
            record.document,
            slug_fields=slug_fields(schema),
            short_id_length=schema.short_id_length,
            title_field=schema.title_field,
            index_file=schema.index_file,
        )

    def expected_title(self, link: WikiLink) -> str | None:
        """Current display name of a link's target, or None if it does not resolve."""
        try:
            return self.display_name_for(self.resolve(link.lookup))
        except (NotFoundError, AmbiguousIDError):
            return None

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def validate(
        self,
        record: DocumentRecord,
        *,
        collection: str | None = None,
    ) -> list[ValidationIssue]:
        """Every issue for one record. *collection* overrides the path's first segment."""
        name = collection or record.collection
        path = record.path
        schema = self._ws.schemas.get(name)
        if schema is None:
            msg = f"document is not in a known collection: {name}"
            return [error(path, "collection.unknown", msg)]

        document = record.document
        issues = self._field_issues(path, document, schema)
        issues.extend(self._reference_issues(path, document, schema))
        if name == TEMPLATES_COLLECTION:
            issues.extend(self._template_issues(path, document))
        issues.extend(self._wiki_issues(path, document))
        issues.extend(self._filename_issues(path, document, schema, name))
        if document.is_folder:
            issues.extend(self._attachment_issues(path, document, schema))
        return issues

    def _field_issues(
        self, path: str, document: Document, schema: CollectionSchema
    ) -> list[ValidationIssue]:
        issues: list[ValidationIssue] = []
        metadata = document.metadata
        for name, definition in schema.fields.items():
            if definition.required and not has_value(metadata.get(name)):
                issues.append(error(path, "field.required", f"missing required field '{name}'"))
        for name, value in metadata.items():
            definition = schema.fields.get(name)
            if definition is None or not has_value(value):
                continue
            err = validate_value(value, definition)
            if err:
                issues.append(error(path, f"field.{definition.kind}", f"{name}: {err}"))
        return issues

    def _reference_issues(
        self, path: str, document: Document, schema: CollectionSchema
    ) -> list[ValidationIssue]:
        issues: list[ValidationIssue] = []
        for name, target_raw in schema.references.items():
            value = document.metadata.get(name)
            values = value if isinstance(value, list) else [value]
            target = self._ws.resolve_collection(target_raw)
            for item in values:
                if not isinstance(item, str) or not item:
                    continue
                try:
                    found = self.resolve(item)
                except (NotFoundError, AmbiguousIDError):
                    msg = f"{name}: referenced document not found: {item}"
                    issues.append(error(path, "reference.missing", msg))
                    continue
                if found.collection != target:
                    msg = f"{name}: expected collection '{target}'"
                    issues.append(error(path, "reference.collection", msg))
        return issues

    def _template_issues(self, path: str, document: Document) -> list[ValidationIssue]:
        target = document.metadata.get("for")
        if not isinstance(target, str) or not target:
            return [error(path, "template.for.missing", "template is missing required 'for' field")]
        if self._ws.resolve_collection(target) not in self._ws.schemas:
            return [
                error(
                    path,
                    "template.for.invalid",
                    f"template 'for' references unknown collection: {target}",
                )
            ]
        return []

    def _wiki_issues(self, path: str, document: Document) -> list[ValidationIssue]:
        issues: list[ValidationIssue] = []
        for link in extract_wikilinks(document.content):
            if link.invalid_reason:
                msg = f"invalid wiki link: {link.invalid_reason}"
                issues.append(error(path, "wiki.invalid", msg))
                continue
            try:
                target = self.resolve(link.lookup)
            except (NotFoundError, AmbiguousIDError):
                issues.append(error(path, "wiki.broken", f"broken wiki-style link: [[{link.raw}]]"))
                continue
            if link.title:
                expected = self.display_name_for(target)
                if link.title != expected:
                    issues.append(
                        warning(
                            path,
                            "wiki.stale-title",
                            f"stale wiki link title for '{link.id_token}': expected '{expected}'",
                        )
                    )
        return issues

    def _filename_issues(
        self, path: str, document: Document, schema: CollectionSchema, collection: str
    ) -> list[ValidationIssue]:
        try:
            expected = canonical_path(document, schema, collection, today=self._ws.today())
        except (TemplateError, PathError) as exc:
            return [error(path, "filename.invalid", f"cannot compute expected filename: {exc}")]
        if expected != path:
            return [error(path, "filename.mismatch", f"expected path: {expected}")]
        return []

    def _attachment_issues(
        self, path: str, document: Document, schema: CollectionSchema
    ) -> list[ValidationIssue]:
        return [
            warning(
                entry.path,
                "attachment.unreferenced",
                "attachment is not referenced in document content",
            )
            for entry in self.unreferenced_attachments(path, document, schema)
        ]

    def unreferenced_attachments(
        self, path: str, document: Document, schema: CollectionSchema
    ) -> list[FileInfo]:
        """Sibling files of a folder document's index that its body never links."""
        refs = extract_attachment_references(document.content)
        ignore = set(self._ws.config.ignore)
        return [
            entry
            for entry in self._ws.fs.read_dir(path)
            if entry.is_file
            and entry.name != schema.index_file
            and entry.name not in ignore
            and entry.name not in refs
        ]


def ensure_valid(
    workspace: Workspace,
    document: Document,
    collection: str,
    *,
    ignore: frozenset[str] = frozenset(),
) -> list[ValidationIssue]:
    """Gate a create/update: raise if *document* has an error at its own path.

    Returns the warnings that did not block.

    Raises:
        ValidationError: At least one error-severity issue, other than
            the codes in *ignore*, at the document's path.
    """
    validator = DocumentValidator(workspace, workspace.repository.collect_all())
    issues = [
        issue
        for issue in validator.validate(unsaved_record(document), collection=collection)
        if issue.code not in ignore
    ]
    blocking = [i for i in issues if i.is_error and i.path == document.path]
    if blocking:
        raise ValidationError(blocking)
    return [i for i in issues if not i.is_error]


class CheckService(BaseService):
    """Report and repair consistency issues across the repository."""

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @service_op("check")
    def check(
        self,
        collection: str | None = None,
        *,
        fix: bool = False,
        prune_attachments: bool = False,
    ) -> ServiceResult:
        """Validate every document (optionally in one collection), then fix if asked.

        Returns data ``{issues, fixed, scanned, count, errors, warnings}``.
        """
        if not fix:
            return self._run(collection, fix=False, prune_attachments=False)
        with self._workspace.lock.held():
            return self._run(collection, fix=True, prune_attachments=prune_attachments)

    @service_op("validate_raw")
    def validate_raw(self, collection: str, path: str, raw: str) -> ServiceResult:
        """Validate an unwritten document body without touching storage."""
        issues = self.raw_issues(collection, path, raw)
        return ServiceResult(
            ok=True,
            op="validate_raw",
            data={"issues": [i.as_dict() for i in issues], "count": len(issues)},
        )

    def raw_issues(self, collection: str, path: str, raw: str) -> list[ValidationIssue]:
        try:
            name, _ = self._workspace.require_schema(collection)
        except SchemaError:
            return [error(path, "collection.unknown", f"unknown collection: {collection}")]
        try:
            document = parse_document(raw, path)
        except ValueError as exc:
            return [error(path, "document.parse", str(exc))]
        record = unsaved_record(document, size=len(raw.encode("utf-8")))
        validator = DocumentValidator(self._workspace, self._workspace.repository.collect_all())
        return validator.validate(record, collection=name)

    # ------------------------------------------------------------------
    # Check / fix
    # ------------------------------------------------------------------

    def _run(self, collection: str | None, *, fix: bool, prune_attachments: bool) -> ServiceResult:
        op = "check"
        ws = self._workspace
        repo = ws.repository

        filters: list[Filter] = []
        scope: str | None = None
        if collection:
            scope, _ = ws.require_schema(collection)
            filters.append(by_collection(scope))

        everything = repo.collect_all()
        records = [r for r in everything if all(f(r) for f in filters)]
        validator = DocumentValidator(ws, everything)

        issues: list[ValidationIssue] = []
        for record in records:
            issues.extend(validator.validate(record))
        for load_error in repo.load_errors():
            if scope is None or load_error.path.split("/", 1)[0] == scope:
                issues.append(error(load_error.path, "document.parse", load_error.message))

        fixed = 0
        if fix:
            for record in repo.collect_all(*filters):
                try:
                    fixed += self._fix_record(record.path, prune_attachments=prune_attachments)
                except FolioError as exc:
                    logger.error("Fix aborted at %s: %s", record.path, exc)
                    return failure(op, exc, **_summary(issues, fixed, len(records)))

        if fixed:
            logger.info("Applied %d fixes", fixed)
        return ServiceResult(ok=True, op=op, data=_summary(issues, fixed, len(records)))

    def _fix_record(self, path: str, *, prune_attachments: bool) -> int:
        ws = self._workspace
        repo = ws.repository
        ws.lock.refresh()
        fixed = 0

        current = reconcile_path(ws, path)
        if current != path:
            logger.info("Renamed %s -> %s", path, current)
            fixed += 1

        record = repo.load_by_path(current)
        _, schema = ws.require_schema(record.collection)
        document = record.document

        if _upper_code_fields(document, schema):
            repo.save(document)
            fixed += 1

        validator = DocumentValidator(ws, repo.collect_all())
        body, changed = rewrite_wikilink_titles(document.content, validator.expected_title)
        if changed:
            document.content = body
            repo.save(document)
            fixed += 1

        if document.is_folder:
            if prune_attachments:
                for entry in validator.unreferenced_attachments(current, document, schema):
                    ws.fs.remove(entry.path)
                    logger.info("Removed unreferenced attachment %s", entry.path)
                    fixed += 1
            if self._collapse_folder(current, schema):
                fixed += 1
        return fixed

    def _collapse_folder(self, path: str, schema: CollectionSchema) -> bool:
        """Turn ``<path>/<index>`` back into ``<path>.md`` when nothing else remains."""
        if schema.has_index_override:
            return False
        fs = self._workspace.fs
        ignore = set(self._workspace.config.ignore)
        removable: list[str] = []
        for entry in fs.read_dir(path):
            if entry.name == schema.index_file:
                continue
            if entry.is_file and entry.name in ignore:
                removable.append(entry.path)
                continue
            return False

        for item in removable:
            fs.remove(item)
        target = f"{path}.md"
        fs.rename(f"{path}/{schema.index_file}", target)
        fs.remove(path)
        logger.info("Collapsed folder document %s -> %s", path, target)
        return True


def _upper_code_fields(document: Document, schema: CollectionSchema) -> bool:
    changed = False
    for name, definition in schema.fields.items():
        kind = definition.item_kind if definition.kind is FieldKind.ARRAY else definition.kind
        if kind not in CODE_KINDS or name not in document.metadata:
            continue
        value = document.metadata[name]
        upper = upper_codes(value)
        if upper != value:
            document.metadata[name] = upper
            changed = True
    return changed


def _summary(issues: list[ValidationIssue], fixed: int, scanned: int) -> dict[str, Any]:
    errors = sum(1 for i in issues if i.is_error)
    return {
        "issues": [i.as_dict() for i in issues],
        "fixed": fixed,
        "scanned": scanned,
        "count": len(issues),
        "errors": errors,
        "warnings": len(issues) - errors,
    }
