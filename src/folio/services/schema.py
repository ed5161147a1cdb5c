"""SchemaService: collection and field mutations, with cascades.

Renaming a collection moves its directory, rewrites every other schema's
``references`` that pointed at it, retargets its aliases, and rewrites
the ``for`` field of its templates. Removing a collection refuses while
documents remain unless told to remove them (which also removes its
templates) or forced.
"""

from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from folio.config.models import (
    CollectionSchema,
    FieldDefinition,
    default_slug,
    validate_collection_name,
    validate_field_name,
)
from folio.config.repo_config import generate_alias
from folio.config.schema import (
    SCHEMA_FILENAME,
    expand_field_shorthand,
    format_pydantic_error,
    schema_path,
)
from folio.domain.fields import FieldKind
from folio.errors import NotFoundError, SchemaError
from folio.infrastructure.repository import TEMPLATES_COLLECTION, by_collection
from folio.services.base import BaseService, service_op, write_locked
from folio.services.result import ServiceResult

logger = logging.getLogger(__name__)


def _build_schema(data: dict[str, Any]) -> CollectionSchema:
    try:
        return CollectionSchema.model_validate(data)
    except PydanticValidationError as exc:
        msg = f"invalid schema: {format_pydantic_error(exc)}"
        raise SchemaError(msg) from exc


def _build_field(data: dict[str, Any] | str | FieldDefinition | None) -> FieldDefinition:
    if isinstance(data, FieldDefinition):
        return data
    try:
        return FieldDefinition.model_validate(expand_field_shorthand(data))
    except PydanticValidationError as exc:
        msg = f"invalid field definition: {format_pydantic_error(exc)}"
        raise SchemaError(msg) from exc


def _with_changes(schema: CollectionSchema, **changes: Any) -> CollectionSchema:
    """Rebuild *schema* so explicitly set optional keys stay explicit."""
    data = {key: getattr(schema, key) for key in schema.model_fields_set}
    data.update({"slug": schema.slug, "fields": dict(schema.fields)})
    data["references"] = dict(schema.references)
    data.update({k: v for k, v in changes.items() if v is not None})
    return _build_schema(data)


def _check_field_name(name: str) -> None:
    problem = validate_field_name(name)
    if problem:
        raise SchemaError(problem)


class SchemaService(BaseService):
    """Read and mutate collection schemas and aliases."""

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    @service_op("show_schema")
    def show(self) -> ServiceResult:
        ws = self._workspace
        return ServiceResult(
            ok=True,
            op="show_schema",
            data={
                "aliases": dict(sorted(ws.config.aliases.items())),
                "collections": {name: ws.schemas[name].model_dump() for name in ws.collections},
            },
        )

    @service_op("read_schema")
    def read(self, collection: str) -> ServiceResult:
        return ServiceResult(ok=True, op="read_schema", data=self._describe(collection))

    def _describe(self, collection: str) -> dict[str, Any]:
        name, schema = self._workspace.require_schema(collection)
        alias = next((a for a, t in self._workspace.config.aliases.items() if t == name), None)
        return {"collection": name, "alias": alias, "schema": schema.model_dump()}

    # ------------------------------------------------------------------
    # Collections
    # ------------------------------------------------------------------

    @service_op("add_collection")
    @write_locked
    def add_collection(
        self,
        name: str,
        *,
        alias: str | None = None,
        slug: str | None = None,
        fields: dict[str, Any] | None = None,
        references: dict[str, str] | None = None,
        short_id_length: int | None = None,
    ) -> ServiceResult:
        ws = self._workspace
        name = name.strip()
        problem = validate_collection_name(name)
        if problem:
            raise SchemaError(problem)
        if name in ws.schemas:
            msg = f"collection already exists: {name}"
            raise SchemaError(msg)

        definitions = {key: _build_field(value) for key, value in (fields or {}).items()}
        for key in definitions:
            _check_field_name(key)
        data: dict[str, Any] = {
            "slug": (slug or "").strip() or default_slug(definitions),
            "fields": definitions,
            "references": {
                field: ws.resolve_collection(target) for field, target in (references or {}).items()
            },
        }
        if short_id_length is not None:
            data["short_id_length"] = short_id_length
        schema = _build_schema(data)

        chosen = (alias or generate_alias(name)).strip().lower()
        self._ensure_alias_available(chosen, name)

        ws.save_schema(name, schema)
        ws.save_config(
            ws.config.model_copy(update={"aliases": {**ws.config.aliases, chosen: name}})
        )
        logger.info("Added collection %s (alias %s)", name, chosen)
        return ServiceResult(ok=True, op="add_collection", data=self._describe(name))

    @service_op("update_collection")
    @write_locked
    def update_collection(
        self,
        collection: str,
        *,
        alias: str | None = None,
        slug: str | None = None,
        short_id_length: int | None = None,
        title_field: str | None = None,
        index_file: str | None = None,
    ) -> ServiceResult:
        ws = self._workspace
        name, schema = ws.require_schema(collection)
        updated = _with_changes(
            schema,
            slug=slug,
            short_id_length=short_id_length,
            title_field=title_field,
            index_file=index_file,
        )
        ws.save_schema(name, updated)

        if alias is not None:
            chosen = alias.strip().lower()
            self._ensure_alias_available(chosen, name)
            aliases = {a: t for a, t in ws.config.aliases.items() if t != name}
            aliases[chosen] = name
            ws.save_config(ws.config.model_copy(update={"aliases": aliases}))
        return ServiceResult(ok=True, op="update_collection", data=self._describe(name))

    @service_op("rename_collection")
    @write_locked
    def rename_collection(self, collection: str, new_name: str) -> ServiceResult:
        ws = self._workspace
        old_name, schema = ws.require_schema(collection)
        new_name = new_name.strip()
        problem = validate_collection_name(new_name)
        if problem:
            raise SchemaError(problem)
        if new_name in ws.schemas:
            msg = f"collection already exists: {new_name}"
            raise SchemaError(msg)
        if new_name in ws.config.aliases:
            msg = f"alias collides with collection name: {new_name}"
            raise SchemaError(msg)

        ws.fs.rename(old_name, new_name)
        del ws.schemas[old_name]
        ws.schemas[new_name] = schema

        for name in ws.collections:
            current = ws.schemas[name]
            if old_name not in current.references.values():
                continue
            references = {
                field: new_name if target == old_name else target
                for field, target in current.references.items()
            }
            ws.save_schema(name, _with_changes(current, references=references))

        aliases = {a: new_name if t == old_name else t for a, t in ws.config.aliases.items()}
        ws.save_config(ws.config.model_copy(update={"aliases": aliases}))

        repo = ws.repository
        for template in repo.collect_all(by_collection(TEMPLATES_COLLECTION)):
            if template.document.metadata.get("for") != old_name:
                continue
            template.document.metadata["for"] = new_name
            repo.save(template.document)

        logger.info("Renamed collection %s -> %s", old_name, new_name)
        return ServiceResult(ok=True, op="rename_collection", data=self._describe(new_name))

    @service_op("remove_collection")
    @write_locked
    def remove_collection(
        self,
        collection: str,
        *,
        remove_documents: bool = False,
        force: bool = False,
    ) -> ServiceResult:
        ws = self._workspace
        repo = ws.repository
        name, _ = ws.require_schema(collection)

        documents = repo.collect_all(by_collection(name))
        if documents and not remove_documents and not force:
            msg = f"collection '{name}' has {len(documents)} documents (use remove_documents)"
            raise SchemaError(msg)

        removed_templates = 0
        if remove_documents:
            for record in documents:
                repo.remove_document(record.document)
            for template in repo.collect_all(by_collection(TEMPLATES_COLLECTION)):
                target = template.document.metadata.get("for")
                if isinstance(target, str) and ws.resolve_collection(target) == name:
                    repo.remove_document(template.document)
                    removed_templates += 1

        if ws.fs.exists(schema_path(name)):
            ws.fs.remove(schema_path(name))
        if ws.fs.is_dir(name) and not ws.fs.read_dir(name):
            ws.fs.remove(name)

        del ws.schemas[name]
        aliases = {a: t for a, t in ws.config.aliases.items() if t != name}
        ws.save_config(ws.config.model_copy(update={"aliases": aliases}))
        logger.info("Removed collection %s", name)
        return ServiceResult(
            ok=True,
            op="remove_collection",
            data={
                "collection": name,
                "removed_documents": len(documents) if remove_documents else 0,
                "removed_templates": removed_templates,
            },
        )

    def _ensure_alias_available(self, alias: str, target: str) -> None:
        ws = self._workspace
        if not alias:
            msg = "alias must not be empty"
            raise SchemaError(msg)
        if ws.config.aliases.get(alias, target) != target:
            msg = f"alias already in use: {alias}"
            raise SchemaError(msg)
        if alias in ws.schemas and alias != target:
            msg = f"alias collides with collection name: {alias}"
            raise SchemaError(msg)

    # ------------------------------------------------------------------
    # Fields
    # ------------------------------------------------------------------

    @service_op("add_field")
    @write_locked
    def add_field(
        self,
        collection: str,
        field_name: str,
        definition: dict[str, Any] | str | FieldDefinition | None = None,
        *,
        reference_target: str | None = None,
    ) -> ServiceResult:
        ws = self._workspace
        name, schema = ws.require_schema(collection)
        _check_field_name(field_name)
        if field_name in schema.fields:
            msg = f"field already exists: {field_name}"
            raise SchemaError(msg)

        field = _build_field(definition)
        references = dict(schema.references)
        if field.kind is FieldKind.REFERENCE and reference_target:
            target, _ = ws.require_schema(reference_target)
            references[field_name] = target
        updated = _with_changes(
            schema, fields={**schema.fields, field_name: field}, references=references
        )
        ws.save_schema(name, updated)
        return ServiceResult(ok=True, op="add_field", data=self._describe(name))

    @service_op("update_field")
    @write_locked
    def update_field(
        self, collection: str, field_name: str, changes: dict[str, Any]
    ) -> ServiceResult:
        ws = self._workspace
        name, schema = ws.require_schema(collection)
        _check_field_name(field_name)
        current = schema.fields.get(field_name)
        if current is None:
            msg = f"field not found: {field_name}"
            raise NotFoundError(msg)

        merged = _build_field({**current.model_dump(), **changes})
        ws.save_schema(name, _with_changes(schema, fields={**schema.fields, field_name: merged}))
        return ServiceResult(ok=True, op="update_field", data=self._describe(name))

    @service_op("remove_field")
    @write_locked
    def remove_field(self, collection: str, field_name: str) -> ServiceResult:
        ws = self._workspace
        name, schema = ws.require_schema(collection)
        _check_field_name(field_name)
        if field_name not in schema.fields:
            msg = f"field not found: {field_name}"
            raise NotFoundError(msg)

        fields = {k: v for k, v in schema.fields.items() if k != field_name}
        references = {k: v for k, v in schema.references.items() if k != field_name}
        ws.save_schema(name, _with_changes(schema, fields=fields, references=references))
        return ServiceResult(ok=True, op="remove_field", data=self._describe(name))


__all__ = ["SCHEMA_FILENAME", "SchemaService"]
