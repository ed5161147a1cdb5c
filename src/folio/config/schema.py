"""``<collection>/_schema.yaml`` parsing, serialization and discovery.

A top-level directory is a collection iff it contains ``_schema.yaml``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from pydantic import ValidationError as PydanticValidationError

from folio.config.models import CollectionSchema
from folio.domain.content import dump_yaml, load_yaml
from folio.errors import SchemaError

if TYPE_CHECKING:
    from folio.infrastructure.filesystem import FileSystem

SCHEMA_FILENAME = "_schema.yaml"

_OPTIONAL_KEYS = ("short_id_length", "title_field", "index_file")


def schema_path(collection: str) -> str:
    return f"{collection}/{SCHEMA_FILENAME}"


def format_pydantic_error(exc: PydanticValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err["loc"])
        parts.append(f"{loc}: {err['msg']}" if loc else err["msg"])
    return "; ".join(parts)


def expand_field_shorthand(raw: Any) -> Any:
    """``null`` is a plain string field; a bare string is shorthand for its type."""
    if raw is None:
        return {}
    if isinstance(raw, str):
        return {"type": raw}
    return raw


def parse_schema(text: str, collection: str = "") -> CollectionSchema:
    """Parse schema file content.

    Field entries may use the shorthands of :func:`expand_field_shorthand`.

    Raises:
        SchemaError: Invalid YAML, missing ``slug``, or an invalid field.
    """
    where = schema_path(collection) if collection else SCHEMA_FILENAME
    try:
        data = load_yaml(text)
    except ValueError as exc:
        msg = f"invalid {where}: {exc}"
        raise SchemaError(msg) from exc
    if not isinstance(data, dict):
        msg = f"invalid {where}: empty or not a mapping"
        raise SchemaError(msg)
    if not isinstance(data.get("slug"), str):
        msg = f"invalid {where}: missing required 'slug' field"
        raise SchemaError(msg)

    raw_fields = data.get("fields") or {}
    if not isinstance(raw_fields, dict):
        msg = f"invalid {where}: 'fields' must be a mapping"
        raise SchemaError(msg)
    fields = {name: expand_field_shorthand(raw) for name, raw in raw_fields.items()}

    raw_refs = data.get("references")
    if not isinstance(raw_refs, dict):
        raw_refs = {}

    payload: dict[str, Any] = {
        "slug": data["slug"],
        "fields": fields,
        "references": {k: v for k, v in raw_refs.items() if isinstance(v, str)},
    }
    for key in _OPTIONAL_KEYS:
        if data.get(key) is not None:
            payload[key] = data[key]

    try:
        return CollectionSchema.model_validate(payload)
    except PydanticValidationError as exc:
        msg = f"invalid {where}: {format_pydantic_error(exc)}"
        raise SchemaError(msg) from exc


def serialize_schema(schema: CollectionSchema) -> str:
    data: dict[str, Any] = {"slug": schema.slug}
    for key in _OPTIONAL_KEYS:
        if key in schema.model_fields_set and getattr(schema, key) is not None:
            data[key] = getattr(schema, key)
    if schema.fields:
        data["fields"] = {
            name: {"type": d.type, **d.model_dump(exclude_defaults=True, exclude={"type"})}
            for name, d in schema.fields.items()
        }
    if schema.references:
        data["references"] = dict(schema.references)
    return dump_yaml(data)


def discover_schemas(fs: FileSystem) -> dict[str, CollectionSchema]:
    """Load every top-level ``<dir>/_schema.yaml``, sorted by collection name.

    Raises:
        SchemaError: A schema file is invalid.
    """
    schemas: dict[str, CollectionSchema] = {}
    for entry in fs.read_dir(""):
        if not entry.is_dir or entry.name.startswith("."):
            continue
        path = schema_path(entry.name)
        if fs.is_file(path):
            schemas[entry.name] = parse_schema(fs.read_text(path), entry.name)
    return schemas
