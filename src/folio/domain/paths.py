"""Canonical path policy.

A document's path is a pure function of its metadata, its body's first
heading, and its collection schema (plus today's date when the slug uses
``{{date}}`` and the document has no ``date`` field):

1. Build template values: every metadata field stringified, plus
   ``short_id``, ``date`` and ``_title``.
2. Slugify each value, render the slug template.
3. Append the short id to the last segment unless the template already
   put it there.
4. Slugify each segment again, append ``.md``, prefix the collection.
5. Folder documents drop the ``.md``.
"""

from __future__ import annotations

from datetime import date
from typing import TYPE_CHECKING, Any

from folio.domain.content import FIELD_ID, Document, extract_title
from folio.domain.fields import utc_today
from folio.domain.ids import short_id
from folio.domain.slug import append_short_id, generate_filename, slugify, strip_md
from folio.infrastructure.templates import extract_placeholders, render_template

if TYPE_CHECKING:
    from folio.config.models import CollectionSchema

# Derived values that are never taken from user input when planning by slug.
DERIVED_SLUG_FIELDS = ("short_id", "date")


def stringify(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, list):
        return "-".join(stringify(v) for v in value if v is not None)
    return str(value)


def template_values(
    document: Document,
    schema: CollectionSchema,
    *,
    today: date | None = None,
) -> dict[str, str]:
    """Raw (unslugified) values available to a slug template."""
    doc_date = document.metadata.get("date")
    values: dict[str, str] = {
        "short_id": short_id(str(document.metadata.get(FIELD_ID) or ""), schema.short_id_length),
        "date": doc_date if isinstance(doc_date, str) else (today or utc_today()).isoformat(),
        "_title": extract_title(document.content),
    }
    for key, value in document.metadata.items():
        if value is None:
            continue
        values[key] = stringify(value)
    return values


def canonical_path(
    document: Document,
    schema: CollectionSchema,
    collection: str,
    *,
    today: date | None = None,
) -> str:
    """The one correct repository-relative path for *document*.

    Raises:
        TemplateError: The slug template references a missing field.
        PathError: The rendered slug yields an empty segment or dot file.
    """
    values = template_values(document, schema, today=today)
    slugged = {key: slugify(value) for key, value in values.items()}
    rendered = render_template(schema.slug, slugged)
    rendered = append_short_id(rendered, values["short_id"])
    path = f"{collection}/{generate_filename(rendered)}"
    return strip_md(path) if document.is_folder else path


def slug_fields(schema: CollectionSchema) -> list[str]:
    """Fields the slug template uses, in order."""
    return extract_placeholders(schema.slug)


def content_path(path: str, is_folder: bool, index_file: str) -> str:
    """Where a document's frontmatter and body live."""
    return f"{path}/{index_file}" if is_folder else path
