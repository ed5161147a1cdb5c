"""Tests for canonical path computation."""

from __future__ import annotations

from datetime import date

import pytest

from folio.config.models import CollectionSchema
from folio.domain.content import Document
from folio.domain.paths import canonical_path, content_path, slug_fields, stringify
from folio.errors import TemplateError

DOC_ID = "01hz3k8m2n4p6q8r0s2t4vab12"
TODAY = date(2024, 5, 15)


def doc(**metadata: object) -> Document:
    return Document(path="", metadata={"_id": DOC_ID, **metadata})


class TestCanonicalPath:
    def test_short_id_in_template(self) -> None:
        schema = CollectionSchema(slug="{{name}}-{{short_id}}")
        assert canonical_path(doc(name="Acme Corp"), schema, "clients") == (
            "clients/acme-corp-4vab12.md"
        )

    def test_short_id_appended(self) -> None:
        schema = CollectionSchema(slug="{{name}}")
        assert canonical_path(doc(name="Acme"), schema, "clients") == "clients/acme-4vab12.md"

    def test_short_id_length(self) -> None:
        schema = CollectionSchema(slug="{{name}}", short_id_length=4)
        assert canonical_path(doc(name="Acme"), schema, "c") == "c/acme-ab12.md"

    def test_date_filters_make_directories(self) -> None:
        schema = CollectionSchema(slug="{{date|year}}/{{date|month}}/{{client}}")
        path = canonical_path(doc(date="2024-03-09", client="cd34"), schema, "invoices")
        assert path == "invoices/2024/03/cd34-4vab12.md"

    def test_date_defaults_to_today(self) -> None:
        schema = CollectionSchema(slug="{{date}}")
        assert canonical_path(doc(), schema, "n", today=TODAY) == "n/2024-05-15-4vab12.md"

    def test_title_from_heading(self) -> None:
        schema = CollectionSchema(slug="{{_title}}")
        document = Document(path="", metadata={"_id": DOC_ID}, content="# Big Idea\n")
        assert canonical_path(document, schema, "notes") == "notes/big-idea-4vab12.md"

    def test_values_are_slugified_individually(self) -> None:
        schema = CollectionSchema(slug="{{name}}")
        assert canonical_path(doc(name="a/b"), schema, "c") == "c/a-b-4vab12.md"

    def test_folder_document_has_no_suffix(self) -> None:
        schema = CollectionSchema(slug="{{name}}")
        document = Document(path="", metadata={"_id": DOC_ID, "name": "Acme"}, is_folder=True)
        assert canonical_path(document, schema, "clients") == "clients/acme-4vab12"

    def test_missing_field(self) -> None:
        schema = CollectionSchema(slug="{{name}}")
        with pytest.raises(TemplateError):
            canonical_path(doc(), schema, "clients")

    def test_deterministic(self) -> None:
        schema = CollectionSchema(slug="{{name}}-{{tags}}")
        document = doc(name="Acme", tags=["a", "b"])
        again = canonical_path(doc(name="Acme", tags=["a", "b"]), schema, "c")
        assert canonical_path(document, schema, "c") == again
        assert canonical_path(document, schema, "c") == "c/acme-a-b-4vab12.md"


class TestHelpers:
    def test_stringify(self) -> None:
        assert stringify(True) == "true"
        assert stringify(["a", None, 2]) == "a-2"
        assert stringify(3.5) == "3.5"

    def test_slug_fields(self) -> None:
        schema = CollectionSchema(slug="{{date|year}}/{{ client }}-{{date}}")
        assert slug_fields(schema) == ["date", "client"]

    def test_content_path(self) -> None:
        assert content_path("c/acme", True, "index.md") == "c/acme/index.md"
        assert content_path("c/acme.md", False, "index.md") == "c/acme.md"
