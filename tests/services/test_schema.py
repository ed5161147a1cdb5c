"""Tests for SchemaService: collection and field mutations with cascades."""

from __future__ import annotations

from pathlib import Path

import pytest

from folio.config.models import CollectionSchema
from folio.config.repo_config import CONFIG_FILENAME, parse_repo_config
from folio.config.schema import parse_schema
from folio.infrastructure.workspace import Workspace
from folio.services.check import CheckService
from folio.services.documents import DocumentService
from folio.services.schema import SchemaService
from tests.conftest import FAST_LOCK, create_client, create_invoice


@pytest.fixture
def svc(workspace: Workspace) -> SchemaService:
    return SchemaService(workspace)


def aliases_on_disk(root: Path) -> dict[str, str]:
    return parse_repo_config((root / CONFIG_FILENAME).read_text()).aliases


def schema_on_disk(root: Path, collection: str) -> CollectionSchema:
    return parse_schema((root / collection / "_schema.yaml").read_text(), collection)


class TestRead:
    def test_show(self, svc: SchemaService) -> None:
        data = svc.show().data
        assert data["aliases"] == {"cln": "clients", "inv": "invoices", "tpl": "templates"}
        assert sorted(data["collections"]) == ["clients", "invoices", "templates"]

    def test_read_by_alias(self, svc: SchemaService) -> None:
        data = svc.read("inv").data
        assert data["collection"] == "invoices"
        assert data["alias"] == "inv"
        assert data["schema"]["references"] == {"client": "clients"}

    def test_read_unknown(self, svc: SchemaService) -> None:
        result = svc.read("nope")
        assert result.error is not None
        assert result.error.code == "SCHEMA_ERROR"


class TestAddCollection:
    def test_defaults(self, repo_root: Path, svc: SchemaService) -> None:
        result = svc.add_collection("projects", fields={"title": {"required": True}})
        assert result.ok, result.error
        assert result.data["alias"] == "prj"
        assert result.data["schema"]["slug"] == "{{short_id}}-{{title}}"
        assert aliases_on_disk(repo_root)["prj"] == "projects"
        assert schema_on_disk(repo_root, "projects").fields["title"].required

    def test_documents_can_be_created(self, svc: SchemaService) -> None:
        svc.add_collection("projects", alias="p", slug="{{title}}", fields={"title": None})
        created = DocumentService(svc.workspace).create("p", {"title": "Launch"})
        assert created.ok, created.error
        assert created.data["path"].startswith("projects/launch-")

    def test_references_resolve_aliases(self, svc: SchemaService) -> None:
        result = svc.add_collection(
            "projects", fields={"client": "reference"}, references={"client": "cln"}
        )
        assert result.ok, result.error
        assert result.data["schema"]["fields"]["client"]["type"] == "reference"
        assert result.data["schema"]["references"] == {"client": "clients"}

    def test_short_id_length(self, repo_root: Path, svc: SchemaService) -> None:
        svc.add_collection("notes", short_id_length=8)
        assert schema_on_disk(repo_root, "notes").short_id_length == 8

    @pytest.mark.parametrize(
        ("kwargs", "message"),
        [
            ({"name": "clients"}, "collection already exists: clients"),
            ({"name": "bad name"}, "invalid collection name"),
            ({"name": "all"}, "is reserved"),
            ({"name": "x", "alias": "cln"}, "alias already in use: cln"),
            ({"name": "x", "alias": "clients"}, "alias collides with collection name: clients"),
            ({"name": "x", "fields": {"_secret": None}}, "reserved '_' prefix"),
            ({"name": "x", "fields": {"n": {"type": "bogus"}}}, "invalid field definition"),
            ({"name": "x", "short_id_length": 2}, "invalid schema"),
        ],
    )
    def test_rejected(self, svc: SchemaService, kwargs: dict, message: str) -> None:
        options = dict(kwargs)
        result = svc.add_collection(options.pop("name"), **options)
        assert result.error is not None
        assert result.error.code == "SCHEMA_ERROR"
        assert message in result.error.message


class TestUpdateCollection:
    def test_alias_replaced(self, repo_root: Path, svc: SchemaService) -> None:
        result = svc.update_collection("clients", alias="cl")
        assert result.ok, result.error
        aliases = aliases_on_disk(repo_root)
        assert aliases["cl"] == "clients"
        assert "cln" not in aliases

    def test_optional_keys_persisted(self, repo_root: Path, svc: SchemaService) -> None:
        svc.update_collection("cln", title_field="email", short_id_length=4)
        schema = schema_on_disk(repo_root, "clients")
        assert schema.title_field == "email"
        assert schema.short_id_length == 4
        assert schema.slug == "{{name}}-{{short_id}}"
        assert "index_file" not in (repo_root / "clients" / "_schema.yaml").read_text()

    def test_new_slug_applies_on_next_fix(self, repo_root: Path, svc: SchemaService) -> None:
        client = create_client(svc.workspace, "Acme")
        svc.update_collection("clients", slug="client-{{name}}")
        CheckService(svc.workspace).check(fix=True)
        moved = DocumentService(svc.workspace).read(client["id"]).data["path"]
        assert moved.startswith("clients/client-acme-")


class TestRenameCollection:
    def test_cascades(self, repo_root: Path, workspace: Workspace) -> None:
        client = create_client(workspace, "Acme")
        create_invoice(workspace, client["id"])
        DocumentService(workspace).create("templates", {"name": "basic", "for": "clients"})

        result = SchemaService(workspace).rename_collection("clients", "customers")
        assert result.ok, result.error
        assert result.data["alias"] == "cln"
        assert not (repo_root / "clients").exists()
        assert (repo_root / "customers" / "_schema.yaml").is_file()
        assert schema_on_disk(repo_root, "invoices").references == {"client": "customers"}
        assert aliases_on_disk(repo_root)["cln"] == "customers"

        reopened = Workspace.open(repo_root, lock=FAST_LOCK)
        template = DocumentService(reopened).list_documents("templates").data["items"][0]
        assert template["metadata"]["for"] == "customers"
        assert CheckService(reopened).check().data["count"] == 0

    def test_rejects_alias_name(self, svc: SchemaService) -> None:
        result = svc.rename_collection("clients", "inv")
        assert result.error is not None
        assert "alias collides with collection name" in result.error.message

    def test_rejects_existing(self, svc: SchemaService) -> None:
        result = svc.rename_collection("clients", "invoices")
        assert result.error is not None
        assert "collection already exists" in result.error.message


class TestRemoveCollection:
    def test_refuses_with_documents(self, workspace: Workspace) -> None:
        create_client(workspace, "Acme")
        result = SchemaService(workspace).remove_collection("clients")
        assert result.error is not None
        assert result.error.message == "collection 'clients' has 1 documents (use remove_documents)"

    def test_empty_collection(self, repo_root: Path, svc: SchemaService) -> None:
        svc.add_collection("notes")
        result = svc.remove_collection("notes")
        assert result.data == {
            "collection": "notes",
            "removed_documents": 0,
            "removed_templates": 0,
        }
        assert not (repo_root / "notes").exists()
        assert "nts" not in aliases_on_disk(repo_root)

    def test_remove_documents_and_templates(self, repo_root: Path, workspace: Workspace) -> None:
        create_client(workspace, "Acme")
        DocumentService(workspace).create("templates", {"name": "basic", "for": "cln"})
        result = SchemaService(workspace).remove_collection("cln", remove_documents=True)
        assert result.ok, result.error
        assert result.data["removed_documents"] == 1
        assert result.data["removed_templates"] == 1
        assert not (repo_root / "clients").exists()
        assert "clients" not in workspace.collections

    def test_force_keeps_documents(self, repo_root: Path, workspace: Workspace) -> None:
        client = create_client(workspace, "Acme")
        result = SchemaService(workspace).remove_collection("clients", force=True)
        assert result.ok, result.error
        assert (repo_root / client["path"]).is_file()
        assert not (repo_root / "clients" / "_schema.yaml").exists()


class TestFields:
    def test_add_field(self, repo_root: Path, svc: SchemaService) -> None:
        result = svc.add_field("clients", "phone", {"pattern": "^\\+"})
        assert result.ok, result.error
        assert schema_on_disk(repo_root, "clients").fields["phone"].pattern == "^\\+"

    def test_add_reference_field(self, repo_root: Path, svc: SchemaService) -> None:
        svc.add_field("clients", "last_invoice", {"type": "reference"}, reference_target="inv")
        assert schema_on_disk(repo_root, "clients").references == {"last_invoice": "invoices"}

    def test_add_type_shorthand(self, repo_root: Path, svc: SchemaService) -> None:
        result = svc.add_field("clients", "score", "number")
        assert result.ok, result.error
        assert schema_on_disk(repo_root, "clients").fields["score"].type == "number"

    def test_add_without_definition_is_string(self, repo_root: Path, svc: SchemaService) -> None:
        result = svc.add_field("clients", "notes", None)
        assert result.ok, result.error
        assert schema_on_disk(repo_root, "clients").fields["notes"].type == "string"

    def test_add_existing(self, svc: SchemaService) -> None:
        result = svc.add_field("clients", "email")
        assert result.error is not None
        assert result.error.message == "field already exists: email"

    def test_add_reserved(self, svc: SchemaService) -> None:
        result = svc.add_field("clients", "_hidden")
        assert result.error is not None
        assert "reserved" in result.error.message

    @pytest.mark.parametrize("name", ["first-name", "2nd", "first name", "not"])
    def test_add_rejects_names_slugs_cannot_read(self, svc: SchemaService, name: str) -> None:
        result = svc.add_field("clients", name)
        assert result.error is not None
        assert result.error.code == "SCHEMA_ERROR"
        assert name in result.error.message

    def test_add_collection_rejects_hyphenated_field(self, svc: SchemaService) -> None:
        result = svc.add_collection("projects", fields={"due-date": "date"})
        assert result.error is not None
        assert "due-date" in result.error.message

    def test_update_field(self, repo_root: Path, svc: SchemaService) -> None:
        svc.update_field("clients", "email", {"required": True, "description": "Billing"})
        field = schema_on_disk(repo_root, "clients").fields["email"]
        assert field.required
        assert field.type == "email"
        assert field.description == "Billing"

    def test_update_unknown_field(self, svc: SchemaService) -> None:
        result = svc.update_field("clients", "fax", {"required": True})
        assert result.error is not None
        assert result.error.code == "NOT_FOUND"

    def test_update_invalid(self, svc: SchemaService) -> None:
        result = svc.update_field("clients", "email", {"type": "bogus"})
        assert result.error is not None
        assert result.error.message.startswith("invalid field definition")

    def test_remove_field_drops_reference(self, repo_root: Path, svc: SchemaService) -> None:
        svc.remove_field("invoices", "client")
        schema = schema_on_disk(repo_root, "invoices")
        assert "client" not in schema.fields
        assert schema.references == {}

    def test_remove_unknown_field(self, svc: SchemaService) -> None:
        assert svc.remove_field("clients", "fax").error is not None
