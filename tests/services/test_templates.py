"""Tests for TemplateService and template lookup."""

from __future__ import annotations

from folio.infrastructure.workspace import Workspace
from folio.services.documents import DocumentService
from folio.services.templates import TemplateService, select_template


def add_template(workspace: Workspace, name: str, target: str, body: str = "") -> None:
    result = DocumentService(workspace).create(
        "templates", {"name": name, "for": target}, content=body
    )
    assert result.ok, result.error


class TestListTemplates:
    def test_empty(self, workspace: Workspace) -> None:
        assert TemplateService(workspace).list_templates().data == {"templates": [], "count": 0}

    def test_no_templates_collection(self, empty_workspace: Workspace) -> None:
        assert TemplateService(empty_workspace).list_templates().data["count"] == 0

    def test_filter_by_collection_or_alias(self, workspace: Workspace) -> None:
        add_template(workspace, "welcome", "cln", "# {{ name }}\n")
        add_template(workspace, "standard", "invoices")
        svc = TemplateService(workspace)

        everything = svc.list_templates().data
        assert everything["count"] == 2
        for_clients = svc.list_templates("clients").data["templates"]
        assert [(t["name"], t["for"]) for t in for_clients] == [("welcome", "cln")]
        assert for_clients[0]["content"] == "# {{ name }}\n"
        assert [t["name"] for t in svc.list_templates("inv").data["templates"]] == ["standard"]

    def test_unknown_collection(self, workspace: Workspace) -> None:
        result = TemplateService(workspace).list_templates("nope")
        assert result.error is not None
        assert result.error.code == "SCHEMA_ERROR"


class TestSelectTemplate:
    def test_found(self, workspace: Workspace) -> None:
        add_template(workspace, "welcome", "clients", "Hi\n")
        assert select_template(workspace, "cln", "welcome").content == "Hi\n"

    def test_wrong_collection(self, workspace: Workspace) -> None:
        add_template(workspace, "welcome", "clients")
        result = DocumentService(workspace).create(
            "invoices", {"client": "x"}, template="welcome"
        )
        assert result.error is not None
        assert result.error.message == "no template 'welcome' for collection 'invoices'"
