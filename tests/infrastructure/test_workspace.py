"""Tests for Workspace construction, config persistence and collection lookup."""

from __future__ import annotations

from datetime import date
from pathlib import Path

import pytest

from folio.config.repo_config import CONFIG_FILENAME, parse_repo_config
from folio.config.settings import FolioSettings
from folio.errors import NotFoundError, SchemaError
from folio.infrastructure.cache import DocumentCache
from folio.infrastructure.workspace import Workspace
from tests.conftest import FAST_LOCK, write_document


class TestOpen:
    def test_requires_marker(self, tmp_path: Path) -> None:
        with pytest.raises(NotFoundError, match="run 'folio init' first"):
            Workspace.open(tmp_path)

    def test_discovers_root_from_subdirectory(
        self, repo_root: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.chdir(repo_root / "clients")
        assert Workspace.open().root == repo_root.resolve()

    def test_assigns_missing_repository_id(self, tmp_path: Path) -> None:
        (tmp_path / CONFIG_FILENAME).write_text("aliases: {}\n", encoding="utf-8")
        workspace = Workspace.open(tmp_path)
        assert workspace.config.repository_id
        on_disk = parse_repo_config((tmp_path / CONFIG_FILENAME).read_text())
        assert on_disk.repository_id == workspace.config.repository_id

    def test_settings_flow_into_lock(self, repo_root: Path) -> None:
        workspace = Workspace.open(repo_root, lock=FAST_LOCK)
        assert workspace.lock.config == FAST_LOCK
        assert workspace.settings.repo_root == repo_root.resolve()

    def test_shared_cache(self, repo_root: Path) -> None:
        cache = DocumentCache()
        first = Workspace.open(repo_root, cache=cache)
        second = Workspace.open(repo_root, cache=cache)
        write_document(repo_root, "clients/a.md", {"_id": "a1", "name": "A"})
        first.repository.collect_all()
        calls: list[int] = []
        cache.get(str(second.config.repository_id), lambda: calls.append(1))
        assert calls == []

    def test_injected_clock(self, repo_root: Path) -> None:
        settings = FolioSettings.from_cli(repo_root=repo_root)
        workspace = Workspace(settings, clock=lambda: date(2020, 1, 2))
        assert workspace.today() == date(2020, 1, 2)


class TestInit:
    def test_creates_marker(self, tmp_path: Path) -> None:
        workspace = Workspace.init(tmp_path / "new")
        text = (tmp_path / "new" / CONFIG_FILENAME).read_text()
        assert text.startswith("# folio repository configuration")
        assert workspace.collections == []

    def test_idempotent(self, tmp_path: Path) -> None:
        first = Workspace.init(tmp_path)
        second = Workspace.init(tmp_path)
        assert first.config.repository_id == second.config.repository_id


class TestCollections:
    def test_sorted_collections(self, workspace: Workspace) -> None:
        assert workspace.collections == ["clients", "invoices", "templates"]

    def test_require_schema_by_alias(self, workspace: Workspace) -> None:
        name, schema = workspace.require_schema("cln")
        assert name == "clients"
        assert "name" in schema.fields

    def test_unknown_collection(self, workspace: Workspace) -> None:
        with pytest.raises(SchemaError, match="unknown collection: nope"):
            workspace.require_schema("nope")

    def test_alias_shadowing_collection_rejected_on_open(self, repo_root: Path) -> None:
        (repo_root / CONFIG_FILENAME).write_text(
            "repository_id: r1\naliases:\n  clients: invoices\n", encoding="utf-8"
        )
        with pytest.raises(SchemaError, match="collides with collection name"):
            Workspace.open(repo_root)

    def test_save_config_validates_aliases(self, workspace: Workspace) -> None:
        bad = workspace.config.model_copy(
            update={"aliases": {**workspace.config.aliases, "c2": "clients"}}
        )
        with pytest.raises(SchemaError, match="duplicate alias"):
            workspace.save_config(bad)

    def test_save_schema_writes_file(self, repo_root: Path, workspace: Workspace) -> None:
        _, schema = workspace.require_schema("clients")
        workspace.save_schema("people", schema)
        assert (repo_root / "people" / "_schema.yaml").is_file()
        assert "people" in workspace.collections
