"""Shared pytest fixtures and test helpers for folio tests."""

from __future__ import annotations

import logging
import os
from collections.abc import Iterator
from pathlib import Path
from typing import Any

import pytest
from click.testing import CliRunner

from folio.config.models import LockConfig
from folio.domain.content import render_frontmatter
from folio.domain.ids import new_id
from folio.infrastructure.workspace import Workspace

CLIENTS_SCHEMA = """\
slug: "{{name}}-{{short_id}}"
fields:
  name:
    type: string
    required: true
  email: email
  country: country
"""

INVOICES_SCHEMA = """\
slug: "{{date}}-{{client}}"
fields:
  client:
    type: reference
    required: true
  date:
    type: date
    default: today
  amount: number
  currency: currency
references:
  client: clients
"""

TEMPLATES_SCHEMA = """\
slug: "{{name}}"
fields:
  name:
    type: string
    required: true
  for:
    type: string
    required: true
"""

FAST_LOCK = LockConfig(timeout_seconds=2.0, stale_seconds=30.0, poll_interval=0.01)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep FOLIO_* variables from the developer's shell out of every test."""
    for key in list(os.environ):
        if key.startswith("FOLIO_"):
            monkeypatch.delenv(key)


@pytest.fixture(autouse=True)
def _restore_logging() -> Iterator[None]:
    """CLI invocations reconfigure the root logger; put it back afterwards."""
    root = logging.getLogger()
    handlers = root.handlers[:]
    level = root.level
    folio_level = logging.getLogger("folio").level
    yield
    root.handlers = handlers
    root.setLevel(level)
    logging.getLogger("folio").setLevel(folio_level)


@pytest.fixture
def cli_runner() -> CliRunner:
    """Provide a Click CLI test runner."""
    return CliRunner()


@pytest.fixture
def repo_root(tmp_path: Path) -> Path:
    """Temporary repository with clients, invoices and templates collections.

    This is the single source of truth for the on-disk layout; the
    workspace fixtures and the CLI tests build on it.
    """
    (tmp_path / "folio.yaml").write_text(
        f"repository_id: {new_id()}\n"
        "aliases:\n  cln: clients\n  inv: invoices\n  tpl: templates\n",
        encoding="utf-8",
    )
    write_schema(tmp_path, "clients", CLIENTS_SCHEMA)
    write_schema(tmp_path, "invoices", INVOICES_SCHEMA)
    write_schema(tmp_path, "templates", TEMPLATES_SCHEMA)
    return tmp_path


@pytest.fixture
def workspace(repo_root: Path) -> Iterator[Workspace]:
    """Workspace opened on :func:`repo_root`."""
    yield Workspace.open(repo_root, lock=FAST_LOCK)


@pytest.fixture
def empty_workspace(tmp_path: Path) -> Workspace:
    """Initialized repository with no collections."""
    return Workspace.init(tmp_path, lock=FAST_LOCK)


@pytest.fixture
def _isolated_repo(repo_root: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Change CWD to :func:`repo_root` so the CLI discovers it.

    Use via ``@pytest.mark.usefixtures("_isolated_repo")`` on command test
    classes.
    """
    monkeypatch.chdir(repo_root)


# ---------------------------------------------------------------------------
# Shared test helpers
# ---------------------------------------------------------------------------


def write_schema(root: Path, collection: str, text: str) -> None:
    (root / collection).mkdir(parents=True, exist_ok=True)
    (root / collection / "_schema.yaml").write_text(text, encoding="utf-8")


def write_document(root: Path, path: str, metadata: dict[str, Any], body: str = "") -> Path:
    """Write a document file directly, bypassing every service."""
    target = root / path
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(render_frontmatter(metadata, body), encoding="utf-8")
    return target


def create_client(workspace: Workspace, name: str, **fields: Any) -> dict[str, Any]:
    """Create a client via DocumentService, asserting success."""
    from folio.services.documents import DocumentService

    result = DocumentService(workspace).create("clients", {"name": name, **fields})
    assert result.ok, result.error
    return result.data


def create_invoice(workspace: Workspace, client_id: str, **fields: Any) -> dict[str, Any]:
    from folio.services.documents import DocumentService

    result = DocumentService(workspace).create("invoices", {"client": client_id, **fields})
    assert result.ok, result.error
    return result.data
