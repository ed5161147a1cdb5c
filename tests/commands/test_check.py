"""Tests for check CLI command."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from click.testing import CliRunner

from folio.cli import cli
from folio.domain.ids import new_id
from tests.conftest import write_document


@pytest.mark.usefixtures("_isolated_repo")
class TestCheckCommand:
    def test_clean_repository(self, cli_runner: CliRunner) -> None:
        result = cli_runner.invoke(cli, ["check"])
        assert result.exit_code == 0, result.output
        assert "OK: check" in result.stdout
        assert "  errors: 0" in result.stdout

    def test_json_output(self, cli_runner: CliRunner) -> None:
        result = cli_runner.invoke(cli, ["--json", "check"])
        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["ok"] is True
        for key in ("issues", "fixed", "scanned", "count", "errors", "warnings"):
            assert key in data["data"]

    def test_errors_exit_one(self, cli_runner: CliRunner, repo_root: Path) -> None:
        write_document(repo_root, "clients/broken.md", {"_id": new_id(), "email": "nope"})
        result = cli_runner.invoke(cli, ["check"])
        assert result.exit_code == 1
        assert "error clients/broken.md: field.required:" in result.stdout
        assert "error clients/broken.md: field.email:" in result.stdout

    def test_collection_scope(self, cli_runner: CliRunner, repo_root: Path) -> None:
        write_document(repo_root, "clients/broken.md", {"_id": new_id()})
        result = cli_runner.invoke(cli, ["--json", "check", "invoices"])
        assert result.exit_code == 0
        assert json.loads(result.stdout)["data"]["count"] == 0

    def test_fix_renames_and_uppercases(self, cli_runner: CliRunner, repo_root: Path) -> None:
        doc_id = new_id()
        metadata = {"_id": doc_id, "name": "Acme", "country": "de"}
        write_document(repo_root, "clients/old.md", metadata)
        result = cli_runner.invoke(cli, ["--json", "check", "--fix"])
        assert result.exit_code == 0, result.output
        assert json.loads(result.stdout)["data"]["fixed"] >= 1
        assert not (repo_root / "clients" / "old.md").exists()

        after = cli_runner.invoke(cli, ["--json", "check"])
        assert json.loads(after.stdout)["data"]["count"] == 0

    def test_prune_requires_fix(self, cli_runner: CliRunner) -> None:
        result = cli_runner.invoke(cli, ["check", "--prune-attachments"])
        assert result.exit_code == 2
        assert "--prune-attachments requires --fix" in result.output
