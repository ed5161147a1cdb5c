"""Tests for the draft CLI group."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest
from click.testing import CliRunner

from folio.cli import cli


def _stage(cli_runner: CliRunner, *args: str) -> dict[str, Any]:
    result = cli_runner.invoke(cli, ["--json", "draft", "stage", *args])
    assert result.exit_code == 0, result.output
    return json.loads(result.stdout)["data"]


@pytest.mark.usefixtures("_isolated_repo")
class TestDraftCommands:
    def test_stage_writes_hidden_file(self, cli_runner: CliRunner, repo_root: Path) -> None:
        data = _stage(cli_runner, "cln", "Acme Corp")
        assert data["staged"] is True
        assert data["draft_path"].startswith("clients/.draft-")
        assert (repo_root / data["draft_path"]).is_file()
        assert not (repo_root / data["target_path"]).exists()

    def test_staged_draft_is_not_listed(self, cli_runner: CliRunner) -> None:
        _stage(cli_runner, "clients", "Acme Corp")
        result = cli_runner.invoke(cli, ["--json", "list", "clients"])
        assert json.loads(result.stdout)["data"]["count"] == 0

    def test_commit(self, cli_runner: CliRunner, repo_root: Path) -> None:
        staged = _stage(cli_runner, "clients", "Acme Corp")
        result = cli_runner.invoke(
            cli, ["--json", "draft", "commit", staged["draft_path"], staged["target_path"]]
        )
        assert result.exit_code == 0, result.output
        data = json.loads(result.stdout)["data"]
        assert data["path"] == staged["target_path"]
        assert (repo_root / staged["target_path"]).is_file()
        assert not (repo_root / staged["draft_path"]).exists()

    def test_commit_invalid_draft(self, cli_runner: CliRunner, repo_root: Path) -> None:
        staged = _stage(cli_runner, "clients", "Acme Corp")
        draft = repo_root / staged["draft_path"]
        draft.write_text(
            draft.read_text(encoding="utf-8").replace("name: Acme Corp", "email: nope"),
            encoding="utf-8",
        )
        result = cli_runner.invoke(
            cli, ["draft", "commit", staged["draft_path"], staged["target_path"]]
        )
        assert result.exit_code == 1
        assert "field.email" in result.stderr
        assert draft.is_file()

    def test_stage_existing_document(self, cli_runner: CliRunner) -> None:
        created = cli_runner.invoke(cli, ["create", "clients", "-f", "name=Acme Corp"])
        assert created.exit_code == 0, created.output
        data = _stage(cli_runner, "clients", "Acme Corp")
        assert data["staged"] is False

    def test_discard(self, cli_runner: CliRunner, repo_root: Path) -> None:
        staged = _stage(cli_runner, "clients", "Acme Corp")
        result = cli_runner.invoke(cli, ["--json", "draft", "discard", staged["draft_path"]])
        assert result.exit_code == 0, result.output
        assert json.loads(result.stdout)["data"]["removed"] is True
        assert not (repo_root / staged["draft_path"]).exists()

    def test_discard_rejects_visible_path(self, cli_runner: CliRunner) -> None:
        result = cli_runner.invoke(cli, ["draft", "discard", "clients/acme.md"])
        assert result.exit_code == 1
        assert "not a draft path" in result.stderr
