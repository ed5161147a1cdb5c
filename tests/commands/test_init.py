"""Tests for init CLI command."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from click.testing import CliRunner

from folio.cli import cli


class TestInitCommand:
    def test_init_path(self, cli_runner: CliRunner, tmp_path: Path) -> None:
        target = tmp_path / "records"
        result = cli_runner.invoke(cli, ["init", str(target)])
        assert result.exit_code == 0, result.output
        assert result.stdout.startswith("OK: init\n")
        assert (target / "folio.yaml").is_file()

    def test_init_json_output(self, cli_runner: CliRunner, tmp_path: Path) -> None:
        result = cli_runner.invoke(cli, ["--json", "init", str(tmp_path)])
        assert result.exit_code == 0, result.output
        data = json.loads(result.stdout)
        assert data["ok"] is True
        assert data["op"] == "init"
        assert data["data"]["root"] == str(tmp_path.resolve())
        assert len(data["data"]["repository_id"]) == 26
        assert data["data"]["collections"] == []

    def test_init_defaults_to_cwd(
        self, cli_runner: CliRunner, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.chdir(tmp_path)
        result = cli_runner.invoke(cli, ["init"])
        assert result.exit_code == 0, result.output
        assert (tmp_path / "folio.yaml").is_file()

    def test_init_keeps_existing_repository(self, cli_runner: CliRunner, repo_root: Path) -> None:
        before = (repo_root / "folio.yaml").read_text(encoding="utf-8")
        result = cli_runner.invoke(cli, ["--json", "init", str(repo_root)])
        assert result.exit_code == 0, result.output
        data = json.loads(result.stdout)["data"]
        assert data["collections"] == ["clients", "invoices", "templates"]
        assert (repo_root / "folio.yaml").read_text(encoding="utf-8") == before
