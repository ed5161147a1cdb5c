"""Tests for folio.yaml parsing and alias handling."""

from __future__ import annotations

import pytest

from folio.config.models import RepoConfig
from folio.config.repo_config import (
    default_repo_config,
    ensure_repository_id,
    generate_alias,
    parse_repo_config,
    resolve_alias,
    serialize_repo_config,
    validate_aliases,
)
from folio.errors import SchemaError


class TestParse:
    def test_empty_file(self) -> None:
        assert parse_repo_config("") == RepoConfig()

    def test_full_file(self) -> None:
        config = parse_repo_config(
            "repository_id: 01hzzzzzzzzzzzzzzzzzzzzzzz\n"
            "aliases:\n  cln: clients\n"
            "ignore: [desktop.ini]\n"
        )
        assert config.repository_id == "01hzzzzzzzzzzzzzzzzzzzzzzz"
        assert config.aliases == {"cln": "clients"}
        assert config.ignore == ["desktop.ini"]

    def test_unknown_keys_preserved(self) -> None:
        text = "aliases: {}\nsettings:\n  verbose: true\nowner: finance\n"
        config = parse_repo_config(text)
        assert config.extra == {"settings": {"verbose": True}, "owner": "finance"}
        again = parse_repo_config(serialize_repo_config(config))
        assert again.extra == config.extra

    def test_not_a_mapping(self) -> None:
        with pytest.raises(SchemaError, match="expected a mapping"):
            parse_repo_config("- a\n- b\n")

    def test_invalid_yaml(self) -> None:
        with pytest.raises(SchemaError, match="invalid folio.yaml"):
            parse_repo_config("aliases: [unclosed\n")


class TestSerialize:
    def test_default_ignore_omitted(self) -> None:
        text = serialize_repo_config(RepoConfig(repository_id="abc"))
        assert "ignore" not in text
        assert text.startswith("# folio repository configuration")

    def test_custom_ignore_written(self) -> None:
        text = serialize_repo_config(RepoConfig(ignore=["x.tmp"]))
        assert parse_repo_config(text).ignore == ["x.tmp"]


class TestRepositoryId:
    def test_default_config_has_id(self) -> None:
        config = default_repo_config()
        assert config.repository_id
        assert config.repository_id == config.repository_id.lower()

    def test_existing_id_kept(self) -> None:
        config, generated = ensure_repository_id(RepoConfig(repository_id="keep"))
        assert generated is False
        assert config.repository_id == "keep"

    def test_missing_id_generated(self) -> None:
        config, generated = ensure_repository_id(RepoConfig())
        assert generated is True
        assert len(config.repository_id or "") == 26


class TestAliases:
    @pytest.mark.parametrize(
        ("name", "alias"),
        [("templates", "tpl"), ("clients", "cln"), ("invoices", "nvc"), ("aia", "aia")],
    )
    def test_generate(self, name: str, alias: str) -> None:
        assert generate_alias(name) == alias

    def test_resolve(self) -> None:
        aliases = {"cln": "clients"}
        assert resolve_alias("cln", aliases, {"clients"}) == "clients"
        assert resolve_alias("clients", aliases, {"clients"}) == "clients"
        assert resolve_alias("unknown", aliases, {"clients"}) == "unknown"

    def test_collection_name_wins_over_alias(self) -> None:
        assert resolve_alias("notes", {"notes": "clients"}, {"notes", "clients"}) == "notes"

    def test_alias_colliding_with_collection(self) -> None:
        with pytest.raises(SchemaError, match="collides"):
            validate_aliases({"clients": "invoices"}, {"clients", "invoices"})

    def test_two_aliases_for_one_collection(self) -> None:
        with pytest.raises(SchemaError, match="duplicate alias"):
            validate_aliases({"a": "clients", "b": "clients"}, {"clients"})
