"""``folio.yaml``: repository id, collection aliases, ignore list.

The file marks the repository root. Keys folio does not know about are
kept in :attr:`RepoConfig.extra` and written back unchanged.
"""

from __future__ import annotations

from typing import Any

from folio.config.models import DEFAULT_IGNORE, RepoConfig
from folio.domain.content import dump_yaml, load_yaml
from folio.domain.ids import new_id
from folio.errors import SchemaError

CONFIG_FILENAME = "folio.yaml"

_HEADER = "# folio repository configuration\n"
_KNOWN_KEYS = ("repository_id", "aliases", "ignore")

# Collections whose alias is fixed rather than derived from consonants.
WELL_KNOWN_ALIASES: dict[str, str] = {"templates": "tpl"}

_CONSONANTS = frozenset("bcdfghjklmnpqrstvwxyz")


def parse_repo_config(text: str) -> RepoConfig:
    """Parse ``folio.yaml`` content.

    Raises:
        SchemaError: Not valid YAML, or not a mapping.
    """
    try:
        data = load_yaml(text)
    except ValueError as exc:
        msg = f"invalid {CONFIG_FILENAME}: {exc}"
        raise SchemaError(msg) from exc
    if data is None:
        return RepoConfig()
    if not isinstance(data, dict):
        msg = f"invalid {CONFIG_FILENAME}: expected a mapping"
        raise SchemaError(msg)

    repository_id = data.get("repository_id")
    aliases_raw = data.get("aliases") or {}
    aliases = (
        {str(k): v for k, v in aliases_raw.items() if isinstance(v, str)}
        if isinstance(aliases_raw, dict)
        else {}
    )
    ignore_raw = data.get("ignore")
    ignore = (
        [v for v in ignore_raw if isinstance(v, str)]
        if isinstance(ignore_raw, list)
        else list(DEFAULT_IGNORE)
    )
    return RepoConfig(
        repository_id=str(repository_id) if repository_id else None,
        aliases=aliases,
        ignore=ignore,
        extra={k: v for k, v in data.items() if k not in _KNOWN_KEYS},
    )


def serialize_repo_config(config: RepoConfig) -> str:
    data: dict[str, Any] = dict(config.extra)
    if config.repository_id:
        data["repository_id"] = config.repository_id
    data["aliases"] = dict(config.aliases)
    if sorted(config.ignore) != sorted(DEFAULT_IGNORE):
        data["ignore"] = list(config.ignore)
    return _HEADER + dump_yaml(data)


def default_repo_config() -> RepoConfig:
    return RepoConfig(repository_id=new_id())


def ensure_repository_id(config: RepoConfig) -> tuple[RepoConfig, bool]:
    """Return *config* with a repository id, and whether one was generated."""
    if config.repository_id:
        return config, False
    return config.model_copy(update={"repository_id": new_id()}), True


# ---------------------------------------------------------------------------
# Aliases
# ---------------------------------------------------------------------------


def generate_alias(name: str) -> str:
    """Short prefix for a collection: well-known, else 3 consonants, else 3 chars."""
    lower = name.lower()
    if lower in WELL_KNOWN_ALIASES:
        return WELL_KNOWN_ALIASES[lower]
    consonants = "".join(c for c in lower if c in _CONSONANTS)
    return consonants[:3] if consonants else lower[:3]


def resolve_alias(name_or_alias: str, aliases: dict[str, str], collections: Any) -> str:
    """Collection name for *name_or_alias*; unknown input is returned as is."""
    if name_or_alias in collections:
        return name_or_alias
    return aliases.get(name_or_alias, name_or_alias)


def validate_aliases(aliases: dict[str, str], collections: Any) -> None:
    """Reject aliases that shadow a collection or share a target.

    Raises:
        SchemaError: An alias equals a collection name, or two aliases
            point at the same collection.
    """
    seen: dict[str, str] = {}
    for alias, target in sorted(aliases.items()):
        if alias in collections:
            msg = f"alias '{alias}' collides with collection name"
            raise SchemaError(msg)
        if target in seen:
            msg = f"duplicate alias for collection '{target}': '{seen[target]}' and '{alias}'"
            raise SchemaError(msg)
        seen[target] = alias
