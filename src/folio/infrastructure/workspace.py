"""Workspace: one repository root with everything services need.

The Workspace is the single dependency injected into every service. It
owns the root-bound filesystem, the repository config (``folio.yaml``),
the collection schemas, the :class:`Repository`, and the
:class:`WriteLock`. Constructed once per CLI invocation from
:class:`FolioSettings` and held by the click context.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import date
from pathlib import Path
from typing import Any

from folio.config.models import CollectionSchema, RepoConfig
from folio.config.repo_config import (
    CONFIG_FILENAME,
    default_repo_config,
    ensure_repository_id,
    parse_repo_config,
    resolve_alias,
    serialize_repo_config,
    validate_aliases,
)
from folio.config.schema import discover_schemas, schema_path, serialize_schema
from folio.config.settings import FolioSettings
from folio.domain.fields import utc_today
from folio.errors import NotFoundError, SchemaError
from folio.infrastructure.cache import DocumentCache, InvalidatingFileSystem
from folio.infrastructure.filesystem import DiskFileSystem
from folio.infrastructure.lock import WriteLock
from folio.infrastructure.repository import Repository

logger = logging.getLogger(__name__)


class Workspace:
    """Repository root, config, schemas, document store and write lock.

    Args:
        settings: Resolved process settings; ``repo_root`` must hold
            ``folio.yaml``.
        cache: Process-wide document cache. A private one is created when
            omitted.
        clock: Returns "today" for date shorthands and ``{{date}}`` slugs.
    """

    def __init__(
        self,
        settings: FolioSettings,
        *,
        cache: DocumentCache | None = None,
        clock: Callable[[], date] | None = None,
    ) -> None:
        self._settings = settings
        self._clock = clock or utc_today
        self._disk = DiskFileSystem(settings.repo_root)
        if not self._disk.is_file(CONFIG_FILENAME):
            msg = f"no {CONFIG_FILENAME} found in {self.root}; run 'folio init' first"
            raise NotFoundError(msg)

        config = parse_repo_config(self._disk.read_text(CONFIG_FILENAME))
        config, generated = ensure_repository_id(config)
        if generated:
            self._disk.write_text(CONFIG_FILENAME, serialize_repo_config(config))
            logger.info("Assigned repository id %s", config.repository_id)
        self._config = config

        self.cache = cache or DocumentCache()
        self.repository = Repository(
            self._disk,
            repository_id=str(config.repository_id),
            cache=self.cache,
            schemas=lambda: self.schemas,
            resolve_collection=self.resolve_collection,
        )
        self.schemas: dict[str, CollectionSchema] = {}
        self.reload()
        self.lock = WriteLock(
            self.root, settings.lock, on_acquire=self.repository.invalidate_cache
        )

    # ------------------------------------------------------------------
    # Construction helpers
    # ------------------------------------------------------------------

    @classmethod
    def open(
        cls,
        root: Path | None = None,
        *,
        cache: DocumentCache | None = None,
        **flags: Any,
    ) -> Workspace:
        """Open the repository at *root*, or the one discovered from cwd."""
        return cls(FolioSettings.from_cli(repo_root=root, **flags), cache=cache)

    @classmethod
    def init(cls, root: Path, *, cache: DocumentCache | None = None, **flags: Any) -> Workspace:
        """Create ``folio.yaml`` in *root* (if absent) and open it."""
        root.mkdir(parents=True, exist_ok=True)
        config_file = root / CONFIG_FILENAME
        if not config_file.exists():
            config_file.write_text(serialize_repo_config(default_repo_config()), encoding="utf-8")
        return cls.open(root, cache=cache, **flags)

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def root(self) -> Path:
        return self._disk.root

    @property
    def settings(self) -> FolioSettings:
        return self._settings

    @property
    def config(self) -> RepoConfig:
        return self._config

    @property
    def fs(self) -> InvalidatingFileSystem:
        """Cache-invalidating filesystem; the only write path for services."""
        return self.repository.fs

    def today(self) -> date:
        return self._clock()

    # ------------------------------------------------------------------
    # Collections
    # ------------------------------------------------------------------

    @property
    def collections(self) -> list[str]:
        return sorted(self.schemas)

    def resolve_collection(self, name_or_alias: str) -> str:
        return resolve_alias(name_or_alias, self._config.aliases, self.schemas)

    def require_schema(self, name_or_alias: str) -> tuple[str, CollectionSchema]:
        """Resolve an alias and return ``(collection, schema)``.

        Raises:
            SchemaError: No such collection.
        """
        collection = self.resolve_collection(name_or_alias)
        schema = self.schemas.get(collection)
        if schema is None:
            msg = f"unknown collection: {name_or_alias}"
            raise SchemaError(msg)
        return collection, schema

    def reload(self) -> None:
        """Re-read every schema and re-check aliases against them."""
        self.schemas = discover_schemas(self.repository.fs)
        validate_aliases(self._config.aliases, self.schemas)

    # ------------------------------------------------------------------
    # Persistence (callers hold the write lock)
    # ------------------------------------------------------------------

    def save_config(self, config: RepoConfig) -> None:
        validate_aliases(config.aliases, self.schemas)
        self.fs.write_text(CONFIG_FILENAME, serialize_repo_config(config))
        self._config = config

    def save_schema(self, collection: str, schema: CollectionSchema) -> None:
        self.fs.mkdir_all(collection)
        self.fs.write_text(schema_path(collection), serialize_schema(schema))
        self.schemas[collection] = schema
