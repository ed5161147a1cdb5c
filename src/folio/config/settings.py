"""Unified settings: CLI flags, env vars, and the root config in one object.

Priority chain (highest to lowest):
  1. Init kwargs   - CLI flags passed by Click
  2. Env vars      - ``FOLIO_*`` prefix, ``__`` for nesting
                     (``FOLIO_LOCK__TIMEOUT_SECONDS=30``)
  3. ``settings:`` - block inside ``folio.yaml`` discovered via walk-up
  4. Code defaults - baked into the models

Uses Pydantic Settings v2 with a custom :class:`RepoYamlSettingsSource`
that reuses :func:`~folio.config.discovery.find_config`.
"""

from __future__ import annotations

import threading
from pathlib import Path
from typing import Any

from pydantic import Field
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource

from folio.config.discovery import find_config
from folio.config.models import LockConfig
from folio.config.repo_config import CONFIG_FILENAME
from folio.domain.content import load_yaml
from folio.errors import SchemaError

SETTINGS_KEY = "settings"


class RepoYamlSettingsSource(PydanticBaseSettingsSource):
    """Read the ``settings:`` mapping of a ``folio.yaml`` file."""

    def __init__(self, settings_cls: type[BaseSettings], config_path: Path | None) -> None:
        super().__init__(settings_cls)
        self._data: dict[str, Any] = {}
        if config_path and config_path.is_file():
            raw = config_path.read_text(encoding="utf-8")
            try:
                data = load_yaml(raw)
            except ValueError as exc:
                msg = f"Invalid YAML in {config_path}: {exc}"
                raise SchemaError(msg) from exc
            block = data.get(SETTINGS_KEY) if isinstance(data, dict) else None
            if isinstance(block, dict):
                self._data = block

    def get_field_value(self, field: Any, field_name: str) -> tuple[Any, str, bool]:
        """Return ``(value, field_name, value_is_complex)``."""
        val = self._data.get(field_name)
        return val, field_name, field_name in self._data

    def __call__(self) -> dict[str, Any]:
        return self._data


# Config path handed to settings_customise_sources during construction.
_tls = threading.local()


class FolioSettings(BaseSettings):
    """Process-wide settings, frozen after construction.

    Attributes:
        repo_root: Repository root (parent of ``folio.yaml``, or CWD).
        config_path: The ``folio.yaml`` that was found, if any.
    """

    model_config = {
        "frozen": True,
        "env_prefix": "FOLIO_",
        "env_nested_delimiter": "__",
    }

    repo_root: Path = Field(default_factory=Path.cwd)
    config_path: Path | None = None

    # --- CLI flags ---
    json_output: bool = False
    verbose: bool = False
    log_json: bool = False
    debug: bool = False

    lock: LockConfig = Field(default_factory=LockConfig)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Insert the ``folio.yaml`` source between env vars and defaults."""
        config_path = getattr(_tls, "config_path", None)
        return (
            init_settings,
            env_settings,
            RepoYamlSettingsSource(settings_cls, config_path),
        )

    @classmethod
    def from_cli(
        cls,
        *,
        repo_root: Path | None = None,
        **cli_flags: Any,
    ) -> FolioSettings:
        """Construct settings for a CLI invocation or a library caller.

        An explicit *repo_root* is used as is. Otherwise ``folio.yaml`` is
        discovered via walk-up from CWD and its directory becomes the root.
        """
        if repo_root is not None:
            resolved_root = repo_root.resolve()
            candidate = resolved_root / CONFIG_FILENAME
            config_path = candidate if candidate.is_file() else None
        else:
            config_path = find_config()
            resolved_root = config_path.parent if config_path else Path.cwd()

        _tls.config_path = config_path
        try:
            return cls(repo_root=resolved_root, config_path=config_path, **cli_flags)
        finally:
            _tls.config_path = None
