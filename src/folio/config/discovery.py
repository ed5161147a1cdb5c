"""Repository root discovery.

Walk-up finder locates ``folio.yaml``, similar to how git finds ``.git/``.
The ``FOLIO_ROOT`` env var points straight at a root and skips the walk.
"""

from __future__ import annotations

import os
from pathlib import Path

from folio.config.repo_config import CONFIG_FILENAME

ROOT_ENV_VAR = "FOLIO_ROOT"


def find_config(start: Path | None = None) -> Path | None:
    """Walk up from *start* (default: cwd) looking for ``folio.yaml``.

    Returns the path to the config file, or None if not found.
    Checks ``FOLIO_ROOT`` first.
    """
    env_root = os.environ.get(ROOT_ENV_VAR)
    if env_root:
        candidate = Path(env_root) / CONFIG_FILENAME
        return candidate if candidate.is_file() else None

    current = (start or Path.cwd()).resolve()
    while True:
        candidate = current / CONFIG_FILENAME
        if candidate.is_file():
            return candidate
        parent = current.parent
        if parent == current:
            break
        current = parent
    return None


def find_root(start: Path | None = None) -> Path | None:
    """Directory holding ``folio.yaml``, or None."""
    config = find_config(start)
    return config.parent if config else None
