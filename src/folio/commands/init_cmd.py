"""Command: repository initialization (named init_cmd to avoid shadowing builtins)."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

import click

from folio.commands._base import FolioCommand
from folio.services.result import ServiceResult

if TYPE_CHECKING:
    from folio.commands._context import AppContext


@click.command(
    "init",
    cls=FolioCommand,
    examples="""\
  folio init
  folio init ~/records""",
)
@click.argument("path", required=False, type=click.Path(file_okay=False, path_type=Path))
@click.pass_obj
def init_cmd(app: AppContext, path: Path | None) -> None:
    """Create folio.yaml in PATH (default: the current root) and assign a repository id."""
    from folio.infrastructure.workspace import Workspace

    workspace = Workspace.init((path or app.settings.repo_root).resolve())
    app.emit(
        ServiceResult(
            ok=True,
            op="init",
            data={
                "root": str(workspace.root),
                "repository_id": workspace.config.repository_id,
                "collections": workspace.collections,
            },
        )
    )
