"""Command: repository consistency check and repair."""

from __future__ import annotations

from typing import TYPE_CHECKING

import click

from folio.commands._base import FolioCommand

if TYPE_CHECKING:
    from folio.commands._context import AppContext


@click.command(
    cls=FolioCommand,
    examples="""\
  folio check
  folio check clients
  folio check --fix
  folio check --fix --prune-attachments
  folio --json check""",
)
@click.argument("collection", required=False)
@click.option("--fix", is_flag=True, help="Apply deterministic repairs.")
@click.option(
    "--prune-attachments",
    is_flag=True,
    help="With --fix, delete attachments the body never references.",
)
@click.pass_obj
def check(app: AppContext, collection: str | None, fix: bool, prune_attachments: bool) -> None:
    """Validate every document and report issues; exits 1 when a plain check finds errors."""
    from folio.services.check import CheckService

    if prune_attachments and not fix:
        raise click.UsageError("--prune-attachments requires --fix")

    result = CheckService(app.workspace).check(
        collection, fix=fix, prune_attachments=prune_attachments
    )
    app.emit(result)
    if not fix and result.data.get("errors"):
        raise SystemExit(1)
