"""Command group: hidden drafts planned from slug values."""

from __future__ import annotations

from typing import TYPE_CHECKING

import click

from folio.commands._base import FolioGroup

if TYPE_CHECKING:
    from folio.commands._context import AppContext

_DRAFT_EXAMPLES = """\
  folio draft stage clients "Acme Corp"
  folio draft commit clients/.draft-a1b2c3-acme-corp.md clients/acme-corp-a1b2c3.md
  folio draft discard clients/.draft-a1b2c3-acme-corp.md"""


@click.group(cls=FolioGroup, examples=_DRAFT_EXAMPLES)
@click.pass_obj
def draft(app: AppContext) -> None:
    """Stage, commit or discard draft documents."""


@draft.command("stage")
@click.argument("collection")
@click.argument("args", nargs=-1)
@click.option("--template", default=None, help="Render the body from a named template.")
@click.pass_obj
def stage(app: AppContext, collection: str, args: tuple[str, ...], template: str | None) -> None:
    """Write a hidden draft for the document whose slug values are ARGS."""
    from folio.services.drafts import DraftService

    app.emit(DraftService(app.workspace).stage(collection, list(args), template=template))


@draft.command("commit")
@click.argument("draft_path")
@click.argument("target_path")
@click.pass_obj
def commit(app: AppContext, draft_path: str, target_path: str) -> None:
    """Validate DRAFT_PATH and move it into place as TARGET_PATH."""
    from folio.services.drafts import DraftService

    app.emit(DraftService(app.workspace).commit(draft_path, target_path))


@draft.command("discard")
@click.argument("draft_path")
@click.pass_obj
def discard(app: AppContext, draft_path: str) -> None:
    """Delete a draft."""
    from folio.services.drafts import DraftService

    app.emit(DraftService(app.workspace).discard(draft_path))
