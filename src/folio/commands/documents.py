"""Commands: document lifecycle (create, show, update, delete, list, attach, rename, plan)."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

import click

from folio.commands._base import FolioCommand, parse_assignments

if TYPE_CHECKING:
    from folio.commands._context import AppContext


@click.command(
    cls=FolioCommand,
    examples="""\
  folio create clients --field name="Acme Corp"
  folio create inv --field client=01jx4 --field amount=120 --field date=today
  folio create notes --template meeting --field title="Kickoff"
  folio create notes --field title=Draft --skip-validation""",
)
@click.argument("collection")
@click.option("-f", "--field", "fields", multiple=True, help="Field value as KEY=VALUE.")
@click.option("--body", default="", help="Document body (ignored with --template).")
@click.option("--template", default=None, help="Render the body from a named template.")
@click.option("--overwrite", is_flag=True, help="Replace a file already at the target path.")
@click.option("--skip-validation", is_flag=True, help="Write even if validation fails.")
@click.pass_obj
def create(
    app: AppContext,
    collection: str,
    fields: tuple[str, ...],
    body: str,
    template: str | None,
    overwrite: bool,
    skip_validation: bool,
) -> None:
    """Create a document in COLLECTION (name or alias)."""
    from folio.services.documents import DocumentService

    result = DocumentService(app.workspace).create(
        collection,
        parse_assignments(fields, option="--field"),
        content=body,
        template=template,
        overwrite=overwrite,
        skip_validation=skip_validation,
    )
    app.emit(result)


@click.command(
    cls=FolioCommand,
    examples="""\
  folio show 01jx4k
  folio show clients/acme
  folio show cli/01jx --raw""",
)
@click.argument("doc_id")
@click.option("--raw", is_flag=True, help="Print the stored file content as is.")
@click.pass_obj
def show(app: AppContext, doc_id: str, raw: bool) -> None:
    """Show one document by id, short id or filename prefix."""
    from folio.services.documents import DocumentService

    svc = DocumentService(app.workspace)
    if not raw:
        app.emit(svc.read(doc_id))
        return
    result = svc.read_raw(doc_id)
    if result.ok and not app.settings.json_output:
        click.echo(result.data["raw"], nl=False)
        return
    app.emit(result)


@click.command(
    cls=FolioCommand,
    examples="""\
  folio update 01jx4k --field name="Beta Corp"
  folio update clients/beta --unset phone
  folio update 01jx4k --body "New body" """,
)
@click.argument("doc_id")
@click.option("-f", "--field", "fields", multiple=True, help="Field value as KEY=VALUE.")
@click.option("--unset", multiple=True, help="Remove a field (repeatable).")
@click.option("--body", default=None, help="Replace the document body.")
@click.option("--skip-validation", is_flag=True, help="Write even if validation fails.")
@click.pass_obj
def update(
    app: AppContext,
    doc_id: str,
    fields: tuple[str, ...],
    unset: tuple[str, ...],
    body: str | None,
    skip_validation: bool,
) -> None:
    """Update a document's fields or body; the file follows its new slug."""
    from folio.services.documents import DocumentService

    changes = parse_assignments(fields, option="--field")
    if not changes and not unset and body is None:
        click.echo("No changes specified. Use --help for options.", err=True)
        raise SystemExit(1)

    result = DocumentService(app.workspace).update(
        doc_id,
        changes,
        unset=list(unset),
        content=body,
        skip_validation=skip_validation,
    )
    app.emit(result)


@click.command(cls=FolioCommand)
@click.argument("doc_id")
@click.pass_obj
def delete(app: AppContext, doc_id: str) -> None:
    """Delete a document (a folder document with all its attachments)."""
    from folio.services.documents import DocumentService

    app.emit(DocumentService(app.workspace).delete(doc_id))


@click.command(
    "list",
    cls=FolioCommand,
    examples="""\
  folio list
  folio list clients
  folio list inv --where status=paid --limit 10""",
)
@click.argument("collection", required=False)
@click.option("-w", "--where", multiple=True, help="Field filter as KEY=VALUE.")
@click.option("--limit", type=int, default=None, help="Max results.")
@click.pass_obj
def list_cmd(
    app: AppContext,
    collection: str | None,
    where: tuple[str, ...],
    limit: int | None,
) -> None:
    """List documents, optionally in one collection."""
    from folio.services.documents import DocumentService

    result = DocumentService(app.workspace).list_documents(
        collection,
        where=parse_assignments(where, option="--where"),
        limit=limit,
    )
    app.emit(result)


@click.command(
    cls=FolioCommand,
    examples="""\
  folio attach 01jx4k ./contract.pdf
  folio attach 01jx4k ./scan.png --no-link --force""",
)
@click.argument("doc_id")
@click.argument("source", type=click.Path(dir_okay=False, path_type=Path))
@click.option("--no-link", is_flag=True, help="Do not append a link to the body.")
@click.option("--force", is_flag=True, help="Overwrite an existing attachment.")
@click.pass_obj
def attach(app: AppContext, doc_id: str, source: Path, no_link: bool, force: bool) -> None:
    """Copy SOURCE next to a document, turning it into a folder document."""
    from folio.services.documents import DocumentService

    result = DocumentService(app.workspace).attach_file(
        doc_id, source, add_reference=not no_link, force=force
    )
    app.emit(result)


@click.command(cls=FolioCommand)
@click.argument("path")
@click.pass_obj
def rename(app: AppContext, path: str) -> None:
    """Move the document at PATH onto the path its metadata computes."""
    from folio.services.documents import DocumentService

    app.emit(DocumentService(app.workspace).auto_rename_path(path))


@click.command(
    cls=FolioCommand,
    examples="""\
  folio plan clients "Acme Corp"
  folio plan notes 2024 "Weekly sync" --template meeting""",
)
@click.argument("collection")
@click.argument("args", nargs=-1)
@click.option("--template", default=None, help="Render the body from a named template.")
@click.pass_obj
def plan(app: AppContext, collection: str, args: tuple[str, ...], template: str | None) -> None:
    """Find the document whose slug values are ARGS, or preview a new one."""
    from folio.services.documents import DocumentService

    result = DocumentService(app.workspace).plan_by_slug(
        collection, list(args), template=template
    )
    app.emit(result)


@click.command(cls=FolioCommand)
@click.argument("collection", required=False)
@click.pass_obj
def templates(app: AppContext, collection: str | None) -> None:
    """List templates, optionally only those for COLLECTION."""
    from folio.services.templates import TemplateService

    app.emit(TemplateService(app.workspace).list_templates(collection))
