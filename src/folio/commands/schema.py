"""Command group: collection schemas and aliases."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import click

from folio.commands._base import FolioGroup, parse_assignments

if TYPE_CHECKING:
    from folio.commands._context import AppContext

_SCHEMA_EXAMPLES = """\
  folio schema show
  folio schema add-collection clients --slug "{{name}}-{{short_id}}"
  folio schema add-field clients name --type string --required
  folio schema add-field invoices client --type reference --ref clients
  folio schema rename-collection clients customers
  folio schema remove-collection customers --remove-documents"""


def _field_options(func: Any) -> Any:
    """Options shared by add-field and update-field; all default to "unchanged"."""
    options = [
        click.option("--type", "type_", default=None, help="Field type, e.g. string, array<date>."),
        click.option("--required/--optional", default=None, help="Whether a value is required."),
        click.option("--default", "default", default=None, help="Default value."),
        click.option("--enum", "enum_values", multiple=True, help="Allowed value (repeatable)."),
        click.option("--pattern", default=None, help="Regex the value must match."),
        click.option("--min", "min_", type=float, default=None, help="Minimum (number/length)."),
        click.option("--max", "max_", type=float, default=None, help="Maximum (number/length)."),
        click.option("--weight", type=int, default=None, help="Display weight."),
        click.option("--description", default=None, help="Free-text description."),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def _definition(**values: Any) -> dict[str, Any]:
    renamed = {"type_": "type", "min_": "min", "max_": "max"}
    out: dict[str, Any] = {}
    for key, value in values.items():
        if value is None or value == ():
            continue
        out[renamed.get(key, key)] = list(value) if isinstance(value, tuple) else value
    return out


@click.group(cls=FolioGroup, examples=_SCHEMA_EXAMPLES)
@click.pass_obj
def schema(app: AppContext) -> None:
    """Inspect and change collections, fields and aliases."""


@schema.command("show")
@click.argument("collection", required=False)
@click.pass_obj
def show_schema(app: AppContext, collection: str | None) -> None:
    """Show every schema, or one collection's."""
    from folio.services.schema import SchemaService

    svc = SchemaService(app.workspace)
    app.emit(svc.read(collection) if collection else svc.show())


@schema.command("add-collection")
@click.argument("name")
@click.option("--alias", default=None, help="Short alias (default: generated).")
@click.option("--slug", default=None, help="Slug template, e.g. '{{name}}-{{short_id}}'.")
@click.option("--short-id-length", type=int, default=None, help="Short id length (4-16).")
@click.option("--ref", "references", multiple=True, help="Reference as FIELD=COLLECTION.")
@click.pass_obj
def add_collection(
    app: AppContext,
    name: str,
    alias: str | None,
    slug: str | None,
    short_id_length: int | None,
    references: tuple[str, ...],
) -> None:
    """Create collection NAME with its _schema.yaml and an alias."""
    from folio.services.schema import SchemaService

    result = SchemaService(app.workspace).add_collection(
        name,
        alias=alias,
        slug=slug,
        references=parse_assignments(references, option="--ref"),
        short_id_length=short_id_length,
    )
    app.emit(result)


@schema.command("update-collection")
@click.argument("collection")
@click.option("--alias", default=None, help="Replace the collection's alias.")
@click.option("--slug", default=None, help="New slug template.")
@click.option("--short-id-length", type=int, default=None, help="Short id length (4-16).")
@click.option("--title-field", default=None, help="Field used as display name.")
@click.option("--index-file", default=None, help="Index file name of folder documents.")
@click.pass_obj
def update_collection(
    app: AppContext,
    collection: str,
    alias: str | None,
    slug: str | None,
    short_id_length: int | None,
    title_field: str | None,
    index_file: str | None,
) -> None:
    """Change a collection's settings."""
    from folio.services.schema import SchemaService

    result = SchemaService(app.workspace).update_collection(
        collection,
        alias=alias,
        slug=slug,
        short_id_length=short_id_length,
        title_field=title_field,
        index_file=index_file,
    )
    app.emit(result)


@schema.command("rename-collection")
@click.argument("collection")
@click.argument("new_name")
@click.pass_obj
def rename_collection(app: AppContext, collection: str, new_name: str) -> None:
    """Rename a collection, updating references, aliases and templates."""
    from folio.services.schema import SchemaService

    app.emit(SchemaService(app.workspace).rename_collection(collection, new_name))


@schema.command("remove-collection")
@click.argument("collection")
@click.option("--remove-documents", is_flag=True, help="Also delete its documents and templates.")
@click.option("--force", is_flag=True, help="Drop the schema even if documents remain.")
@click.pass_obj
def remove_collection(
    app: AppContext, collection: str, remove_documents: bool, force: bool
) -> None:
    """Remove a collection's schema and alias."""
    from folio.services.schema import SchemaService

    result = SchemaService(app.workspace).remove_collection(
        collection, remove_documents=remove_documents, force=force
    )
    app.emit(result)


@schema.command("add-field")
@click.argument("collection")
@click.argument("field_name")
@_field_options
@click.option("--ref", "reference_target", default=None, help="Target collection (reference).")
@click.pass_obj
def add_field(
    app: AppContext,
    collection: str,
    field_name: str,
    reference_target: str | None,
    **values: Any,
) -> None:
    """Add FIELD_NAME to a collection's schema."""
    from folio.services.schema import SchemaService

    result = SchemaService(app.workspace).add_field(
        collection, field_name, _definition(**values), reference_target=reference_target
    )
    app.emit(result)


@schema.command("update-field")
@click.argument("collection")
@click.argument("field_name")
@_field_options
@click.pass_obj
def update_field(app: AppContext, collection: str, field_name: str, **values: Any) -> None:
    """Change only the given attributes of an existing field."""
    from folio.services.schema import SchemaService

    changes = _definition(**values)
    if not changes:
        click.echo("No changes specified. Use --help for options.", err=True)
        raise SystemExit(1)
    app.emit(SchemaService(app.workspace).update_field(collection, field_name, changes))


@schema.command("remove-field")
@click.argument("collection")
@click.argument("field_name")
@click.pass_obj
def remove_field(app: AppContext, collection: str, field_name: str) -> None:
    """Remove a field (and its reference target) from a collection's schema."""
    from folio.services.schema import SchemaService

    app.emit(SchemaService(app.workspace).remove_field(collection, field_name))
