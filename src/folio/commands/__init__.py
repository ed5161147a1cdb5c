"""Subcommand modules for folio.

:func:`register_commands` imports lazily so ``folio --help`` stays fast.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import click


def register_commands(cli: click.Group) -> None:
    # --- Groups ---
    from folio.commands.drafts import draft
    from folio.commands.schema import schema

    cli.add_command(schema)
    cli.add_command(draft)

    # --- Standalone commands ---
    from folio.commands.check import check
    from folio.commands.documents import (
        attach,
        create,
        delete,
        list_cmd,
        plan,
        rename,
        show,
        templates,
        update,
    )
    from folio.commands.init_cmd import init_cmd

    for command in (
        init_cmd,
        create,
        show,
        update,
        delete,
        list_cmd,
        attach,
        rename,
        plan,
        templates,
        check,
    ):
        cli.add_command(command)
