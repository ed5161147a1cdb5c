"""Root CLI group for folio with global flags and command registration."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import click

from folio import __version__
from folio.commands import register_commands
from folio.commands._base import FolioGroup
from folio.commands._context import AppContext
from folio.config.settings import FolioSettings
from folio.errors import FolioError


class RootGroup(FolioGroup):
    """Turns an escaped exception into one message and exit status 1.

    With ``--debug`` the exception propagates so the traceback is shown.
    """

    def invoke(self, ctx: click.Context) -> Any:
        try:
            return super().invoke(ctx)
        except (click.ClickException, click.exceptions.Exit, click.Abort):
            raise
        except Exception as exc:
            if ctx.params.get("debug"):
                raise
            label = "ERROR" if isinstance(exc, FolioError) else f"ERROR ({type(exc).__name__})"
            click.echo(f"{label}: {exc}", err=True)
            ctx.exit(1)


@click.group(cls=RootGroup, invoke_without_command=True)
@click.version_option(version=__version__, prog_name="folio")
@click.option(
    "-C",
    "--root",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Repository root (default: walk up from the current directory).",
)
@click.option("--json", "json_output", is_flag=True, help="Structured JSON output.")
@click.option("-v", "--verbose", is_flag=True, help="Debug logging to stderr.")
@click.option("--log-json", is_flag=True, help="Structured JSON log output to stderr.")
@click.option("--debug", is_flag=True, help="Show tracebacks for unexpected failures.")
@click.pass_context
def cli(
    ctx: click.Context,
    root: Path | None,
    json_output: bool,
    verbose: bool,
    log_json: bool,
    debug: bool,
) -> None:
    """folio: schema-validated Markdown document repository."""
    settings = FolioSettings.from_cli(
        repo_root=root,
        json_output=json_output,
        verbose=verbose,
        log_json=log_json,
        debug=debug,
    )
    ctx.obj = AppContext(settings)
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


register_commands(cli)
