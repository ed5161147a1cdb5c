"""AppContext: shared click context for all commands.

Created once by the root group and handed to subcommands via
``@click.pass_obj``. The workspace is opened lazily, so ``--help`` and
``init`` never need an existing repository.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import click

from folio.config.logging import configure_logging
from folio.output.formatters import format_result

if TYPE_CHECKING:
    from folio.config.settings import FolioSettings
    from folio.infrastructure.workspace import Workspace
    from folio.services.result import ServiceResult


class AppContext:
    def __init__(self, settings: FolioSettings) -> None:
        self.settings = settings
        self._workspace: Workspace | None = None
        configure_logging(verbose=settings.verbose, log_json=settings.log_json)

    @property
    def workspace(self) -> Workspace:
        """The workspace for the discovered root (opened on first use)."""
        if self._workspace is None:
            from folio.infrastructure.workspace import Workspace

            self._workspace = Workspace(self.settings)
        return self._workspace

    def emit(self, result: ServiceResult) -> None:
        """Print *result*; a failed result goes to stderr with exit status 1.

        Warnings go to stderr so piped output stays clean.
        """
        output = format_result(result, json_output=self.settings.json_output)
        if result.ok:
            click.echo(output)
            if not self.settings.json_output:
                for warning in result.warnings:
                    click.echo(f"WARNING: {warning}", err=True)
        else:
            click.echo(output, err=True)
            raise SystemExit(1)
