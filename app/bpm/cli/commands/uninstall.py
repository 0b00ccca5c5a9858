"""Uninstall command implementation."""

from typing import Annotated

import typer

from bpm.cli.display import create_outcomes_table, print_outcomes_summary
from bpm.cli.types import is_quiet, open_installer
from bpm.utils.formatting import console


def uninstall(
    ctx: typer.Context,
    packages: Annotated[list[str], typer.Argument(help="Names of packages to remove.")],
) -> None:
    """Remove installed packages and the empty directories they created."""
    with open_installer(ctx) as installer:
        outcomes = [installer.uninstall(name) for name in packages]

    console.print(create_outcomes_table(outcomes))
    if not is_quiet(ctx):
        print_outcomes_summary(outcomes)
    if not all(outcome.ok for outcome in outcomes):
        raise typer.Exit(code=1)
